import argparse
import json
import logging
import sys
from logging import debug

from . import config
from .util.errors import ObjectError
from .util.objects import read_object


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser("objview", description="View decoded git loose objects")
    parser.add_argument("objectid", help="Object ID, full or abbreviated")
    parser.add_argument(
        "--objects-dir",
        default=None,
        help=f"Loose object directory (default {config.OBJECTS_DIR})",
    )
    parser.add_argument("--remote", default=None, help="Read objects from a dumb http remote instead")
    parser.add_argument("--raw", action="store_true", help="Print the inflated object as stored")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config.setup_logging(logging.DEBUG if args.verbose else config.LOG_LEVEL)

    store = config.make_store(args.objects_dir, args.remote)
    debug(f"Using {store}")

    try:
        if args.raw:
            for line in store.read(store.resolve(args.objectid)).split(b"\n"):
                print(line)
        else:
            obj = read_object(store, args.objectid)
            print(json.dumps(obj.to_dict(), indent=4, ensure_ascii=False))
    except ObjectError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
