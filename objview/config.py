import logging
import os

from .util.store import DumbHttpStore, LooseObjectStore, ObjectStore

# Defaults can be overridden from the environment
OBJECTS_DIR = os.environ.get("OBJVIEW_OBJECTS_DIR", os.path.join(".git", "objects"))
REMOTE_URL = os.environ.get("OBJVIEW_REMOTE_URL") or None
LOG_LEVEL = os.environ.get("OBJVIEW_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT = "%(levelname)s:\t%(message)s"


def setup_logging(level: int | str = LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def make_store(objects_dir: str | None = None, remote: str | None = None) -> ObjectStore:
    """A remote url wins over a local objects directory"""
    remote = remote or REMOTE_URL
    if remote:
        return DumbHttpStore(remote)
    return LooseObjectStore(objects_dir or OBJECTS_DIR)
