import abc
import base64
import re
from dataclasses import dataclass
from enum import Enum
from logging import debug
from typing import Callable, ClassVar, NamedTuple

from .errors import (
    MalformedCommitError,
    MalformedHeaderError,
    MalformedTagError,
    MalformedTreeError,
    SizeMismatchError,
    StorageError,
    UnknownModeError,
    UnknownTypeError,
)

HASH_LEN = 20
HEX_ID = re.compile(rb"[a-fA-F0-9]{40}")
TYPE_MAX_LEN = 6  # "commit"
SIZE_MAX_LEN = 20


class OBJ_TYPE(Enum):
    OBJ_COMMIT = b"commit"
    OBJ_TREE = b"tree"
    OBJ_BLOB = b"blob"
    OBJ_TAG = b"tag"

    @classmethod
    def from_tag(cls, tag: bytes) -> "OBJ_TYPE":
        try:
            return cls(tag)
        except ValueError:
            raise UnknownTypeError(tag) from None

    def __str__(self) -> str:
        return self.value.decode()


class ENTRY_KIND(Enum):
    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK = "symlink"
    SUBMODULE = "submodule"


# Leading digits of a tree entry mode, leading zeros ignored:
# 40000 = directory, 100644/100755 = file, 120000 = symlink, 160000 = submodule (gitlink)
MODE_PREFIXES = (
    (b"40", ENTRY_KIND.DIRECTORY),
    (b"100", ENTRY_KIND.FILE),
    (b"120", ENTRY_KIND.SYMLINK),
    (b"160", ENTRY_KIND.SUBMODULE),
)


class Header(NamedTuple):
    type: OBJ_TYPE
    size: int


class TreeEntry(NamedTuple):
    mode: bytes
    kind: ENTRY_KIND
    name: bytes
    hash: bytes  # raw 20 bytes, see .hex()

    def hex(self) -> str:
        return self.hash.hex()

    def to_dict(self) -> dict:
        return {
            "mode": _text(self.mode),
            "kind": self.kind.value,
            "name": _text(self.name),
            "hash": self.hex(),
        }


class Person(NamedTuple):
    name: str
    email: str
    timestamp_raw: str  # "<epoch seconds> <zone offset>"

    def __str__(self) -> str:
        return f"{self.name} <{self.email}> {self.timestamp_raw}"

    @property
    def timestamp(self) -> int:
        return int(self.timestamp_raw.split(" ", 1)[0])

    @property
    def timezone(self) -> str:
        parts = self.timestamp_raw.split(" ", 1)
        return parts[1] if len(parts) > 1 else ""

    def to_dict(self) -> dict:
        return {"name": self.name, "email": self.email, "timestamp": self.timestamp_raw}


def _text(value: bytes, encoding: str = "utf-8") -> str:
    return value.decode(encoding, errors="replace")


def parse_person(value: bytes, error: type = MalformedCommitError) -> Person:
    """
    Split an identity line value (`Some Name <mail@host> 1700000000 +0100`) into a Person.

    The email is found by its angle brackets, so names may contain spaces.
    """
    start = value.find(b"<")
    end = value.find(b">", start + 1)
    if start == -1 or end == -1:
        raise error(f"Identity {value!r} has no <email>")
    return Person(
        name=_text(value[:start].strip()),
        email=_text(value[start + 1 : end]),
        timestamp_raw=_text(value[end + 1 :].strip()),
    )


def parse_header(raw: bytes) -> tuple[Header, bytes]:
    """
    Consume the `<type> <size>\\0` header of an inflated object.

    :returns: tuple(header, body bytes starting right after the NUL)
    """
    # Only the first few bytes can hold the header, the body is never scanned
    space = raw.find(b" ", 0, TYPE_MAX_LEN + 1)
    if space == -1:
        OBJ_TYPE.from_tag(raw[: TYPE_MAX_LEN + 1])
        raise MalformedHeaderError("Object header has no type/size separator")
    obj_type = OBJ_TYPE.from_tag(raw[:space])

    nul = raw.find(b"\0", space + 1, space + 2 + SIZE_MAX_LEN)
    if nul == -1:
        raise MalformedHeaderError("Object header is not NUL terminated")
    size = raw[space + 1 : nul]
    if not size or not size.isdigit():
        raise MalformedHeaderError(f"Object size {size!r} is not a decimal number")

    header = Header(obj_type, int(size))
    body = raw[nul + 1 :]
    if len(body) != header.size:
        raise SizeMismatchError(header.size, len(body))
    return header, body


def split_headers(
    body: bytes, error: type
) -> tuple[list[tuple[bytes, bytes]], bytes]:
    """
    Split a commit or tag body into its `label value` lines and the message.

    Lines starting with a space continue the previous value (gpgsig, mergetag).

    :returns: tuple(list of (label, value), message bytes)
    """
    headers = []
    idx = 0
    while idx < len(body):
        end = body.find(b"\n", idx)
        if end == -1:
            raise error("Header line is not newline terminated")
        line = body[idx:end]
        idx = end + 1

        if line == b"":
            return headers, body[idx:]
        if line.startswith(b" "):
            if not headers:
                raise error("Continuation line before any header")
            label, value = headers[-1]
            headers[-1] = (label, value + b"\n" + line[1:])
            continue

        label, sep, value = line.partition(b" ")
        if not sep:
            raise error(f"Header line {line!r} has no value")
        headers.append((label, value))

    # headers ran to the end of the body, nothing left for a message
    return headers, b""


def _object_id(value: bytes, error: type) -> str:
    if not HEX_ID.fullmatch(value):
        raise error(f"Invalid object id {value!r}")
    return value.decode("ascii").lower()


@dataclass(frozen=True)
class GitObject(abc.ABC):
    header: Header

    raw_type: ClassVar[OBJ_TYPE]

    @property
    def type(self) -> OBJ_TYPE:
        return self.header.type

    @property
    def size(self) -> int:
        return self.header.size

    @abc.abstractmethod
    def body_dict(self) -> dict:
        """JSON-safe representation of the decoded body"""
        raise NotImplementedError()

    def to_dict(self) -> dict:
        return {"type": str(self.type), "size": self.size, **self.body_dict()}


@dataclass(frozen=True)
class BlobObject(GitObject):
    contents: bytes

    raw_type = OBJ_TYPE.OBJ_BLOB

    @classmethod
    def from_body(cls, header: Header, body: bytes) -> "BlobObject":
        return cls(header, body)

    def __repr__(self) -> str:
        return f"<Blob Obj len={len(self.contents)}>"

    def body_dict(self) -> dict:
        try:
            return {"encoding": "utf-8", "contents": self.contents.decode("utf-8")}
        except UnicodeDecodeError:
            return {
                "encoding": "base64",
                "contents": base64.b64encode(self.contents).decode("ascii"),
            }


@dataclass(frozen=True)
class TreeObject(GitObject):
    entries: tuple[TreeEntry, ...]

    raw_type = OBJ_TYPE.OBJ_TREE

    @classmethod
    def from_body(cls, header: Header, body: bytes) -> "TreeObject":
        entries = []
        idx = 0

        # The hash is fixed width binary and may contain any byte, including
        # NUL and space, so it is never searched for a delimiter
        while idx < len(body):
            nul = body.find(b"\0", idx)
            if nul == -1:
                raise MalformedTreeError(f"Tree entry {len(entries)} has no NUL after its name")
            space = body.find(b" ", idx, nul)
            if space == -1:
                raise MalformedTreeError(f"Tree entry {len(entries)} has no mode")

            mode = body[idx:space]
            name = body[space + 1 : nul]
            file_hash = body[nul + 1 : nul + 1 + HASH_LEN]
            if len(file_hash) != HASH_LEN:
                raise MalformedTreeError(
                    f"Tree entry {len(entries)} is truncated ({len(file_hash)} hash bytes)"
                )

            entries.append(TreeEntry(mode, entry_kind(mode, len(entries)), name, file_hash))
            idx = nul + 1 + HASH_LEN

        return cls(header, tuple(entries))

    def __repr__(self) -> str:
        return f"<Tree Obj {', '.join(f'(mode={e.mode} name={e.name} hash={e.hex()})' for e in self.entries)}>"

    def get_entry(self, name: bytes) -> TreeEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def body_dict(self) -> dict:
        return {"entries": [entry.to_dict() for entry in self.entries]}


def entry_kind(mode: bytes, index: int) -> ENTRY_KIND:
    digits = mode.lstrip(b"0")
    for prefix, kind in MODE_PREFIXES:
        if digits.startswith(prefix):
            return kind
    raise UnknownModeError(index, mode)


@dataclass(frozen=True)
class CommitObject(GitObject):
    tree: TreeObject
    tree_hash: str
    parents: tuple[str, ...]
    author: Person
    committer: Person
    message: str
    encoding: str | None = None
    gpg_signature: bytes | None = None

    raw_type = OBJ_TYPE.OBJ_COMMIT

    @classmethod
    def from_body(
        cls,
        header: Header,
        body: bytes,
        resolve: Callable[[str], TreeObject],
    ) -> "CommitObject":
        """
        Decode a commit body, resolving its tree through `resolve`

        :param resolve: callable mapping a tree id to its decoded TreeObject
        """
        headers, message = split_headers(body, MalformedCommitError)

        tree_hash = None
        parents = []
        author = None
        committer = None
        encoding = None
        gpg_signature = None

        # Only 5 standard headers plus signing, anything else is skipped
        for label, value in headers:
            match label:
                case b"tree":
                    if tree_hash is not None:
                        raise MalformedCommitError("Multiple trees defined in commit")
                    tree_hash = _object_id(value, MalformedCommitError)
                case b"parent":
                    parents.append(_object_id(value, MalformedCommitError))
                case b"author":
                    if author is not None:
                        raise MalformedCommitError("Multiple authors defined in commit")
                    author = parse_person(value)
                case b"committer":
                    if committer is not None:
                        raise MalformedCommitError("Multiple committers defined in commit")
                    committer = parse_person(value)
                case b"encoding":
                    encoding = _text(value)
                case b"gpgsig":
                    gpg_signature = value
                case _:
                    debug("Ignoring commit header %r", label)

        if tree_hash is None:
            raise MalformedCommitError("Commit has no tree")
        if author is None:
            raise MalformedCommitError("Commit has no author")
        if committer is None:
            raise MalformedCommitError("Commit has no committer")

        debug("Resolving tree %s", tree_hash)
        tree = resolve(tree_hash)

        try:
            text = _text(message, encoding or "utf-8")
        except LookupError:
            debug("Unknown commit encoding %s, falling back to utf-8", encoding)
            text = _text(message)

        return cls(
            header,
            tree=tree,
            tree_hash=tree_hash,
            parents=tuple(parents),
            author=author,
            committer=committer,
            message=text,
            encoding=encoding,
            gpg_signature=gpg_signature,
        )

    def __repr__(self) -> str:
        return f"<Commit Obj tree={self.tree_hash} parents={list(self.parents)} author={self.author} committer={self.committer}>"

    def body_dict(self) -> dict:
        res = {
            "tree": {"hash": self.tree_hash, **self.tree.to_dict()},
            "parents": list(self.parents),
            "author": self.author.to_dict(),
            "committer": self.committer.to_dict(),
            "message": self.message,
        }
        if self.encoding is not None:
            res["encoding"] = self.encoding
        if self.gpg_signature is not None:
            res["gpgsig"] = _text(self.gpg_signature)
        return res


TAG_HEADERS = [b"object", b"type", b"tag", b"tagger"]


@dataclass(frozen=True)
class TagObject(GitObject):
    object: str
    object_type: OBJ_TYPE
    name: str
    tagger: Person
    message: str

    raw_type = OBJ_TYPE.OBJ_TAG

    @classmethod
    def from_body(cls, header: Header, body: bytes) -> "TagObject":
        headers, message = split_headers(body, MalformedTagError)

        labels = [label for label, _ in headers[: len(TAG_HEADERS)]]
        if labels != TAG_HEADERS:
            raise MalformedTagError(
                f"Tag headers must start with object, type, tag, tagger (got {labels})"
            )
        values = [value for _, value in headers[: len(TAG_HEADERS)]]

        try:
            object_type = OBJ_TYPE.from_tag(values[1])
        except UnknownTypeError:
            raise MalformedTagError(f"Tag points at unknown type {values[1]!r}") from None

        return cls(
            header,
            object=_object_id(values[0], MalformedTagError),
            object_type=object_type,
            name=_text(values[2]),
            tagger=parse_person(values[3], MalformedTagError),
            message=_text(message),
        )

    def __repr__(self) -> str:
        return f"<Tag Obj {self.name} -> {self.object_type} {self.object}>"

    def body_dict(self) -> dict:
        return {
            "object": self.object,
            "object_type": str(self.object_type),
            "name": self.name,
            "tagger": self.tagger.to_dict(),
            "message": self.message,
        }


# given an object's inflated contents, returns the appropriate instance of a GitObject
def parse_object(
    obj_contents: bytes, resolve: Callable[[str], TreeObject] | None = None
) -> GitObject:
    header, body = parse_header(obj_contents)
    debug("Parsed header %s %d", header.type, header.size)

    match header.type:
        case OBJ_TYPE.OBJ_BLOB:
            return BlobObject.from_body(header, body)
        case OBJ_TYPE.OBJ_TREE:
            return TreeObject.from_body(header, body)
        case OBJ_TYPE.OBJ_TAG:
            return TagObject.from_body(header, body)
        case OBJ_TYPE.OBJ_COMMIT:
            if resolve is None:
                raise StorageError("No object store available to resolve the commit tree")
            return CommitObject.from_body(header, body, resolve)
        case _:
            raise UnknownTypeError(header.type.value)


def read_tree(store, hash: str) -> TreeObject:
    """Read a tree referenced by a commit. Its own subtrees are left unresolved."""
    header, body = parse_header(store.read(hash))
    if header.type is not TreeObject.raw_type:
        raise MalformedCommitError(f"Commit tree {hash} is a {header.type}, not a tree")
    return TreeObject.from_body(header, body)


def read_object(store, hash: str) -> GitObject:
    """
    Read and decode one object from a store (see util.store)

    Abbreviated ids are expanded by the store first. A commit's tree is read from
    the same store.
    """
    hash = store.resolve(hash)
    debug(f"Reading object {hash}")
    return parse_object(store.read(hash), resolve=lambda tree_hash: read_tree(store, tree_hash))
