import abc
import os
import re
import zlib
from logging import debug

import requests

from .errors import (
    AmbiguousIdentifierError,
    BadIdentifierError,
    NotFoundError,
    StorageError,
)

MIN_ABBREV = 4
HEX_PREFIX = re.compile(rf"[a-fA-F0-9]{{{MIN_ABBREV},40}}")


def check_identifier(hash: str) -> str:
    """Validate a (possibly abbreviated) hex object id and return it lower cased"""
    if not isinstance(hash, str) or not HEX_PREFIX.fullmatch(hash):
        raise BadIdentifierError(hash)
    return hash.lower()


def decompress_object(object: bytes, hash: str | None = None) -> bytes:
    """
    Inflate a loose object

    :raises StorageError: on invalid or truncated zlib data
    """
    d = zlib.decompressobj()
    try:
        res = d.decompress(object)
        res += d.flush()
    except zlib.error as e:
        raise StorageError(f"Cannot inflate object {hash}: {e}", hash) from e
    if not d.eof:
        raise StorageError(f"Object {hash} is truncated", hash)
    if d.unused_data:
        debug("Ignoring %d trailing bytes after object %s", len(d.unused_data), hash)
    return res


class ObjectStore(abc.ABC):
    # Every read goes back to the underlying storage, nothing is cached

    @abc.abstractmethod
    def read_compressed(self, hash: str) -> bytes:
        """Get the object exactly as stored (zlib compressed)"""
        raise NotImplementedError()

    def read(self, hash: str) -> bytes:
        """Get the inflated object, including its header"""
        hash = check_identifier(hash)
        return decompress_object(self.read_compressed(hash), hash)

    def resolve(self, hash: str) -> str:
        """Expand an abbreviated id to the full 40 character id"""
        hash = check_identifier(hash)
        if len(hash) != 40:
            raise BadIdentifierError(hash)
        return hash


class LooseObjectStore(ObjectStore):
    """Loose objects on disk, <root>/<first 2 hex>/<remaining 38 hex>"""

    def __init__(self, root: str | os.PathLike):
        self.root = os.fspath(root)

    def __repr__(self) -> str:
        return f"<LooseObjectStore {self.root}>"

    def object_path(self, hash: str) -> str:
        return os.path.join(self.root, hash[0:2], hash[2:])

    def read_compressed(self, hash: str) -> bytes:
        hash = self.resolve(hash)
        path = self.object_path(hash)
        debug(f"Reading {path}")
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError(hash) from None
        except OSError as e:
            raise StorageError(f"Cannot read object {hash}: {e}", hash) from e

    def resolve(self, hash: str) -> str:
        hash = check_identifier(hash)
        if len(hash) == 40:
            return hash

        fanout = os.path.join(self.root, hash[0:2])
        try:
            names = os.listdir(fanout)
        except FileNotFoundError:
            raise NotFoundError(hash) from None
        except OSError as e:
            raise StorageError(f"Cannot list {fanout}: {e}", hash) from e

        candidates = sorted(
            hash[0:2] + name
            for name in names
            if len(name) == 38 and name.startswith(hash[2:])
        )
        if not candidates:
            raise NotFoundError(hash)
        if len(candidates) > 1:
            raise AmbiguousIdentifierError(hash, candidates)
        debug(f"Expanded {hash} to {candidates[0]}")
        return candidates[0]


class DumbHttpStore(ObjectStore):
    """Loose objects served over git's dumb http protocol, <base_url>/objects/xx/yyyy"""

    def __init__(self, base_url: str, headers: dict | None = None, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.headers = headers
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"<DumbHttpStore {self.base_url}>"

    def object_url(self, hash: str) -> str:
        return f"{self.base_url}/objects/{hash[0:2]}/{hash[2:]}"

    def read_compressed(self, hash: str) -> bytes:
        hash = self.resolve(hash)
        url = self.object_url(hash)
        debug(f"Fetching {url}")
        try:
            res = requests.get(url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageError(f"Cannot fetch object {hash}: {e}", hash) from e

        if res.status_code == 404:
            raise NotFoundError(hash)
        if res.status_code != 200:
            raise StorageError(
                f"Fetching object {hash} failed with HTTP {res.status_code}", hash
            )
        return res.content
