import hashlib
import zlib

import pytest

from objview.util.store import LooseObjectStore


def frame(obj_type: bytes, body: bytes) -> bytes:
    return obj_type + b" " + str(len(body)).encode() + b"\0" + body


def get_hash(raw: bytes) -> str:
    return hashlib.sha1(raw).hexdigest()


def tree_entry(mode: bytes, name: bytes, hash: bytes) -> bytes:
    return mode + b" " + name + b"\0" + hash


class StoreWriter:
    """Writes loose objects into a temporary objects directory"""

    def __init__(self, root):
        self.root = root

    def put_raw(self, raw: bytes, hash: str | None = None) -> str:
        hash = hash or get_hash(raw)
        self.put_compressed(zlib.compress(raw), hash)
        return hash

    def put_compressed(self, data: bytes, hash: str) -> str:
        fanout = self.root / hash[0:2]
        fanout.mkdir(exist_ok=True)
        (fanout / hash[2:]).write_bytes(data)
        return hash

    def put(self, obj_type: bytes, body: bytes) -> str:
        return self.put_raw(frame(obj_type, body))


@pytest.fixture
def objects_dir(tmp_path):
    path = tmp_path / "objects"
    path.mkdir()
    return path


@pytest.fixture
def writer(objects_dir):
    return StoreWriter(objects_dir)


@pytest.fixture
def store(objects_dir):
    return LooseObjectStore(objects_dir)


@pytest.fixture
def sample_tree(writer):
    """Two files and a directory, returns (tree id, blob id)"""
    blob_id = writer.put(b"blob", b"hello")
    body = (
        tree_entry(b"100644", b"README.md", bytes.fromhex(blob_id))
        + tree_entry(b"40000", b"src", bytes(20))
        + tree_entry(b"100755", b"run me.sh", bytes.fromhex(blob_id))
    )
    return writer.put(b"tree", body), blob_id
