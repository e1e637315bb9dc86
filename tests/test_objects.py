import base64

import pytest

from objview.util.errors import StorageError
from objview.util.objects import (
    OBJ_TYPE,
    BlobObject,
    CommitObject,
    TreeObject,
    parse_object,
    read_object,
)

from conftest import frame


def test_blob_end_to_end(writer, store):
    hash = writer.put_raw(b"blob 5\0hello")
    blob = read_object(store, hash)
    assert isinstance(blob, BlobObject)
    assert blob.type is OBJ_TYPE.OBJ_BLOB
    assert blob.size == 5
    assert blob.contents == b"hello"


def test_blob_abbreviated_id(writer, store):
    hash = writer.put(b"blob", b"abbrev")
    assert read_object(store, hash[:7]).contents == b"abbrev"


def test_blob_to_dict():
    assert parse_object(frame(b"blob", b"hi\n")).to_dict() == {
        "type": "blob",
        "size": 3,
        "encoding": "utf-8",
        "contents": "hi\n",
    }
    binary = b"\x89PNG\r\n\x1a\n\0\xff"
    assert parse_object(frame(b"blob", binary)).to_dict()["contents"] == (
        base64.b64encode(binary).decode()
    )


def test_blob_with_header_like_content():
    body = b"tree 3\0abc commit 0\0"
    assert parse_object(frame(b"blob", body)).contents == body


@pytest.mark.parametrize(
    "raw,cls",
    [
        (frame(b"blob", b""), BlobObject),
        (frame(b"tree", b""), TreeObject),
    ],
)
def test_dispatch(raw, cls):
    obj = parse_object(raw)
    assert type(obj) is cls
    assert obj.type is cls.raw_type


def test_commit_needs_resolver():
    body = (
        b"tree " + b"a" * 40 + b"\nauthor A <a@x> 1 +0000\ncommitter A <a@x> 1 +0000\n\n"
    )
    with pytest.raises(StorageError):
        parse_object(frame(b"commit", body))


def test_parse_is_idempotent():
    raw = frame(b"tree", b"100644 f\0" + bytes(20))
    assert parse_object(raw) == parse_object(raw)
    assert parse_object(raw) is not parse_object(raw)


def test_objects_are_immutable():
    blob = parse_object(frame(b"blob", b"x"))
    with pytest.raises(AttributeError):
        blob.contents = b"y"


def test_commit_to_dict(writer, store, sample_tree):
    tree_id, _ = sample_tree
    body = (
        f"tree {tree_id}\nauthor A B <a@x> 1 +0000\ncommitter C <c@x> 2 -0100\n\nmsg\n"
    ).encode()
    commit = read_object(store, writer.put(b"commit", body))
    assert isinstance(commit, CommitObject)
    res = commit.to_dict()
    assert res["type"] == "commit"
    assert res["parents"] == []
    assert res["author"] == {"name": "A B", "email": "a@x", "timestamp": "1 +0000"}
    assert [e["kind"] for e in res["tree"]["entries"]] == ["file", "directory", "file"]
    assert "gpgsig" not in res
