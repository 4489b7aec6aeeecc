import pytest

from bucketfs.enums import EntryType
from bucketfs.exceptions import NotFound, StoreUnavailable, ValidationError
from bucketfs.memory import MemoryKeyStore
from bucketfs.mutations import create_folder, delete_entry, open_entry, rename_entry
from bucketfs.namespace import list_entries


class FlakyStore(MemoryKeyStore):
    """
    Fails delete or copy for chosen keys.
    """

    def __init__(self, objects, fail_delete=(), fail_copy=()):
        super().__init__(objects)
        self.fail_delete = set(fail_delete)
        self.fail_copy = set(fail_copy)

    async def delete(self, key):
        if key in self.fail_delete:
            raise StoreUnavailable("delete", "connection reset")
        await super().delete(key)

    async def copy(self, src_key, dst_key):
        if src_key in self.fail_copy:
            raise StoreUnavailable("copy", "connection reset")
        await super().copy(src_key, dst_key)


class OrderRecordingStore(MemoryKeyStore):
    def __init__(self, objects):
        super().__init__(objects)
        self.calls = []

    async def copy(self, src_key, dst_key):
        self.calls.append(("copy", src_key))
        await super().copy(src_key, dst_key)

    async def delete(self, key):
        self.calls.append(("delete", key))
        await super().delete(key)


@pytest.mark.anyio
async def test_create_folder_writes_marker(store):
    marker = await create_folder(store, "a/b/")

    assert marker == "a/b/.placeholder"
    assert store.keys() == ["a/b/.placeholder"]
    assert store.read(marker) == b""
    assert (await store.metadata(marker)).content_type == "text/plain"


@pytest.mark.anyio
async def test_create_folder_is_idempotent(store):
    await create_folder(store, "a/")
    await create_folder(store, "a/")

    assert store.keys() == ["a/.placeholder"]


@pytest.mark.anyio
@pytest.mark.parametrize("path", ["", "a", "a/b"])
async def test_create_folder_validates_path(store, path):
    with pytest.raises(ValidationError):
        await create_folder(store, path)
    assert store.keys() == []


@pytest.mark.anyio
async def test_delete_file():
    store = MemoryKeyStore({"a/b.txt": b"x", "a/c.txt": b"y"})

    result = await delete_entry(store, "a/b.txt", EntryType.FILE)

    assert result.ok
    assert store.keys() == ["a/c.txt"]


@pytest.mark.anyio
async def test_delete_missing_file_raises(store):
    with pytest.raises(NotFound):
        await delete_entry(store, "nope.txt", "file")


@pytest.mark.anyio
async def test_delete_folder_removes_every_descendant():
    keys = ["a/1.txt", "a/2.txt", "a/.placeholder", "a/sub/3.txt", "a/sub/deeper/4.txt"]
    store = MemoryKeyStore({key: b"data" for key in keys} | {"ab.txt": b"keep"})

    result = await delete_entry(store, "a/", EntryType.FOLDER)

    assert result.ok
    assert sorted(o.key for o in result.outcomes) == sorted(keys)
    assert store.keys() == ["ab.txt"]
    assert [e.name for e in await list_entries(store, "")] == ["ab.txt"]


@pytest.mark.anyio
async def test_delete_folder_reports_partial_failure():
    store = FlakyStore(
        {"a/1.txt": b"1", "a/2.txt": b"2", "a/3.txt": b"3"}, fail_delete=["a/2.txt"]
    )

    result = await delete_entry(store, "a/", "folder")

    assert not result.ok
    assert [o.key for o in result.failed] == ["a/2.txt"]
    assert "connection reset" in result.failed[0].reason
    assert store.keys() == ["a/2.txt"]


@pytest.mark.anyio
async def test_delete_validates_arguments(store):
    with pytest.raises(ValidationError):
        await delete_entry(store, "", "folder")
    with pytest.raises(ValidationError):
        await delete_entry(store, "a", "folder")
    with pytest.raises(ValidationError):
        await delete_entry(store, "a/", "symlink")


@pytest.mark.anyio
async def test_rename_file_preserves_content_and_type():
    store = MemoryKeyStore()
    await store.put("a/b.txt", b"payload", content_type="text/plain")

    result = await rename_entry(store, "a/b.txt", "a/c.txt")

    assert result.ok
    assert not await store.exists("a/b.txt")
    assert store.read("a/c.txt") == b"payload"
    metadata = await store.metadata("a/c.txt")
    assert (metadata.size, metadata.content_type) == (7, "text/plain")


@pytest.mark.anyio
async def test_rename_file_copies_before_deleting():
    store = OrderRecordingStore({"a.txt": b"x"})

    await rename_entry(store, "a.txt", "b.txt")

    assert store.calls == [("copy", "a.txt"), ("delete", "a.txt")]


@pytest.mark.anyio
async def test_rename_missing_file_raises_and_touches_nothing(store):
    with pytest.raises(NotFound):
        await rename_entry(store, "missing.txt", "other.txt")
    assert store.keys() == []


@pytest.mark.anyio
async def test_rename_folder_moves_all_descendants():
    store = MemoryKeyStore(
        {
            "old/a.txt": b"a",
            "old/.placeholder": b"",
            "old/sub/b.txt": b"bb",
            "older/c.txt": b"c",
        }
    )

    result = await rename_entry(store, "old/", "new/")

    assert result.ok
    assert store.keys() == [
        "new/.placeholder",
        "new/a.txt",
        "new/sub/b.txt",
        "older/c.txt",
    ]
    assert store.read("new/sub/b.txt") == b"bb"


@pytest.mark.anyio
async def test_rename_folder_keeps_originals_whose_copy_failed():
    store = FlakyStore({"old/a.txt": b"a", "old/b.txt": b"b"}, fail_copy=["old/b.txt"])

    result = await rename_entry(store, "old/", "new/")

    assert not result.ok
    assert [o.key for o in result.failed] == ["old/b.txt"]
    assert result.failed[0].reason.startswith("copy failed")
    assert store.keys() == ["new/a.txt", "old/b.txt"]


@pytest.mark.anyio
async def test_rename_folder_reports_failed_delete():
    store = FlakyStore({"old/a.txt": b"a"}, fail_delete=["old/a.txt"])

    result = await rename_entry(store, "old/", "new/")

    assert not result.ok
    assert result.failed[0].reason.startswith("copied but original not deleted")
    assert store.keys() == ["new/a.txt", "old/a.txt"]


@pytest.mark.anyio
async def test_rename_missing_folder_raises(store):
    with pytest.raises(NotFound):
        await rename_entry(store, "ghost/", "spirit/")


@pytest.mark.anyio
@pytest.mark.parametrize(
    "old_path,new_path",
    [
        ("", "b.txt"),
        ("a.txt", ""),
        ("a.txt", "a.txt"),
        ("a.txt", "b/"),
        ("a/", "b.txt"),
        ("a/", "a/inner/"),
    ],
)
async def test_rename_validates_paths(old_path, new_path):
    store = MemoryKeyStore({"a.txt": b"x", "a/x.txt": b"y"})

    with pytest.raises(ValidationError):
        await rename_entry(store, old_path, new_path)
    assert store.keys() == ["a.txt", "a/x.txt"]


@pytest.mark.anyio
async def test_rename_folder_into_ancestor_is_rejected():
    store = MemoryKeyStore({"a/b/z": b"Y", "a/b/b/z": b"X"})

    with pytest.raises(ValidationError):
        await rename_entry(store, "a/b/", "a/")

    assert store.keys() == ["a/b/b/z", "a/b/z"]
    assert store.read("a/b/z") == b"Y"
    assert store.read("a/b/b/z") == b"X"


@pytest.mark.anyio
async def test_open_entry_streams_content():
    store = MemoryKeyStore({"docs/report.pdf": b"%PDF" * 1000})

    opened = await open_entry(store, "docs/report.pdf")

    assert opened.filename == "report.pdf"
    assert opened.metadata.size == 4000
    assert b"".join([chunk async for chunk in opened.chunks]) == b"%PDF" * 1000


@pytest.mark.anyio
async def test_open_entry_missing(store):
    with pytest.raises(NotFound):
        await open_entry(store, "missing.bin")
    with pytest.raises(ValidationError):
        await open_entry(store, "")
