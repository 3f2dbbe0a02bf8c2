import pytest

from version_plane.errors import CorruptObject, NotFound
from version_plane.impl.memory import MemoryObjectStore
from version_plane.objects import FILE_MODE, Tree, TreeEntry, hash_object, ObjectKind
from version_plane.tree import Dir, TreeBuilder


def nested_dir() -> Dir:
    root = Dir().put("README.md", b"dirctorieeeeeeeees")

    dir1 = Dir("child1").put("1.md", b"1__1").put("2.md", b"1__2")
    dir1.put_dir(Dir("child1-child1").put("1.md", b"1_1__1").put("2.md", b"1_1__2"))
    dir1.put_dir(Dir("child1-child2").put("1.md", b"1_2__1").put("2.md", b"1_2__2"))

    dir2 = Dir("child2").put("1.md", b"2__1").put("2.md", b"2__2")
    dir2.put_dir(Dir("child2-child1").put("1.md", b"2_1__1").put("2.md", b"2_1__2"))
    dir2.put_dir(Dir("child2-child2").put("1.md", b"2_2__1").put("2.md", b"2_2__2"))

    return root.put_dir(dir1).put_dir(dir2)


def test_same_content_in_any_order_builds_same_tree():
    builder = TreeBuilder(MemoryObjectStore())

    first = Dir().put("a.txt", b"A").put_dir(Dir("sub").put("x", b"X").put("y", b"Y"))
    second = Dir().put_dir(Dir("sub").put("y", b"Y").put("x", b"X")).put("a.txt", b"A")

    assert builder.build(first) == builder.build(second)


def test_empty_dir_builds_empty_tree():
    store = MemoryObjectStore()
    oid = TreeBuilder(store).build(Dir())
    assert store.get_tree(oid) == Tree()


def test_duplicate_name_last_write_wins():
    root = Dir().put("name", b"file").put_dir(Dir("name").put("inner", b"x"))
    assert root.file("name") is None
    assert root.dir("name").file("inner") == b"x"

    root.put("name", b"file again")
    assert root.file("name") == b"file again"
    assert root.dir("name") is None


def test_put_dir_copies_its_argument():
    child = Dir("child").put("a", b"1")
    root = Dir().put_dir(child)

    child.put("b", b"2")

    assert sorted(root.dir("child").files) == ["a"]


def test_put_path_creates_directories():
    root = Dir().put_path("a/b/c.txt", b"c").put_path("a/d.txt", b"d")
    assert root.dir("a").dir("b").file("c.txt") == b"c"
    assert list(root.walk()) == [("a/b/c.txt", b"c"), ("a/d.txt", b"d")]


@pytest.mark.parametrize("name", ["", ".", "..", "a/b", "nul\x00"])
def test_invalid_names_are_rejected(name):
    with pytest.raises(ValueError):
        Dir().put(name, b"")


def test_nested_round_trip():
    store = MemoryObjectStore()
    builder = TreeBuilder(store)
    source = nested_dir()

    tree = builder.build(source)

    assert set(builder.list_files(tree)) == {
        "README.md",
        "child1/1.md",
        "child1/2.md",
        "child1/child1-child1/1.md",
        "child1/child1-child1/2.md",
        "child1/child1-child2/1.md",
        "child1/child1-child2/2.md",
        "child2/1.md",
        "child2/2.md",
        "child2/child2-child1/1.md",
        "child2/child2-child1/2.md",
        "child2/child2-child2/1.md",
        "child2/child2-child2/2.md",
    }
    assert builder.read_file(tree, "child1/child1-child1/1.md") == b"1_1__1"
    assert builder.read_file(tree, "child2/child2-child2/2.md") == b"2_2__2"

    restored = builder.materialize(tree)
    assert restored == source
    assert restored.dir("child1").dir("child1-child1").file("1.md") == b"1_1__1"
    assert dict(restored.walk()) == dict(source.walk())


def test_read_file_missing_paths():
    builder = TreeBuilder(MemoryObjectStore())
    tree = builder.build(nested_dir())

    with pytest.raises(NotFound):
        builder.read_file(tree, "nope.md")
    with pytest.raises(NotFound):
        builder.read_file(tree, "README.md/child")
    with pytest.raises(NotFound):
        builder.read_file(tree, "child1")


def test_dangling_child_is_corrupt():
    store = MemoryObjectStore()
    builder = TreeBuilder(store)
    blob = store.put_blob(b"x")
    tree = store.put_tree(Tree.from_entries([TreeEntry("f", FILE_MODE, blob)]))

    # simulate a store that lost the blob
    del store.data[blob]

    with pytest.raises(CorruptObject):
        builder.read_file(tree, "f")
    with pytest.raises(CorruptObject):
        builder.materialize(tree)


def test_flatten_maps_paths_to_blob_ids():
    builder = TreeBuilder(MemoryObjectStore())
    tree = builder.build(Dir().put_path("a/b", b"B").put("c", b"C"))
    assert builder.flatten(tree) == {
        "a/b": hash_object(ObjectKind.BLOB, b"B"),
        "c": hash_object(ObjectKind.BLOB, b"C"),
    }
