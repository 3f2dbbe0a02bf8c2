import logging
from typing import Any, Iterator

from version_plane.base import ObjectStore
from version_plane.errors import CorruptObject, NotFound
from version_plane.objects import (
    FILE_MODE,
    TREE_MODE,
    ObjectId,
    ObjectKind,
    Tree,
    TreeEntry,
    check_entry_name,
)

logger = logging.getLogger(__name__)


class Dir:
    """
    Mutable in-memory directory used to stage a commit.

    A Dir owns its children: nested Dirs are copied on insert, so changing
    the argument afterwards never alters what was staged. Names are unique
    within one Dir; putting a name again replaces the earlier file or
    directory.
    """

    def __init__(self, name: str = "root") -> None:
        self.name = name
        self.entries: dict[str, "bytes | Dir"] = {}

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Dir(...)")
        else:
            with p.group(4, f"Dir({self.name!r}, ", ")"):
                p.breakable()
                p.text("files=")
                p.pretty(sorted(self.files))
                p.text(",")
                p.breakable()
                p.text("dirs=")
                p.pretty(list(self.dirs.values()))
                p.breakable()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dir):
            return NotImplemented
        return self.entries == other.entries

    @property
    def files(self) -> dict[str, bytes]:
        return {k: v for k, v in sorted(self.entries.items()) if isinstance(v, bytes)}

    @property
    def dirs(self) -> dict[str, "Dir"]:
        return {k: v for k, v in sorted(self.entries.items()) if isinstance(v, Dir)}

    def file(self, name: str) -> bytes | None:
        value = self.entries.get(name)
        return value if isinstance(value, bytes) else None

    def dir(self, name: str) -> "Dir | None":
        value = self.entries.get(name)
        return value if isinstance(value, Dir) else None

    def put(self, name: str, content: bytes) -> "Dir":
        self.entries[check_entry_name(name)] = bytes(content)
        return self

    def put_dir(self, child: "Dir") -> "Dir":
        self.entries[check_entry_name(child.name)] = child.copy()
        return self

    def put_path(self, path: str, content: bytes) -> "Dir":
        """Stage a file under a `/`-separated path, creating directories as needed."""
        *parents, filename = path.split("/")
        current = self
        for part in parents:
            child = current.dir(part)
            if child is None:
                child = Dir(part)
                current.entries[check_entry_name(part)] = child
            current = child
        current.put(filename, content)
        return self

    def copy(self) -> "Dir":
        clone = Dir(self.name)
        for name, value in self.entries.items():
            clone.entries[name] = value.copy() if isinstance(value, Dir) else value
        return clone

    def walk(self, prefix: str = "") -> Iterator[tuple[str, bytes]]:
        """Yield (path, content) for every file, depth first in name order."""
        for name, value in sorted(self.entries.items()):
            if isinstance(value, Dir):
                yield from value.walk(f"{prefix}{name}/")
            else:
                yield f"{prefix}{name}", value

    def is_empty(self) -> bool:
        return not self.entries


class TreeBuilder:
    """Converts Dir values into stored tree graphs and back."""

    def __init__(self, objects: ObjectStore) -> None:
        self.objects = objects

    def build(self, root: Dir) -> ObjectId:
        entries = []
        for name, value in root.entries.items():
            if isinstance(value, Dir):
                entries.append(TreeEntry(name, TREE_MODE, self.build(value)))
            else:
                entries.append(TreeEntry(name, FILE_MODE, self.objects.put_blob(value)))
        oid = self.objects.put_tree(Tree.from_entries(entries))
        logger.debug("Built tree %s for dir %r (%d entries)", oid.short(), root.name, len(entries))
        return oid

    def _subtree(self, entry: TreeEntry) -> Tree:
        try:
            return self.objects.get_tree(entry.oid)
        except NotFound as e:
            raise CorruptObject(entry.oid, f"missing subtree '{entry.name}'") from e

    def read_blob(self, oid: ObjectId, path: str) -> bytes:
        """Content of a blob referenced from a tree; a missing blob means the tree is corrupt."""
        try:
            return self.objects.get(oid, ObjectKind.BLOB)
        except NotFound as e:
            raise CorruptObject(oid, f"missing blob '{path}'") from e

    def _blob(self, entry: TreeEntry) -> bytes:
        return self.read_blob(entry.oid, entry.name)

    def iter_entries(self, tree_id: ObjectId) -> Iterator[tuple[str, TreeEntry]]:
        """Yield (path, entry) for every file reachable from a tree, in tree order."""
        yield from self._iter_tree(self.objects.get_tree(tree_id), "")

    def _iter_tree(self, tree: Tree, prefix: str) -> Iterator[tuple[str, TreeEntry]]:
        for entry in tree:
            path = f"{prefix}{entry.name}"
            if entry.is_tree:
                yield from self._iter_tree(self._subtree(entry), f"{path}/")
            else:
                yield path, entry

    def list_files(self, tree_id: ObjectId) -> list[str]:
        return [path for path, _ in self.iter_entries(tree_id)]

    def flatten(self, tree_id: ObjectId) -> dict[str, ObjectId]:
        return {path: entry.oid for path, entry in self.iter_entries(tree_id)}

    def find(self, tree_id: ObjectId, path: str) -> TreeEntry:
        tree = self.objects.get_tree(tree_id)
        *parents, name = path.strip("/").split("/")
        for part in parents:
            entry = tree.get(part)
            if entry is None or not entry.is_tree:
                raise NotFound("Path", path)
            tree = self._subtree(entry)
        entry = tree.get(name)
        if entry is None:
            raise NotFound("Path", path)
        return entry

    def read_file(self, tree_id: ObjectId, path: str) -> bytes:
        entry = self.find(tree_id, path)
        if entry.is_tree:
            raise NotFound("File", path)
        return self._blob(entry)

    def materialize(self, tree_id: ObjectId) -> Dir:
        return self._materialize(self.objects.get_tree(tree_id), "root")

    def _materialize(self, tree: Tree, name: str) -> Dir:
        root = Dir(name)
        for entry in tree:
            if entry.is_tree:
                root.entries[entry.name] = self._materialize(self._subtree(entry), entry.name)
            else:
                root.entries[entry.name] = self._blob(entry)
        return root
