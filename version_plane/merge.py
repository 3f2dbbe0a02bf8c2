import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from version_plane.base import ObjectStore, RefStore
from version_plane.commits import CommitEngine
from version_plane.conflicts import ConflictExtractor, ConflictReport
from version_plane.diff3 import (
    OURS,
    THEIRS,
    ConflictState,
    LineMergeResult,
    merge_bytes,
    split_lines,
)
from version_plane.errors import MergeConflict, NotFound
from version_plane.history import HistoryWalker
from version_plane.objects import (
    FILE_MODE,
    TREE_MODE,
    Commit,
    Ident,
    ObjectId,
    ObjectKind,
    Tree,
    TreeEntry,
    encode_tree,
    hash_object,
)
from version_plane.tree import TreeBuilder

logger = logging.getLogger(__name__)


class MergeState(str, Enum):
    START = "start"
    COMPUTING_BASE = "computing_base"
    COMPARING_CHUNKS = "comparing_chunks"
    CLEAN = "clean"
    CONFLICTED = "conflicted"


@dataclass(frozen=True)
class Clean:
    """Every path merged automatically; `tree` is the merged tree id."""

    tree: ObjectId
    base: ObjectId | None
    source_head: ObjectId
    target_head: ObjectId
    report: ConflictReport = field(default_factory=dict)

    @property
    def state(self) -> MergeState:
        return MergeState.CLEAN


@dataclass(frozen=True)
class Conflicted:
    """
    At least one path could not be merged. `report` holds the segments of
    every path that needed a line-level merge, conflicting or not.
    """

    report: ConflictReport
    paths: tuple[str, ...]
    base: ObjectId | None
    source_head: ObjectId
    target_head: ObjectId

    @property
    def state(self) -> MergeState:
        return MergeState.CONFLICTED


MergeOutcome = Clean | Conflicted

# nested path -> blob id mapping used to assemble the merged tree
_PathTree = dict[str, "ObjectId | _PathTree"]


class MergeEngine:
    """
    Three-way merge of one branch (source, "ours") into another (target,
    "theirs") against the merge base found by HistoryWalker.

    try_merge, is_mergeable and get_conflicts never touch refs. complete is
    all-or-nothing: a conflicting merge raises MergeConflict before any ref
    is written, a clean one lands with a single compare-and-swap of the
    target branch.
    """

    def __init__(
        self,
        objects: ObjectStore,
        refs: RefStore,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.objects = objects
        self.commits = CommitEngine(objects, refs, clock)
        self.history = HistoryWalker(objects)
        self.trees = TreeBuilder(objects)

    def _log_state(self, state: MergeState, source: str, target: str) -> None:
        logger.debug("Merge %s -> %s: %s", source, target, state.value)

    def _head(self, branch: str) -> ObjectId:
        head = self.commits.head(branch)
        if head is None:
            raise NotFound("Branch", branch)
        return head

    def try_merge(self, source: str, target: str, write: bool = True) -> MergeOutcome:
        """
        Merge `source` into `target` without moving any ref.

        With write=False nothing is stored either; the merged tree id is
        computed but its new objects are not persisted.
        """
        self._log_state(MergeState.START, source, target)
        source_head = self._head(source)
        target_head = self._head(target)
        source_commit = self.objects.get_commit(source_head)
        target_commit = self.objects.get_commit(target_head)

        self._log_state(MergeState.COMPUTING_BASE, source, target)
        try:
            base, base_commit = self.history.find_merge_base(source_head, target_head)
            base_tree = base_commit.tree
        except NotFound:
            logger.info("No common history between '%s' and '%s'", source, target)
            base, base_tree = None, None

        self._log_state(MergeState.COMPARING_CHUNKS, source, target)
        merged, results = self.merge_trees(
            base_tree, source_commit.tree, target_commit.tree, write=write
        )
        report = ConflictExtractor(source, target).extract(results)

        conflicting = tuple(path for path, result in results.items() if result.has_conflicts)
        if conflicting:
            self._log_state(MergeState.CONFLICTED, source, target)
            return Conflicted(report, conflicting, base, source_head, target_head)

        self._log_state(MergeState.CLEAN, source, target)
        tree = self._write_paths(merged, write)
        return Clean(tree, base, source_head, target_head, report)

    def is_mergeable(self, source: str, target: str) -> bool:
        return isinstance(self.try_merge(source, target, write=False), Clean)

    def get_conflicts(self, source: str, target: str) -> ConflictReport:
        return self.try_merge(source, target, write=False).report

    def complete(
        self,
        source: str,
        target: str,
        author: Ident,
        message: str | None = None,
        delete: bool = False,
    ) -> tuple[ObjectId, Commit]:
        outcome = self.try_merge(source, target)
        if isinstance(outcome, Conflicted):
            raise MergeConflict(source, target, outcome.report)

        oid, commit = self.commits.write_commit(
            outcome.tree,
            [outcome.target_head, outcome.source_head],
            message or f"Merge branch '{source}' into {target}",
            author,
        )
        self.commits.advance(target, outcome.target_head, oid)
        logger.info("Merged '%s' into '%s' as %s", source, target, oid.short())

        if delete:
            self.commits.delete_branch(source)
        return oid, commit

    def _content(self, oid: ObjectId | None, path: str) -> bytes:
        if oid is None:
            return b""
        return self.trees.read_blob(oid, path)

    def merge_trees(
        self,
        base_tree: ObjectId | None,
        ours_tree: ObjectId,
        theirs_tree: ObjectId,
        write: bool = True,
    ) -> tuple[dict[str, ObjectId], dict[str, LineMergeResult]]:
        """
        Merge three trees path by path.

        Returns the merged path -> blob mapping and the line-level results of
        every path changed differently on both sides.
        """
        base = self.trees.flatten(base_tree) if base_tree is not None else {}
        ours = self.trees.flatten(ours_tree)
        theirs = self.trees.flatten(theirs_tree)

        merged: dict[str, ObjectId] = {}
        results: dict[str, LineMergeResult] = {}
        for path in sorted(base.keys() | ours.keys() | theirs.keys()):
            b, o, t = base.get(path), ours.get(path), theirs.get(path)
            if o == t:
                chosen = o
            elif b == o:
                chosen = t
            elif b == t:
                chosen = o
            else:
                result = merge_bytes(
                    self._content(b, path), self._content(o, path), self._content(t, path)
                )
                results[path] = result
                if result.has_conflicts:
                    continue
                chosen = self._write(ObjectKind.BLOB, result.merged(), write)
            if chosen is not None:
                merged[path] = chosen

        for path in self._clashes(merged):
            results[path] = self._clash_result(path, base, ours, theirs)
            del merged[path]
        return merged, results

    def _clashes(self, merged: dict[str, ObjectId]) -> list[str]:
        """Paths merged as a file on one side and as a directory on the other."""
        dirs = {path.rsplit("/", i)[0] for path in merged for i in range(1, path.count("/") + 1)}
        return [path for path in merged if path in dirs]

    def _clash_result(
        self,
        path: str,
        base: dict[str, ObjectId],
        ours: dict[str, ObjectId],
        theirs: dict[str, ObjectId],
    ) -> LineMergeResult:
        result = LineMergeResult(
            (
                split_lines(self._content(base.get(path), path)),
                split_lines(self._content(ours.get(path), path)),
                split_lines(self._content(theirs.get(path), path)),
            )
        )
        ours_lines, theirs_lines = result.sequences[OURS], result.sequences[THEIRS]
        result.add(OURS, 0, len(ours_lines), ConflictState.FIRST_CONFLICTING_RANGE)
        result.add(THEIRS, 0, len(theirs_lines), ConflictState.NEXT_CONFLICTING_RANGE)
        return result

    def _write(self, kind: ObjectKind, data: bytes, write: bool) -> ObjectId:
        if write:
            return self.objects.put(kind, data)
        return hash_object(kind, data, self.objects.hash_algorithm)

    def _write_paths(self, merged: dict[str, ObjectId], write: bool) -> ObjectId:
        root: _PathTree = {}
        for path, oid in merged.items():
            *parents, name = path.split("/")
            current = root
            for part in parents:
                current = current.setdefault(part, {})
            current[name] = oid
        return self._write_tree(root, write)

    def _write_tree(self, node: _PathTree, write: bool) -> ObjectId:
        entries = []
        for name, value in node.items():
            if isinstance(value, dict):
                entries.append(TreeEntry(name, TREE_MODE, self._write_tree(value, write)))
            else:
                entries.append(TreeEntry(name, FILE_MODE, value))
        return self._write(ObjectKind.TREE, encode_tree(Tree.from_entries(entries)), write)
