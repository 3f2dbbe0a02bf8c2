import io
from functools import total_ordering
from typing import Any, BinaryIO, Callable

from version_plane.base import HEADS_PREFIX, ObjectStore, RefStore
from version_plane.commits import CommitEngine
from version_plane.conflicts import ConflictReport
from version_plane.errors import NotFound
from version_plane.history import HistoryWalker
from version_plane.merge import MergeEngine
from version_plane.objects import Commit, Ident, ObjectId
from version_plane.tree import Dir, TreeBuilder


class Repository:
    """
    Versioned tree of files organised in branches.

    Repository is configured with a shared object store and ref store; Branch
    and Revision handles are cheap views that carry the repository
    explicitly and read the stores on every call.
    """

    def __init__(
        self,
        objects: ObjectStore,
        refs: RefStore,
        default_branch: str = "master",
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.objects = objects
        self.refs = refs
        self.default_branch = default_branch

        self.trees = TreeBuilder(objects)
        self.history = HistoryWalker(objects)
        self.commits = CommitEngine(objects, refs, clock)
        self.merges = MergeEngine(objects, refs, clock)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Repository(...)")
        else:
            with p.group(4, "Repository(", ")"):
                p.breakable()
                p.text("objects=")
                p.pretty(self.objects)
                p.text(",")
                p.breakable()
                p.text("branches=")
                p.pretty([branch.name for branch in self.list_branches()])
                p.breakable()

    def initialize(
        self,
        message: str,
        ident: Ident,
        filename: str | None = None,
        content: bytes | None = None,
        branch: str | None = None,
    ) -> "Repository":
        """Commit an initial tree (empty, or holding one file) to a branch."""
        self.commits.initialize(branch or self.default_branch, message, ident, filename, content)
        return self

    def branch(self, name: str | None = None) -> "Branch":
        return Branch(self, name or self.default_branch)

    def list_branches(self) -> list["Branch"]:
        return [
            Branch(self, ref[len(HEADS_PREFIX) :])
            for ref in self.refs.list_refs(HEADS_PREFIX)
        ]

    def revision(self, oid: ObjectId | str) -> "Revision":
        if isinstance(oid, str):
            oid = ObjectId.from_hex(oid)
        return Revision(self, oid, self.objects.get_commit(oid))

    def list_commits(self) -> list["Revision"]:
        """Commits currently pointed at by any ref, one per distinct id."""
        seen = []
        for ref in self.refs.list_refs():
            oid = self.refs.read(ref)
            if oid is not None and oid not in seen:
                seen.append(oid)
        return [self.revision(oid) for oid in seen]


class Branch:
    def __init__(self, repo: Repository, name: str) -> None:
        self.repo = repo
        self.name = name

    def __repr__(self) -> str:
        return f"Branch({self.name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Branch):
            return NotImplemented
        return self.repo is other.repo and self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def _head_id(self) -> ObjectId:
        head = self.repo.commits.head(self.name)
        if head is None:
            raise NotFound("Branch", self.name)
        return head

    def head(self) -> "Revision | None":
        head = self.repo.commits.head(self.name)
        return self.repo.revision(head) if head is not None else None

    def exists(self) -> bool:
        return self.repo.commits.head(self.name) is not None

    def list_commits(self) -> list["Revision"]:
        return [
            Revision(self.repo, oid, commit)
            for oid, commit in self.repo.history.list_commits(self._head_id())
        ]

    def commit(self, add: Dir, message: str, ident: Ident) -> "Revision":
        oid, commit = self.repo.commits.commit(self.name, add, message, ident)
        return Revision(self.repo, oid, commit)

    def create_new_branch(self, name: str) -> "Branch":
        self.repo.commits.create_branch(name, self.name)
        return Branch(self.repo, name)

    def delete(self) -> None:
        self.repo.commits.delete_branch(self.name)

    def find_branch_commit_from(self, other: "Branch") -> "Revision":
        """Merge base of this branch and `other`, searched along this branch's history."""
        oid, commit = self.repo.history.find_merge_base(other._head_id(), self._head_id())
        return Revision(self.repo, oid, commit)

    def is_mergeable_to(self, target: "Branch") -> bool:
        return self.repo.merges.is_mergeable(self.name, target.name)

    def get_conflicts(self, target: "Branch") -> ConflictReport:
        return self.repo.merges.get_conflicts(self.name, target.name)

    def merge_to(
        self,
        target: "Branch",
        ident: Ident,
        delete: bool = False,
        message: str | None = None,
    ) -> "Revision":
        oid, commit = self.repo.merges.complete(
            self.name, target.name, ident, message=message, delete=delete
        )
        return Revision(self.repo, oid, commit)


@total_ordering
class Revision:
    """A stored commit together with the repository it lives in. Ordered by commit time."""

    def __init__(self, repo: Repository, oid: ObjectId, commit: Commit) -> None:
        self.repo = repo
        self.oid = oid
        self.commit = commit

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Revision(...)")
        else:
            p.text(f"Revision({self.oid.short()} {self.message!r})")

    def __repr__(self) -> str:
        return f"Revision({self.oid.short()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Revision):
            return NotImplemented
        return self.oid == other.oid

    def __lt__(self, other: "Revision") -> bool:
        return self.time < other.time

    def __hash__(self) -> int:
        return hash(self.oid)

    @property
    def id(self) -> str:
        return self.oid.hex

    @property
    def tree(self) -> ObjectId:
        return self.commit.tree

    @property
    def message(self) -> str:
        return self.commit.short_message

    @property
    def full_message(self) -> str:
        return self.commit.message

    @property
    def author(self) -> Ident:
        return self.commit.author

    @property
    def committer(self) -> Ident:
        return self.commit.committer

    @property
    def time(self) -> int:
        return self.commit.timestamp

    @property
    def parents(self) -> list["Revision"]:
        return [
            Revision(self.repo, parent, self.repo.history.load_parent(parent))
            for parent in self.commit.parents
        ]

    def list_files(self) -> list[str]:
        return self.repo.trees.list_files(self.commit.tree)

    def read_file(self, path: str) -> bytes:
        return self.repo.trees.read_file(self.commit.tree, path)

    def get_stream(self, path: str) -> BinaryIO:
        return io.BytesIO(self.read_file(path))

    def get_dir(self) -> Dir:
        return self.repo.trees.materialize(self.commit.tree)
