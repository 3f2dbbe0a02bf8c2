import logging
import time
from typing import Callable

from version_plane.base import HEADS_PREFIX, ObjectStore, RefStore, RefUpdateStatus
from version_plane.errors import BranchExists, ConcurrentUpdateConflict, NotFound
from version_plane.objects import Commit, Ident, ObjectId
from version_plane.tree import Dir, TreeBuilder

logger = logging.getLogger(__name__)


def branch_ref(name: str) -> str:
    return f"{HEADS_PREFIX}{name}"


class CommitEngine:
    """
    Creates commits and advances branch refs with optimistic concurrency.

    Every write reads the branch head once and hands that value to
    RefStore.compare_and_swap as the expected old id. If another writer moved
    the branch in between, ConcurrentUpdateConflict is raised and nothing is
    retried; objects written before the rejected swap are harmless orphans.
    """

    def __init__(
        self,
        objects: ObjectStore,
        refs: RefStore,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.objects = objects
        self.refs = refs
        self.trees = TreeBuilder(objects)
        self.clock = clock or (lambda: int(time.time()))

    def head(self, branch: str) -> ObjectId | None:
        return self.refs.read(branch_ref(branch))

    def advance(
        self, branch: str, expected: ObjectId | None, new: ObjectId
    ) -> RefUpdateStatus:
        result = self.refs.compare_and_swap(branch_ref(branch), expected, new)
        if not result.ok:
            raise ConcurrentUpdateConflict(branch_ref(branch), expected, result.old)
        return result.status

    def write_commit(
        self,
        tree: ObjectId,
        parents: list[ObjectId],
        message: str,
        author: Ident,
        committer: Ident | None = None,
    ) -> tuple[ObjectId, Commit]:
        commit = Commit(
            tree=tree,
            parents=tuple(parents),
            author=author,
            committer=committer or author,
            message=message,
            timestamp=self.clock(),
        )
        return self.objects.put_commit(commit), commit

    def commit(
        self,
        branch: str,
        add: Dir,
        message: str,
        author: Ident,
        committer: Ident | None = None,
    ) -> tuple[ObjectId, Commit]:
        tree = self.trees.build(add)
        head = self.head(branch)
        parents = [head] if head is not None else []

        oid, commit = self.write_commit(tree, parents, message, author, committer)
        status = self.advance(branch, head, oid)
        if status == RefUpdateStatus.FAST_FORWARD:
            logger.info("Bootstrapped branch '%s' with root commit %s", branch, oid.short())
        else:
            logger.debug("Committed %s on '%s'", oid.short(), branch)
        return oid, commit

    def create_branch(self, name: str, source: str) -> ObjectId:
        source_head = self.head(source)
        if source_head is None:
            raise NotFound("Branch", source)

        result = self.refs.compare_and_swap(branch_ref(name), None, source_head)
        if not result.ok:
            raise BranchExists(name)

        logger.info("Created branch '%s' from '%s' at %s", name, source, source_head.short())
        return source_head

    def delete_branch(self, name: str) -> None:
        try:
            self.refs.delete(branch_ref(name))
        except NotFound as e:
            raise NotFound("Branch", name) from e
        logger.info("Deleted branch '%s'", name)

    def initialize(
        self,
        branch: str,
        message: str,
        author: Ident,
        filename: str | None = None,
        content: bytes | None = None,
    ) -> tuple[ObjectId, Commit]:
        """Create the first commit of a branch, empty or holding one file."""
        root = Dir()
        if filename is not None:
            root.put(filename, content or b"")
        return self.commit(branch, root, message, author)
