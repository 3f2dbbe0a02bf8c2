import heapq
from collections import deque
from typing import Iterator

from version_plane.base import ObjectStore
from version_plane.errors import CorruptObject, NotFound
from version_plane.objects import Commit, ObjectId


class HistoryWalker:
    def __init__(self, objects: ObjectStore) -> None:
        self.objects = objects

    def load_parent(self, oid: ObjectId) -> Commit:
        try:
            return self.objects.get_commit(oid)
        except NotFound as e:
            raise CorruptObject(oid, "missing parent commit") from e

    def _discover(
        self, start: ObjectId
    ) -> tuple[dict[ObjectId, Commit], dict[ObjectId, int], dict[ObjectId, int]]:
        """
        Load every commit reachable from `start`.

        Returns the commits, the number of reachable children of each commit,
        and the order in which each commit was first reached (first parents
        are followed before the others).
        """
        commits: dict[ObjectId, Commit] = {}
        children: dict[ObjectId, int] = {}
        order: dict[ObjectId, int] = {}

        pending = deque([start])
        while pending:
            oid = pending.popleft()
            if oid in commits:
                continue
            commit = self.objects.get_commit(oid) if oid == start else self.load_parent(oid)
            commits[oid] = commit
            order[oid] = len(order)
            children.setdefault(oid, 0)
            for parent in commit.parents:
                children[parent] = children.get(parent, 0) + 1
            pending.extendleft(commit.parents[:1])
            pending.extend(commit.parents[1:])

        return commits, children, order

    def list_commits(self, start: ObjectId) -> Iterator[tuple[ObjectId, Commit]]:
        """
        Walk history from `start` in reverse topological order.

        A commit is yielded only after every descendant of it that is
        reachable from `start`. Among commits that are ready, the newest
        timestamp goes first, then the one discovered first.
        """
        commits, children, order = self._discover(start)

        ready = [(-commits[start].timestamp, order[start], start)]
        while ready:
            _, _, oid = heapq.heappop(ready)
            commit = commits[oid]
            yield oid, commit

            for parent in commit.parents:
                children[parent] -= 1
                if children[parent] == 0:
                    heapq.heappush(
                        ready, (-commits[parent].timestamp, order[parent], parent)
                    )

    def find_merge_base(self, a: ObjectId, b: ObjectId) -> tuple[ObjectId, Commit]:
        """
        Collect the history of `a`, then return the first commit reached
        while walking the history of `b` that belongs to it.

        With several candidate bases this picks whichever `b`'s walk meets
        first, not necessarily a lowest common ancestor.
        """
        seen = {oid for oid, _ in self.list_commits(a)}
        for oid, commit in self.list_commits(b):
            if oid in seen:
                return oid, commit
        raise NotFound("Merge base", f"{a.short()}..{b.short()}")

    def is_ancestor(self, ancestor: ObjectId, descendant: ObjectId) -> bool:
        return any(oid == ancestor for oid, _ in self.list_commits(descendant))
