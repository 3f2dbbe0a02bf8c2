import logging
from dataclasses import dataclass
from enum import Enum

from version_plane.errors import CorruptObject, NotFound
from version_plane.objects import (
    DEFAULT_HASH_ALGORITHM,
    HASH_SIZES,
    Commit,
    ObjectId,
    ObjectKind,
    Tree,
    decode_commit,
    decode_tree,
    encode_commit,
    encode_tree,
    hash_object,
)

logger = logging.getLogger(__name__)

HEADS_PREFIX = "refs/heads/"


class ObjectStore:
    """
    Content-addressable storage of immutable blobs, trees and commits.

    Objects are keyed by the digest of their canonical encoding. Writing the
    same bytes twice yields the same id and stores nothing new, so concurrent
    writers never interfere with each other.
    """

    def __init__(self, hash_algorithm: str = DEFAULT_HASH_ALGORITHM) -> None:
        if hash_algorithm not in HASH_SIZES:
            raise ValueError(f"Unsupported hash algorithm: {hash_algorithm}")
        self.hash_algorithm = hash_algorithm

    @property
    def oid_size(self) -> int:
        return HASH_SIZES[self.hash_algorithm]

    def _load(self, oid: ObjectId) -> tuple[ObjectKind, bytes] | None:
        """Fetch the kind and payload of a stored object, None if absent."""
        raise NotImplementedError()

    def _store(self, oid: ObjectId, kind: ObjectKind, data: bytes) -> None:
        """Durably persist an object. Storing an existing id must be a no-op."""
        raise NotImplementedError()

    def exists(self, oid: ObjectId) -> bool:
        """Check whether an object with this id is stored."""
        raise NotImplementedError()

    def put(self, kind: ObjectKind, data: bytes) -> ObjectId:
        oid = hash_object(kind, data, self.hash_algorithm)
        if not self.exists(oid):
            self._store(oid, kind, data)
            logger.debug("Stored %s %s (%d bytes)", kind.value, oid.short(), len(data))
        return oid

    def read(self, oid: ObjectId) -> tuple[ObjectKind, bytes]:
        loaded = self._load(oid)
        if loaded is None:
            raise NotFound("Object", oid)
        return loaded

    def get(self, oid: ObjectId, expected_kind: ObjectKind | None = None) -> bytes:
        kind, data = self.read(oid)
        if expected_kind is not None and kind != expected_kind:
            raise CorruptObject(oid, f"expected {expected_kind.value}, got {kind.value}")
        return data

    def put_blob(self, data: bytes) -> ObjectId:
        return self.put(ObjectKind.BLOB, data)

    def put_tree(self, tree: Tree) -> ObjectId:
        for entry in tree:
            if not self.exists(entry.oid):
                raise CorruptObject(entry.oid, f"tree entry '{entry.name}' is not stored")
        return self.put(ObjectKind.TREE, encode_tree(tree))

    def put_commit(self, commit: Commit) -> ObjectId:
        for oid in (commit.tree, *commit.parents):
            if not self.exists(oid):
                raise CorruptObject(oid, "commit references an object that is not stored")
        return self.put(ObjectKind.COMMIT, encode_commit(commit))

    def get_tree(self, oid: ObjectId) -> Tree:
        data = self.get(oid, ObjectKind.TREE)
        try:
            return decode_tree(data, self.oid_size)
        except ValueError as e:
            raise CorruptObject(oid, str(e)) from e

    def get_commit(self, oid: ObjectId) -> Commit:
        data = self.get(oid, ObjectKind.COMMIT)
        try:
            return decode_commit(data)
        except ValueError as e:
            raise CorruptObject(oid, str(e)) from e


class RefUpdateStatus(str, Enum):
    UPDATED = "updated"
    FAST_FORWARD = "fast_forward"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RefUpdateResult:
    status: RefUpdateStatus
    name: str
    old: ObjectId | None
    new: ObjectId | None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != RefUpdateStatus.REJECTED


class RefStore:
    """
    Mutable mapping of ref names to object ids.

    compare_and_swap is the only concurrency-control primitive in the system:
    it must be atomic and linearizable per ref name.
    """

    def read(self, name: str) -> ObjectId | None:
        """Return the id a ref points to, or None if the ref does not exist."""
        raise NotImplementedError()

    def compare_and_swap(
        self, name: str, expected: ObjectId | None, new: ObjectId
    ) -> RefUpdateResult:
        """
        Point `name` at `new` if it currently points at `expected`.

        `expected=None` only matches an absent ref; the result is then
        FAST_FORWARD. Any mismatch yields REJECTED and leaves the ref alone.
        """
        raise NotImplementedError()

    def delete(self, name: str) -> None:
        """Remove a ref. Raises NotFound if it does not exist."""
        raise NotImplementedError()

    def list_refs(self, prefix: str = "") -> list[str]:
        """List ref names starting with `prefix`, sorted."""
        raise NotImplementedError()

    def _accepted(
        self, name: str, expected: ObjectId | None, new: ObjectId
    ) -> RefUpdateResult:
        status = RefUpdateStatus.FAST_FORWARD if expected is None else RefUpdateStatus.UPDATED
        logger.debug("Ref %s: %s -> %s (%s)", name, expected, new, status.value)
        return RefUpdateResult(status, name, expected, new)

    def _rejected(
        self, name: str, expected: ObjectId | None, actual: ObjectId | None, new: ObjectId
    ) -> RefUpdateResult:
        if expected is None:
            reason = "ref already exists"
        elif actual is None:
            reason = "ref does not exist"
        else:
            reason = "ref moved"
        logger.warning("Rejected update of %s: expected %s, found %s", name, expected, actual)
        return RefUpdateResult(RefUpdateStatus.REJECTED, name, actual, new, reason)
