import threading
from typing import Any, Callable

from version_plane.base import ObjectStore, RefStore, RefUpdateResult
from version_plane.errors import NotFound
from version_plane.objects import DEFAULT_HASH_ALGORITHM, ObjectId, ObjectKind
from version_plane.repo import Repository

MemoryObjectData = dict[ObjectId, tuple[ObjectKind, bytes]]
MemoryRefData = dict[str, ObjectId]


class MemoryObjectStore(ObjectStore):
    def __init__(
        self,
        data: MemoryObjectData | None = None,
        hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
    ) -> None:
        super().__init__(hash_algorithm)
        self.data: MemoryObjectData = data if data is not None else {}
        self._lock = threading.Lock()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryObjectStore(...)")
        else:
            with p.group(4, "MemoryObjectStore(", ")"):
                p.breakable()
                p.text(f"hash={self.hash_algorithm},")
                p.breakable()
                p.text(f"objects={len(self.data)},")
                p.breakable()

    def _load(self, oid: ObjectId) -> tuple[ObjectKind, bytes] | None:
        return self.data.get(oid)

    def _store(self, oid: ObjectId, kind: ObjectKind, data: bytes) -> None:
        with self._lock:
            self.data.setdefault(oid, (kind, bytes(data)))

    def exists(self, oid: ObjectId) -> bool:
        return oid in self.data


class MemoryRefStore(RefStore):
    def __init__(self, data: MemoryRefData | None = None) -> None:
        self.data: MemoryRefData = data if data is not None else {}
        self._lock = threading.Lock()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryRefStore(...)")
        else:
            with p.group(4, "MemoryRefStore(", ")"):
                p.breakable()
                p.text("refs=")
                p.pretty({name: oid.short() for name, oid in self.data.items()})
                p.breakable()

    def read(self, name: str) -> ObjectId | None:
        return self.data.get(name)

    def compare_and_swap(
        self, name: str, expected: ObjectId | None, new: ObjectId
    ) -> RefUpdateResult:
        with self._lock:
            actual = self.data.get(name)
            if actual != expected:
                return self._rejected(name, expected, actual, new)
            self.data[name] = new
            return self._accepted(name, expected, new)

    def delete(self, name: str) -> None:
        with self._lock:
            if name not in self.data:
                raise NotFound("Ref", name)
            del self.data[name]

    def list_refs(self, prefix: str = "") -> list[str]:
        return sorted(name for name in list(self.data) if name.startswith(prefix))


def create_memory_repository(
    objects: MemoryObjectData | None = None,
    refs: MemoryRefData | None = None,
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
    default_branch: str = "master",
    clock: Callable[[], int] | None = None,
) -> Repository:
    return Repository(
        MemoryObjectStore(objects, hash_algorithm=hash_algorithm),
        MemoryRefStore(refs),
        default_branch=default_branch,
        clock=clock,
    )
