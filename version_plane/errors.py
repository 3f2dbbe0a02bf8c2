from typing import Any


class VersionPlaneError(Exception):
    """Base class for every error raised by version_plane."""


class NotFound(VersionPlaneError):
    """Requested branch, path or object does not exist."""

    def __init__(self, what: str, name: Any) -> None:
        self.what = what
        self.name = name
        super().__init__(f"{what} not found: {name}")


class CorruptObject(VersionPlaneError):
    """
    Stored bytes could not be decoded as their declared kind, or a stored
    object references a child that is missing from the store.
    """

    def __init__(self, oid: Any, reason: str) -> None:
        self.oid = oid
        self.reason = reason
        super().__init__(f"Corrupt object {oid}: {reason}")


class ConcurrentUpdateConflict(VersionPlaneError):
    """
    A compare-and-swap on a ref was rejected because the ref moved since the
    caller read it. Re-read the head and retry.
    """

    def __init__(self, ref: str, expected: Any, actual: Any) -> None:
        self.ref = ref
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ref '{ref}' was updated concurrently: expected {expected}, found {actual}"
        )


class BranchExists(VersionPlaneError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Branch '{name}' already exists")


class MergeConflict(VersionPlaneError):
    """
    Raised when a merge cannot be completed automatically.

    Attributes:
        source: name of the branch being merged.
        target: name of the receiving branch.
        conflicts: path -> ordered list of segments, see ConflictExtractor.
    """

    def __init__(
        self,
        source: str,
        target: str,
        conflicts: dict[str, list[dict[str, str]]],
    ) -> None:
        self.source = source
        self.target = target
        self.conflicts = conflicts
        self.paths = sorted(
            path
            for path, segments in conflicts.items()
            if any(len(segment) > 1 for segment in segments)
        )
        super().__init__(
            f"Cannot merge '{source}' into '{target}': conflicts in {', '.join(self.paths)}"
        )
