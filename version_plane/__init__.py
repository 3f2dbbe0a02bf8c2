from .objects import ObjectId, ObjectKind, Ident, Tree, TreeEntry, Commit
from .base import ObjectStore, RefStore, RefUpdateResult, RefUpdateStatus
from .errors import (
    VersionPlaneError,
    NotFound,
    CorruptObject,
    ConcurrentUpdateConflict,
    BranchExists,
    MergeConflict,
)
from .tree import Dir, TreeBuilder
from .commits import CommitEngine
from .history import HistoryWalker
from .conflicts import ConflictExtractor
from .merge import MergeEngine, Clean, Conflicted
from .repo import Repository, Branch, Revision
from .impl.memory import create_memory_repository

__all__ = [
    "ObjectId",
    "ObjectKind",
    "Ident",
    "Tree",
    "TreeEntry",
    "Commit",
    "ObjectStore",
    "RefStore",
    "RefUpdateResult",
    "RefUpdateStatus",
    "VersionPlaneError",
    "NotFound",
    "CorruptObject",
    "ConcurrentUpdateConflict",
    "BranchExists",
    "MergeConflict",
    "Dir",
    "TreeBuilder",
    "CommitEngine",
    "HistoryWalker",
    "ConflictExtractor",
    "MergeEngine",
    "Clean",
    "Conflicted",
    "Repository",
    "Branch",
    "Revision",
    "create_memory_repository",
]
