"""
Immutable object model and its canonical byte encoding.

Every object is framed as ``<kind> <length>\\0<payload>`` before hashing, so a
blob and a tree with identical payloads never share an id. Tree payloads list
entries sorted by name; commit payloads use a fixed header order. Two
semantically identical objects therefore always encode, and hash, identically.
"""

import hashlib
from dataclasses import dataclass
from enum import Enum

HASH_SIZES = {
    "sha1": 20,
    "sha256": 32,
}
DEFAULT_HASH_ALGORITHM = "sha1"

FILE_MODE = 0o100644
TREE_MODE = 0o40000


class ObjectKind(str, Enum):
    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


@dataclass(frozen=True, order=True)
class ObjectId:
    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) not in HASH_SIZES.values():
            raise ValueError(f"Invalid object id length: {len(self.raw)}")

    @classmethod
    def from_hex(cls, text: str) -> "ObjectId":
        try:
            return cls(bytes.fromhex(text))
        except ValueError as e:
            raise ValueError(f"Invalid object id: {text!r}") from e

    @property
    def hex(self) -> str:
        return self.raw.hex()

    def short(self) -> str:
        return self.hex[:7]

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"ObjectId('{self.hex}')"


def frame(kind: ObjectKind, data: bytes) -> bytes:
    return f"{kind.value} {len(data)}".encode() + b"\x00" + data


def hash_object(
    kind: ObjectKind, data: bytes, algorithm: str = DEFAULT_HASH_ALGORITHM
) -> ObjectId:
    if algorithm not in HASH_SIZES:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    return ObjectId(hashlib.new(algorithm, frame(kind, data)).digest())


def check_entry_name(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\x00" in name:
        raise ValueError(f"Invalid entry name: {name!r}")
    return name


@dataclass(frozen=True)
class TreeEntry:
    name: str
    mode: int
    oid: ObjectId

    @property
    def kind(self) -> ObjectKind:
        return ObjectKind.TREE if self.mode == TREE_MODE else ObjectKind.BLOB

    @property
    def is_tree(self) -> bool:
        return self.mode == TREE_MODE


@dataclass(frozen=True)
class Tree:
    entries: tuple[TreeEntry, ...] = ()

    @classmethod
    def from_entries(cls, entries: list[TreeEntry]) -> "Tree":
        """Sort entries by name; a later entry replaces an earlier one of the same name."""
        by_name: dict[str, TreeEntry] = {}
        for entry in entries:
            by_name[check_entry_name(entry.name)] = entry
        return cls(tuple(by_name[name] for name in sorted(by_name)))

    def get(self, name: str) -> TreeEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def encode_tree(tree: Tree) -> bytes:
    parts = []
    previous = None
    for entry in tree.entries:
        if previous is not None and entry.name <= previous:
            raise ValueError("Tree entries must be sorted and unique")
        previous = entry.name
        parts.append(f"{entry.mode:o} {entry.name}".encode() + b"\x00" + entry.oid.raw)
    return b"".join(parts)


def decode_tree(data: bytes, oid_size: int) -> Tree:
    entries = []
    pos = 0
    while pos < len(data):
        end = data.index(b"\x00", pos)
        mode_text, _, name = data[pos:end].decode().partition(" ")
        raw = data[end + 1 : end + 1 + oid_size]
        if len(raw) != oid_size:
            raise ValueError("Truncated tree entry")
        entries.append(TreeEntry(check_entry_name(name), int(mode_text, 8), ObjectId(raw)))
        pos = end + 1 + oid_size
    return Tree(tuple(entries))


@dataclass(frozen=True)
class Ident:
    """Author/committer identity: a display name and a contact address."""

    name: str
    email: str

    def __post_init__(self) -> None:
        for value in (self.name, self.email):
            if any(c in value for c in "<>\n"):
                raise ValueError(f"Invalid identity field: {value!r}")

    def format(self, timestamp: int) -> str:
        return f"{self.name} <{self.email}> {timestamp} +0000"

    @classmethod
    def parse(cls, text: str) -> tuple["Ident", int]:
        name, _, rest = text.partition(" <")
        email, _, when = rest.partition("> ")
        timestamp, _, _tz = when.partition(" ")
        return cls(name, email), int(timestamp)

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


@dataclass(frozen=True)
class Commit:
    tree: ObjectId
    parents: tuple[ObjectId, ...]
    author: Ident
    committer: Ident
    message: str
    timestamp: int

    @property
    def short_message(self) -> str:
        return self.message.split("\n", 1)[0]


def encode_commit(commit: Commit) -> bytes:
    lines = [f"tree {commit.tree.hex}"]
    lines.extend(f"parent {parent.hex}" for parent in commit.parents)
    lines.append(f"author {commit.author.format(commit.timestamp)}")
    lines.append(f"committer {commit.committer.format(commit.timestamp)}")
    return ("\n".join(lines) + "\n\n" + commit.message).encode()


def decode_commit(data: bytes) -> Commit:
    header, sep, message = data.decode().partition("\n\n")
    if not sep:
        raise ValueError("Missing commit message separator")

    tree = None
    parents = []
    author = committer = None
    timestamp = 0
    for line in header.split("\n"):
        key, _, value = line.partition(" ")
        if key == "tree":
            tree = ObjectId.from_hex(value)
        elif key == "parent":
            parents.append(ObjectId.from_hex(value))
        elif key == "author":
            author, _ = Ident.parse(value)
        elif key == "committer":
            committer, timestamp = Ident.parse(value)
        else:
            raise ValueError(f"Unknown commit field: {key}")

    if tree is None or author is None or committer is None:
        raise ValueError("Incomplete commit header")

    return Commit(
        tree=tree,
        parents=tuple(parents),
        author=author,
        committer=committer,
        message=message,
        timestamp=timestamp,
    )
