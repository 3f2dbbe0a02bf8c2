"""
Line-based three-way merge.

The base, ours and theirs texts are split into lines (line terminators kept)
and each side is diffed against the base with difflib. Walking both edit
lists in base order yields a list of chunks, each pointing at a line range in
one of the three sequences:

- edits made on only one side, and the base lines between edits, become
  NO_CONFLICT chunks;
- overlapping edits become a FIRST_CONFLICTING_RANGE chunk (ours) directly
  followed by a NEXT_CONFLICTING_RANGE chunk (theirs), after lines common
  to the start and end of both replacements are split off as NO_CONFLICT.

Edits that touch or overlap in the base, including insertions at the same
position, are treated as overlapping.
"""

import sys
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum

BASE = 0
OURS = 1
THEIRS = 2


class ConflictState(str, Enum):
    NO_CONFLICT = "no_conflict"
    FIRST_CONFLICTING_RANGE = "first_conflicting_range"
    NEXT_CONFLICTING_RANGE = "next_conflicting_range"


@dataclass(frozen=True)
class MergeChunk:
    sequence: int
    begin: int
    end: int
    state: ConflictState


@dataclass(frozen=True)
class Edit:
    begin_a: int
    end_a: int
    begin_b: int
    end_b: int


END_EDIT = Edit(sys.maxsize, sys.maxsize, sys.maxsize, sys.maxsize)


@dataclass
class LineMergeResult:
    sequences: tuple[list[bytes], list[bytes], list[bytes]]
    chunks: list[MergeChunk] = field(default_factory=list)

    def add(self, sequence: int, begin: int, end: int, state: ConflictState) -> None:
        self.chunks.append(MergeChunk(sequence, begin, end, state))

    @property
    def has_conflicts(self) -> bool:
        return any(chunk.state != ConflictState.NO_CONFLICT for chunk in self.chunks)

    def lines(self, chunk: MergeChunk) -> list[bytes]:
        return self.sequences[chunk.sequence][chunk.begin : chunk.end]

    def text(self, chunk: MergeChunk) -> str:
        return b"".join(self.lines(chunk)).decode("utf-8", errors="replace")

    def merged(self) -> bytes:
        if self.has_conflicts:
            raise ValueError("Merge result contains conflicts")
        return b"".join(b"".join(self.lines(chunk)) for chunk in self.chunks)


def split_lines(data: bytes) -> list[bytes]:
    """Split on b"\\n" keeping terminators; a missing final newline keeps the tail."""
    parts = data.split(b"\n")
    lines = [part + b"\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def diff_lines(a: list[bytes], b: list[bytes]) -> list[Edit]:
    matcher = SequenceMatcher(None, a, b, autojunk=False)
    return [
        Edit(i1, i2, j1, j2)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes()
        if tag != "equal"
    ]


def merge_lines(
    base: list[bytes], ours: list[bytes], theirs: list[bytes]
) -> LineMergeResult:
    result = LineMergeResult((base, ours, theirs))

    if not ours:
        if theirs and diff_lines(base, theirs):
            # emptied on our side, modified on theirs
            result.add(OURS, 0, 0, ConflictState.FIRST_CONFLICTING_RANGE)
            result.add(THEIRS, 0, len(theirs), ConflictState.NEXT_CONFLICTING_RANGE)
        else:
            result.add(OURS, 0, 0, ConflictState.NO_CONFLICT)
        return result

    if not theirs:
        if diff_lines(base, ours):
            result.add(OURS, 0, len(ours), ConflictState.FIRST_CONFLICTING_RANGE)
            result.add(THEIRS, 0, 0, ConflictState.NEXT_CONFLICTING_RANGE)
        else:
            result.add(THEIRS, 0, 0, ConflictState.NO_CONFLICT)
        return result

    ours_edits = iter(diff_lines(base, ours))
    theirs_edits = iter(diff_lines(base, theirs))
    ours_edit = next(ours_edits, END_EDIT)
    theirs_edit = next(theirs_edits, END_EDIT)
    # first base line not yet emitted
    current = 0

    while ours_edit is not END_EDIT or theirs_edit is not END_EDIT:
        if ours_edit.end_a < theirs_edit.begin_a:
            if current != ours_edit.begin_a:
                result.add(BASE, current, ours_edit.begin_a, ConflictState.NO_CONFLICT)
            result.add(OURS, ours_edit.begin_b, ours_edit.end_b, ConflictState.NO_CONFLICT)
            current = ours_edit.end_a
            ours_edit = next(ours_edits, END_EDIT)
            continue

        if theirs_edit.end_a < ours_edit.begin_a:
            if current != theirs_edit.begin_a:
                result.add(BASE, current, theirs_edit.begin_a, ConflictState.NO_CONFLICT)
            result.add(
                THEIRS, theirs_edit.begin_b, theirs_edit.end_b, ConflictState.NO_CONFLICT
            )
            current = theirs_edit.end_a
            theirs_edit = next(theirs_edits, END_EDIT)
            continue

        start = min(ours_edit.begin_a, theirs_edit.begin_a)
        if current != start:
            result.add(BASE, current, start, ConflictState.NO_CONFLICT)

        # align both replacement ranges to the same base start
        ours_begin = ours_edit.begin_b
        theirs_begin = theirs_edit.begin_b
        if ours_edit.begin_a < theirs_edit.begin_a:
            theirs_begin -= theirs_edit.begin_a - ours_edit.begin_a
        else:
            ours_begin -= ours_edit.begin_a - theirs_edit.begin_a

        # absorb following edits on either side that overlap the growing hunk
        next_ours = next(ours_edits, END_EDIT)
        next_theirs = next(theirs_edits, END_EDIT)
        while True:
            if ours_edit.end_a >= next_theirs.begin_a:
                theirs_edit = next_theirs
                next_theirs = next(theirs_edits, END_EDIT)
            elif theirs_edit.end_a >= next_ours.begin_a:
                ours_edit = next_ours
                next_ours = next(ours_edits, END_EDIT)
            else:
                break

        # align both replacement ranges to the same base end
        ours_end = ours_edit.end_b
        theirs_end = theirs_edit.end_b
        if ours_edit.end_a < theirs_edit.end_a:
            ours_end += theirs_edit.end_a - ours_edit.end_a
        else:
            theirs_end += ours_edit.end_a - theirs_edit.end_a

        common = ours_end - ours_begin
        size_delta = common - (theirs_end - theirs_begin)
        if size_delta > 0:
            common -= size_delta

        prefix = 0
        while prefix < common and ours[ours_begin + prefix] == theirs[theirs_begin + prefix]:
            prefix += 1
        common -= prefix
        suffix = 0
        while (
            suffix < common
            and ours[ours_end - suffix - 1] == theirs[theirs_end - suffix - 1]
        ):
            suffix += 1
        common -= suffix

        if prefix > 0:
            result.add(OURS, ours_begin, ours_begin + prefix, ConflictState.NO_CONFLICT)
        if common > 0 or size_delta != 0:
            result.add(
                OURS,
                ours_begin + prefix,
                ours_end - suffix,
                ConflictState.FIRST_CONFLICTING_RANGE,
            )
            result.add(
                THEIRS,
                theirs_begin + prefix,
                theirs_end - suffix,
                ConflictState.NEXT_CONFLICTING_RANGE,
            )
        if suffix > 0:
            result.add(OURS, ours_end - suffix, ours_end, ConflictState.NO_CONFLICT)

        current = max(ours_edit.end_a, theirs_edit.end_a)
        ours_edit = next_ours
        theirs_edit = next_theirs

    if current < len(base):
        result.add(BASE, current, len(base), ConflictState.NO_CONFLICT)
    return result


def merge_bytes(base: bytes, ours: bytes, theirs: bytes) -> LineMergeResult:
    return merge_lines(split_lines(base), split_lines(ours), split_lines(theirs))
