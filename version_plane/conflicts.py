from version_plane.diff3 import ConflictState, LineMergeResult

BASE_NAME = "BASE"

Segment = dict[str, str]
ConflictReport = dict[str, list[Segment]]


class ConflictExtractor:
    """
    Turns line-merge chunks into ordered segments per file.

    Each segment maps source names to literal text. A segment holding a
    single source is an unambiguous run of lines; a segment holding both
    branch names is a conflict hunk, with each side's version of it.

    A branch named "BASE" shares its key with the base label, so its text
    lands under "BASE".
    """

    def __init__(self, ours_name: str, theirs_name: str) -> None:
        self.names = (BASE_NAME, ours_name, theirs_name)

    def extract_file(self, result: LineMergeResult) -> list[Segment]:
        segments: list[Segment] = []
        entries: Segment = {}
        for chunk in result.chunks:
            entries[self.names[chunk.sequence]] = result.text(chunk)
            # the first range of a hunk stays open until its next range arrives
            if chunk.state != ConflictState.FIRST_CONFLICTING_RANGE:
                segments.append(entries)
                entries = {}
        if entries:
            segments.append(entries)
        return segments

    def extract(self, results: dict[str, LineMergeResult]) -> ConflictReport:
        return {path: self.extract_file(result) for path, result in results.items()}
