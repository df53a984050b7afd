import logging
import re
from collections import defaultdict, namedtuple
from collections.abc import Iterable, Iterator
from itertools import chain

from rcs_reader.rcs_errors import ORPHAN_EDIT_COMMAND, Diagnostic, UnknownRevision, warn
from rcs_reader.rcs_parser import Archive, RevisionRecord
from rcs_reader.revision_graph import RevisionGraph


logger = logging.getLogger(__name__)

_COMMAND = re.compile(r'([ad])(\d+)[ \t]+(\d+)\s*')

# Edit script operations. Positions always refer to the PRE-edit numbering.
Insert = namedtuple('Insert', ['after', 'lines'])
Delete = namedtuple('Delete', ['start', 'count'])

# One replay step: the snapshot produced for `revision` and its map from new
# line numbers to the line numbers of the snapshot it was derived from.
ReplayStep = namedtuple('ReplayStep', ['revision', 'snapshot', 'position_map', 'diagnostics'])


def split_lines(text: str) -> list[str]:
    """
    Splits on '\\n' only, keeping line ends.
    A last line without a trailing newline is kept as is.
    """
    lines = text.split('\n')
    last = lines.pop()
    result = [line + '\n' for line in lines]
    if last:
        result.append(last)
    return result


class Snapshot(namedtuple('Snapshot', ['revision', 'lines'])):
    """The full text of one revision as a tuple of lines, each with its line end. Never mutated."""
    __slots__ = ()

    @classmethod
    def from_text(cls, revision: str, text: str) -> "Snapshot":
        return cls(revision, tuple(split_lines(text)))

    @property
    def text(self) -> str:
        return "".join(self.lines)


def parse_edit_script(text: str, revision: str | None = None) -> tuple[list, list[Diagnostic]]:
    """
    Parses an RCS 'diff -n' script: `a<line> <count>` followed by `count`
    payload lines, and `d<line> <count>`.

    Unrecognized commands are skipped and reported, never raised.
    """
    ops = []
    diagnostics = []
    lines = split_lines(text)
    i = 0
    while i < len(lines):
        command = lines[i].rstrip('\n')
        i += 1
        if not command.strip():
            continue

        match = _COMMAND.fullmatch(command)
        if not match:
            diagnostics.append(warn(ORPHAN_EDIT_COMMAND, revision, f"ORPHAN DELTA COMMAND! {command}", logger))
            continue

        cmd, line, count = match.group(1), int(match.group(2)), int(match.group(3))
        if cmd == 'a':
            payload = tuple(lines[i:i + count])
            i += len(payload)
            if len(payload) < count:
                diagnostics.append(warn(
                    ORPHAN_EDIT_COMMAND, revision,
                    f"'{command}' announces {count} lines but carries {len(payload)}", logger))
            ops.append(Insert(line, payload))
        else:
            ops.append(Delete(line, count))
    return ops, diagnostics


class PendingDelta:
    """
    A snapshot held in its pre-edit numbering while one edit script is applied.

    `slots[n]` is pre-edit line n; slot 0 is the anchor before the first line.
    Deleted lines are tombstoned (set to None) and keep their slot, and inserted
    lines wait in `insertions` under their anchor, so every operation of the
    script addresses the same numbering. `renumber` builds the result.
    """

    def __init__(self, snapshot: Snapshot, revision: str) -> None:
        self.source = snapshot
        self.revision = revision
        self.slots: list[str | None] = [None, *snapshot.lines]
        self.insertions: dict[int, list[str]] = defaultdict(list)
        self.diagnostics: list[Diagnostic] = []

    def insert(self, after: int, lines: Iterable[str]) -> None:
        last = len(self.slots) - 1
        if after > last:
            self.diagnostics.append(warn(
                ORPHAN_EDIT_COMMAND, self.revision, f"insert after line {after} of {last}", logger))
        self.insertions[after].extend(lines)

    def delete(self, start: int, count: int) -> None:
        last = len(self.slots) - 1
        missing = 0
        for position in range(start, start + count):
            if 1 <= position <= last:
                self.slots[position] = None
            else:
                missing += 1
        if missing:
            self.diagnostics.append(warn(
                ORPHAN_EDIT_COMMAND, self.revision,
                f"delete of lines {start}-{start + count - 1} reaches past line {last}", logger))


def apply_delta(snapshot: Snapshot, revision: str, ops: Iterable) -> PendingDelta:
    """Applies edit script `ops` of `revision` to `snapshot` without renumbering."""
    pending = PendingDelta(snapshot, revision)
    for op in ops:
        if isinstance(op, Insert):
            pending.insert(op.after, op.lines)
            logger.debug(f"added {len(op.lines)} lines at {op.after}")
        elif isinstance(op, Delete):
            pending.delete(op.start, op.count)
            logger.debug(f"deleting lines {op.start} through {op.start + op.count - 1} ({op.count} directed)")
        else:
            pending.diagnostics.append(warn(ORPHAN_EDIT_COMMAND, revision, f"unknown operation {op!r}", logger))
    return pending


def renumber(pending: PendingDelta) -> tuple[Snapshot, dict[int, int]]:
    """
    Builds the post-edit snapshot and its position map.

    Pre-edit positions are walked in ascending order; a surviving line is
    emitted first and mapped to its old position, then the lines inserted
    after that position follow with no map entry.
    """
    lines = []
    position_map = {}
    last = len(pending.slots) - 1
    beyond = sorted(anchor for anchor in pending.insertions if anchor > last)

    for position in chain(range(last + 1), beyond):
        line = pending.slots[position] if position <= last else None
        if line is not None:
            lines.append(line)
            position_map[len(lines)] = position
        lines.extend(pending.insertions.get(position, ()))

    logger.debug(f"({pending.revision}) {len(lines)} lines sorted...")
    return Snapshot(pending.revision, tuple(lines)), position_map


def replay(snapshot: Snapshot, record: RevisionRecord) -> ReplayStep:
    """Transforms `snapshot` into `record.revision` using the record's edit script."""
    ops, diagnostics = parse_edit_script(record.text, record.revision)
    pending = apply_delta(snapshot, record.revision, ops)
    new_snapshot, position_map = renumber(pending)
    return ReplayStep(record.revision, new_snapshot, position_map, tuple(diagnostics + pending.diagnostics))


def replay_chain(archive: Archive, snapshot: Snapshot, revisions: Iterable[str]) -> Iterator[ReplayStep]:
    """Replays each revision of `revisions` in order, feeding every result into the next step."""
    for revision in revisions:
        logger.debug(f"--> loading delta {revision}")
        step = replay(snapshot, archive[revision])
        snapshot = step.snapshot
        yield step


def head_snapshot(archive: Archive) -> Snapshot:
    """The literal text of head. No delta is involved."""
    return Snapshot.from_text(archive.head, archive[archive.head].text)


def materialize(
    archive: Archive,
    graph: RevisionGraph,
    target: str,
    start: Snapshot | None = None,
) -> tuple[Snapshot, list[Diagnostic]]:
    """
    Reconstructs `target` by walking the chain from `start` (default: head).

    Raises:
        UnknownRevision: `target` is not in the archive or cannot be reached from `start`.
    """
    if target not in archive:
        raise UnknownRevision(target)

    snapshot = start if start is not None else head_snapshot(archive)
    if snapshot.revision == target:
        return snapshot, []

    revisions = graph.chain_between(snapshot.revision, target)
    if not revisions or revisions[-1] != target:
        raise UnknownRevision(target, f"is not reachable from {snapshot.revision}")

    diagnostics = []
    for step in replay_chain(archive, snapshot, revisions):
        snapshot = step.snapshot
        diagnostics.extend(step.diagnostics)
    return snapshot, diagnostics
