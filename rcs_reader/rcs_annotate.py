import logging
from collections import namedtuple
from collections.abc import Sequence

from rcs_reader.rcs_delta import ReplayStep, Snapshot, materialize, replay_chain
from rcs_reader.rcs_errors import PROVENANCE_GAP, warn
from rcs_reader.rcs_parser import Archive
from rcs_reader.revision_graph import RevisionGraph


logger = logging.getLogger(__name__)

AnnotatedLine = namedtuple('AnnotatedLine', ['number', 'text', 'origin'])


class Annotation:
    """
    Per-line provenance of one revision.

    `lines` holds (number, text, origin) for every line, numbered from 1.
    `gaps` counts lines whose backward walk ran off the known chain; they
    are attributed to the oldest revision the walk reached.
    """

    def __init__(self, revision: str, lines: list[AnnotatedLine], gaps: int = 0, diagnostics: tuple = ()) -> None:
        self.revision = revision
        self.lines = lines
        self.gaps = gaps
        self.diagnostics = tuple(diagnostics)

    @property
    def origins(self) -> dict[int, str]:
        return {line.number: line.origin for line in self.lines}

    def __iter__(self):
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    def __repr__(self) -> str:
        return f"<Annotation {self.revision} lines={len(self.lines)} gaps={self.gaps}>"


def resolve_provenance(steps: Sequence[ReplayStep], reaches_root: bool = True) -> tuple[list[str], int]:
    """
    Resolves the origin of every line of `steps[0]`.

    `steps` runs from the annotated revision down to the oldest captured one;
    the position map of `steps[i + 1]` relates its lines to those of
    `steps[i]`. A line keeps following its position into older steps as long
    as a map entry exists. The first step lacking one is where the line was
    introduced; if the very first lookup fails the origin is the revision
    itself. Lines of the oldest step originate there, which counts as a gap
    unless that step is the root.

    Returns:
        (origins, gaps): origin revision per line of `steps[0]`, and the number
        of its lines whose walk ran off the captured chain.
    """
    oldest = steps[-1]
    origins = [oldest.revision] * len(oldest.snapshot.lines)
    unresolved = [not reaches_root] * len(origins)

    # Resolve from the root upwards so every step reuses its predecessor's answer
    for index in range(len(steps) - 2, -1, -1):
        current = steps[index]
        previous = steps[index + 1]
        backwards = {new: old for old, new in previous.position_map.items()}

        current_origins = []
        current_unresolved = []
        for number in range(1, len(current.snapshot.lines) + 1):
            position = backwards.get(number)
            if position is None:
                current_origins.append(current.revision)
                current_unresolved.append(False)
            else:
                current_origins.append(origins[position - 1])
                current_unresolved.append(unresolved[position - 1])
        logger.debug(f"Mapping {current.revision} via line count ...")
        origins, unresolved = current_origins, current_unresolved

    return origins, sum(unresolved)


def annotate(
    archive: Archive,
    start_version: str | None = None,
    graph: RevisionGraph | None = None,
    start: Snapshot | None = None,
) -> Annotation:
    """
    Attributes every line of `start_version` (default: head) to the revision
    that positionally introduced it.

    The revision is materialized from head (or from `start`, a snapshot further
    up the chain), then the rest of the chain down to the root is replayed,
    keeping every intermediate snapshot and position map until the backward
    resolution pass is done.

    Raises:
        UnknownRevision: `start_version` is not in the archive or not on the trunk.
    """
    graph = graph or RevisionGraph(archive)
    start_version = start_version or archive.head

    snapshot, diagnostics = materialize(archive, graph, start_version, start=start)
    steps = [ReplayStep(start_version, snapshot, {}, ())]
    steps.extend(replay_chain(archive, snapshot, graph.chain_between(start_version)))
    for step in steps[1:]:
        diagnostics.extend(step.diagnostics)

    reaches_root = graph.previous_version(steps[-1].revision) is None
    if len(steps) == 1:
        logger.debug(f"Mapping {start_version} pro facia ...")
    origins, gaps = resolve_provenance(steps, reaches_root)
    if gaps:
        diagnostics.append(warn(PROVENANCE_GAP, start_version, f"{gaps} lines didn't map well", logger))

    lines = [
        AnnotatedLine(number, text, origin)
        for number, (text, origin) in enumerate(zip(snapshot.lines, origins), start=1)
    ]
    return Annotation(start_version, lines, gaps, diagnostics)
