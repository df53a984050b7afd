import difflib
import logging
import os
from typing import BinaryIO, TextIO

from rcs_reader.rcs_annotate import Annotation, annotate
from rcs_reader.rcs_delta import Snapshot, head_snapshot, materialize
from rcs_reader.rcs_errors import Diagnostic, UnknownRevision
from rcs_reader.rcs_parser import Archive, RevisionRecord, parse
from rcs_reader.revision_graph import RevisionGraph


logger = logging.getLogger(__name__)


def _default_encoding() -> str:
    """Encoding for archives given as bytes, from RCS_READER_ENCODING (default utf-8)."""
    return os.environ.get("RCS_READER_ENCODING", "utf-8")


class RcsReader:
    """
    Read-only access to an RCS (,v) archive.

    Architecture:
    -------------
    1.  **Reverse deltas:** the archive stores the newest revision (head) as
        literal text and every older revision as an edit script that turns its
        successor back into it. Reaching revision N means replaying every delta
        from head down to N.

    2.  **Immutable archive:** `load` parses the whole file once into an
        Archive. All queries read from it and never change it.

    3.  **Snapshots:** each replay step builds a new Snapshot. The reader keeps
        the last one it materialized and continues from there when the next
        request lies further down the chain; otherwise it restarts at head.

    4.  **Annotate:** `notate` replays the chain down to the root and traces
        every line of the requested revision back to the revision that
        positionally introduced it.

    Non-fatal anomalies (stray tokens, orphan delta commands, binary payloads,
    provenance gaps) are logged as warnings and collected in `diagnostics`.
    """

    def __init__(
        self,
        content_or_path: str | bytes | BinaryIO | TextIO | None = None,
        encoding: str | None = None,
    ) -> None:
        """
        Args:
            content_or_path:
                - None: Nothing loaded yet; call `load` later.
                - str (path): Reads the archive at the given path.
                - str (content): Treats the string as archive text.
                - bytes: Decodes the bytes with `encoding`.
                - file-like object: Reads the whole stream.
            encoding: Used to decode bytes input. Defaults to RCS_READER_ENCODING or utf-8.
        """
        self.encoding = encoding or _default_encoding()
        self.file_path: str | None = None
        self.archive: Archive | None = None
        self.graph: RevisionGraph | None = None
        self._current: Snapshot | None = None
        self._diagnostics: list[Diagnostic] = []

        if content_or_path is not None:
            self.load(content_or_path)

    def _read_input(self, content_or_path: str | bytes | BinaryIO | TextIO) -> str:
        if isinstance(content_or_path, str):
            # A path never spans lines, archive text always does
            if os.path.exists(content_or_path) or '\n' not in content_or_path:
                with open(content_or_path, 'rb') as f:
                    data = f.read()
                self.file_path = content_or_path
                return data.decode(self.encoding, errors='replace')
            return content_or_path
        if isinstance(content_or_path, bytes):
            return content_or_path.decode(self.encoding, errors='replace')
        if hasattr(content_or_path, 'read'):
            data = content_or_path.read()
            if isinstance(data, bytes):
                return data.decode(self.encoding, errors='replace')
            return data
        raise ValueError("Invalid input type. Expected file path, string, bytes, or file-like object.")

    def load(self, content_or_path: str | bytes | BinaryIO | TextIO) -> Archive:
        """
        Reads and parses an archive, replacing whatever was loaded before.

        Raises:
            FormatError: the archive is malformed. The previous state is kept.
            OSError: a path was given and cannot be read.
        """
        text = self._read_input(content_or_path)
        archive = parse(text)

        self.archive = archive
        self.graph = RevisionGraph(archive)
        self._current = head_snapshot(archive)
        self._diagnostics = list(archive.diagnostics)
        logger.debug(f"loaded {len(archive)} revisions, head {archive.head}")
        return archive

    def _require(self, version: str | None) -> str:
        if self.archive is None:
            raise UnknownRevision(version, "requested before an archive was loaded")
        version = version or self.archive.head
        if version not in self.archive:
            raise UnknownRevision(version)
        return version

    def _record(self, version: str | None) -> RevisionRecord:
        return self.archive[self._require(version)]

    def _materialize(self, version: str) -> Snapshot:
        if not self.graph.is_on_trunk(version):
            raise UnknownRevision(version, "is not on the trunk")
        start = self._current
        if start is None or not (start.revision == version or version in self.graph.chain_between(start.revision)):
            start = None # Target is newer than the current snapshot: restart at head

        snapshot, diagnostics = materialize(self.archive, self.graph, version, start=start)
        self._diagnostics.extend(diagnostics)
        self._current = snapshot
        return snapshot

    def get(self, version: str | None = None) -> str:
        """
        Returns the full text of `version` (default: head).

        Raises:
            UnknownRevision: the revision is not in the archive or not reachable from head.
        """
        version = self._require(version)
        return self._materialize(version).text

    def notate(self, version: str | None = None) -> Annotation:
        """
        Returns the per-line provenance of `version` (default: head).
        `Annotation.origins` maps each line number to its origin revision.
        """
        version = self._require(version)
        snapshot = self._materialize(version)
        annotation = annotate(self.archive, version, graph=self.graph, start=snapshot)
        self._diagnostics.extend(annotation.diagnostics)
        return annotation

    def all_versions(self) -> list[str]:
        """All revision ids, most recent first."""
        if self.graph is None:
            return []
        return self.graph.all_versions()

    def recent_version(self) -> str | None:
        if self.graph is None:
            return None
        return self.graph.recent_version()

    def previous_version(self, version: str | None = None) -> str | None:
        """The revision preceding `version` (default: head), None at the root."""
        version = self._require(version)
        return self.graph.previous_version(version)

    def version(self) -> str | None:
        """The revision most recently materialized by `get` or `notate`."""
        return self._current.revision if self._current is not None else None

    def author(self, version: str | None = None) -> str | None:
        return self._record(version).author

    def date(self, version: str | None = None) -> str | None:
        return self._record(version).date

    def state(self, version: str | None = None) -> str | None:
        return self._record(version).state

    @property
    def description(self) -> str:
        return self.archive.description if self.archive is not None else ""

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    def log(self, limit: int | None = None, reverse: bool = False) -> list[dict]:
        """
        Retrieves the revision history.

        Args:
            limit: Maximum number of log entries to return.
            reverse: If True, returns history in chronological order (oldest first).
                     Default is False (newest first).
        """
        history = []
        for ver in self.all_versions():
            record = self.archive[ver]
            history.append({
                "ver": ver,
                "date": record.date,
                "author": record.author,
                "state": record.state,
                "log": record.log,
                "next": record.predecessor,
            })
            if limit and len(history) >= limit:
                break

        if reverse:
            return history[::-1]
        return history

    def diff(self, ver_a: str, ver_b: str) -> str:
        """
        Generates a unified diff between two revisions.

        Args:
            ver_a: The revision to compare from (source).
            ver_b: The revision to compare to (target).
        """
        lines_a = self.get(ver_a).splitlines(keepends=True)
        lines_b = self.get(ver_b).splitlines(keepends=True)

        diff_lines = difflib.unified_diff(
            lines_a,
            lines_b,
            fromfile=f"Version {ver_a}",
            tofile=f"Version {ver_b}",
        )
        return "".join(diff_lines)
