import logging
from collections import namedtuple


logger = logging.getLogger(__name__)

# Non-fatal diagnostic kinds
UNSUPPORTED_CONTENT = "UnsupportedContent"
ORPHAN_EDIT_COMMAND = "OrphanEditCommand"
PROVENANCE_GAP = "ProvenanceGap"
STRAY_TOKEN = "StrayToken"

Diagnostic = namedtuple('Diagnostic', ['kind', 'revision', 'message'])


class RcsError(Exception):
    """Base class for errors raised while reading an RCS archive."""


class FormatError(RcsError, ValueError):
    """The archive is structurally malformed and cannot be loaded."""


class UnknownRevision(RcsError, LookupError):
    """A requested revision id is not present in the archive."""

    def __init__(self, revision: str | None, reason: str = "not found in archive") -> None:
        super().__init__(f"Revision '{revision}' {reason}.")
        self.revision = revision


def warn(kind: str, revision: str | None, message: str, log: logging.Logger = logger) -> Diagnostic:
    """Logs a non-fatal anomaly on `log` and returns it as a Diagnostic."""
    if revision:
        log.warning(f"{kind} ({revision}): {message}")
    else:
        log.warning(f"{kind}: {message}")
    return Diagnostic(kind, revision, message)
