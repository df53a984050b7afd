import logging

from rcs_reader.rcs_errors import UnknownRevision
from rcs_reader.rcs_parser import Archive, revision_key


logger = logging.getLogger(__name__)


class RevisionGraph:
    """
    Orders the revisions of an Archive.

    The trunk is the path of `next` pointers starting at head. Since every
    stored delta transforms a revision into its predecessor, walking this path
    is the only way to reach older revisions from the literal head text.
    """

    def __init__(self, archive: Archive) -> None:
        self.archive = archive
        self._revision_path: dict[str, str] | None = None
        self._all_versions: list[str] | None = None

    def _path(self) -> dict[str, str]:
        if self._revision_path is None:
            logger.debug("Building full revision path for reference...")
            path = {}
            revision = self.archive.head
            while True:
                predecessor = self.archive[revision].predecessor
                if not predecessor:
                    break
                path[revision] = predecessor
                logger.debug(f"  {revision} -> {predecessor}")
                revision = predecessor
            logger.debug(f"Built a revision path of {len(path)} jumps.")
            self._revision_path = path
        return self._revision_path

    def recent_version(self) -> str:
        return self.archive.head

    def previous_version(self, revision: str | None = None) -> str | None:
        """Predecessor of `revision` (default: head) on the trunk, None at the root."""
        revision = revision or self.archive.head
        if revision not in self.archive:
            raise UnknownRevision(revision)
        return self._path().get(revision)

    def root(self) -> str:
        revision = self.archive.head
        path = self._path()
        while revision in path:
            revision = path[revision]
        return revision

    def is_on_trunk(self, revision: str) -> bool:
        return revision == self.archive.head or revision in self._path().values()

    def chain_between(self, start: str, stop: str | None = None) -> list[str]:
        """
        Revisions to visit, in order, to get from `start` to `stop`.

        The walk begins just after `start` and includes `stop` when it is reached.
        If `stop` is None or never reached, the walk runs to the root.

        Raises:
            UnknownRevision: `start` is not in the archive.
        """
        if start not in self.archive:
            raise UnknownRevision(start)
        if start == stop:
            return []

        path = self._path()
        chain = []
        revision = start
        while revision in path:
            revision = path[revision]
            chain.append(revision)
            if revision == stop:
                break

        logger.debug(f"CHAIN: {' -> '.join(chain)}")
        return chain

    def all_versions(self) -> list[str]:
        """All revision ids, most recent first (component-wise numeric order)."""
        if self._all_versions is None:
            self._all_versions = sorted(self.archive.revisions, key=revision_key, reverse=True)
        return list(self._all_versions)
