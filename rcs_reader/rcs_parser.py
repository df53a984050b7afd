import logging
import re
from collections import namedtuple
from datetime import datetime, timezone
from types import MappingProxyType

from rcs_reader.rcs_errors import (
    STRAY_TOKEN,
    UNSUPPORTED_CONTENT,
    FormatError,
    UnknownRevision,
    warn,
)


logger = logging.getLogger(__name__)

REVISION_ID = re.compile(r'\d+(?:\.\d+)+')

# All scanners are anchored at an explicit offset via pattern.match(text, pos)
_REVISION_LINE = re.compile(r'(\d+(?:\.\d+)+)[ \t\r]*(?:\n|\Z)')
_BLANK_LINE = re.compile(r'[ \t\r]*\n')
_BLANK_LINES = re.compile(r'(?:[ \t\r]*\n)*')
_LINE = re.compile(r'[^\n]*\n?')
_END_OF_LINE = re.compile(r'[ \t\r]*\n?')
_ONLY_WHITESPACE = re.compile(r'\s*\Z')
_DESC = re.compile(r'desc\s*(?=@)')
_DIRECTIVE = re.compile(r'([A-Za-z_][\w\-]*)\s*(?=@)')
_CLAUSE = re.compile(r'\s*([^\s@;]+)\s*(.*?)\s*\Z', re.DOTALL)

_METADATA_FIELDS = ('date', 'author', 'state', 'branches', 'next')


def is_revision_id(token: str) -> bool:
    """True if `token` looks like a revision id ("1.2", "1.2.1.4")."""
    return bool(token) and REVISION_ID.fullmatch(token) is not None


def revision_key(revision: str) -> tuple[int, ...]:
    """
    Sort key for revision ids. Components compare numerically,
    so "1.9" < "1.10" and "1.2.1.1" < "1.2.2.1".
    """
    try:
        return tuple(int(part) for part in revision.split('.'))
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid revision id '{revision}'") from e


def unescape(text: str) -> str:
    """Unescapes '@@' back to '@'."""
    return text.replace("@@", "@")


class RevisionRecord(namedtuple('RevisionRecord', [
        'revision', 'date', 'author', 'state', 'predecessor', 'branches', 'log', 'text', 'extra'])):
    """
    One delta of the archive.

    `predecessor` is the `next` pointer of the archive, i.e. the chronologically
    earlier revision reached when walking away from head. `text` is the literal
    document for head and a reverse edit script for every other revision.
    """
    __slots__ = ()

    @property
    def timestamp(self) -> datetime | None:
        """The `date` field as a UTC datetime. Two-digit years are 19YY."""
        if not self.date:
            return None
        try:
            parts = [int(p) for p in self.date.split('.')]
            if parts[0] < 100:
                parts[0] += 1900
            return datetime(*parts[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            return None


class Archive:
    """
    Immutable in-memory form of one RCS archive.

    Holds the header clauses, every revision record keyed by revision id, the
    description and any non-fatal findings collected while parsing.
    """

    def __init__(
        self,
        head: str,
        header: dict,
        revisions: dict[str, RevisionRecord],
        description: str = "",
        diagnostics: tuple = (),
    ) -> None:
        self._head = head
        self._header = MappingProxyType(dict(header))
        self._revisions = MappingProxyType(dict(revisions))
        self._description = description
        self._diagnostics = tuple(diagnostics)

    @property
    def head(self) -> str:
        return self._head

    @property
    def header(self) -> MappingProxyType:
        return self._header

    @property
    def revisions(self) -> MappingProxyType:
        return self._revisions

    @property
    def description(self) -> str:
        return self._description

    @property
    def diagnostics(self) -> tuple:
        return self._diagnostics

    @property
    def is_binary(self) -> bool:
        return self._header.get('expand') == 'b'

    def __getitem__(self, revision: str) -> RevisionRecord:
        try:
            return self._revisions[revision]
        except KeyError:
            raise UnknownRevision(revision) from None

    def __contains__(self, revision: object) -> bool:
        return revision in self._revisions

    def __len__(self) -> int:
        return len(self._revisions)

    def __repr__(self) -> str:
        return f"<Archive head={self._head} revisions={len(self._revisions)}>"


def read_string(text: str, pos: int) -> tuple[str, int]:
    """
    Reads an @-delimited string starting at `pos`.
    Returns the unescaped value and the offset just past the closing '@'.
    """
    if pos >= len(text) or text[pos] != '@':
        raise FormatError(f"Expected '@' at offset {pos}.")
    start = pos
    pos += 1
    parts = []
    while True:
        end = text.find('@', pos)
        if end == -1:
            raise FormatError(f"Unterminated @-string starting at offset {start}.")
        if text.startswith('@@', end):
            parts.append(text[pos:end + 1]) # '@@' -> '@'
            pos = end + 2
        else:
            parts.append(text[pos:end])
            return "".join(parts), end + 1


def _split_clauses(chunk: str) -> list[tuple[str, str]]:
    """Splits `key value;` clauses, ignoring ';' inside @-strings."""
    clauses = []
    start = pos = 0
    length = len(chunk)
    while pos < length:
        ch = chunk[pos]
        if ch == '@':
            _, pos = read_string(chunk, pos)
        elif ch == ';':
            clauses.append(chunk[start:pos])
            pos += 1
            start = pos
        else:
            pos += 1
    clauses.append(chunk[start:])

    pairs = []
    for clause in clauses:
        if not clause.strip():
            continue
        match = _CLAUSE.match(clause)
        if not match:
            logger.debug(f"ignoring clause without a key: {clause.strip()!r}")
            continue
        key, value = match.group(1), match.group(2)
        if value.startswith('@'):
            value, _ = read_string(value, 0)
        else:
            value = " ".join(value.split())
        pairs.append((key, value))
    return pairs


def _parse_header(text: str, pos: int) -> tuple[dict, int]:
    start = pos
    length = len(text)
    while pos < length:
        if _BLANK_LINE.match(text, pos) or _REVISION_LINE.match(text, pos):
            break
        pos = _LINE.match(text, pos).end()

    header = dict(_split_clauses(text[start:pos]))
    if not header.get('head'):
        raise FormatError("Archive header has no 'head' revision.")
    return header, pos


def _parse_metadata(text: str, pos: int) -> tuple[dict[str, dict], int]:
    """
    Per-revision metadata blocks: a revision id line followed by
    `key value;` directives, terminated by a blank line.

    Clause values may span several lines; RCS puts each branch of
    `branches` on its own tab-indented line.
    """
    blocks = {}
    length = len(text)
    while True:
        match = _REVISION_LINE.match(text, pos)
        if not match or _DIRECTIVE.match(text, match.end()):
            # A revision line followed by `log @...@` already starts the bodies
            break
        revision = match.group(1)
        if revision in blocks:
            raise FormatError(f"Revision '{revision}' is defined twice.")
        pos = start = match.end()
        while pos < length:
            if _BLANK_LINE.match(text, pos) or _DESC.match(text, pos):
                break
            pos = _LINE.match(text, pos).end()
        blocks[revision] = dict(_split_clauses(text[start:pos]))
        logger.debug(f"metadata for {revision} is {pos - start} chars in size")
        pos = _BLANK_LINES.match(text, pos).end()
    return blocks, pos


def _parse_description(text: str, pos: int) -> tuple[str, int]:
    match = _DESC.match(text, pos)
    if not match:
        raise FormatError(f"Missing 'desc' section at offset {pos}.")
    desc, pos = read_string(text, match.end())
    pos = _END_OF_LINE.match(text, pos).end()
    return desc, pos


def _parse_bodies(text: str, pos: int, known: dict, diagnostics: list) -> tuple[dict[str, dict], int]:  # noqa: C901
    """
    Revision bodies: a revision id line followed by `directive @string@`
    pairs (log, text, ...) up to a blank line.
    """
    bodies = {}
    length = len(text)
    while True:
        pos = _BLANK_LINES.match(text, pos).end()
        if pos >= length or _ONLY_WHITESPACE.match(text, pos):
            break

        match = _REVISION_LINE.match(text, pos)
        if not match:
            line_end = _LINE.match(text, pos).end()
            diagnostics.append(warn(STRAY_TOKEN, None, f"skipped '{text[pos:line_end].strip()}'", logger))
            pos = line_end
            continue

        revision = match.group(1)
        pos = match.end()
        fields = {}
        while True:
            directive = _DIRECTIVE.match(text, pos)
            if directive:
                value, pos = read_string(text, directive.end())
                pos = _END_OF_LINE.match(text, pos).end()
                fields[directive.group(1)] = value
                logger.debug(f"directive '{directive.group(1)}' for {revision} is {len(value)} chars in size")
                continue
            if pos >= length or _BLANK_LINE.match(text, pos) or _REVISION_LINE.match(text, pos):
                break
            if _ONLY_WHITESPACE.match(text, pos):
                pos = length
                break
            line_end = _LINE.match(text, pos).end()
            diagnostics.append(
                warn(STRAY_TOKEN, revision, f"skipped '{text[pos:line_end].strip()}' in body", logger))
            pos = line_end

        if revision not in known:
            diagnostics.append(warn(STRAY_TOKEN, revision, "body for undefined revision ignored", logger))
        elif revision in bodies:
            diagnostics.append(warn(STRAY_TOKEN, revision, "duplicate body ignored", logger))
        else:
            bodies[revision] = fields
    return bodies, pos


def _build_record(revision: str, metadata: dict, body: dict | None) -> RevisionRecord:
    extra = {k: v for k, v in metadata.items() if k not in _METADATA_FIELDS}
    body = body or {}
    extra.update((k, v) for k, v in body.items() if k not in ('log', 'text'))
    return RevisionRecord(
        revision=revision,
        date=metadata.get('date'),
        author=metadata.get('author'),
        state=metadata.get('state'),
        predecessor=metadata.get('next') or None,
        branches=tuple(metadata.get('branches', '').split()),
        log=body.get('log', ""),
        text=body.get('text'),
        extra=MappingProxyType(extra),
    )


def _validate(head: str, records: dict[str, RevisionRecord]) -> None:
    if head not in records:
        raise FormatError(f"Head revision '{head}' has no metadata block.")

    for record in records.values():
        for target in (record.predecessor, *record.branches):
            if target and not is_revision_id(target):
                raise FormatError(f"Revision '{record.revision}' refers to malformed revision id '{target}'.")
        if record.predecessor and record.predecessor not in records:
            raise FormatError(
                f"Revision '{record.revision}' points to undefined revision '{record.predecessor}'.")

    seen = set()
    revision = head
    while revision:
        if revision in seen:
            raise FormatError(f"Revision chain loops back to '{revision}'.")
        seen.add(revision)
        if records[revision].text is None:
            raise FormatError(f"Revision '{revision}' has no text body.")
        revision = records[revision].predecessor


def parse(text: str) -> Archive:
    """
    Parses raw archive text into an Archive.

    Sections are consumed strictly in order: header, per-revision metadata,
    description, revision bodies. Structural problems raise FormatError;
    stray tokens and binary payloads are recorded as diagnostics.
    """
    diagnostics = []
    pos = _BLANK_LINES.match(text, 0).end()

    header, pos = _parse_header(text, pos)
    pos = _BLANK_LINES.match(text, pos).end()
    metadata, pos = _parse_metadata(text, pos)
    pos = _BLANK_LINES.match(text, pos).end()
    description, pos = _parse_description(text, pos)
    bodies, pos = _parse_bodies(text, pos, metadata, diagnostics)

    head = header['head']
    records = {rev: _build_record(rev, meta, bodies.get(rev)) for rev, meta in metadata.items()}
    _validate(head, records)

    if header.get('expand') == 'b' or '\0' in records[head].text:
        diagnostics.append(warn(UNSUPPORTED_CONTENT, head, "binary payload will be handled as text", logger))

    logger.debug(f"parsed {len(records)} revisions, head {head}")
    return Archive(head, header, records, description, diagnostics)
