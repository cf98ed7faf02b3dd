"""
Diff parser — turns the classic "normal" diff notation emitted by ``diff``
(and plan9port's ``9 diff``) into hunks ready to be replayed against a live
buffer.

Only header lines carry addressing information::

    2c2          change old line 2 into new line 2
    4,5d3        delete old lines 4-5
    7a8,9        after old line 7 insert new lines 8-9

Detail lines (``<``, ``>``, ``---`` and ``\\ No newline at end of file``)
are ignored.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field

from ..errors import DiffParseError

logger = logging.getLogger(__name__)

# Header grammar: span op span, where span is INT or INT,INT
_OPERATOR_PATTERN = re.compile(r"[acd]")
_SPAN_PATTERN = re.compile(r"^(\d+)(?:,(\d+))?$")

_DETAIL_PREFIXES = ("<", ">", "-", "\\")


class HunkKind(enum.Enum):
    """Operation carried by one diff header."""
    ADD = "a"
    CHANGE = "c"
    DELETE = "d"


@dataclass(frozen=True)
class Span:
    """An inclusive, 1-based line range."""
    start: int
    end: int

    def __str__(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start},{self.end}"


@dataclass(frozen=True)
class Hunk:
    """One diff instruction: old lines → new lines."""
    kind: HunkKind
    old: Span
    new: Span

    def __str__(self) -> str:
        return f"{self.old}{self.kind.value}{self.new}"


@dataclass
class ParsedDiff:
    """Hunks of one diff script, in replay (bottom-up) order."""
    hunks: list[Hunk] = field(default_factory=list)
    parse_errors: list[DiffParseError] = field(default_factory=list)


def parse_span(text: str) -> Span:
    """Parse ``N`` or ``N,M`` into a :class:`Span`.

    Raises
    ------
    DiffParseError
        If *text* is not a span or its end precedes its start.
    """
    match = _SPAN_PATTERN.match(text)
    if match is None:
        raise DiffParseError(f"cannot parse span {text!r}", text)
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) is not None else start
    if end < start:
        raise DiffParseError(f"span {text!r} ends before it starts", text)
    return Span(start, end)


def parse_header(line: str) -> Hunk | None:
    """Parse one header line.

    Returns ``None`` when either span starts at line 0, which the diff
    tools use for "before the first line"; such hunks are not replayed.

    Raises
    ------
    DiffParseError
        If the line has no operator or either span is malformed.
    """
    op = _OPERATOR_PATTERN.search(line)
    if op is None:
        raise DiffParseError(f"cannot parse diff line: {line!r}", line)

    try:
        old = parse_span(line[:op.start()])
        new = parse_span(line[op.end():])
    except DiffParseError as exc:
        raise DiffParseError(f"cannot parse diff line: {line!r} ({exc})", line) from exc

    if old.start == 0 or new.start == 0:
        return None
    return Hunk(kind=HunkKind(op.group()), old=old, new=new)


class DiffParser:
    """Parse normal-format diff scripts into replay-ordered hunks."""

    def parse(self, diff_text: str) -> ParsedDiff:
        """Parse *diff_text*.

        The script is scanned from its last line upward: header lines appear
        in ascending old-line order, so the hunks come out in descending
        order, which is the order they must be applied in. A malformed
        header is logged and skipped; it never aborts the rest of the parse.
        """
        result = ParsedDiff()

        for line in reversed(diff_text.split("\n")):
            line = line.rstrip("\r")
            if not line or line.startswith(_DETAIL_PREFIXES):
                continue
            try:
                hunk = parse_header(line)
            except DiffParseError as exc:
                logger.warning("[Diff] %s", exc)
                result.parse_errors.append(exc)
                continue
            if hunk is None:
                logger.debug("[Diff] Skipping hunk at line 0: %s", line)
                continue
            result.hunks.append(hunk)

        return result


def parse_diff_script(diff_text: str) -> ParsedDiff:
    """Shortcut for ``DiffParser().parse(diff_text)``."""
    return DiffParser().parse(diff_text)
