"""
Patch applier — replays parsed diff hunks into a live buffer, bottom-up,
so each hunk's old line numbers still address untouched text when it runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..buffer import BufferHandle
from ..errors import BufferHandleError
from .diff_parser import Hunk, HunkKind

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Result of replaying one diff into a buffer."""
    hunks_applied: int = 0
    hunks_failed: int = 0
    failed_hunks: list[Hunk] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.hunks_failed == 0


def find_lines(text: bytes, start: int, end: int) -> bytes:
    """Return lines *start* through *end* (1-based, inclusive) of *text*.

    The last line's terminator is included. A range that runs past the end
    of *text* is clamped to the end of *text*.
    """
    i = 0
    n = len(text)

    skip = start - 1
    while i < n and skip > 0:
        nl = text.find(b"\n", i)
        if nl == -1:
            i = n
            break
        i = nl + 1
        skip -= 1
    start_byte = i

    remaining = end - start + 1
    while i < n and remaining > 0:
        nl = text.find(b"\n", i)
        if nl == -1:
            i = n
            break
        i = nl + 1
        remaining -= 1

    return text[start_byte:i]


class PatchApplier:
    """Replay hunks into a :class:`~acme_watch.buffer.BufferHandle`."""

    def apply(
        self,
        new_content: bytes,
        hunks: Iterable[Hunk],
        buffer: BufferHandle,
    ) -> ApplyResult:
        """Apply *hunks*, already in replay order, to *buffer*.

        Parameters
        ----------
        new_content:
            The formatted content the hunks' new spans refer to.
        hunks:
            Hunks in descending old-line order (as produced by
            :class:`~acme_watch.editing.diff_parser.DiffParser`).
        buffer:
            The buffer to edit.

        Returns
        -------
        ApplyResult
            Counts of applied and failed hunks. A failing hunk is logged and
            skipped; the remaining hunks are still applied.
        """
        result = ApplyResult()

        # Fold the whole replay into a single undo step.
        buffer.reset_selection(mark=True)
        buffer.reset_selection(mark=False)

        for hunk in hunks:
            try:
                self._apply_hunk(new_content, hunk, buffer)
            except BufferHandleError as exc:
                logger.warning("[Replay] Hunk %s failed: %s", hunk, exc)
                result.hunks_failed += 1
                result.failed_hunks.append(hunk)
                continue
            result.hunks_applied += 1

        return result

    @staticmethod
    def _apply_hunk(new_content: bytes, hunk: Hunk, buffer: BufferHandle) -> None:
        if hunk.kind is HunkKind.ADD:
            buffer.select_range(hunk.old.start + 1, hunk.old.start)
            buffer.write_selection(find_lines(new_content, hunk.new.start, hunk.new.end))
        elif hunk.kind is HunkKind.CHANGE:
            buffer.select_range(hunk.old.start, hunk.old.end)
            buffer.write_selection(find_lines(new_content, hunk.new.start, hunk.new.end))
        else:
            buffer.select_range(hunk.old.start, hunk.old.end)
            buffer.write_selection(b"")
        logger.debug("[Replay] Applied %s", hunk)
