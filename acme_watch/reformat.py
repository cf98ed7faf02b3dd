"""
Reformat — turn a formatter's output into in-place edits of an open window.

Rather than rewriting the file (which would throw away the editor's undo
history and cursor position), the difference between the saved file and
the formatted text is replayed as a handful of targeted buffer edits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .buffer import BufferHandle
from .editing.diff_parser import DiffParser
from .editing.diff_producer import DiffProducer
from .editing.patch_applier import PatchApplier
from .errors import DiffParseError

logger = logging.getLogger(__name__)

BufferOpener = Callable[[int], BufferHandle]


@dataclass
class ReformatResult:
    """Outcome of one reformat call."""
    skipped: bool = False
    hunks_applied: int = 0
    hunks_failed: int = 0
    parse_errors: list[DiffParseError] = field(default_factory=list)


def reformat(
    buffer_id: int,
    path: str,
    new_content: Optional[bytes],
    *,
    open_buffer: BufferOpener,
    diff_producer: DiffProducer,
    applier: Optional[PatchApplier] = None,
) -> ReformatResult:
    """Replay the change from *path*'s saved content to *new_content*.

    Parameters
    ----------
    buffer_id:
        Editor identifier of the window holding *path*.
    path:
        File whose on-disk bytes are the "old" content.
    new_content:
        Formatted content. ``None``, empty, or identical to the file leaves
        the buffer untouched and the buffer is never opened.
    open_buffer:
        Opens the buffer handle for *buffer_id*; it is closed on return.
    diff_producer:
        Computes the line diff between old and new content.

    Raises
    ------
    OSError
        If *path* cannot be read.
    DiffProducerError
        If the diff cannot be computed. No buffer edit has happened yet.
    BufferHandleError
        If the buffer cannot be opened.
    """
    with open(path, "rb") as f:
        old_content = f.read()

    if not new_content or new_content == old_content:
        logger.debug("[Reformat] %s already formatted", path)
        return ReformatResult(skipped=True)

    diff_text = diff_producer.diff(old_content, new_content)
    parsed = DiffParser().parse(diff_text)
    result = ReformatResult(parse_errors=parsed.parse_errors)
    if not parsed.hunks:
        logger.info("[Reformat] %s: no applicable hunks", path)
        return result

    applier = applier or PatchApplier()
    with open_buffer(buffer_id) as buffer:
        applied = applier.apply(new_content, parsed.hunks, buffer)

    result.hunks_applied = applied.hunks_applied
    result.hunks_failed = applied.hunks_failed
    logger.info(
        "[Reformat] %s: %d hunk(s) applied, %d failed",
        path, result.hunks_applied, result.hunks_failed,
    )
    return result
