"""
Buffer handles — the address-based editing surface hunks are replayed into.

:class:`BufferHandle` is the abstract capability; :class:`TextBuffer` is an
in-memory implementation with the same line addressing as acme, used for
dry runs and tests. The acme-backed handle lives in :mod:`acme_watch.acme`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .errors import BufferAddressError, BufferWriteError


class BufferHandle(ABC):
    """Address-scoped select/write operations on a live text buffer.

    Handles are context managers; :meth:`close` runs exactly once when the
    ``with`` block exits, whatever the outcome.
    """

    @abstractmethod
    def reset_selection(self, mark: bool = True) -> None:
        """Clear any prior selection.

        With ``mark=True`` an undo point is set; with ``mark=False``
        subsequent edits are folded into that undo point.
        """

    @abstractmethod
    def select_range(self, start: int, end: int) -> None:
        """Select lines *start* through *end*, 1-based and inclusive.

        ``end == start - 1`` selects the empty insertion point after line
        *end*.

        Raises
        ------
        BufferAddressError
            If the buffer rejects the address.
        """

    @abstractmethod
    def write_selection(self, data: bytes) -> None:
        """Replace the current selection with *data* (empty data deletes it).

        Raises
        ------
        BufferWriteError
            If the buffer rejects the write.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the resources held by the handle."""

    def __enter__(self) -> "BufferHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def line_offset(text: bytes, line: int) -> Optional[int]:
    """Return the byte offset where 1-based *line* begins in *text*.

    ``line_count + 1`` maps to ``len(text)``. Returns ``None`` past that.
    """
    offset = 0
    for _ in range(line - 1):
        nl = text.find(b"\n", offset)
        if nl == -1:
            if offset < len(text):
                # Unterminated last line
                offset = len(text)
                continue
            return None
        offset = nl + 1
    return offset


class TextBuffer(BufferHandle):
    """In-memory buffer using acme's line addressing.

    Every call is recorded in :attr:`commands` as a tuple, so callers can
    inspect exactly what a replay would have sent to the editor.
    """

    def __init__(self, content: bytes = b"") -> None:
        self.content = content
        self.commands: list[tuple] = []
        self.close_count = 0
        self.marked = False
        self._selection: Optional[tuple[int, int]] = None

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def reset_selection(self, mark: bool = True) -> None:
        self.commands.append(("reset", mark))
        self.marked = mark
        self._selection = None

    def select_range(self, start: int, end: int) -> None:
        self.commands.append(("select", start, end))
        if start < 1 or end < start - 1:
            raise BufferAddressError(f"address out of range: {start},{end}")

        q0 = line_offset(self.content, start)
        if q0 is None or (q0 == len(self.content) and end >= start):
            raise BufferAddressError(f"address out of range: {start},{end}")
        if end == start - 1:
            self._selection = (q0, q0)
            return

        q1 = line_offset(self.content, end + 1)
        if q1 is None:
            raise BufferAddressError(f"address out of range: {start},{end}")
        self._selection = (q0, q1)

    def write_selection(self, data: bytes) -> None:
        self.commands.append(("write", data))
        if self._selection is None:
            raise BufferWriteError("no selection")
        q0, q1 = self._selection
        self.content = self.content[:q0] + data + self.content[q1:]
        # Like acme, the selection now covers the written text.
        self._selection = (q0, q0 + len(data))

    def close(self) -> None:
        self.close_count += 1
