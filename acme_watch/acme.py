"""
acme file-system interface — the event log and per-window control files.

acme serves its state as files (mounted at ``/mnt/acme`` on Plan 9, or
through ``9pfuse`` / ``mount -t 9p`` with plan9port). Each window ``<id>``
has ``ctl``, ``addr`` and ``data`` files; a write to ``addr`` sets the
window's address, and a write to ``data`` replaces the addressed text.
The address only persists while the files stay open, so a window handle
keeps them open until it is closed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

from .buffer import BufferHandle
from .errors import (
    BufferAddressError, BufferHandleError, BufferWriteError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_ACME_ROOT = "/mnt/acme"


@dataclass(frozen=True)
class LogEvent:
    """One line of acme's event log."""
    id: int
    op: str
    name: str


def parse_log_line(line: str) -> Optional[LogEvent]:
    """Parse ``"<id> <op> <name>"``; returns ``None`` for malformed lines."""
    parts = line.rstrip("\n").split(" ", 2)
    if len(parts) < 2:
        return None
    try:
        win_id = int(parts[0])
    except ValueError:
        return None
    name = parts[2] if len(parts) == 3 else ""
    return LogEvent(id=win_id, op=parts[1], name=name)


class AcmeLog:
    """Iterate over acme's window event log.

    Reading blocks until acme reports an event. The log ending (acme exited)
    or failing to read is reported as :class:`SourceUnavailableError`.
    """

    def __init__(self, acme_root: str = DEFAULT_ACME_ROOT) -> None:
        self.path = os.path.join(acme_root, "log")

    def __iter__(self) -> Iterator[LogEvent]:
        try:
            f = open(self.path, "rb", buffering=0)
        except OSError as exc:
            raise SourceUnavailableError(f"cannot open {self.path}: {exc}") from exc

        with f:
            while True:
                try:
                    raw = f.readline()
                except OSError as exc:
                    raise SourceUnavailableError(f"reading {self.path}: {exc}") from exc
                if not raw:
                    raise SourceUnavailableError(f"{self.path}: event log closed")

                event = parse_log_line(raw.decode("utf-8", errors="replace"))
                if event is None:
                    logger.warning("[Watch] Ignoring malformed log line: %r", raw)
                    continue
                yield event


class AcmeWindow(BufferHandle):
    """Buffer handle on the body of acme window *win_id*."""

    def __init__(self, win_id: int, acme_root: str = DEFAULT_ACME_ROOT) -> None:
        self.id = win_id
        self._dir = os.path.join(acme_root, str(win_id))
        self._files: dict[str, BinaryIO] = {}
        try:
            for name in ("ctl", "addr", "data"):
                self._files[name] = open(
                    os.path.join(self._dir, name), "r+b", buffering=0
                )
        except OSError as exc:
            self.close()
            raise BufferHandleError(f"cannot open window {win_id}: {exc}") from exc

    def _write(self, name: str, data: bytes) -> None:
        f = self._files.get(name)
        if f is None:
            raise BufferHandleError(f"window {self.id} is closed")
        # Unbuffered writes may be short; an empty write is still sent once.
        view = memoryview(data)
        while True:
            n = f.write(view)
            view = view[n or 0:]
            if not view:
                return
            if not n:
                raise BufferWriteError(
                    f"window {self.id} {name}: short write, "
                    f"{len(view)} of {len(data)} bytes not written"
                )

    def ctl(self, message: str) -> None:
        """Send a control message to the window."""
        try:
            self._write("ctl", message.encode() + b"\n")
        except OSError as exc:
            raise BufferHandleError(f"window {self.id} ctl {message!r}: {exc}") from exc

    def reset_selection(self, mark: bool = True) -> None:
        self.ctl("mark" if mark else "nomark")

    def select_range(self, start: int, end: int) -> None:
        if end == start - 1:
            addr = f"{end}+#0"
        else:
            addr = f"{start},{end}"
        try:
            self._write("addr", addr.encode())
        except OSError as exc:
            raise BufferAddressError(f"window {self.id} addr {addr}: {exc}") from exc

    def write_selection(self, data: bytes) -> None:
        try:
            self._write("data", data)
        except OSError as exc:
            raise BufferWriteError(f"window {self.id} data: {exc}") from exc

    def close(self) -> None:
        for name, f in self._files.items():
            try:
                f.close()
            except OSError as exc:
                logger.debug("[Watch] Closing %s of window %d: %s", name, self.id, exc)
        self._files = {}


def window_opener(acme_root: str = DEFAULT_ACME_ROOT):
    """Return a ``buffer_id -> AcmeWindow`` factory bound to *acme_root*."""
    def _open(win_id: int) -> AcmeWindow:
        return AcmeWindow(win_id, acme_root)
    return _open
