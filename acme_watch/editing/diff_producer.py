"""
Diff producers — compute the normal-format line diff between the on-disk
content of a file and its formatted replacement.

The external producer shells out to ``diff`` (or plan9port's ``9 diff``);
the builtin one renders :mod:`difflib` opcodes in the same notation for
hosts without a diff binary.
"""

from __future__ import annotations

import difflib
import logging
import os
import shlex
import subprocess
import tempfile
from abc import ABC, abstractmethod
from typing import Sequence, Union

from ..errors import DiffProducerError

logger = logging.getLogger(__name__)

BUILTIN = "builtin"


class DiffProducer(ABC):
    """Produce a normal-format diff script from two byte strings."""

    @abstractmethod
    def diff(self, old: bytes, new: bytes) -> str:
        """Return the diff script turning *old* into *new*."""


class ExternalDiffProducer(DiffProducer):
    """Run an external diff tool over two temporary files.

    Parameters
    ----------
    command:
        The tool and its leading arguments, e.g. ``["diff"]`` or
        ``["9", "diff"]``. The old and new file paths are appended.
    """

    def __init__(self, command: Sequence[str] = ("diff",)) -> None:
        if not command:
            raise ValueError("diff command must not be empty")
        self.command = list(command)

    def diff(self, old: bytes, new: bytes) -> str:
        with tempfile.TemporaryDirectory(prefix="acmewatch-") as tmp_dir:
            old_path = os.path.join(tmp_dir, "old")
            new_path = os.path.join(tmp_dir, "new")
            with open(old_path, "wb") as f:
                f.write(old)
            with open(new_path, "wb") as f:
                f.write(new)

            cmd = self.command + [old_path, new_path]
            logger.debug("[Diff] Running %s", " ".join(cmd))
            try:
                result = subprocess.run(cmd, capture_output=True, check=False)
            except OSError as exc:
                raise DiffProducerError(f"cannot run {self.command[0]}: {exc}") from exc

        # diff(1): 0 = identical, 1 = different, anything else = trouble
        if result.returncode not in (0, 1):
            detail = _decode(result.stderr or result.stdout).strip()
            raise DiffProducerError(
                f"{' '.join(self.command)} exited with status {result.returncode}: {detail}"
            )
        return _decode(result.stdout)


class BuiltinDiffProducer(DiffProducer):
    """Render :class:`difflib.SequenceMatcher` opcodes as a normal diff."""

    def diff(self, old: bytes, new: bytes) -> str:
        old_lines = split_lines(old)
        new_lines = split_lines(new)
        matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

        out: list[str] = []
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                continue
            if tag == "insert":
                out.append(f"{i1}a{_span(j1 + 1, j2)}")
                out.extend(_detail(">", new_lines[j1:j2]))
            elif tag == "delete":
                out.append(f"{_span(i1 + 1, i2)}d{j1}")
                out.extend(_detail("<", old_lines[i1:i2]))
            else:
                out.append(f"{_span(i1 + 1, i2)}c{_span(j1 + 1, j2)}")
                out.extend(_detail("<", old_lines[i1:i2]))
                out.append("---")
                out.extend(_detail(">", new_lines[j1:j2]))

        return "".join(line + "\n" for line in out)


def make_diff_producer(setting: Union[str, Sequence[str], None]) -> DiffProducer:
    """Build a producer from the ``diff`` config setting.

    ``"builtin"`` selects :class:`BuiltinDiffProducer`; a string is split
    shell-style into a command, and a list is used as the command as-is.
    """
    if setting is None:
        return ExternalDiffProducer()
    if isinstance(setting, str):
        if setting.strip() == BUILTIN:
            return BuiltinDiffProducer()
        return ExternalDiffProducer(shlex.split(setting))
    return ExternalDiffProducer([str(part) for part in setting])


def split_lines(data: bytes) -> list[bytes]:
    """Split *data* after each ``\\n``, keeping the terminators."""
    lines = data.split(b"\n")
    out = [line + b"\n" for line in lines[:-1]]
    if lines[-1]:
        out.append(lines[-1])
    return out


def _span(start: int, end: int) -> str:
    return str(start) if start == end else f"{start},{end}"


def _detail(prefix: str, lines: list[bytes]) -> list[str]:
    out = []
    for line in lines:
        text = _decode(line.rstrip(b"\n"))
        out.append(f"{prefix} {text}")
        if not line.endswith(b"\n"):
            out.append("\\ No newline at end of file")
    return out


def _decode(raw: bytes | None) -> str:
    if not raw:
        return ""
    return raw.decode("utf-8", errors="replace")
