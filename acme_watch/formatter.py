"""
Formatter runner — invokes the external tool selected for a saved file and
returns the corrected content.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Optional

from .config import FormatterRule
from .errors import FormatterError

logger = logging.getLogger(__name__)


def run_formatter(
    rule: FormatterRule,
    path: str,
    timeout: Optional[float] = None,
) -> bytes:
    """Run *rule*'s command over *path* and return its standard output.

    The file is piped on stdin unless the rule passes it by name
    (``$name``). The command runs in the file's directory so tools that look
    for project configuration (``go.mod``, ``pyproject.toml``) find it.

    Raises
    ------
    FormatterError
        If the tool cannot be started, times out, or exits non-zero.
    """
    argv, use_stdin = rule.command(path)
    cwd = os.path.dirname(os.path.abspath(path))
    logger.debug("[Format] Running %s in %s", " ".join(argv), cwd)

    stdin = open(path, "rb") if use_stdin else subprocess.DEVNULL
    try:
        proc = subprocess.run(
            argv, stdin=stdin, capture_output=True, cwd=cwd,
            timeout=timeout, check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise FormatterError(f"{rule.cmd} timed out after {exc.timeout}s") from exc
    except OSError as exc:
        raise FormatterError(f"cannot run {rule.cmd}: {exc}") from exc
    finally:
        if use_stdin:
            stdin.close()

    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout).decode("utf-8", errors="replace").strip()
        raise FormatterError(f"{rule.cmd} exited with status {proc.returncode}: {detail}")

    if proc.stderr:
        logger.debug("[Format] %s stderr: %s", rule.cmd,
                     proc.stderr.decode("utf-8", errors="replace").strip())
    return proc.stdout
