"""
CLI entry point — argument parsing and main execution flow.
"""

import argparse
import logging
import sys

from .acme import AcmeLog, window_opener
from .buffer import TextBuffer
from .config import Config, ConfigStore
from .editing.diff_producer import make_diff_producer
from .errors import AcmeWatchError, ConfigError, SourceUnavailableError
from .formatter import run_formatter
from .log import setup_logger
from .reformat import reformat
from .watcher import SaveWatcher

logger = logging.getLogger(__name__)


def _format_command(command: tuple) -> str:
    op, *rest = command
    if op == "reset":
        return "mark" if rest[0] else "nomark"
    if op == "select":
        start, end = rest
        return f"addr {end}+#0" if end == start - 1 else f"addr {start},{end}"
    return f"data {rest[0]!r}"


def dry_run(path: str, cfg: Config) -> int:
    """Format *path* and print the edits a save would replay; no window is touched."""
    rule = cfg.find_formatter(path)
    if rule is None:
        print(f"{path}: no formatter matches", file=sys.stderr)
        return 1

    with open(path, "rb") as f:
        old_content = f.read()
    buffer = TextBuffer(old_content)
    new_content = run_formatter(rule, path, timeout=cfg.FORMATTER_TIMEOUT)
    result = reformat(
        0, path, new_content,
        open_buffer=lambda _id: buffer,
        diff_producer=make_diff_producer(cfg.DIFF),
    )

    if result.skipped:
        print(f"{path}: already formatted")
        return 0
    for command in buffer.commands:
        print(_format_command(command))
    if buffer.content != new_content:
        print(f"{path}: replay does not reproduce the formatter output "
              f"({result.hunks_failed} failed hunk(s), "
              f"{len(result.parse_errors)} unparsable line(s))", file=sys.stderr)
        return 1
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="acmewatch",
        description="Reformat files as acme saves them, editing the window in place",
    )
    parser.add_argument("--config", default=None,
                        help="Path to acmewatch.yaml (default: XDG config dir)")
    parser.add_argument("--acme-root", default=None,
                        help="Where acme's file system is mounted (default: /mnt/acme)")
    parser.add_argument("--diff", default=None,
                        help="Diff command, or 'builtin' (default: diff)")
    parser.add_argument("--log-file", default=None,
                        help="Also write a debug log to this file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log debug output to stderr")
    parser.add_argument("--dry-run", metavar="FILE", default=None,
                        help="Format FILE and print the edits instead of watching acme")
    args = parser.parse_args(argv)

    setup_logger("DEBUG" if args.verbose else "INFO", args.log_file)

    # ── 0. Load config ──
    overrides = {"acme_root": args.acme_root, "diff": args.diff,
                 "log_file": args.log_file}
    try:
        store = ConfigStore.open(args.config, overrides)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1
    cfg = store.snapshot()
    if not args.verbose:
        setup_logger(cfg.LOG_LEVEL, cfg.LOG_FILE)

    # ── 1. One-shot mode ──
    if args.dry_run:
        try:
            return dry_run(args.dry_run, cfg)
        except (AcmeWatchError, OSError) as exc:
            logger.error("%s: %s", args.dry_run, exc)
            return 1

    # ── 2. Watch acme ──
    store.start()
    watcher = SaveWatcher(AcmeLog(cfg.ACME_ROOT), store, window_opener(cfg.ACME_ROOT))
    logger.info("[Watch] Watching %s", cfg.ACME_ROOT)
    try:
        watcher.run()
    except SourceUnavailableError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        store.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
