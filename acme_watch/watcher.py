"""
Save watcher — the sequential loop that reformats files as acme saves them.

One event is handled at a time: the formatter, the diff and the replay all
run on the loop's thread, so a window is never edited by two reformats at
once.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .acme import LogEvent
from .config import ConfigStore
from .editing.diff_producer import make_diff_producer
from .errors import AcmeWatchError
from .formatter import run_formatter
from .reformat import BufferOpener, ReformatResult, reformat

logger = logging.getLogger(__name__)

SAVE_OP = "put"


class SaveWatcher:
    """Reformat every saved file that has a matching formatter rule.

    Parameters
    ----------
    events:
        Iterable of :class:`~acme_watch.acme.LogEvent`, typically an
        :class:`~acme_watch.acme.AcmeLog`. Errors raised while iterating
        (``SourceUnavailableError``) end :meth:`run`.
    config_store:
        Supplies a fresh config snapshot for every event.
    open_buffer:
        Opens the buffer handle for a window id.
    """

    def __init__(
        self,
        events: Iterable[LogEvent],
        config_store: ConfigStore,
        open_buffer: BufferOpener,
    ) -> None:
        self._events = events
        self._config_store = config_store
        self._open_buffer = open_buffer

    def run(self) -> None:
        """Consume events until the event source fails."""
        for event in self._events:
            if event.op != SAVE_OP or not event.name:
                continue
            try:
                self.handle(event)
            except (AcmeWatchError, OSError) as exc:
                logger.error("%s: %s", event.name, exc)

    def handle(self, event: LogEvent) -> Optional[ReformatResult]:
        """Reformat the file saved in *event*.

        Returns ``None`` when no formatter rule matches the file name.
        """
        cfg = self._config_store.snapshot()
        rule = cfg.find_formatter(event.name)
        if rule is None:
            return None

        logger.debug("[Watch] %s saved in window %d; running %s",
                     event.name, event.id, rule.cmd)
        new_content = run_formatter(rule, event.name, timeout=cfg.FORMATTER_TIMEOUT)
        return reformat(
            event.id, event.name, new_content,
            open_buffer=self._open_buffer,
            diff_producer=make_diff_producer(cfg.DIFF),
        )
