"""
Error types shared across acmewatch.

Only :class:`SourceUnavailableError` is fatal to the watch loop; everything
else is reported and the loop moves on to the next save event.
"""


class AcmeWatchError(Exception):
    """Base class for all acmewatch errors."""


class SourceUnavailableError(AcmeWatchError):
    """The editor's event log cannot be read."""


class ConfigError(AcmeWatchError):
    """The configuration file is unreadable or malformed."""


class FormatterError(AcmeWatchError):
    """The external formatter failed or could not be started."""


class DiffProducerError(AcmeWatchError):
    """The line diff between old and new content could not be computed."""


class DiffParseError(AcmeWatchError):
    """A diff header line could not be parsed."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line


class BufferHandleError(AcmeWatchError):
    """A buffer handle could not be opened, addressed, or written."""


class BufferAddressError(BufferHandleError):
    """The buffer rejected a selection."""


class BufferWriteError(BufferHandleError):
    """The buffer rejected a write to the current selection."""
