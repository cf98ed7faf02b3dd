"""
acme_watch — reformat files as acme saves them, without losing undo history.

Public API for library usage::

    from acme_watch import reformat, TextBuffer, BuiltinDiffProducer

    buf = TextBuffer(b"a\nb\n")
    reformat(0, "f.txt", b"a\nb\nc\n",
             open_buffer=lambda _id: buf, diff_producer=BuiltinDiffProducer())
"""

from .buffer import BufferHandle, TextBuffer
from .editing import (
    DiffParser, PatchApplier, BuiltinDiffProducer, ExternalDiffProducer,
)
from .reformat import reformat, ReformatResult

__all__ = [
    "BufferHandle", "TextBuffer",
    "DiffParser", "PatchApplier", "BuiltinDiffProducer", "ExternalDiffProducer",
    "reformat", "ReformatResult",
]
