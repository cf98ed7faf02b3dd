"""Diff replay — parse line diffs and apply them to live buffers bottom-up."""

from .diff_parser import DiffParser, ParsedDiff, Hunk, HunkKind, Span, parse_diff_script
from .patch_applier import PatchApplier, ApplyResult, find_lines
from .diff_producer import (
    DiffProducer, ExternalDiffProducer, BuiltinDiffProducer, make_diff_producer,
)

__all__ = [
    "DiffParser", "ParsedDiff", "Hunk", "HunkKind", "Span", "parse_diff_script",
    "PatchApplier", "ApplyResult", "find_lines",
    "DiffProducer", "ExternalDiffProducer", "BuiltinDiffProducer", "make_diff_producer",
]
