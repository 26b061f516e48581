"""Scanner module for reference discovery, resolution and source rewriting."""

from .builder import GraphBuilder, read_source
from .parser import strip_line_comments, rewrite_requires, rewrite_path_tokens
from .resolver import ResolutionError, is_core, resolve_sync

__all__ = [
    "GraphBuilder",
    "read_source",
    "strip_line_comments",
    "rewrite_requires",
    "rewrite_path_tokens",
    "ResolutionError",
    "is_core",
    "resolve_sync",
]
