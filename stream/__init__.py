"""Streaming output of concatenated projects; the bundler is `stream.emitter`."""

from .readable import DEFAULT_HIGH_WATER_MARK, Readable

__all__ = ["DEFAULT_HIGH_WATER_MARK", "Readable"]
