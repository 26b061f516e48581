"""Pull-based text source with backpressure and an out-of-band error signal."""

import logging
from collections import deque
from typing import Callable, Deque, Dict, Iterator, List, Optional, TextIO


logger = logging.getLogger(__name__)

# Characters buffered before push() asks the producer to pause.
DEFAULT_HIGH_WATER_MARK = 16384

EVENTS = ("data", "end", "error")


class Readable:
    """
    A text source that produces chunks only when the consumer asks for them.

    Subclasses implement `_read()`, which is invoked on demand and calls
    `push()` for each chunk it produces. `push()` returns False once the
    internal buffer holds `high_water_mark` characters or more; the producer
    is expected to stop there and wait for the next `_read()` call.
    `push(None)` ends the stream.

    Errors are reported through `_schedule_error()`. The error is delivered
    after the producing call has returned: "error" listeners are notified
    once `read()` is done producing, and with no listener attached the error
    is raised from the first `read()` that finds the buffer drained. Either
    way it is delivered exactly once and nothing more is produced.
    """

    def __init__(self, high_water_mark: int = DEFAULT_HIGH_WATER_MARK):
        if high_water_mark < 0:
            raise ValueError("high_water_mark must not be negative")
        self.high_water_mark = high_water_mark
        self._buffer: Deque[str] = deque()
        self._buffered = 0
        self._ended = False
        self._end_emitted = False
        self._destroyed = False
        self._producing = False
        self._pending_error: Optional[BaseException] = None
        self._deferred: Deque[Callable[[], None]] = deque()
        self._listeners: Dict[str, List[Callable]] = {event: [] for event in EVENTS}

    def _read(self, size: int) -> None:
        raise NotImplementedError

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def on(self, event: str, callback: Callable) -> "Readable":
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event!r}")
        self._listeners[event].append(callback)
        return self

    def push(self, chunk: Optional[str]) -> bool:
        """
        Queue a chunk for the consumer.

        Returns:
            True if the consumer can take more data right away, False if the
            producer should wait for the next demand.
        """
        if self._ended or self._destroyed:
            return False
        if chunk is None:
            self._ended = True
            return False
        if chunk:
            self._buffer.append(chunk)
            self._buffered += len(chunk)
        return self._buffered < self.high_water_mark

    def read(self, size: Optional[int] = None) -> Optional[str]:
        """
        Ask for data.

        Args:
            size: Maximum number of characters to return; all buffered data
                when None.

        Returns:
            The buffered text, "" if nothing is available yet, or None once
            the stream has ended (or failed) and the buffer is drained.
        """
        if self._wants_more():
            self._producing = True
            try:
                self._read(self.high_water_mark)
            finally:
                self._producing = False
        self._run_deferred()

        data = self._take(size)
        if data:
            for callback in list(self._listeners["data"]):
                callback(data)
            return data

        if self._pending_error is not None:
            error, self._pending_error = self._pending_error, None
            raise error

        if self._ended and not self._end_emitted:
            self._end_emitted = True
            for callback in list(self._listeners["end"]):
                callback()

        if self._ended or self._destroyed:
            return None
        return ""

    def destroy(self, error: Optional[BaseException] = None) -> None:
        """Stop producing. A given error is delivered like a scheduled one."""
        if self._destroyed:
            return
        if error is not None:
            self._schedule_error(error)
        else:
            self._destroyed = True

    def pipe(self, destination: TextIO) -> TextIO:
        """Copy the whole stream into a writable text file object."""
        for chunk in self:
            destination.write(chunk)
        return destination

    def __iter__(self) -> Iterator[str]:
        while True:
            chunk = self.read()
            if chunk is None:
                return
            if not chunk:
                # _read() returned without pushing, ending or failing.
                raise RuntimeError("Stream stalled without ending")
            yield chunk

    def _wants_more(self) -> bool:
        return (
            not self._ended
            and not self._destroyed
            and not self._producing
            and (not self._buffer or self._buffered < self.high_water_mark)
        )

    def _take(self, size: Optional[int]) -> str:
        if not self._buffer:
            return ""
        if size is None or size >= self._buffered:
            data = "".join(self._buffer)
            self._buffer.clear()
            self._buffered = 0
            return data

        parts: List[str] = []
        remaining = size
        while remaining > 0:
            chunk = self._buffer.popleft()
            if len(chunk) > remaining:
                self._buffer.appendleft(chunk[remaining:])
                chunk = chunk[:remaining]
            parts.append(chunk)
            remaining -= len(chunk)
        data = "".join(parts)
        self._buffered -= len(data)
        return data

    def _schedule_error(self, error: BaseException) -> None:
        """Fail the stream; delivery happens after the current production step."""
        logger.debug("Stream failed: %s", error)
        self._destroyed = True
        self._deferred.append(lambda: self._emit_error(error))

    def _emit_error(self, error: BaseException) -> None:
        listeners = list(self._listeners["error"])
        if not listeners:
            self._pending_error = error
            return
        for callback in listeners:
            callback(error)

    def _run_deferred(self) -> None:
        while self._deferred:
            self._deferred.popleft()()
