"""
Bounded byte channel between the multipart parser (request thread) and the
Drive upload (worker thread).
"""
import threading
import time

DEFAULT_MAX_BUFFER = 2 * 1024 * 1024


class PipeTimeout(Exception):
    """The writer waited too long for the reader to make room."""


class UploadCancelled(Exception):
    """Raised on the reader side when the writer aborts the stream."""


class BytePipe:
    def __init__(self, max_buffer: int = DEFAULT_MAX_BUFFER):
        self._buffer = bytearray()
        self._max_buffer = max_buffer
        self._cond = threading.Condition()
        self._eof = False
        self._error: BaseException | None = None
        self._reader_closed = False

    @property
    def reader_closed(self) -> bool:
        return self._reader_closed

    def write(self, data: bytes, timeout: float | None = None) -> bool:
        """Append data, blocking while the buffer is full.

        Returns False when the reader has already gone away (the data is
        dropped). Raises PipeTimeout if no room frees up within timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while (
                len(self._buffer) >= self._max_buffer
                and not self._reader_closed
                and self._error is None
            ):
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PipeTimeout("upload did not consume data in time")
                self._cond.wait(remaining)

            if self._reader_closed or self._error is not None:
                return False
            self._buffer.extend(data)
            self._cond.notify_all()
            return True

    def read(self, size: int) -> bytes:
        """Return exactly size bytes, or fewer only at end of stream."""
        with self._cond:
            while len(self._buffer) < size and not self._eof and self._error is None:
                self._cond.wait()
            if self._error is not None:
                raise self._error
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._cond.notify_all()
            return data

    def close(self) -> None:
        with self._cond:
            self._eof = True
            self._cond.notify_all()

    def abort(self, error: BaseException) -> None:
        with self._cond:
            if self._error is None:
                self._error = error
            self._buffer.clear()
            self._cond.notify_all()

    def close_reader(self) -> None:
        with self._cond:
            self._reader_closed = True
            self._buffer.clear()
            self._cond.notify_all()
