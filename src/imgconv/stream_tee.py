"""Replayable fan-out of a forward-only input stream.

A conversion needs to read its input more than once: the format sniffer and the
SVG metrics reader look at the beginning of the data, and the external program
must still receive every byte. :class:`StreamTee` reads the source once into a
spooled buffer and hands out independent readers that replay the buffered
prefix before continuing from the live source.

Example:
    >>> tee = StreamTee(source)
    >>> header = tee.reader().read(16)
    >>> payload = tee.reader()  # starts again at byte 0
"""

import io
import logging
import os
import tempfile
from typing import BinaryIO, Optional

from imgconv.resource_limits import DEFAULT_MAX_BUFFER_MEMORY

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class StreamTee:
    """Buffer a source stream so several readers can each see all of it.

    The source is only read on demand, so a reader that stops after the header
    leaves the rest of the source untouched until another reader asks for it.
    Buffered bytes are kept in memory up to ``max_memory`` bytes and spill to a
    temporary file beyond that. ``max_memory=0`` keeps everything in memory.
    """

    def __init__(
        self, source: BinaryIO, max_memory: int = DEFAULT_MAX_BUFFER_MEMORY
    ) -> None:
        self._source = source
        self._buffer = tempfile.SpooledTemporaryFile(max_size=max_memory)
        self._size = 0
        self._exhausted = False

    @property
    def buffered(self) -> int:
        """Number of source bytes read so far."""
        return self._size

    @property
    def closed(self) -> bool:
        return self._buffer.closed

    def reader(self) -> "TeeReader":
        """Return a new reader positioned at the start of the source."""
        if self.closed:
            raise ValueError("I/O operation on closed StreamTee")
        return TeeReader(self)

    def close(self) -> None:
        """Release the buffer. The source stream is not closed."""
        self._buffer.close()

    def _fill(self, end: Optional[int]) -> None:
        """Read from the source until ``end`` bytes are buffered or EOF."""
        while not self._exhausted and (end is None or self._size < end):
            wanted = CHUNK_SIZE if end is None else max(end - self._size, CHUNK_SIZE)
            chunk = self._source.read(wanted)
            if not chunk:
                self._exhausted = True
                logger.debug(f"Source exhausted after {self._size} bytes")
                break
            self._buffer.seek(0, os.SEEK_END)
            self._buffer.write(chunk)
            self._size += len(chunk)

    def read_at(self, offset: int, size: int = -1) -> bytes:
        """Read up to ``size`` bytes at ``offset``, pulling from the source."""
        if size < 0:
            self._fill(None)
            end = self._size
        else:
            self._fill(offset + size)
            end = min(offset + size, self._size)
        if offset >= end:
            return b""
        self._buffer.seek(offset)
        return self._buffer.read(end - offset)

    def length(self) -> int:
        """Total source length. Reads the source to the end."""
        self._fill(None)
        return self._size

    def __enter__(self) -> "StreamTee":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class TeeReader(io.RawIOBase):
    """Sequential, seekable view over a :class:`StreamTee`.

    Seeking is what lets Pillow probe headers through a reader without the
    original stream having to support ``seek``. Closing a reader does not
    close the tee unless the reader was created with :meth:`owning`.
    """

    def __init__(self, tee: StreamTee) -> None:
        super().__init__()
        self._tee = tee
        self._position = 0
        self._owns_tee = False

    @classmethod
    def owning(cls, tee: StreamTee) -> "TeeReader":
        """Return a reader that closes ``tee`` when it is closed."""
        reader = cls(tee)
        reader._owns_tee = True
        return reader

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        data = self._tee.read_at(self._position, len(buffer))
        n = len(data)
        buffer[:n] = data
        self._position += n
        return n

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None:
            size = -1
        data = self._tee.read_at(self._position, size)
        self._position += len(data)
        return data

    def readall(self) -> bytes:
        return self.read(-1)

    def tell(self) -> int:
        return self._position

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            position = offset
        elif whence == os.SEEK_CUR:
            position = self._position + offset
        elif whence == os.SEEK_END:
            position = self._tee.length() + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if position < 0:
            raise ValueError(f"Negative seek position {position}")
        self._position = position
        return position

    def close(self) -> None:
        if not self.closed and self._owns_tee:
            self._tee.close()
        super().close()
