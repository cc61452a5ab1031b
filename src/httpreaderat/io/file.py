"""Seekable read-only file object on top of a ReaderAt."""

import io

from .base import ReaderAt


class RangeFile(io.RawIOBase):
    """Expose a ReaderAt through the standard file interface (read/seek/tell),
    so stdlib consumers such as zipfile or tarfile can use a remote resource.
    """

    def __init__(self, reader: ReaderAt):
        super().__init__()
        self._reader = reader
        self._pos = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        try:
            n = self._reader.read_at(b, self._pos)
        except EOFError:
            return 0
        self._pos += n
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            if self._reader.length < 0:
                raise io.UnsupportedOperation("cannot seek from the end of a resource of unknown length")
            pos = self._reader.length + offset
        else:
            raise ValueError(f"invalid whence ({whence})")
        if pos < 0:
            raise ValueError(f"negative seek position {pos}")
        self._pos = pos
        return pos

    def tell(self) -> int:
        return self._pos
