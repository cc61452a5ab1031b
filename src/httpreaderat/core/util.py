from __future__ import annotations
from typing import BinaryIO

from .model import ShortReadError

DRAIN_CHUNK = 64 * 1024


def read_full(stream: BinaryIO, size: int, *, allow_short: bool = False) -> bytes:
    """Read exactly `size` bytes, retrying on short reads until the stream ends.

    A stream that ends early raises ShortReadError unless `allow_short` is set,
    in which case whatever was read is returned.
    """
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        if not chunk:
            break
        buf += chunk
    if len(buf) < size and not allow_short:
        raise ShortReadError(size, len(buf))
    return bytes(buf)


def drain(stream: BinaryIO) -> int:
    """Consume and discard whatever is left in `stream`; return the byte count."""
    total = 0
    while True:
        chunk = stream.read(DRAIN_CHUNK)
        if not chunk:
            return total
        total += len(chunk)
