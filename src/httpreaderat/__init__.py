"""httpreaderat - random access to remote files over HTTP range requests."""

from .core.model import InvalidOffsetError, ShortReadError, UNKNOWN_LENGTH   # re-export
from .core.cache import BlockCache
from .io import (
    HTTPReaderAt, AsyncHTTPReaderAt, RangeFile,
    open_http_reader_at, open_http_reader_at_async,
    NoRangeError, ContentLengthError, UnexpectedStatusError, MediaTypeError, MultipartError,
)


def open_reader_at(url: str, **options) -> HTTPReaderAt:
    """Open `url` for random access.

    Options: length (skip the length probe), block_size, cache_count,
    client (anything with a requests-style `send`), timeout.
    """
    return open_http_reader_at(url, **options)


async def open_reader_at_async(url: str, **options) -> AsyncHTTPReaderAt:
    """Open `url` for asynchronous random access; same options as open_reader_at."""
    return await open_http_reader_at_async(url, **options)


__all__ = [
    "open_reader_at", "open_reader_at_async",
    "HTTPReaderAt", "AsyncHTTPReaderAt", "RangeFile", "BlockCache",
    "InvalidOffsetError", "ShortReadError", "NoRangeError", "ContentLengthError",
    "UnexpectedStatusError", "MediaTypeError", "MultipartError", "UNKNOWN_LENGTH",
]
