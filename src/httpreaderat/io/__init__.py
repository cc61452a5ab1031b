"""I/O layer for httpreaderat - HTTP transports, range headers and response demultiplexing."""

# Re-export these for import convenience
from .base import (
    ReaderAt, AsyncReaderAt, NoRangeError, ContentLengthError, UnexpectedStatusError,
    DEFAULT_BLOCK_SIZE, DEFAULT_CACHE_COUNT,
)
from .multipart import MediaTypeError, MultipartError
from .http_sync import HTTPReaderAt, open_http_reader_at
from .http_async import AsyncHTTPReaderAt, open_http_reader_at_async
from .file import RangeFile
