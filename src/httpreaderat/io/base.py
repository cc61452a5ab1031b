"""Base protocols and shared types for I/O layer."""

from typing import Any, Protocol, runtime_checkable


class NoRangeError(OSError):
    """Raised when the server does not advertise `Accept-Ranges: bytes`."""


class ContentLengthError(ValueError):
    """Raised when the probe response carries an unparsable Content-Length."""


class UnexpectedStatusError(OSError):
    """Raised when the server answers with a status the reader cannot use."""

    def __init__(self, url: str, status: int, expected: str):
        super().__init__(f"{url}: unexpected HTTP status {status} (expected {expected})")
        self.url = url
        self.status = status


DEFAULT_BLOCK_SIZE = 1 << 12   # 4 KB
DEFAULT_CACHE_COUNT = 256
DEFAULT_TIMEOUT = 30.0


@runtime_checkable
class ReaderAt(Protocol):
    """Protocol for synchronous random-access byte sources."""

    bytes_fetched: int  # running total
    requests_made: int

    @property
    def length(self) -> int: ...

    def read_at(self, buffer, offset: int) -> int:
        """Fill `buffer` from absolute offset `offset`; return the byte count.
        Reads past the end are clipped; offset > length → EOFError.
        """
        ...


@runtime_checkable
class AsyncReaderAt(Protocol):
    """Protocol for asynchronous random-access byte sources."""

    bytes_fetched: int  # running total
    requests_made: int

    @property
    def length(self) -> int: ...

    async def read_at(self, buffer, offset: int) -> int:
        ...


class HTTPClient(Protocol):
    """Anything that can send a prepared request, e.g. `requests.Session`."""

    def send(self, request: Any, **kwargs: Any) -> Any: ...


class AsyncHTTPClient(Protocol):
    """Anything that can send an `httpx.Request`, e.g. `httpx.AsyncClient`."""

    async def send(self, request: Any, **kwargs: Any) -> Any: ...
