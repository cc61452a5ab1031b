"""Asynchronous HTTP random-access reader using httpx."""

import io
import logging
import warnings
from typing import Optional

import httpx

from ..core.model import ShortReadError, UNKNOWN_LENGTH
from ..core.planner import BlockPlan
from ..core.reader import BlockReader
from .base import AsyncHTTPClient, DEFAULT_BLOCK_SIZE, DEFAULT_CACHE_COUNT, DEFAULT_TIMEOUT
from .multipart import open_body_stream
from .ranges import (
    RANGE_NOT_SATISFIABLE,
    check_accept_ranges,
    check_probe_status,
    check_range_status,
    format_range_header,
    parse_content_length,
    parse_unsatisfied_range,
)

logger = logging.getLogger(__name__)

# Global async client
_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    """Get or create the global httpx AsyncClient."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
    return _client


class AsyncHTTPReaderAt(BlockReader):
    """Asynchronous HTTP reader with a block cache and multi-range fetches.

    Construct it with `open_http_reader_at_async`, which runs the length probe;
    the constructor alone does no I/O.
    """

    def __init__(
        self,
        url: str,
        *,
        length: Optional[int] = None,
        block_size: int = DEFAULT_BLOCK_SIZE,
        cache_count: int = DEFAULT_CACHE_COUNT,
        client: Optional[AsyncHTTPClient] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        super().__init__(url, length=length, block_size=block_size, cache_count=cache_count)
        self._client = client
        self._timeout = timeout
        self._initialized = length is not None

    @property
    def client(self):
        return self._client if self._client is not None else _get_client()

    def _build_request(self, headers: Optional[dict] = None) -> httpx.Request:
        return httpx.Request("GET", self.url, headers=headers, extensions={"timeout": httpx.Timeout(self._timeout).as_dict()})

    async def _ensure_initialized(self):
        """Probe length and range support with a GET if not already done."""
        if self._initialized:
            return

        self.requests_made += 1
        response = await self.client.send(self._build_request(), stream=True)
        try:
            check_probe_status(self.url, response.status_code)
            check_accept_ranges(self.url, response.headers)
            self._length = parse_content_length(response.headers.get("content-length"))
        finally:
            await response.aclose()

        if self._length == UNKNOWN_LENGTH:
            warnings.warn(f"{self.url}: no Content-Length in response, end of file is found on demand")
        self._initialized = True

    async def _fetch_runs(self, plan: BlockPlan, offset: int):
        """Fetch every miss run of `plan` with one GET and fill in its blocks."""
        range_header = format_range_header(plan.runs, self.block_size, self.length)
        logger.debug("GET %s Range: %s", self.url, range_header)

        request = self._build_request({"Range": range_header, "Accept-Encoding": "identity"})
        self.requests_made += 1
        response = await self.client.send(request)
        try:
            if response.status_code == RANGE_NOT_SATISFIABLE and self.length < 0:
                self._unsatisfiable(plan, offset, parse_unsatisfied_range(response.headers.get("content-range")))
                return
            check_range_status(self.url, response.status_code)
            # the body only spans the requested blocks, so demultiplex it from memory
            stream = open_body_stream(response.headers.get("content-type"), io.BytesIO(response.content))
            fetched = self._read_blocks(plan, stream)
        finally:
            await response.aclose()

        self._commit(plan, fetched, offset)

    async def read_at(self, buffer, offset: int) -> int:
        """Fill `buffer` with bytes starting at absolute offset `offset`."""
        await self._ensure_initialized()

        view = self._window(buffer, offset)
        if not view:
            return 0

        plan = self._plan(offset, len(view))
        if plan.runs:
            await self._fetch_runs(plan, offset)
        return self._assemble(plan, view, offset)

    async def fetch(self, start: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at absolute offset `start`."""
        buf = bytearray(length)
        n = await self.read_at(buf, start)
        if n < length:
            raise ShortReadError(length, n)
        return bytes(buf)

    async def __aenter__(self):
        await self._ensure_initialized()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        # Client is shared, don't close it here
        pass


async def open_http_reader_at_async(url: str, **options) -> AsyncHTTPReaderAt:
    """Create an asynchronous HTTP reader and probe its length."""
    reader = AsyncHTTPReaderAt(url, **options)
    await reader._ensure_initialized()
    return reader


async def close_global_client():
    """Close the global httpx client. Call this at application shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
