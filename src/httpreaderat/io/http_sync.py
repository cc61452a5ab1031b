"""Synchronous HTTP random-access reader using requests."""

import logging
import warnings
from typing import Optional

import requests

from ..core.model import ShortReadError, UNKNOWN_LENGTH
from ..core.planner import BlockPlan
from ..core.reader import BlockReader
from ..core.util import drain
from .base import DEFAULT_BLOCK_SIZE, DEFAULT_CACHE_COUNT, DEFAULT_TIMEOUT, HTTPClient
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

# Module-level session for connection pooling
_session = None


def _get_session():
    """Get or create the global requests session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


class HTTPReaderAt(BlockReader):
    """Synchronous HTTP reader with a block cache and multi-range fetches."""

    def __init__(
        self,
        url: str,
        *,
        length: Optional[int] = None,
        block_size: int = DEFAULT_BLOCK_SIZE,
        cache_count: int = DEFAULT_CACHE_COUNT,
        client: Optional[HTTPClient] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        super().__init__(url, length=length, block_size=block_size, cache_count=cache_count)
        self._client = client if client is not None else _get_session()
        self._timeout = timeout

        # No explicit length: find it (and range support) with a GET
        if length is None:
            self._probe_length()

    def _send(self, headers: Optional[dict] = None) -> requests.Response:
        request = requests.Request("GET", self.url, headers=headers).prepare()
        self.requests_made += 1
        return self._client.send(request, stream=True, timeout=self._timeout)

    def _probe_length(self):
        """GET the resource, inspect its headers and close it unread.

        HEAD is not used: some servers leave Accept-Ranges out of HEAD responses.
        """
        with self._send() as response:
            check_probe_status(self.url, response.status_code)
            check_accept_ranges(self.url, response.headers)
            self._length = parse_content_length(response.headers.get("content-length"))

        if self._length == UNKNOWN_LENGTH:
            warnings.warn(f"{self.url}: no Content-Length in response, end of file is found on demand")

    def _fetch_runs(self, plan: BlockPlan, offset: int):
        """Fetch every miss run of `plan` with one GET and fill in its blocks."""
        range_header = format_range_header(plan.runs, self.block_size, self.length)
        logger.debug("GET %s Range: %s", self.url, range_header)

        headers = {"Range": range_header, "Accept-Encoding": "identity"}
        with self._send(headers) as response:
            if response.status_code == RANGE_NOT_SATISFIABLE and self.length < 0:
                self._unsatisfiable(plan, offset, parse_unsatisfied_range(response.headers.get("content-range")))
                return
            check_range_status(self.url, response.status_code)
            stream = open_body_stream(response.headers.get("content-type"), response.raw)
            fetched = self._read_blocks(plan, stream)
            drain(response.raw)

        self._commit(plan, fetched, offset)

    def read_at(self, buffer, offset: int) -> int:
        """Fill `buffer` with bytes starting at absolute offset `offset`.

        Returns the number of bytes written, which is len(buffer) clipped to the
        end of the resource. offset < 0 → InvalidOffsetError, offset > length → EOFError.
        """
        view = self._window(buffer, offset)
        if not view:
            return 0

        plan = self._plan(offset, len(view))
        if plan.runs:
            self._fetch_runs(plan, offset)
        return self._assemble(plan, view, offset)

    def fetch(self, start: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at absolute offset `start`."""
        buf = bytearray(length)
        n = self.read_at(buf, start)
        if n < length:
            raise ShortReadError(length, n)
        return bytes(buf)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Session is shared, don't close it here
        pass


def open_http_reader_at(url: str, **options) -> HTTPReaderAt:
    """Create a synchronous HTTP reader."""
    return HTTPReaderAt(url, **options)
