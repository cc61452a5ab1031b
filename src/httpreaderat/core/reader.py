from __future__ import annotations
import logging
from typing import BinaryIO, Dict, Optional

from .cache import BlockCache
from .model import InvalidOffsetError, UNKNOWN_LENGTH
from .planner import BlockPlan, block_length, iter_run_blocks, plan_blocks
from .util import read_full

logger = logging.getLogger(__name__)


class BlockReader:
    """Block-cache bookkeeping shared by the sync and async HTTP readers.

    Subclasses own the transport: they turn the miss runs of a BlockPlan into a
    response body and hand it to `_read_blocks`; everything else (argument
    checks, clipping, cache updates, slice assembly) lives here.
    """

    def __init__(self, url: str, *, length: Optional[int], block_size: int, cache_count: int):
        if block_size < 1:
            raise ValueError(f"block size must be positive, got {block_size}")
        self._url = url
        self._length = UNKNOWN_LENGTH if length is None else length
        self._block_size = block_size
        self.cache = BlockCache(cache_count)
        self.bytes_fetched = 0
        self.requests_made = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def length(self) -> int:
        """Total resource size, or -1 while it is unknown."""
        return self._length

    @property
    def block_size(self) -> int:
        return self._block_size

    def clear(self) -> None:
        """Drop every cached block; the next read refetches from the server."""
        self.cache.clear()

    # ------------------------------------------------------------------ #
    def _check_offset_in_range(self, offset: int) -> None:
        if self._length >= 0 and offset > self._length:
            raise EOFError(f"offset {offset} is past the end of {self._url} ({self._length} bytes)")

    def _set_end(self, length: int) -> None:
        self._length = length
        logger.debug("%s: end of resource found at %d", self._url, length)

    def _window(self, buffer, offset: int) -> memoryview:
        """Validate a read and return the part of `buffer` it can fill."""
        if offset < 0:
            raise InvalidOffsetError(offset)
        self._check_offset_in_range(offset)

        view = memoryview(buffer).cast("B")
        if view.readonly:
            raise TypeError("read_at() needs a writable buffer")
        size = view.nbytes
        if self._length >= 0:
            size = min(size, self._length - offset)
        return view[:size]

    def _plan(self, offset: int, size: int) -> BlockPlan:
        plan = plan_blocks(self.cache, offset, size, self._block_size)
        if plan.complete:
            logger.debug("%s: %d byte(s) at %d served from cache", self._url, size, offset)
        return plan

    def _read_blocks(self, plan: BlockPlan, stream: BinaryIO) -> Dict[int, bytes]:
        """Read every missing block of `plan` from `stream`, in run order.

        Nothing is written to the cache here; `_commit` does that once the
        whole response has been consumed.
        """
        fetched: Dict[int, bytes] = {}
        for index in iter_run_blocks(plan.runs):
            size = block_length(index, self._block_size, self._length)
            # with no known length the resource may end anywhere in the request
            data = read_full(stream, size, allow_short=self._length < 0)
            fetched[index] = data
            if len(data) < size:
                break
        return fetched

    def _unsatisfiable(self, plan: BlockPlan, offset: int, complete_length: int) -> None:
        """Handle a 416 for a read of a resource whose length was unknown.

        The server's complete length is used when it sent one; otherwise the
        resource ends where the first requested block starts.
        """
        if complete_length < 0:
            complete_length = plan.runs[0].lo * self._block_size
        self._set_end(complete_length)
        self._check_offset_in_range(offset)

    def _commit(self, plan: BlockPlan, fetched: Dict[int, bytes], offset: int) -> None:
        if self._length < 0:
            for index, data in fetched.items():
                if len(data) < self._block_size:
                    self._set_end(index * self._block_size + len(data))
                    break
        # a read past a newly found end fails before anything is cached
        self._check_offset_in_range(offset)

        for index, data in fetched.items():
            if data:
                self.cache.set(index, data)
            plan.blocks[index - plan.first] = data
            self.bytes_fetched += len(data)

    def _assemble(self, plan: BlockPlan, view: memoryview, offset: int) -> int:
        """Copy the requested slice out of the (now complete) block list."""
        size = len(view)
        if self._length >= 0:
            self._check_offset_in_range(offset)
            size = min(size, self._length - offset)

        skip = offset - plan.first * self._block_size
        pos = 0
        for data in plan.blocks:
            # None only past a resource end found during this read
            if pos >= size or data is None:
                break
            chunk = memoryview(data)[skip:skip + size - pos]
            view[pos:pos + len(chunk)] = chunk
            pos += len(chunk)
            skip = 0
        return pos
