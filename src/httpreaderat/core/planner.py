from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, NamedTuple, Optional

from .cache import BlockCache


class Run(NamedTuple):
    """Inclusive range of consecutive missing block indices."""
    lo: int
    hi: int


@dataclass(slots=True)
class BlockPlan:
    first: int                                   # index of blocks[0]
    blocks: List[Optional[bytes]] = field(default_factory=list)
    runs: List[Run] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.runs


def block_length(index: int, block_size: int, length: int) -> int:
    """Canonical size of block `index`; the final block may be short.
    With an unknown (negative) length every block is assumed full.
    """
    if length < 0:
        return block_size
    return max(0, min(block_size, length - index * block_size))


def plan_blocks(cache: BlockCache, start: int, size: int, block_size: int) -> BlockPlan:
    """Split the block window covering [start, start+size) into cache hits and miss runs."""
    first = start // block_size
    plan = BlockPlan(first)
    if size <= 0:
        return plan

    last = (start + size - 1) // block_size
    for index in range(first, last + 1):
        data = cache.get(index)
        plan.blocks.append(data)
        if data is not None:
            continue
        if plan.runs and plan.runs[-1].hi == index - 1:
            plan.runs[-1] = Run(plan.runs[-1].lo, index)
        else:
            plan.runs.append(Run(index, index))
    return plan


def iter_run_blocks(runs: Iterable[Run]) -> Iterator[int]:
    """Yield every block index covered by `runs`, in order."""
    for run in runs:
        yield from range(run.lo, run.hi + 1)
