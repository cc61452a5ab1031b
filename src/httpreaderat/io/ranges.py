"""Range header formatting and probe-response header checks."""

import re
from typing import Mapping, Optional, Sequence

from ..core.model import UNKNOWN_LENGTH
from ..core.planner import Run
from .base import ContentLengthError, NoRangeError, UnexpectedStatusError

_MAX_INT64 = (1 << 63) - 1
_DIGITS = re.compile(r"[0-9]+")

RANGE_NOT_SATISFIABLE = 416


def format_range_header(runs: Sequence[Run], block_size: int, length: int) -> str:
    """Render runs as `bytes=a-b,c-d,...`, clipping the last byte to `length`."""
    if not runs:
        raise ValueError("no block runs to request")
    specs = []
    for lo, hi in runs:
        end = (hi + 1) * block_size
        if length >= 0:
            end = min(end, length)
        specs.append(f"{lo * block_size}-{end - 1}")
    return "bytes=" + ",".join(specs)


def check_accept_ranges(url: str, headers: Mapping[str, str]) -> None:
    accept_ranges = headers.get("accept-ranges", "").strip().lower()
    if accept_ranges != "bytes":
        raise NoRangeError(f"{url}: server does not accept byte ranges (Accept-Ranges: {accept_ranges or 'missing'})")


def parse_content_length(value: Optional[str]) -> int:
    """Parse a Content-Length header as a non-negative 64-bit integer.
    A missing header gives UNKNOWN_LENGTH.
    """
    if value is None or value == "":
        return UNKNOWN_LENGTH
    value = value.strip()
    if not _DIGITS.fullmatch(value):
        raise ContentLengthError(f"error parsing content-length: {value!r}")
    length = int(value)
    if length > _MAX_INT64:
        raise ContentLengthError(f"error parsing content-length: {value!r} is out of range")
    return length


def check_probe_status(url: str, status: int) -> None:
    if status >= 400:
        raise UnexpectedStatusError(url, status, "< 400")


def check_range_status(url: str, status: int) -> None:
    # a 200 means the Range header was ignored and the body starts at byte 0
    if status != 206:
        raise UnexpectedStatusError(url, status, "206 Partial Content")


_UNSATISFIED_RANGE = re.compile(r"bytes\s+\*/([0-9]+)")


def parse_unsatisfied_range(value: Optional[str]) -> int:
    """Complete length from a 416's `Content-Range: bytes */N`, or UNKNOWN_LENGTH."""
    match = _UNSATISFIED_RANGE.fullmatch(value.strip()) if value else None
    if match is None:
        return UNKNOWN_LENGTH
    return int(match.group(1))
