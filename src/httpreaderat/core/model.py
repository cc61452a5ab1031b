from __future__ import annotations
import errno

UNKNOWN_LENGTH = -1


class InvalidOffsetError(OSError):
    """Raised when a read is attempted at a negative offset."""

    def __init__(self, offset: int):
        super().__init__(errno.EINVAL, f"invalid offset {offset}")
        self.offset = offset


class ShortReadError(OSError):
    """Raised when a response body ends before a block is complete."""

    def __init__(self, expected: int, got: int):
        super().__init__(f"short read: expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got
