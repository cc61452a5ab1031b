"""Response demultiplexing: present single-range and multipart/byteranges
bodies as one sequential byte stream."""

import io
import logging
import re
from typing import BinaryIO, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MULTIPART_BYTERANGES = "multipart/byteranges"
DEFAULT_CHUNK = 16 * 1024

_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_MEDIA_TYPE = re.compile(rf"\s*({_TOKEN})/({_TOKEN})\s*")
_PARAM = re.compile(rf';\s*({_TOKEN})\s*=\s*(?:({_TOKEN})|"((?:[^"\\]|\\.)*)")\s*')
_QUOTED_PAIR = re.compile(r"\\(.)")


class MediaTypeError(ValueError):
    """Raised for a malformed Content-Type value."""


class MultipartError(OSError):
    """Raised when a multipart body is missing its boundary, parts or terminator."""


def parse_media_type(value: str) -> Tuple[str, Dict[str, str]]:
    """Split `type/subtype; name=value; ...` into a lower-cased media type and params."""
    match = _MEDIA_TYPE.match(value)
    if not match:
        raise MediaTypeError(f"malformed media type: {value!r}")
    media_type = f"{match.group(1)}/{match.group(2)}".lower()

    params: Dict[str, str] = {}
    pos = match.end()
    while pos < len(value):
        param = _PARAM.match(value, pos)
        if param is None:
            if value[pos:].strip(" \t;"):
                raise MediaTypeError(f"malformed media type parameter: {value[pos:]!r}")
            break
        name = param.group(1).lower()
        if name in params:
            raise MediaTypeError(f"duplicate media type parameter: {name!r}")
        if param.group(2) is not None:
            params[name] = param.group(2)
        else:
            params[name] = _QUOTED_PAIR.sub(r"\1", param.group(3))
        pos = param.end()
    return media_type, params


class MultipartReader:
    """Streaming reader for a MIME multipart body.

    `next_part()` moves to the following part (parsing its headers) and
    `read()` returns bytes of the current part, b'' once the part is over.
    Nothing is read from `stream` beyond what is needed to find the next
    delimiter.
    """

    def __init__(self, stream: BinaryIO, boundary: str, chunk_size: int = DEFAULT_CHUNK):
        if not boundary:
            raise MultipartError("multipart body without a boundary parameter")
        self._stream = stream
        self._chunk_size = chunk_size
        self._delimiter = b"\r\n--" + boundary.encode("latin-1")
        # leading CRLF lets a body that opens with the dash-boundary match the delimiter
        self._buf = bytearray(b"\r\n")
        self._eof = False
        self._in_part = False
        self._done = False
        self.headers: Dict[str, str] = {}
        self.parts_read = 0

    def _fill(self) -> bool:
        if self._eof:
            return False
        chunk = self._stream.read(self._chunk_size)
        if not chunk:
            self._eof = True
            return False
        self._buf += chunk
        return True

    def _readline(self) -> bytes:
        while True:
            idx = self._buf.find(b"\n")
            if idx >= 0:
                line = bytes(self._buf[:idx + 1])
                del self._buf[:idx + 1]
                return line
            if not self._fill():
                raise MultipartError("unexpected end of multipart body in part headers")

    def _read_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        while True:
            line = self._readline()
            if line in (b"\r\n", b"\n"):
                return headers
            name, sep, value = line.decode("latin-1").partition(":")
            if not sep:
                raise MultipartError(f"malformed part header: {line!r}")
            headers[name.strip().lower()] = value.strip()

    def next_part(self) -> bool:
        """Advance to the next part; False once the closing delimiter is reached."""
        if self._done:
            return False
        if self._in_part:
            while self.read(self._chunk_size):
                pass

        keep = len(self._delimiter) - 1
        while True:
            idx = self._buf.find(self._delimiter)
            if idx >= 0:
                del self._buf[:idx + len(self._delimiter)]
                break
            # preamble: keep only what could be the start of a delimiter
            if len(self._buf) > keep:
                del self._buf[:len(self._buf) - keep]
            if not self._fill():
                raise MultipartError("multipart boundary not found")

        while len(self._buf) < 2 and self._fill():
            pass
        if self._buf[:2] == b"--":
            self._done = True
            self._in_part = False
            return False

        if self._readline().strip(b" \t\r\n"):
            raise MultipartError("malformed multipart boundary line")
        self.headers = self._read_headers()
        self._in_part = True
        self.parts_read += 1
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to `size` bytes of the current part (all of it if size < 0)."""
        if not self._in_part or size == 0:
            return b""
        if size is None or size < 0:
            out = bytearray()
            while True:
                chunk = self.read(self._chunk_size)
                if not chunk:
                    return bytes(out)
                out += chunk

        while True:
            idx = self._buf.find(self._delimiter)
            if idx == 0:
                self._in_part = False
                return b""
            # without a delimiter in sight, hold back a possible partial one
            available = idx if idx > 0 else len(self._buf) - (len(self._delimiter) - 1)
            if available > 0:
                n = min(size, available)
                data = bytes(self._buf[:n])
                del self._buf[:n]
                return data
            if not self._fill():
                raise MultipartError("unexpected end of multipart body")


class ByteRangesReader(io.RawIOBase):
    """Concatenate the parts of a multipart/byteranges body into one stream.

    End of stream is only reported after the last part; an empty read from a
    part moves on to the next one.
    """

    def __init__(self, stream: BinaryIO, boundary: str):
        super().__init__()
        self._parts = MultipartReader(stream, boundary)
        self.content_ranges: List[Optional[str]] = []
        if not self._next_part():
            raise MultipartError("multipart/byteranges response has no parts")

    def _next_part(self) -> bool:
        if not self._parts.next_part():
            return False
        content_range = self._parts.headers.get("content-range")
        self.content_ranges.append(content_range)
        logger.debug("multipart part %d: %s", self._parts.parts_read, content_range)
        return True

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        view = memoryview(b).cast("B")
        if not view:
            return 0
        while True:
            data = self._parts.read(len(view))
            if data:
                view[:len(data)] = data
                return len(data)
            if not self._next_part():
                return 0


def open_body_stream(content_type: Optional[str], body: BinaryIO) -> BinaryIO:
    """Wrap a range response body according to its Content-Type."""
    if not content_type:
        return body
    media_type, params = parse_media_type(content_type)
    if media_type == MULTIPART_BYTERANGES:
        return ByteRangesReader(body, params.get("boundary", ""))
    return body
