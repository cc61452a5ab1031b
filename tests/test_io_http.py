"""Tests for the synchronous HTTP reader."""

import errno
import io
import os

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from httpreaderat import open_reader_at
from httpreaderat.core.model import InvalidOffsetError, ShortReadError
from httpreaderat.io.base import ContentLengthError, NoRangeError, UnexpectedStatusError
from httpreaderat.io.file import RangeFile
from httpreaderat.io.http_sync import HTTPReaderAt, open_http_reader_at
from httpreaderat.io.multipart import MediaTypeError, MultipartError

from range_server import build_range_response

SOURCE = b"package httpreaderat_test\n\nimport"


def make_response(status, headers, body):
    response = requests.Response()
    response.status_code = status
    response.headers = CaseInsensitiveDict(headers)
    response.raw = io.BytesIO(body)
    response.url = "http://fake/resource"
    return response


class FakeClient:
    """In-memory stand-in for requests.Session.send."""

    def __init__(self, data=b"", responses=None):
        self.data = data
        self.responses = list(responses or [])
        self.requests = []

    def send(self, request, **kwargs):
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        status, headers, body = build_range_response(self.data, request.headers.get("Range"))
        return make_response(status, headers, body)


class TestHTTPReaderAt:
    """Test reads against a live range-capable server."""

    def test_exact_substring(self, serve):
        url, _ = serve(SOURCE)
        reader = HTTPReaderAt(url)
        assert reader.length == 33

        buf = bytearray(17)
        assert reader.read_at(buf, 8) == 17
        assert bytes(buf) == b"httpreaderat_test"

    def test_read_from_start(self, serve):
        url, _ = serve(SOURCE)
        reader = open_http_reader_at(url)
        buf = bytearray(16)
        assert reader.read_at(memoryview(buf)[:7], 0) == 7
        assert bytes(buf[:7]) == b"package"

    def test_negative_offset(self, serve):
        url, handler = serve(SOURCE)
        reader = HTTPReaderAt(url)
        handler.take_count()

        buf = bytearray(12)
        with pytest.raises(InvalidOffsetError) as excinfo:
            reader.read_at(buf, -1)
        assert excinfo.value.errno == errno.EINVAL
        assert isinstance(excinfo.value, OSError)
        assert buf == bytearray(12)
        assert handler.take_count() == 0

    def test_offset_past_end(self, serve):
        url, handler = serve(SOURCE)
        reader = HTTPReaderAt(url)
        handler.take_count()

        with pytest.raises(EOFError):
            reader.read_at(bytearray(7), 1 << 32)
        assert handler.take_count() == 0

    def test_offset_at_end_is_empty_read(self, serve):
        url, handler = serve(SOURCE)
        reader = HTTPReaderAt(url)
        handler.take_count()

        assert reader.read_at(bytearray(7), 33) == 0
        assert handler.take_count() == 0

    def test_buffer_clipped_to_length(self, serve):
        url, _ = serve(SOURCE)
        reader = HTTPReaderAt(url, block_size=8)
        buf = bytearray(100)
        assert reader.read_at(buf, 27) == 6
        assert bytes(buf[:6]) == b"import"
        assert buf[6:] == bytearray(94)

    def test_final_short_block(self, serve):
        url, handler = serve(SOURCE)
        reader = HTTPReaderAt(url, block_size=10)
        buf = bytearray(33)
        assert reader.read_at(buf, 0) == 33
        assert bytes(buf) == SOURCE
        assert handler.ranges[-1] == "bytes=0-32"
        assert reader.cache.get(3) == SOURCE[30:]

    def test_cache_coalescing(self, serve):
        data = os.urandom(256)
        url, handler = serve(data)
        reader = HTTPReaderAt(url, block_size=10)
        assert reader.length == 256
        assert handler.take_count() == 1

        reads = [
            (0, 1, 1),
            (0, 1, 0),
            (0, 9, 0),
            (0, 10, 0),
            (1, 10, 1),    # block 1
            (11, 10, 1),   # block 2
            (38, 14, 1),   # blocks 3..5
            (71, 1, 1),    # block 7
            (68, 14, 1),   # blocks 6 and 8 in one multi-range request
        ]
        for start, length, requests_expected in reads:
            buf = bytearray(length)
            assert reader.read_at(buf, start) == length
            assert bytes(buf) == data[start:start + length]
            assert handler.take_count() == requests_expected, (start, length)

        assert handler.ranges[-1] == "bytes=60-69,80-89"
        assert len(reader.cache) == 9

    def test_multi_range_response(self, serve):
        data = bytes(range(256))
        url, handler = serve(data)
        reader = HTTPReaderAt(url, block_size=16)
        reader.read_at(bytearray(16), 32)   # warm block 2
        handler.take_count()

        buf = bytearray(48)
        assert reader.read_at(buf, 16) == 48
        assert bytes(buf) == data[16:64]
        assert handler.take_count() == 1
        assert handler.ranges[-1] == "bytes=16-31,48-63"
        assert reader.cache.get(1) == data[16:32]
        assert reader.cache.get(3) == data[48:64]

    def test_cached_reread_issues_no_requests(self, serve):
        data = os.urandom(1000)
        url, handler = serve(data)
        reader = HTTPReaderAt(url, block_size=64)
        assert reader.fetch(100, 300) == data[100:400]
        handler.take_count()

        for start, length in [(100, 300), (128, 10), (383, 1), (64, 320)]:
            assert reader.fetch(start, length) == data[start:start + length]
        assert handler.take_count() == 0

    def test_cache_capacity_bound(self, serve):
        data = os.urandom(1024)
        url, handler = serve(data)
        reader = HTTPReaderAt(url, block_size=32, cache_count=4)
        for i in range(0, 1024, 32):
            reader.fetch(i, 32)
        assert len(reader.cache) == 4

        handler.take_count()
        reader.fetch(0, 32)   # evicted long ago
        assert handler.take_count() == 1

    def test_clear(self, serve):
        url, handler = serve(SOURCE)
        reader = HTTPReaderAt(url)
        reader.fetch(0, 7)
        handler.take_count()

        reader.clear()
        assert len(reader.cache) == 0
        assert reader.fetch(0, 7) == b"package"
        assert handler.take_count() == 1

    def test_accounting(self, serve):
        url, _ = serve(SOURCE)
        reader = HTTPReaderAt(url, block_size=8)
        reader.fetch(0, 10)
        assert reader.requests_made == 2   # probe + one range GET
        assert reader.bytes_fetched == 16

    def test_no_range_support(self, serve):
        url, _ = serve(SOURCE, accept_ranges="none")
        with pytest.raises(NoRangeError):
            HTTPReaderAt(url)

    def test_length_request_http_error(self, httpserver):
        httpserver.expect_request("/missing").respond_with_data("nope", status=404, headers={"Accept-Ranges": "bytes"})
        with pytest.raises(UnexpectedStatusError) as excinfo:
            HTTPReaderAt(httpserver.url_for("/missing"))
        assert excinfo.value.status == 404

    def test_context_manager(self, serve):
        url, _ = serve(SOURCE)
        with open_reader_at(url) as reader:
            assert reader.fetch(8, 4) == b"http"


class TestConstruction:
    """Test options and the length probe without a server."""

    def test_empty_url_fails(self):
        with pytest.raises(requests.RequestException):
            HTTPReaderAt("")

    def test_set_length_skips_length_request(self):
        client = FakeClient()
        reader = HTTPReaderAt("", length=10, client=client)
        assert reader.length == 10
        assert client.requests == []

    @pytest.mark.parametrize("block_size", [0, -4096])
    def test_bad_block_size(self, block_size):
        with pytest.raises(ValueError):
            HTTPReaderAt("", length=10, block_size=block_size)

    def test_bad_cache_count(self):
        with pytest.raises(ValueError):
            HTTPReaderAt("", length=10, cache_count=0)

    def test_bad_content_length(self):
        client = FakeClient(responses=[make_response(200, {"Accept-Ranges": "bytes", "Content-Length": "lots"}, b"")])
        with pytest.raises(ContentLengthError):
            HTTPReaderAt("http://fake/resource", client=client)

    def test_missing_content_length(self):
        client = FakeClient(responses=[make_response(200, {"Accept-Ranges": "bytes"}, b"")])
        with pytest.warns(UserWarning):
            reader = HTTPReaderAt("http://fake/resource", client=client)
        assert reader.length == -1

    def test_length_request_closes_response(self):
        response = make_response(200, {"Accept-Ranges": "bytes", "Content-Length": "5"}, b"hello")
        HTTPReaderAt("http://fake/resource", client=FakeClient(responses=[response]))
        assert response.raw.closed


class TestFailures:
    """Test that failed reads leave the cache untouched."""

    def test_short_body(self):
        data = bytes(range(100))
        client = FakeClient(data, responses=[
            make_response(206, {"Content-Type": "application/octet-stream"}, data[:15]),
        ])
        reader = HTTPReaderAt("http://fake/resource", length=100, block_size=10, client=client)

        with pytest.raises(ShortReadError):
            reader.read_at(bytearray(20), 0)
        assert len(reader.cache) == 0

        # retry starts from the same state and succeeds
        buf = bytearray(20)
        assert reader.read_at(buf, 0) == 20
        assert bytes(buf) == data[:20]
        assert len(reader.cache) == 2

    def test_transport_error(self):
        client = FakeClient(responses=[requests.ConnectionError("boom")])
        reader = HTTPReaderAt("http://fake/resource", length=100, client=client)
        with pytest.raises(requests.ConnectionError):
            reader.read_at(bytearray(4), 0)
        assert len(reader.cache) == 0

    def test_range_ignored_by_server(self):
        data = bytes(range(100))
        client = FakeClient(responses=[make_response(200, {"Content-Type": "application/octet-stream"}, data)])
        reader = HTTPReaderAt("http://fake/resource", length=100, block_size=10, client=client)
        with pytest.raises(UnexpectedStatusError):
            reader.read_at(bytearray(4), 50)
        assert len(reader.cache) == 0

    def test_malformed_content_type(self):
        client = FakeClient(responses=[make_response(206, {"Content-Type": "garbage"}, bytes(10))])
        reader = HTTPReaderAt("http://fake/resource", length=100, block_size=10, client=client)
        with pytest.raises(MediaTypeError):
            reader.read_at(bytearray(4), 0)

    def test_multipart_without_parts(self):
        client = FakeClient(responses=[
            make_response(206, {"Content-Type": "multipart/byteranges; boundary=zz"}, b"--zz--\r\n"),
        ])
        reader = HTTPReaderAt("http://fake/resource", length=100, block_size=10, client=client)
        with pytest.raises(MultipartError):
            reader.read_at(bytearray(4), 0)

    def test_partial_multipart_does_not_pollute_cache(self):
        data = bytes(range(100))
        _, headers, body = build_range_response(data, "bytes=0-9,20-29")
        client = FakeClient(data, responses=[make_response(206, headers, body[:-25])])
        reader = HTTPReaderAt("http://fake/resource", length=100, block_size=10, client=client)
        reader.cache.set(1, data[10:20])

        with pytest.raises(OSError):
            reader.read_at(bytearray(30), 0)
        assert 0 not in reader.cache and 2 not in reader.cache


class TestUnknownLength:
    """Test reads when the server gave no Content-Length."""

    def _reader(self, data, block_size=10):
        client = FakeClient(data, responses=[make_response(200, {"Accept-Ranges": "bytes"}, b"")])
        with pytest.warns(UserWarning):
            reader = HTTPReaderAt("http://fake/resource", block_size=block_size, client=client)
        return reader, client

    def test_read_inside_resource(self):
        data = bytes(range(95))
        reader, client = self._reader(data)
        assert reader.fetch(5, 20) == data[5:25]
        assert client.requests[-1].headers["Range"] == "bytes=0-29"
        assert reader.length == -1

    def test_read_over_the_end_learns_length(self):
        data = bytes(range(95))
        reader, _ = self._reader(data)
        buf = bytearray(50)
        assert reader.read_at(buf, 80) == 15
        assert bytes(buf[:15]) == data[80:]
        assert reader.length == 95
        assert reader.cache.get(9) == data[90:]

        with pytest.raises(EOFError):
            reader.read_at(buf, 96)

    def test_file_at_end_of_block_aligned_resource(self):
        data = bytes(range(100))
        reader, client = self._reader(data)
        f = RangeFile(reader)
        f.seek(90)
        assert f.read(10) == data[90:]
        assert reader.length == -1

        # the server answers 416 for a range starting at the end
        assert f.read(10) == b""
        assert client.requests[-1].headers["Range"] == "bytes=100-109"
        assert reader.length == 100
        assert f.read(10) == b""

    def test_unsatisfiable_range_past_end(self):
        reader, _ = self._reader(bytes(range(100)))
        with pytest.raises(EOFError):
            reader.read_at(bytearray(10), 120)
        assert reader.length == 100
        assert len(reader.cache) == 0

    def test_unsatisfiable_without_content_range(self):
        reader, client = self._reader(bytes(range(100)))
        client.responses.append(make_response(416, {}, b""))
        assert reader.read_at(bytearray(10), 50) == 0
        assert reader.length == 50

    def test_read_past_found_end_leaves_cache_alone(self):
        data = bytes(range(95))
        reader, _ = self._reader(data)
        with pytest.raises(EOFError):
            reader.read_at(bytearray(5), 98)
        assert reader.length == 95
        assert 9 not in reader.cache
        assert reader.bytes_fetched == 0
