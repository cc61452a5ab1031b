import pytest

from range_server import RangeHandler


@pytest.fixture
def serve(httpserver):
    """Serve bytes at a path; returns (url, handler)."""
    def _serve(data: bytes, path: str = "/resource", **options):
        handler = RangeHandler(data, **options)
        httpserver.expect_request(path).respond_with_handler(handler)
        return httpserver.url_for(path), handler
    return _serve
