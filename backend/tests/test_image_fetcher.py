import itertools
import threading

import pytest
import requests

from imagejobs.core.errors import DownloadError, DownloadTimeoutError, DownloadTooLargeError, UrlValidationError
from imagejobs.services import image_fetcher
from imagejobs.services.image_fetcher import check_is_image, download_image

from conftest import FakeResponse

URL = "https://images.example.com/a.jpg"


def patch_head(monkeypatch, response=None, error=None):
    def fake_head(url, **kwargs):
        if error:
            raise error
        return response

    monkeypatch.setattr(requests, "head", fake_head)


def patch_get(monkeypatch, response=None, error=None):
    calls = []

    def fake_get(url, **kwargs):
        calls.append((url, kwargs))
        if error:
            raise error
        return response

    monkeypatch.setattr(requests, "get", fake_get)
    return calls


def test_check_is_image_accepts_image(monkeypatch):
    patch_head(monkeypatch, FakeResponse(200, {"content-type": "image/png"}))
    check_is_image(URL)


def test_check_is_image_not_found(monkeypatch):
    patch_head(monkeypatch, FakeResponse(404))
    with pytest.raises(UrlValidationError, match=r"Image not found \(404\)"):
        check_is_image(URL)


def test_check_is_image_wrong_content_type(monkeypatch):
    patch_head(monkeypatch, FakeResponse(200, {"content-type": "text/html; charset=utf-8"}))
    with pytest.raises(UrlValidationError, match="URL does not point to an image"):
        check_is_image(URL)


def test_check_is_image_server_error(monkeypatch):
    patch_head(monkeypatch, FakeResponse(503, {"content-type": "image/png"}))
    with pytest.raises(UrlValidationError, match="Failed to validate image URL"):
        check_is_image(URL)


def test_check_is_image_unreachable(monkeypatch):
    patch_head(monkeypatch, error=requests.ConnectionError("connection refused"))
    with pytest.raises(UrlValidationError, match="Failed to validate image URL"):
        check_is_image(URL)


def test_download_returns_body(monkeypatch):
    calls = patch_get(monkeypatch, FakeResponse(200, {"content-length": "6"}, [b"abc", b"def"]))
    assert download_image(URL, timeout=30, max_bytes=100) == b"abcdef"
    assert calls[0][1]["stream"] is True
    assert calls[0][1]["timeout"] == 30


def test_download_rejects_declared_oversize(monkeypatch):
    patch_get(monkeypatch, FakeResponse(200, {"content-length": "1000"}, [b"x"]))
    with pytest.raises(DownloadTooLargeError, match="maximum size of 100 bytes"):
        download_image(URL, max_bytes=100)


def test_download_rejects_streamed_oversize(monkeypatch):
    """servers that omit content-length are still capped"""
    patch_get(monkeypatch, FakeResponse(200, {}, [b"x" * 60, b"x" * 60]))
    with pytest.raises(DownloadTooLargeError):
        download_image(URL, max_bytes=100)


def test_download_timeout(monkeypatch):
    patch_get(monkeypatch, error=requests.ReadTimeout("read timed out"))
    with pytest.raises(DownloadTimeoutError, match="Download timeout"):
        download_image(URL, timeout=30)


def test_download_enforces_total_deadline(monkeypatch):
    """a slow trickle of chunks cannot outlive the deadline"""
    clock = itertools.count(0, 100)
    monkeypatch.setattr(image_fetcher.time, "monotonic", lambda: next(clock))
    patch_get(monkeypatch, FakeResponse(200, {}, [b"a", b"b"]))
    with pytest.raises(DownloadTimeoutError):
        download_image(URL, timeout=30, max_bytes=100)


class StalledResponse(FakeResponse):
    """sends one chunk then blocks until the response is closed"""

    def __init__(self):
        super().__init__(200, {})
        self.released = threading.Event()

    def iter_content(self, chunk_size=1):
        yield b"a"
        # a real socket read fails once the connection is closed underneath it
        if not self.released.wait(5):
            raise AssertionError("read was never interrupted")
        raise ValueError("I/O operation on closed file")

    def close(self):
        super().close()
        self.released.set()


def test_download_deadline_interrupts_stalled_read(monkeypatch):
    response = StalledResponse()
    patch_get(monkeypatch, response)

    with pytest.raises(DownloadTimeoutError, match="Download timeout after 0.2s"):
        download_image(URL, timeout=0.2, max_bytes=100)
    assert response.closed


def test_download_network_error_is_generic(monkeypatch):
    patch_get(monkeypatch, error=requests.ConnectionError("name resolution failed"))
    with pytest.raises(DownloadError, match="Failed to download image") as exc_info:
        download_image(URL)
    assert not isinstance(exc_info.value, (DownloadTimeoutError, DownloadTooLargeError))


def test_download_http_error(monkeypatch):
    patch_get(monkeypatch, FakeResponse(500))
    with pytest.raises(DownloadError, match="500 Error"):
        download_image(URL)
