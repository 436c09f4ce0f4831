import threading
import time
from typing import Optional

import requests

from imagejobs.core.config import settings
from imagejobs.core.errors import (
    DownloadError,
    DownloadTimeoutError,
    DownloadTooLargeError,
    UrlValidationError,
)
from imagejobs.core.logging_config import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 8 * 1024


def check_is_image(url: str, timeout: Optional[float] = None):
    """
    lightweight pre-flight check that the url is reachable and serves an image
    raises UrlValidationError with a client facing reason otherwise

    advisory only: the resource can still change before the worker downloads it
    """
    timeout = settings.PREFLIGHT_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        response = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.info(f"pre-flight request failed for {url}: {e}")
        raise UrlValidationError("Failed to validate image URL") from e

    if response.status_code == 404:
        raise UrlValidationError("Image not found (404)")
    if not response.ok:
        logger.info(f"pre-flight for {url} returned {response.status_code}")
        raise UrlValidationError("Failed to validate image URL")

    content_type = response.headers.get("content-type", "")
    if not content_type.lower().startswith("image/"):
        raise UrlValidationError("URL does not point to an image")


def download_image(url: str, timeout: Optional[float] = None, max_bytes: Optional[int] = None) -> bytes:
    """
    fetch the source image within a total deadline and a size cap

    timeout, oversize and other network failures raise distinct DownloadError
    subclasses so the job records which one happened
    """
    timeout = settings.DOWNLOAD_TIMEOUT_SECONDS if timeout is None else timeout
    max_bytes = settings.MAX_DOWNLOAD_BYTES if max_bytes is None else max_bytes
    deadline = time.monotonic() + timeout

    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()

            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > max_bytes:
                raise DownloadTooLargeError(f"Image exceeds maximum size of {max_bytes} bytes")

            # requests only bounds each socket read, closing the response unblocks a stalled read
            watchdog = threading.Timer(max(deadline - time.monotonic(), 0), response.close)
            watchdog.daemon = True
            watchdog.start()
            try:
                chunks = read_body(response, max_bytes, deadline, timeout)
            except DownloadError:
                raise
            except Exception as e:
                if time.monotonic() >= deadline:
                    raise DownloadTimeoutError(f"Download timeout after {timeout:g}s") from e
                raise
            finally:
                watchdog.cancel()
    except requests.Timeout as e:
        raise DownloadTimeoutError(f"Download timeout after {timeout:g}s") from e
    except requests.RequestException as e:
        raise DownloadError(f"Failed to download image: {e}") from e

    data = b"".join(chunks)
    logger.info(f"downloaded {len(data)} bytes from {url}")
    return data


def read_body(response, max_bytes: int, deadline: float, timeout: float) -> list:
    chunks = []
    received = 0
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        received += len(chunk)
        if received > max_bytes:
            raise DownloadTooLargeError(f"Image exceeds maximum size of {max_bytes} bytes")
        if time.monotonic() > deadline:
            raise DownloadTimeoutError(f"Download timeout after {timeout:g}s")
        chunks.append(chunk)
    return chunks
