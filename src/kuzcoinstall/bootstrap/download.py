"""Secure download utilities with SSL certificate handling.

All fetches go over HTTPS and verify against certifi's CA bundle, which
also works on macOS hosts where Python cannot reach the system keychain.
There is no retry: a single failure raises DownloadError.
"""

from __future__ import annotations

import shutil
import ssl
from pathlib import Path
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import certifi

from kuzcoinstall import __version__
from kuzcoinstall.core.errors import DownloadError
from kuzcoinstall.core.logging import get_logger

LOGGER = get_logger(__name__)

USER_AGENT = f"kuzcoinstall/{__version__}"


def get_ssl_context() -> ssl.SSLContext:
    """Get an SSL context that uses certifi's CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def secure_urlopen(url: str, timeout: Optional[float] = 30.0, method: str = "GET"):
    """Open a URL with proper SSL certificate verification.

    Raises:
        ValueError: If the URL is not HTTPS.
        HTTPError, URLError: On HTTP or transport failure.
    """
    if not url.startswith("https://"):
        raise ValueError(f"Only HTTPS URLs are supported: {url}")

    request = Request(url, method=method, headers={"User-Agent": USER_AGENT})
    return urlopen(request, timeout=timeout, context=get_ssl_context())  # nosec B310


def fetch_text(url: str, timeout: Optional[float] = 30.0) -> str:
    """Fetch a small text document.

    Raises:
        DownloadError: On any HTTP or transport failure.
    """
    try:
        with secure_urlopen(url, timeout=timeout) as response:
            return response.read().decode("utf-8", errors="replace")
    except HTTPError as e:
        raise DownloadError(url, f"HTTP {e.code} - {e.reason}") from e
    except URLError as e:
        raise DownloadError(url, f"{e.reason}. Check your network connection.") from e


def download_file(url: str, dest_path: Path, timeout: Optional[float] = 300.0) -> Path:
    """Download a file from a URL with proper SSL certificate verification.

    Returns:
        ``dest_path``.

    Raises:
        DownloadError: On any HTTP, transport or write failure.
    """
    LOGGER.info(f"Downloading {url}")
    try:
        with secure_urlopen(url, timeout=timeout) as response:
            total_size = response.headers.get("Content-Length")
            if total_size:
                LOGGER.debug(f"{dest_path.name}: {int(total_size) / 1024 / 1024:.1f} MB")
            with open(dest_path, "wb") as f:
                shutil.copyfileobj(response, f)
    except HTTPError as e:
        raise DownloadError(url, f"HTTP {e.code} - {e.reason}") from e
    except URLError as e:
        raise DownloadError(url, f"{e.reason}. Check your network connection.") from e
    except OSError as e:
        raise DownloadError(url, str(e)) from e
    return dest_path


def url_exists(url: str, timeout: Optional[float] = 30.0) -> bool:
    """Return True if a HEAD request for ``url`` succeeds (redirects followed)."""
    try:
        with secure_urlopen(url, timeout=timeout, method="HEAD"):
            return True
    except (HTTPError, URLError, OSError) as e:
        LOGGER.debug(f"HEAD {url} failed: {e}")
        return False
