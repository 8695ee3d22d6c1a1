"""Version manifest handling.

The bucket publishes ``cli-versions.json``. Only the ``cli-latest`` entry is
consumed, and it is read with a tolerant scanner rather than a JSON parser:
the value is the first double-quoted token following the first occurrence
of the quoted key. This keeps older and hand-edited manifests working.
"""

from __future__ import annotations

import re
import time
from typing import Callable, Optional

from kuzcoinstall.bootstrap.download import fetch_text
from kuzcoinstall.bootstrap.plan import bucket_base
from kuzcoinstall.config.models import InstallerConfig
from kuzcoinstall.core.errors import ManifestError
from kuzcoinstall.core.logging import get_logger

LOGGER = get_logger(__name__)

MANIFEST_NAME = "cli-versions.json"
LATEST_KEY = "cli-latest"


def manifest_url(bucket_url: str, timestamp: Optional[int] = None) -> str:
    """Return the manifest URL with a cache-busting timestamp query."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"{bucket_base(bucket_url)}/{MANIFEST_NAME}?t={ts}"


def extract_field(document: str, key: str) -> Optional[str]:
    """Return the quoted token following the first ``"key"`` in ``document``."""
    pattern = re.compile(r'"' + re.escape(key) + r'"[^"]*"([^"]*)"')
    match = pattern.search(document)
    if match is None:
        return None
    return match.group(1)


def extract_cli_latest(document: str) -> str:
    """Extract the latest CLI version from a manifest document.

    Raises:
        ManifestError: If the key is missing or its value is empty.
    """
    value = extract_field(document, LATEST_KEY)
    if not value:
        raise ManifestError(f"Manifest has no usable {LATEST_KEY!r} entry")
    return value


def resolve_cli_version(
    config: InstallerConfig,
    fetch: Callable[[str], str] = fetch_text,
) -> str:
    """Return the pinned CLI_VERSION, or the manifest's cli-latest.

    Raises:
        DownloadError: If the manifest cannot be fetched.
        ManifestError: If it has no cli-latest entry.
    """
    if config.cli_version:
        LOGGER.info(f"Using pinned CLI version {config.cli_version}")
        return config.cli_version

    url = manifest_url(config.bucket_url)
    LOGGER.debug(f"Fetching manifest from {url}")
    version = extract_cli_latest(fetch(url))
    LOGGER.debug(f"Manifest reports cli-latest={version}")
    return version
