"""HTTP client layer for refreshing the feature dataset."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any

import httpx

from ._version import __version__
from .constants import DEFAULT_TIMEOUT_SECONDS, WEB_FEATURES_DATA_URL
from .dataset import build_index, cache_path
from .exceptions import DatasetError, HttpStatusError, NetworkError, RequestTimeoutError

LOGGER = logging.getLogger(__name__)


def _build_headers() -> dict[str, str]:
    return {
        "User-Agent": f"pybaseline/{__version__}",
        "Accept": "application/json",
    }


def fetch_text(url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> str:
    """GET ``url`` and return the body, retrying a failed connect once."""
    retry_once = True
    while True:
        try:
            with httpx.Client(
                timeout=timeout, follow_redirects=True, headers=_build_headers()
            ) as client:
                response = client.get(url)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(url) from exc
        except httpx.ConnectError as exc:
            if retry_once:
                retry_once = False
                LOGGER.debug("Connect to %s failed, retrying once", url)
                continue
            raise NetworkError(url, cause=exc.__class__.__name__) from exc
        except httpx.RequestError as exc:
            raise NetworkError(url, cause=exc.__class__.__name__) from exc

        if response.status_code != 200:
            raise HttpStatusError(response.status_code, str(response.url))
        return response.text


def fetch_dataset(
    url: str = WEB_FEATURES_DATA_URL, timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> dict[str, Any]:
    """Download a web-features ``data.json`` and check it indexes to something."""
    body = fetch_text(url, timeout=timeout)
    if not body.strip():
        raise DatasetError(url, cause="empty response")
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise DatasetError(url, cause=f"invalid JSON at line {exc.lineno}") from exc
    if not isinstance(payload, dict):
        raise DatasetError(url, cause="top-level value is not an object")
    if len(build_index(payload)) == 0:
        raise DatasetError(url, cause="no features with a baseline status")
    return payload


def download_dataset(
    url: str = WEB_FEATURES_DATA_URL,
    destination: Path | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Path:
    """Fetch the dataset and replace the cached copy atomically."""
    payload = fetch_dataset(url, timeout=timeout)
    target = destination or cache_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".web-features-", suffix=".json", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle)
        os.replace(tmp_name, target)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    LOGGER.debug("Wrote dataset snapshot from %s to %s", url, target)
    return target
