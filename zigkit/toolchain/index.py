"""
Zig download index.

This module fetches ``https://ziglang.org/download/index.json`` and answers
questions about it: which versions exist, which one is the latest stable
release, and which archive (URL, SHA-256, size) belongs to a version on a
given platform.

The index maps version strings to per-platform entries::

    {
      "master": {"version": "0.12.0-dev.1+abc", "x86_64-linux": {...}},
      "0.11.0": {"date": "2023-08-04",
                 "x86_64-linux": {"tarball": "...", "shasum": "...", "size": "..."}}
    }
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import requests
from packaging.version import InvalidVersion, Version

from zigkit.core.config_store import MASTER_VERSION
from zigkit.core.download import fetch_bytes
from zigkit.core.exceptions import (
    DownloadError,
    IndexFetchError,
    PlatformNotSupportedError,
    VersionNotFoundError,
)
from zigkit.core.settings import ZIG_DOWNLOAD_INDEX_URL

logger = logging.getLogger(__name__)


@dataclass
class ArtifactInfo:
    """Download information for one version on one platform."""

    url: str
    """Origin download URL of the archive"""

    shasum: Optional[str]
    """SHA-256 digest of the archive, if published"""

    size: Optional[int] = None
    """Archive size in bytes, if published"""

    @property
    def filename(self) -> str:
        """Archive filename, as used by community mirrors."""
        return urlsplit(self.url).path.rsplit("/", 1)[-1]


def _stable_version(version: str) -> Optional[Version]:
    try:
        parsed = Version(version)
    except InvalidVersion:
        return None
    if parsed.is_prerelease or parsed.is_devrelease or parsed.local:
        return None
    return parsed


class VersionIndex:
    """
    Lazily fetched view of the upstream download index.

    The index is fetched at most once per instance.

    Example:
        >>> index = VersionIndex()
        >>> artifact = index.lookup("0.11.0", "x86_64-linux")
        >>> print(artifact.url)
    """

    def __init__(
        self,
        index_url: str = ZIG_DOWNLOAD_INDEX_URL,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        self.index_url = index_url
        self.timeout = timeout
        self.session = session
        self._data = data

    @property
    def data(self) -> Dict[str, Any]:
        """
        Raw index content.

        Raises:
            IndexFetchError: If the index cannot be fetched or parsed
        """
        if self._data is None:
            self._data = self._fetch()
        return self._data

    def _fetch(self) -> Dict[str, Any]:
        logger.debug(f"Fetching Zig download index from {self.index_url}")
        try:
            raw = fetch_bytes(
                self.index_url, timeout=self.timeout, session=self.session
            )
            data = json.loads(raw)
        except DownloadError as e:
            raise IndexFetchError(f"Could not fetch Zig download index: {e}") from e
        except ValueError as e:
            raise IndexFetchError(f"Zig download index is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise IndexFetchError("Zig download index has an unexpected structure")

        logger.debug(f"Loaded index with {len(data)} entries")
        return data

    def list_versions(self) -> List[str]:
        """Released versions in index order (``master`` excluded)."""
        return [v for v in self.data if v != MASTER_VERSION]

    def latest_stable(self) -> Optional[str]:
        """Highest final release in the index (no dev or pre-releases), or None."""
        stable = [v for v in self.list_versions() if _stable_version(v) is not None]
        if not stable:
            return None
        return max(stable, key=_stable_version)

    def master_version(self) -> Optional[str]:
        """Concrete version string of the current master build."""
        entry = self.data.get(MASTER_VERSION)
        if isinstance(entry, dict):
            return entry.get("version")
        return None

    def validate_version(self, version: str) -> bool:
        """True if the version exists in the index."""
        return version in self.data

    def lookup(self, version: str, platform_key: str) -> ArtifactInfo:
        """
        Find the archive for a version on a platform.

        Args:
            version: Version string ('0.11.0', 'master')
            platform_key: Index platform key ('x86_64-linux')

        Raises:
            VersionNotFoundError: If the version is not in the index
            PlatformNotSupportedError: If the version has no archive for the platform
            IndexFetchError: If the index cannot be fetched
        """
        entry = self.data.get(version)
        if not isinstance(entry, dict):
            raise VersionNotFoundError(version)

        artifact = entry.get(platform_key)
        if not isinstance(artifact, dict) or not artifact.get("tarball"):
            raise PlatformNotSupportedError(version, platform_key)

        size = artifact.get("size")
        try:
            size = int(size) if size is not None else None
        except (TypeError, ValueError):
            size = None

        return ArtifactInfo(
            url=artifact["tarball"], shasum=artifact.get("shasum") or None, size=size
        )
