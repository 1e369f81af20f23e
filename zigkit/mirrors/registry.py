"""
Persistent registry of ranked community mirrors.

The registry lives in ``mirrors.yaml`` beside the config store but shares
nothing with it: its own schema, its own atomic write. Layout::

    last_synced: '2024-05-01T12:00:00+00:00'
    mirrors:
    - url: https://mirror.example/zig
      rank: 1

Ranks start at 1 and only grow when a mirror fails (``update_rank``).
They are reset by ``reset_ranks`` or by a full ``sync``, which replaces
the whole list with the upstream community list.

Example:
    >>> registry = MirrorRegistry(paths["mirrors"])
    >>> if registry.is_sync_expired():
    ...     registry.sync()
    >>> candidates = registry.select_best(3)
"""

import logging
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Union

import requests
import yaml

from zigkit.core.download import fetch_text
from zigkit.core.exceptions import CorruptStateError, DownloadError, MirrorSyncError
from zigkit.core.filesystem import atomic_write
from zigkit.core.settings import ZIG_COMMUNITY_MIRRORS_URL
from zigkit.mirrors.models import (
    INITIAL_RANK,
    FailureClass,
    Mirror,
    MirrorsConfig,
    is_valid_mirror_url,
)
from zigkit.mirrors.selector import select_mirrors

logger = logging.getLogger(__name__)

DEFAULT_SYNC_THRESHOLD_HOURS = 24


def parse_mirror_list(content: str) -> List[str]:
    """
    Parse the community mirror list (one base URL per line).

    Blank lines, comments and anything that is not a valid ``https://`` URL
    are ignored. Duplicates keep their first position.
    """
    urls = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if not is_valid_mirror_url(line):
            logger.debug(f"Ignoring non-HTTPS mirror entry: {line}")
            continue
        if line not in urls:
            urls.append(line)
    return urls


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_registry(data: Any) -> MirrorsConfig:
    """
    Raises:
        CorruptStateError: If any entry is malformed
    """
    if data is None:
        return MirrorsConfig()
    if not isinstance(data, dict):
        raise CorruptStateError("Mirror registry root must be a mapping")

    raw_mirrors = data.get("mirrors") or []
    if not isinstance(raw_mirrors, list):
        raise CorruptStateError("'mirrors' must be a list")

    mirrors = []
    for entry in raw_mirrors:
        if not isinstance(entry, dict):
            raise CorruptStateError(f"Invalid mirror entry: {entry!r}")
        url = entry.get("url")
        rank = entry.get("rank", INITIAL_RANK)
        if not is_valid_mirror_url(url):
            raise CorruptStateError(f"Mirror URL must be HTTPS: {url!r}")
        if isinstance(rank, bool) or not isinstance(rank, (int, float)) or rank < 1:
            raise CorruptStateError(f"Invalid rank for {url}: {rank!r}")
        mirrors.append(Mirror(url=url, rank=rank))

    last_synced = data.get("last_synced")
    if isinstance(last_synced, datetime):
        last_synced = last_synced.isoformat()
    elif last_synced is not None and not isinstance(last_synced, str):
        raise CorruptStateError(f"Invalid last_synced value: {last_synced!r}")

    return MirrorsConfig(mirrors=mirrors, last_synced=last_synced)


def serialize_registry(config: MirrorsConfig) -> str:
    return yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False)


class MirrorRegistry:
    """
    Loads, mutates and atomically saves ``mirrors.yaml``.

    Every operation re-reads the file, so penalties recorded by one
    download are visible to the next without any shared in-memory state.

    Attributes:
        registry_path: Path to mirrors.yaml
        mirrors_url: Upstream community mirror list
        timeout: Network timeout for sync in seconds
    """

    def __init__(
        self,
        registry_path: Path,
        mirrors_url: str = ZIG_COMMUNITY_MIRRORS_URL,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.registry_path = Path(registry_path)
        self.mirrors_url = mirrors_url
        self.timeout = timeout
        self.session = session

    def load(self) -> MirrorsConfig:
        """
        Load the registry.

        Returns:
            The persisted registry, or an empty default if the file is
            missing or malformed (a warning is logged; nothing is written).
        """
        if not self.registry_path.exists():
            return MirrorsConfig()

        try:
            with open(self.registry_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            return _parse_registry(data)
        except (OSError, yaml.YAMLError, CorruptStateError) as e:
            logger.warning(
                f"Invalid mirror registry {self.registry_path}, using empty registry: {e}"
            )
            return MirrorsConfig()

    def save(self, config: MirrorsConfig) -> None:
        """Persist the registry atomically."""
        atomic_write(self.registry_path, serialize_registry(config))
        logger.debug(f"Saved mirror registry to {self.registry_path}")

    def list_mirrors(self) -> List[Mirror]:
        return self.load().mirrors

    def sync(self) -> int:
        """
        Replace the registry with the upstream community mirror list.

        Every previously known mirror, including manually added ones, is
        discarded; each upstream mirror starts again at rank 1.

        Returns:
            Number of mirrors now in the registry

        Raises:
            MirrorSyncError: If the list cannot be fetched (registry untouched)
        """
        logger.info(f"Syncing community mirrors from {self.mirrors_url}")
        try:
            content = fetch_text(
                self.mirrors_url, timeout=self.timeout, session=self.session
            )
        except DownloadError as e:
            raise MirrorSyncError(f"Could not fetch community mirror list: {e}") from e

        urls = parse_mirror_list(content)
        config = MirrorsConfig(
            mirrors=[Mirror(url=url, rank=INITIAL_RANK) for url in urls],
            last_synced=datetime.now(timezone.utc).isoformat(),
        )
        self.save(config)
        logger.info(f"Synced {len(urls)} community mirrors")
        return len(urls)

    def is_sync_expired(
        self,
        threshold_hours: float = DEFAULT_SYNC_THRESHOLD_HOURS,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        True if the registry was never synced, the timestamp is unparsable,
        or the last sync is at least ``threshold_hours`` old.
        """
        last_synced = _parse_timestamp(self.load().last_synced)
        if last_synced is None:
            return True

        now = now or datetime.now(timezone.utc)
        age_hours = (now - last_synced).total_seconds() / 3600
        return age_hours >= threshold_hours

    def sync_if_expired(
        self, threshold_hours: float = DEFAULT_SYNC_THRESHOLD_HOURS
    ) -> bool:
        """
        Sync when expired. A failed sync is logged and the last persisted
        registry stays in use.

        Returns:
            True if a sync happened
        """
        if not self.is_sync_expired(threshold_hours):
            return False
        try:
            self.sync()
        except MirrorSyncError as e:
            logger.warning(f"{e}. Using previously known mirrors.")
            return False
        return True

    def update_rank(self, url: str, failure_class: Union[FailureClass, str]) -> None:
        """
        Penalize a mirror after a failure.

        An unknown (but valid) URL is inserted at ``1 + penalty``. Invalid
        URLs and unknown failure classes are logged and ignored; this method
        never raises so it is safe to call from failure handlers.
        """
        try:
            failure = FailureClass(failure_class)
        except ValueError:
            logger.warning(f"Ignoring unknown failure class {failure_class!r}")
            return

        if not is_valid_mirror_url(url):
            logger.warning(f"Refusing to rank invalid mirror URL: {url!r}")
            return

        try:
            config = self.load()
            mirror = config.find(url)
            if mirror is None:
                mirror = Mirror(url=url, rank=INITIAL_RANK + failure.penalty)
                config.mirrors.append(mirror)
            else:
                mirror.rank += failure.penalty
            self.save(config)
        except OSError as e:
            logger.warning(f"Could not persist rank for {url}: {e}")
            return

        logger.warning(
            f"Mirror {url} penalized for {failure.value} failure, rank now {mirror.rank}"
        )

    def reset_ranks(self) -> int:
        """
        Set every mirror's rank back to 1, keeping the set of mirrors.

        Returns:
            Number of mirrors reset
        """
        config = self.load()
        for mirror in config.mirrors:
            mirror.rank = INITIAL_RANK
        self.save(config)
        logger.info(f"Reset ranks of {len(config.mirrors)} mirrors")
        return len(config.mirrors)

    def select_best(
        self, max_candidates: int, rng: Optional[random.Random] = None
    ) -> List[str]:
        """Load the registry and pick up to ``max_candidates`` mirror URLs."""
        mirrors = [m for m in self.load().mirrors if is_valid_mirror_url(m.url)]
        return select_mirrors(mirrors, max_candidates, rng=rng)
