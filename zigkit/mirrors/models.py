"""Data types shared by the mirror registry and selector."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from urllib.parse import urlparse


class FailureClass(str, Enum):
    """Kinds of per-mirror failure the download orchestrator reports."""

    TIMEOUT = "timeout"
    SIGNATURE = "signature"
    CHECKSUM = "checksum"

    @property
    def penalty(self) -> int:
        return RANK_PENALTIES[self]


RANK_PENALTIES = {
    FailureClass.TIMEOUT: 1,
    FailureClass.SIGNATURE: 2,
    FailureClass.CHECKSUM: 2,
}

INITIAL_RANK = 1


def is_valid_mirror_url(url) -> bool:
    """
    True for well-formed ``https://`` URLs with a host.

    Example:
        >>> is_valid_mirror_url("https://mirror.example/zig")
        True
        >>> is_valid_mirror_url("http://mirror.example/zig")
        False
    """
    if not isinstance(url, str) or not url or any(c.isspace() for c in url):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme == "https" and bool(parsed.netloc)


@dataclass
class Mirror:
    """A community mirror base URL and its learned rank (lower is better)."""

    url: str
    rank: float = INITIAL_RANK

    def to_dict(self) -> dict:
        return {"url": self.url, "rank": self.rank}


@dataclass
class MirrorsConfig:
    """Persisted registry content."""

    mirrors: List[Mirror] = field(default_factory=list)
    last_synced: Optional[str] = None

    def find(self, url: str) -> Optional[Mirror]:
        for mirror in self.mirrors:
            if mirror.url == url:
                return mirror
        return None

    def to_dict(self) -> dict:
        return {
            "last_synced": self.last_synced,
            "mirrors": [mirror.to_dict() for mirror in self.mirrors],
        }
