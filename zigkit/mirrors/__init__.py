"""
Community mirror management.

Ranked mirror registry persisted to ``mirrors.yaml`` and the weighted
selection used to pick download candidates.
"""

from zigkit.mirrors.models import (
    FailureClass,
    Mirror,
    MirrorsConfig,
    is_valid_mirror_url,
)
from zigkit.mirrors.registry import MirrorRegistry, parse_mirror_list
from zigkit.mirrors.selector import mirror_weight, select_mirrors

__all__ = [
    "FailureClass",
    "Mirror",
    "MirrorsConfig",
    "MirrorRegistry",
    "is_valid_mirror_url",
    "mirror_weight",
    "parse_mirror_list",
    "select_mirrors",
]
