"""
Weighted-random mirror selection.

Each mirror is weighted ``1 / rank**2`` and candidates are drawn without
replacement, so well-ranked mirrors are tried first most of the time while
load is still spread across the whole pool.
"""

import logging
import random
from typing import Iterable, List, Optional

from zigkit.mirrors.models import INITIAL_RANK, Mirror, is_valid_mirror_url

logger = logging.getLogger(__name__)

MIN_WEIGHT = 1e-9


def mirror_weight(rank: float) -> float:
    """Selection weight for a rank; ranks below 1 are treated as 1."""
    try:
        rank = float(rank)
    except (TypeError, ValueError):
        rank = INITIAL_RANK
    if rank != rank or rank < 1:  # NaN or below the floor
        rank = INITIAL_RANK
    try:
        weight = 1.0 / (rank * rank)
    except OverflowError:
        weight = 0.0
    return max(weight, MIN_WEIGHT)


def select_mirrors(
    mirrors: Iterable[Mirror],
    max_candidates: int,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Choose up to ``max_candidates`` distinct mirror URLs.

    Non-HTTPS and malformed URLs are dropped before weighting. When a URL
    appears more than once, its best (lowest) rank is used.

    Args:
        mirrors: Ranked mirrors
        max_candidates: Maximum number of URLs to return
        rng: Random source; pass a seeded ``random.Random`` for determinism

    Returns:
        Selected URLs in the order they should be tried

    Example:
        >>> select_mirrors([Mirror("https://a.example", 1)], 3)
        ['https://a.example']
    """
    if max_candidates <= 0:
        return []

    rng = rng or random.Random()

    best_rank = {}
    for mirror in mirrors:
        if not is_valid_mirror_url(mirror.url):
            logger.debug(f"Skipping invalid mirror URL: {mirror.url!r}")
            continue
        current = best_rank.get(mirror.url)
        if current is None or mirror.rank < current:
            best_rank[mirror.url] = mirror.rank

    pool = [(url, mirror_weight(rank)) for url, rank in best_rank.items()]
    selected = []

    while pool and len(selected) < max_candidates:
        total = sum(weight for _, weight in pool)
        target = rng.random() * total
        cumulative = 0.0
        chosen = len(pool) - 1
        for index, (_, weight) in enumerate(pool):
            cumulative += weight
            if target < cumulative:
                chosen = index
                break
        url, _ = pool.pop(chosen)
        selected.append(url)

    return selected
