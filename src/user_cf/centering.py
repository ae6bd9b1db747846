from __future__ import annotations

import logging
import threading
from typing import Sequence

from .errors import ProfileInvariantError
from .store import UserProfiles
from .workers import run_partitioned


logger = logging.getLogger(__name__)

# userId -> {itemId -> rating - mean(user)}
NormalizedProfiles = dict[int, dict[int, float]]


def user_means(profiles: UserProfiles) -> dict[int, float]:
    means: dict[int, float] = {}
    for u, items in profiles.items():
        if not items:
            raise ProfileInvariantError(f"userId={u} has an empty rating profile")
        means[u] = float(sum(items.values())) / float(len(items))
    return means


def mean_center(
    profiles: UserProfiles,
    *,
    num_workers: int = 16,
    cancel: threading.Event | None = None,
) -> tuple[dict[int, float], NormalizedProfiles]:
    """Per-user mean rating and the mean-centered (deviation) profile.

    The normalized profile holds exactly the items the user rated; an unrated
    item is absent, never 0.
    """
    means = user_means(profiles)
    users = list(profiles)

    def _center_block(block: Sequence[int]) -> NormalizedProfiles:
        local: NormalizedProfiles = {}
        for u in block:
            mu = means[u]
            local[u] = {i: float(r) - mu for i, r in profiles[u].items()}
        return local

    normalized: NormalizedProfiles = {}
    for local in run_partitioned(_center_block, users, num_workers=num_workers, cancel=cancel, name="mean-center"):
        normalized.update(local)

    logger.info("MeanCenterer: users=%d", len(normalized))
    return means, normalized
