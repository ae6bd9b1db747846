from __future__ import annotations

import logging
import threading
from typing import Sequence

from .popularity import RecommendedItem
from .similarity import Neighbor
from .store import UserProfiles
from .workers import run_task_queue


logger = logging.getLogger(__name__)


def predict_user(
    userId: int,
    profiles: UserProfiles,
    means: dict[int, float],
    neighbors: Sequence[Neighbor],
    *,
    top_n: int = 500,
    min_rating: int = 1,
    max_rating: int = 5,
) -> list[RecommendedItem]:
    """Neighbor-weighted predictions for items `userId` has not rated.

    predicted(i) = mean(u) + sum(s_uv * (r_vi - mean(v))) / sum(|s_uv|)
    over neighbors v that rated i, clipped to [min_rating, max_rating].
    """
    seen = profiles[userId]
    cands: set[int] = set()
    for nb in neighbors:
        cands.update(i for i in profiles[nb.userId] if i not in seen)

    mu_u = means[userId]
    preds: list[RecommendedItem] = []
    for i in cands:
        num = den = 0.0
        for nb in neighbors:
            rv = profiles[nb.userId].get(i)
            if rv is None:
                continue
            num += nb.similarity * (float(rv) - means[nb.userId])
            den += abs(nb.similarity)
        if den <= 0.0:
            continue
        rhat = mu_u + num / den
        rhat = min(float(max_rating), max(float(min_rating), rhat))
        preds.append(RecommendedItem(itemId=int(i), score=float(rhat)))

    preds.sort(key=lambda p: (-p.score, p.itemId))
    return preds[: int(top_n)]


def predict_for_users(
    profiles: UserProfiles,
    means: dict[int, float],
    neighbors: dict[int, list[Neighbor]],
    fallback: Sequence[RecommendedItem],
    *,
    top_n: int = 500,
    cold_threshold: int = 10,
    min_rating: int = 1,
    max_rating: int = 5,
    num_workers: int = 16,
    cancel: threading.Event | None = None,
) -> dict[int, Sequence[RecommendedItem]]:
    """Top-N list per user.

    Users with fewer than `cold_threshold` ratings get the shared `fallback`
    object itself, unfiltered (it may contain items they already rated).
    """

    def _task(u: int) -> Sequence[RecommendedItem]:
        if len(profiles[u]) < int(cold_threshold):
            return fallback
        return predict_user(
            u,
            profiles,
            means,
            neighbors.get(u, []),
            top_n=top_n,
            min_rating=min_rating,
            max_rating=max_rating,
        )

    out = run_task_queue(_task, list(profiles), num_workers=num_workers, cancel=cancel, name="predict")

    n_cold = sum(1 for v in out.values() if v is fallback)
    logger.info("Predictor: users=%d cold_start=%d top_n=%d", len(out), n_cold, top_n)
    return out
