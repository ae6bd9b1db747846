"""User-user similarity: Pearson correlation on mean-centered profiles + top-K selection."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Mapping

from .centering import NormalizedProfiles
from .index import InvertedIndex
from .workers import run_task_queue


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Neighbor:
    userId: int
    similarity: float
    common_rated: int


def pearson(u_norm: Mapping[int, float], v_norm: Mapping[int, float], *, min_overlap: int = 5) -> tuple[float, int]:
    """Correlation of two mean-centered profiles over their co-rated items.

    Returns (similarity, common_rated). Similarity is 0.0 when fewer than
    `min_overlap` items are shared or either side has zero variance on them.
    """
    if len(u_norm) > len(v_norm):
        u_norm, v_norm = v_norm, u_norm

    num = den_u = den_v = 0.0
    cnt = 0
    for i, ru in u_norm.items():
        rv = v_norm.get(i)
        if rv is None:
            continue
        num += ru * rv
        den_u += ru * ru
        den_v += rv * rv
        cnt += 1

    if cnt < int(min_overlap) or den_u == 0.0 or den_v == 0.0:
        return 0.0, cnt
    sim = num / (math.sqrt(den_u) * math.sqrt(den_v))
    # float error can push |sim| a hair past 1
    return max(-1.0, min(1.0, sim)), cnt


def candidate_users(userId: int, normalized: NormalizedProfiles, inverted: InvertedIndex) -> set[int]:
    """Every user sharing at least one rated item with `userId`, minus the user itself."""
    cands: set[int] = set()
    for i in normalized.get(userId, {}):
        cands.update(inverted.get(i, ()))
    cands.discard(userId)
    return cands


def rank_neighbors(userId: int, normalized: NormalizedProfiles, inverted: InvertedIndex, *, k: int = 20, min_overlap: int = 5) -> list[Neighbor]:
    u_norm = normalized[userId]
    sims: list[Neighbor] = []
    for v in candidate_users(userId, normalized, inverted):
        s, cnt = pearson(u_norm, normalized[v], min_overlap=min_overlap)
        if s != 0.0:
            sims.append(Neighbor(userId=int(v), similarity=float(s), common_rated=int(cnt)))

    sims.sort(key=lambda n: (-n.similarity, -n.common_rated, n.userId))
    return sims[: int(k)]


def top_k_neighbors(
    normalized: NormalizedProfiles,
    inverted: InvertedIndex,
    *,
    k: int = 20,
    min_overlap: int = 5,
    num_workers: int = 16,
    cancel: threading.Event | None = None,
) -> dict[int, list[Neighbor]]:
    """Top-K most similar users for every user in `normalized`.

    Users go through a fixed worker pool; each task writes only its own key.
    Users with no usable neighbor map to an empty list.
    """

    def _task(u: int) -> list[Neighbor]:
        return rank_neighbors(u, normalized, inverted, k=k, min_overlap=min_overlap)

    out = run_task_queue(_task, list(normalized), num_workers=num_workers, cancel=cancel, name="similarity")

    with_neighbors = sum(1 for v in out.values() if v)
    logger.info("SimilarityEngine: users=%d with_neighbors=%d k=%d min_overlap=%d", len(out), with_neighbors, k, min_overlap)
    return out
