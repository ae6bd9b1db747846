from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Sequence

import pandas as pd

from ..utils import log_phase
from .centering import NormalizedProfiles, mean_center
from .config import UserCFConfig
from .index import InvertedIndex, build_inverted_index
from .popularity import RecommendedItem, global_top_items
from .predict import predict_for_users
from .similarity import Neighbor, top_k_neighbors
from .store import UserProfiles, build_user_profiles, records_from_frame


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchSummary:
    n_users: int
    n_items: int
    n_ratings: int
    n_cold_start: int
    timings: dict[str, float] = field(default_factory=dict)


class UserUserCFRecommender:
    """User-user CF recommender computed as one batch over the full ratings set.

    `fit` runs the phases strictly in order (rating store, mean-centering,
    inverted index, popularity fallback, neighbors, predictions). Each phase
    finishes before the next starts and never mutates earlier outputs. After
    `fit`, per-user queries are plain lookups.
    """

    def __init__(self, *, config: UserCFConfig | None = None, cancel: threading.Event | None = None) -> None:
        self.config = config if config is not None else UserCFConfig()
        self.cancel = cancel

        self.profiles: UserProfiles = {}
        self.means: dict[int, float] = {}
        self.normalized: NormalizedProfiles = {}
        self.inverted: InvertedIndex = {}
        self.global_top: tuple[RecommendedItem, ...] = ()
        self.neighbors: dict[int, list[Neighbor]] = {}
        self.predictions: dict[int, Sequence[RecommendedItem]] = {}
        self.summary: BatchSummary | None = None

    @property
    def is_fitted(self) -> bool:
        return self.summary is not None

    def fit(self, records: Sequence[Any]) -> "UserUserCFRecommender":
        cfg = self.config
        timings: dict[str, float] = {}
        logger.info(
            "UserCF params: num_workers=%d top_n=%d min_overlap=%d k_neighbors=%d cold_threshold=%d",
            cfg.num_workers,
            cfg.top_n,
            cfg.min_overlap,
            cfg.k_neighbors,
            cfg.cold_threshold,
        )

        with log_phase("rating_store", timings):
            profiles = build_user_profiles(
                records,
                num_workers=cfg.num_workers,
                min_rating=cfg.min_rating,
                max_rating=cfg.max_rating,
                cancel=self.cancel,
            )
        with log_phase("mean_center", timings):
            means, normalized = mean_center(profiles, num_workers=cfg.num_workers, cancel=self.cancel)
        with log_phase("inverted_index", timings):
            inverted = build_inverted_index(profiles, num_workers=cfg.num_workers, cancel=self.cancel)
        with log_phase("popularity", timings):
            global_top = global_top_items(profiles, top_n=cfg.top_n)
        with log_phase("neighbors", timings):
            neighbors = top_k_neighbors(
                normalized,
                inverted,
                k=cfg.k_neighbors,
                min_overlap=cfg.min_overlap,
                num_workers=cfg.num_workers,
                cancel=self.cancel,
            )
        with log_phase("predict", timings):
            predictions = predict_for_users(
                profiles,
                means,
                neighbors,
                global_top,
                top_n=cfg.top_n,
                cold_threshold=cfg.cold_threshold,
                min_rating=cfg.min_rating,
                max_rating=cfg.max_rating,
                num_workers=cfg.num_workers,
                cancel=self.cancel,
            )

        self.profiles = profiles
        self.means = means
        self.normalized = normalized
        self.inverted = inverted
        self.global_top = global_top
        self.neighbors = neighbors
        self.predictions = predictions
        self.summary = BatchSummary(
            n_users=len(profiles),
            n_items=len(inverted),
            n_ratings=sum(len(items) for items in profiles.values()),
            n_cold_start=sum(1 for u in profiles if self.is_cold_start(u)),
            timings=timings,
        )
        logger.info(
            "UserCF batch done: users=%d items=%d ratings=%d cold_start=%d total=%.2fs",
            self.summary.n_users,
            self.summary.n_items,
            self.summary.n_ratings,
            self.summary.n_cold_start,
            sum(timings.values()),
        )
        return self

    def fit_frame(self, ratings: pd.DataFrame) -> "UserUserCFRecommender":
        return self.fit(records_from_frame(ratings))

    def _require_user(self, userId: int) -> int:
        if not self.is_fitted:
            raise RuntimeError("UserCF recommender has not been fitted")
        uid = int(userId)
        if uid not in self.profiles:
            raise KeyError(f"Unknown userId: {uid}")
        return uid

    def has_user(self, userId: int) -> bool:
        return int(userId) in self.profiles

    def is_cold_start(self, userId: int) -> bool:
        return len(self.profiles.get(int(userId), {})) < int(self.config.cold_threshold)

    def similar_users(self, userId: int, *, top_n: int | None = None) -> list[Neighbor]:
        uid = self._require_user(userId)
        sims = self.neighbors.get(uid, [])
        return list(sims if top_n is None else sims[: int(top_n)])

    def recommend_items(self, userId: int, *, k: int | None = None) -> list[RecommendedItem]:
        """Top-k of the user's batch prediction list (cold-start users get the popularity list)."""
        uid = self._require_user(userId)
        recs = self.predictions.get(uid, ())
        return list(recs if k is None else recs[: int(k)])
