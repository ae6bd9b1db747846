from __future__ import annotations

import logging
import numbers
import threading
from dataclasses import dataclass
from typing import Any, Sequence

import pandas as pd

from .workers import run_partitioned


logger = logging.getLogger(__name__)

# userId -> {itemId -> raw rating}
UserProfiles = dict[int, dict[int, int]]


@dataclass(frozen=True)
class Rating:
    userId: int
    itemId: int
    rating: int


def _as_triple(record: Any, min_rating: int, max_rating: int) -> tuple[int, int, int] | None:
    """Return (user, item, rating) for a usable record, None for anything else."""
    if isinstance(record, Rating):
        fields = (record.userId, record.itemId, record.rating)
    else:
        try:
            if len(record) < 3:
                return None
        except TypeError:
            return None
        fields = (record[0], record[1], record[2])

    for value in fields:
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            return None
    u, i, r = (int(v) for v in fields)
    if r < min_rating or r > max_rating:
        return None
    return u, i, r


def records_from_frame(ratings: pd.DataFrame) -> list[Rating]:
    """Turn a `userId, itemId, rating` frame (see `src.data`) into Rating records."""
    required = {"userId", "itemId", "rating"}
    missing = required - set(ratings.columns)
    if missing:
        raise ValueError(f"ratings missing required columns: {sorted(missing)}")
    cols = ratings[["userId", "itemId", "rating"]].astype("int64")
    return [Rating(int(u), int(i), int(r)) for u, i, r in cols.itertuples(index=False, name=None)]


def build_user_profiles(
    records: Sequence[Any],
    *,
    num_workers: int = 16,
    min_rating: int = 1,
    max_rating: int = 5,
    cancel: threading.Event | None = None,
) -> UserProfiles:
    """Aggregate rating records into per-user sparse profiles.

    The record list is split into contiguous blocks; each worker builds a local
    profile map without locking, and the locals are merged once all workers have
    joined. Blocks are merged in input order, so a duplicated (user, item) keeps
    the rating that appears last in `records`.

    Invalid records (short, non-integer, out-of-range rating) are skipped.
    """

    def _build_block(block: Sequence[Any]) -> tuple[UserProfiles, int]:
        local: UserProfiles = {}
        skipped = 0
        for record in block:
            triple = _as_triple(record, min_rating, max_rating)
            if triple is None:
                skipped += 1
                continue
            u, i, r = triple
            local.setdefault(u, {})[i] = r
        return local, skipped

    partials = run_partitioned(_build_block, records, num_workers=num_workers, cancel=cancel, name="rating-store")

    profiles: UserProfiles = {}
    skipped_total = 0
    for local, skipped in partials:
        skipped_total += skipped
        for u, items in local.items():
            profiles.setdefault(u, {}).update(items)

    if skipped_total:
        logger.warning("RatingStore skipped %d invalid records", skipped_total)
    logger.info(
        "RatingStore: users=%d ratings=%d",
        len(profiles),
        sum(len(items) for items in profiles.values()),
    )
    return profiles
