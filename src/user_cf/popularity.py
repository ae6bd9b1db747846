"""Global popularity list used as the cold-start fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from .store import UserProfiles


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecommendedItem:
    itemId: int
    score: float


def global_top_items(profiles: UserProfiles, *, top_n: int = 500) -> tuple[RecommendedItem, ...]:
    """Items ranked by their mean rating over every user who rated them.

    Equal means are ordered by ascending itemId so the list is stable for a given
    input. The result is an immutable tuple shared by every cold-start user.
    """
    rows = [(i, r) for items in profiles.values() for i, r in items.items()]
    if not rows:
        return ()

    df = pd.DataFrame(rows, columns=["itemId", "rating"])
    agg = df.groupby("itemId", as_index=False).agg(total=("rating", "sum"), n=("rating", "count"))
    agg["score"] = agg["total"].astype(float) / agg["n"].astype(float)
    agg = agg.sort_values(["score", "itemId"], ascending=[False, True], kind="mergesort").head(int(top_n))

    out = tuple(
        RecommendedItem(itemId=int(i), score=float(s))
        for i, s in agg[["itemId", "score"]].itertuples(index=False, name=None)
    )
    logger.info("PopularityFallback: items=%d kept=%d", len(df["itemId"].unique()), len(out))
    return out
