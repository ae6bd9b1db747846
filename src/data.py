from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

RATING_COLUMNS: tuple[str, ...] = ("userId", "itemId", "rating")

_INT_PATTERN = r"[+-]?\d+"
_INT64_MIN = int(np.iinfo(np.int64).min)
_INT64_MAX = int(np.iinfo(np.int64).max)


@dataclass(frozen=True)
class RatingsLoadResult:
    """Well-formed ratings plus bookkeeping about what was thrown away."""

    ratings: pd.DataFrame
    total_lines: int
    dropped: int

    @property
    def kept(self) -> int:
        return int(len(self.ratings))


def _empty_ratings() -> pd.DataFrame:
    return pd.DataFrame({c: pd.Series(dtype="int64") for c in RATING_COLUMNS})


def parse_ratings_lines(
    lines: list[str],
    *,
    separator: str = "::",
    expected_fields: int = 4,
    min_rating: int = 1,
    max_rating: int = 5,
) -> RatingsLoadResult:
    """Parse `user<sep>item<sep>rating<sep>...` lines into an int64 ratings frame.

    Record-level problems never raise. A line is dropped when:
    - it does not split into exactly `expected_fields` fields
    - any of the first three fields is not an integer or does not fit in int64
    - the rating falls outside [min_rating, max_rating]
    Blank lines are ignored and are not counted as dropped.
    """
    series = pd.Series(lines, dtype="string")
    series = series[series.str.strip() != ""]
    total = int(len(series))
    if total == 0:
        return RatingsLoadResult(ratings=_empty_ratings(), total_lines=0, dropped=0)

    parts = series.str.split(separator, expand=True, regex=False)
    if parts.shape[1] < len(RATING_COLUMNS):
        return RatingsLoadResult(ratings=_empty_ratings(), total_lines=total, dropped=total)

    cols = list(range(len(RATING_COLUMNS)))
    valid = parts.notna().sum(axis=1) == int(expected_fields)
    for col in cols:
        field = parts[col].fillna("").str.strip()
        valid = valid & field.str.fullmatch(_INT_PATTERN).fillna(False).astype(bool)

    if not valid.any():
        return RatingsLoadResult(ratings=_empty_ratings(), total_lines=total, dropped=total)

    # python ints first: digit strings past int64 are record errors, not a failed load
    good = parts.loc[valid, cols].apply(lambda s: s.str.strip().astype(object).map(int))
    good.columns = list(RATING_COLUMNS)
    fits = good.apply(lambda s: s.map(lambda v: _INT64_MIN <= v <= _INT64_MAX).astype(bool)).all(axis=1)
    ratings = good.loc[fits].astype("int64").reset_index(drop=True)

    in_range = ratings["rating"].between(int(min_rating), int(max_rating))
    ratings = ratings.loc[in_range].reset_index(drop=True)
    if ratings.empty:
        ratings = _empty_ratings()

    dropped = total - int(len(ratings))
    return RatingsLoadResult(ratings=ratings, total_lines=total, dropped=int(dropped))


def load_ratings(
    path: Path,
    *,
    separator: str = "::",
    expected_fields: int = 4,
    min_rating: int = 1,
    max_rating: int = 5,
) -> RatingsLoadResult:
    """Load a delimited ratings file (MovieLens-1M `ratings.dat` layout by default).

    A missing or unreadable file is fatal: there is nothing meaningful to compute
    from a partial dataset.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Ratings file not found: {path}")

    text = path.read_text(encoding="latin-1")
    result = parse_ratings_lines(
        text.splitlines(),
        separator=separator,
        expected_fields=expected_fields,
        min_rating=min_rating,
        max_rating=max_rating,
    )

    n_users = int(result.ratings["userId"].nunique())
    n_items = int(result.ratings["itemId"].nunique())
    logger.info(
        "Loaded ratings from %s: kept=%d dropped=%d users=%d items=%d",
        path,
        result.kept,
        result.dropped,
        n_users,
        n_items,
    )
    if result.kept:
        density = result.kept / float(max(1, n_users) * max(1, n_items))
        logger.info("Rating density=%.6f mean_rating=%.4f", density, float(result.ratings["rating"].mean()))
    return result
