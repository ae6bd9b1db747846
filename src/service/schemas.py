"""Pydantic schemas for the read-only user CF query API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SimilarUsersRequest(BaseModel):
    """Request for the neighbors computed by the batch for one user."""

    userId: int = Field(..., description="userId from the ratings file (any integer the ratings use)")
    top_n: int = Field(20, ge=1, description="Number of similar users to return (at most k_neighbors)")


class SimilarUserItem(BaseModel):
    userId: int
    similarity: float
    common_rated: int


class SimilarUsersResponse(BaseModel):
    userId: int
    top_n: int
    results: list[SimilarUserItem]


class UserCFRecommendRequest(BaseModel):
    """Request for a prefix of the user's precomputed top-N list."""

    userId: int = Field(..., description="userId from the ratings file (any integer the ratings use)")
    k: int = Field(10, ge=1, description="Number of recommendations to return (at most top_n)")


class UserCFRecommendationItem(BaseModel):
    itemId: int
    score: float


class UserCFRecommendResponse(BaseModel):
    userId: int
    k: int
    cold_start: bool
    results: list[UserCFRecommendationItem]


class BatchSummaryResponse(BaseModel):
    n_users: int
    n_items: int
    n_ratings: int
    n_cold_start: int
    timings: Optional[dict[str, float]] = None
