"""FastAPI entrypoint exposing one user CF batch result for per-user lookups.

The batch runs once at startup; requests only read its immutable output.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query

from ..paths import get_repo_root
from ..pipelines.user_cf_build import run_user_cf_batch
from ..user_cf.recommender import UserUserCFRecommender
from ..utils import setup_logging
from .schemas import (
    BatchSummaryResponse,
    SimilarUsersRequest,
    SimilarUsersResponse,
    UserCFRecommendRequest,
    UserCFRecommendResponse,
)

logger = logging.getLogger(__name__)


def _get_env_path(name: str, default: Path | None) -> Path | None:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    p = Path(str(raw))
    return p if p.is_absolute() else (get_repo_root() / p).resolve()


def create_app(recommender: UserUserCFRecommender | None = None) -> FastAPI:
    """Build the app; pass a fitted `recommender` to skip the startup batch."""

    @asynccontextmanager
    async def lifespan(app_: FastAPI):
        setup_logging(os.getenv("LOG_LEVEL", "INFO"))
        if recommender is not None:
            app_.state.user_cf = recommender
        else:
            config_path = _get_env_path("CONFIG_PATH", get_repo_root() / "config.yaml")
            ratings_path = _get_env_path("RATINGS_PATH", None)
            logger.info("Running user CF batch with config=%s ratings=%s", config_path, ratings_path)
            app_.state.user_cf = run_user_cf_batch(config_path=config_path, ratings_path=ratings_path)
        yield

    app_ = FastAPI(title="User CF Recommendations", lifespan=lifespan)

    def _user_cf() -> UserUserCFRecommender:
        rec = getattr(app_.state, "user_cf", None)
        if rec is None or not rec.is_fitted:
            raise HTTPException(status_code=503, detail="UserCF recommender not initialized")
        return rec

    def _check_limit(name: str, value: int, limit: int) -> None:
        if value > int(limit):
            raise HTTPException(status_code=422, detail=f"{name} must be <= {int(limit)} for this run, got {value}")

    @app_.get("/health")
    def health() -> dict:
        rec = getattr(app_.state, "user_cf", None)
        return {"status": "ok", "ready": bool(rec is not None and rec.is_fitted)}

    @app_.get("/user_cf/summary", response_model=BatchSummaryResponse)
    def user_cf_summary() -> dict:
        summary = _user_cf().summary
        return asdict(summary)

    @app_.post("/user_cf/similar_users", response_model=SimilarUsersResponse)
    def user_cf_similar_users(req: SimilarUsersRequest) -> dict:
        """Return the user's top-K neighbors (Pearson over mean-centered ratings)."""
        rec = _user_cf()
        _check_limit("top_n", int(req.top_n), rec.config.k_neighbors)
        try:
            sims = rec.similar_users(int(req.userId), top_n=int(req.top_n))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

        return {
            "userId": int(req.userId),
            "top_n": int(req.top_n),
            "results": [asdict(s) for s in sims],
        }

    @app_.post("/user_cf/recommend", response_model=UserCFRecommendResponse)
    def user_cf_recommend(req: UserCFRecommendRequest) -> dict:
        """Return the head of the user's prediction list (popularity list for cold-start users)."""
        rec = _user_cf()
        _check_limit("k", int(req.k), rec.config.top_n)
        try:
            recs = rec.recommend_items(int(req.userId), k=int(req.k))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

        return {
            "userId": int(req.userId),
            "k": int(req.k),
            "cold_start": rec.is_cold_start(int(req.userId)),
            "results": [asdict(r) for r in recs],
        }

    @app_.get("/user_cf/recommend/{user_id}", response_model=UserCFRecommendResponse)
    def user_cf_recommend_get(user_id: int, k: int = Query(10, ge=1)) -> dict:
        return user_cf_recommend(UserCFRecommendRequest(userId=user_id, k=k))

    return app_


app = create_app()
