from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path

from ..data import load_ratings
from ..paths import ProjectPaths, get_repo_root
from ..user_cf.config import dataset_config_from, load_yaml_config, user_cf_config_from
from ..user_cf.recommender import UserUserCFRecommender
from ..utils import log_phase, setup_logging


logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run the user-user CF batch (neighbors + top-N for every user).")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--ratings-path", type=Path, default=None, help="Override ratings file location")
    p.add_argument("--k-neighbors", type=int, default=None, help="Override K (neighbors kept per user)")
    p.add_argument("--min-overlap", type=int, default=None, help="Override minimum co-rated items")
    p.add_argument("--top-n", type=int, default=None, help="Override prediction list length")
    p.add_argument("--num-workers", type=int, default=None, help="Override worker pool size")
    p.add_argument("--cold-threshold", type=int, default=None, help="Override cold-start rating count")
    return p


def run_user_cf_batch(
    *,
    config_path: Path,
    ratings_path: Path | None = None,
    overrides: dict[str, int | None] | None = None,
    cancel: threading.Event | None = None,
) -> UserUserCFRecommender:
    """Load config + ratings and compute neighbors and predictions for every user."""
    repo_root = get_repo_root()
    config_path = Path(config_path)
    if not config_path.is_absolute():
        config_path = (repo_root / config_path).resolve()

    cfg_yaml = load_yaml_config(config_path)
    dataset_cfg = dataset_config_from(cfg_yaml)
    cfg = user_cf_config_from(cfg_yaml).with_overrides(**(overrides or {}))

    if ratings_path is None:
        paths = ProjectPaths.from_repo_root(repo_root, raw_dir=dataset_cfg.raw_dir, ratings_file=dataset_cfg.ratings_file)
        ratings_path = paths.ratings_path
    elif not Path(ratings_path).is_absolute():
        ratings_path = (repo_root / ratings_path).resolve()

    with log_phase("load_ratings"):
        loaded = load_ratings(
            Path(ratings_path),
            separator=dataset_cfg.separator,
            min_rating=cfg.min_rating,
            max_rating=cfg.max_rating,
        )

    rec = UserUserCFRecommender(config=cfg, cancel=cancel)
    return rec.fit_frame(loaded.ratings)


def main(argv: list[str] | None = None) -> None:
    setup_logging("INFO")
    args = build_arg_parser().parse_args(argv)
    rec = run_user_cf_batch(
        config_path=args.config,
        ratings_path=args.ratings_path,
        overrides={
            "k_neighbors": args.k_neighbors,
            "min_overlap": args.min_overlap,
            "top_n": args.top_n,
            "num_workers": args.num_workers,
            "cold_threshold": args.cold_threshold,
        },
    )
    summary = rec.summary
    if summary is not None:
        for phase, secs in summary.timings.items():
            logger.info("timing %-15s %.2fs", phase, secs)


if __name__ == "__main__":
    main()
