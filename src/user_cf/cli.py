from __future__ import annotations

import argparse
from dataclasses import asdict
from pathlib import Path

import pandas as pd

from ..pipelines.user_cf_build import run_user_cf_batch
from ..utils import setup_logging


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="User-user collaborative filtering report for one user")
    p.add_argument("--user-id", type=int, required=True, help="userId as it appears in the ratings file")
    p.add_argument("--top-similar", type=int, default=10, help="How many similar users to show")
    p.add_argument("--k", type=int, default=20, help="How many recommendations to show")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML")
    p.add_argument("--ratings-path", type=Path, default=None, help="Override ratings file location")
    p.add_argument("--num-workers", type=int, default=None, help="Override worker pool size")
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)
    rec = run_user_cf_batch(
        config_path=args.config,
        ratings_path=args.ratings_path,
        overrides={"num_workers": args.num_workers},
    )

    uid = int(args.user_id)
    if not rec.has_user(uid):
        print(f"userId={uid} has no ratings in the dataset.")
        return

    sims = rec.similar_users(uid, top_n=int(args.top_similar))
    recs = rec.recommend_items(uid, k=int(args.k))

    print("\n=== Similar Users ===")
    if sims:
        print(pd.DataFrame([asdict(s) for s in sims]).to_string(index=False))
    else:
        print("No similar users found (too few co-rated items).")

    label = "Popular Items (cold-start)" if rec.is_cold_start(uid) else "Recommended Items"
    print(f"\n=== {label} ===")
    if recs:
        df_r = pd.DataFrame([asdict(r) for r in recs])
        df_r.index = range(1, len(df_r) + 1)
        print(df_r.to_string(float_format=lambda x: f"{x:.3f}"))
    else:
        print("No recommendations found.")


if __name__ == "__main__":
    main()
