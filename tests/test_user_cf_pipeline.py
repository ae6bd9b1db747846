from __future__ import annotations

import threading
from pathlib import Path

import pytest

from src.data import load_ratings, parse_ratings_lines
from src.pipelines.user_cf_build import run_user_cf_batch
from src.user_cf import cli
from src.user_cf.config import UserCFConfig, load_yaml_config, user_cf_config_from
from src.user_cf.errors import PhaseCancelledError, PhaseError
from src.user_cf.recommender import UserUserCFRecommender


CONFIG_YAML = """\
dataset:
  raw_dir: data/raw
  ratings_file: ratings.dat
  separator: "::"
user_cf:
  k_neighbors: 10
  min_overlap: 5
  top_n: 15
  num_workers: 4
  cold_threshold: 10
"""


def write_ratings_dat(path: Path, records: list[tuple[int, int, int]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{u}::{i}::{r}::978300760\n" for u, i, r in records))
    return path


def test_parse_ratings_lines_drops_bad_records() -> None:
    lines = [
        "1::10::5::978300760",
        "1::11::6::978300760",  # rating out of range
        "x::10::3::978300760",  # non-numeric user
        "2::10::4",  # missing field
        "2::11::3::978300760::extra",
        "",
        "3::12::1::0",
    ]
    result = parse_ratings_lines(lines)

    assert result.total_lines == 6
    assert result.kept == 2
    assert result.dropped == 4
    assert result.ratings.to_dict("records") == [
        {"userId": 1, "itemId": 10, "rating": 5},
        {"userId": 3, "itemId": 12, "rating": 1},
    ]


def test_parse_ratings_lines_all_bad_or_empty() -> None:
    assert parse_ratings_lines([]).kept == 0
    all_bad = parse_ratings_lines(["a::b::c::d", "1::2"])
    assert all_bad.kept == 0
    assert all_bad.dropped == 2
    assert list(all_bad.ratings.columns) == ["userId", "itemId", "rating"]


def test_parse_ratings_lines_result_is_a_writable_frame() -> None:
    result = parse_ratings_lines(["1::10::4::0", "2::10::5::0", "2::11::3::0"])
    assert result.kept == 3
    assert list(result.ratings.dtypes) == ["int64", "int64", "int64"]

    ratings = result.ratings
    ratings.loc[0, "rating"] = 2
    assert int(ratings.loc[0, "rating"]) == 2


def test_parse_ratings_lines_drops_fields_past_int64() -> None:
    lines = [
        "99999999999999999999::10::5::0",
        "1::99999999999999999999::5::0",
        "1::10::99999999999999999999::0",
        "-99999999999999999999::10::5::0",
        "9223372036854775807::10::4::0",
        "1::10::4::0",
    ]
    result = parse_ratings_lines(lines)

    assert result.dropped == 4
    assert result.ratings.to_dict("records") == [
        {"userId": 9223372036854775807, "itemId": 10, "rating": 4},
        {"userId": 1, "itemId": 10, "rating": 4},
    ]


def test_parse_ratings_lines_keeps_zero_and_negative_ids() -> None:
    result = parse_ratings_lines(["0::10::4::0", "-3::-7::2::0"])
    assert result.ratings.to_dict("records") == [
        {"userId": 0, "itemId": 10, "rating": 4},
        {"userId": -3, "itemId": -7, "rating": 2},
    ]


def test_parse_ratings_lines_custom_separator() -> None:
    result = parse_ratings_lines(["userId,movieId,rating,timestamp", "1,10,4,0"], separator=",")
    assert result.kept == 1
    assert result.dropped == 1


def test_load_ratings_missing_file_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_ratings(tmp_path / "nope.dat")


def test_load_ratings_reads_dat_file(tmp_path: Path, synthetic_records: list[tuple[int, int, int]]) -> None:
    path = write_ratings_dat(tmp_path / "ratings.dat", synthetic_records)
    result = load_ratings(path)
    assert result.kept == len(synthetic_records)
    assert result.dropped == 0


def test_config_defaults_and_validation(tmp_path: Path) -> None:
    cfg = UserCFConfig()
    assert (cfg.k_neighbors, cfg.min_overlap, cfg.top_n, cfg.num_workers, cfg.cold_threshold) == (20, 5, 500, 16, 10)

    cfg = UserCFConfig.from_mapping({"top_n": 50, "unknown": 1})
    assert cfg.top_n == 50
    assert cfg.with_overrides(top_n=None, k_neighbors=3).k_neighbors == 3

    with pytest.raises(ValueError):
        UserCFConfig(num_workers=0)
    with pytest.raises(ValueError):
        UserCFConfig(min_rating=5, max_rating=1)

    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_yaml_config(bad)
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "missing.yaml")

    good = tmp_path / "config.yaml"
    good.write_text(CONFIG_YAML)
    assert user_cf_config_from(load_yaml_config(good)).top_n == 15


def test_recommender_end_to_end(synthetic_records: list[tuple[int, int, int]]) -> None:
    cfg = UserCFConfig(k_neighbors=10, top_n=15, num_workers=4)
    rec = UserUserCFRecommender(config=cfg).fit(synthetic_records)

    summary = rec.summary
    assert summary is not None
    assert summary.n_users == 40
    assert summary.n_ratings == len({(u, i) for u, i, _ in synthetic_records})
    assert set(summary.timings) == {"rating_store", "mean_center", "inverted_index", "popularity", "neighbors", "predict"}

    for u in rec.profiles:
        recs = rec.recommend_items(u)
        assert len(recs) <= 15
        if rec.is_cold_start(u):
            assert recs == list(rec.global_top)
        else:
            assert all(r.itemId not in rec.profiles[u] for r in recs)
        assert len(rec.similar_users(u)) <= 10
        assert rec.similar_users(u, top_n=2) == rec.similar_users(u)[:2]

    with pytest.raises(KeyError):
        rec.recommend_items(10_000)


def test_recommender_is_deterministic_across_worker_counts(synthetic_records: list[tuple[int, int, int]]) -> None:
    one = UserUserCFRecommender(config=UserCFConfig(num_workers=1)).fit(synthetic_records)
    many = UserUserCFRecommender(config=UserCFConfig(num_workers=16)).fit(synthetic_records)

    assert one.neighbors == many.neighbors
    assert {u: list(v) for u, v in one.predictions.items()} == {u: list(v) for u, v in many.predictions.items()}


def test_query_before_fit_is_an_error() -> None:
    with pytest.raises(RuntimeError):
        UserUserCFRecommender().recommend_items(1)


def test_cancelled_run_reports_failing_phase(synthetic_records: list[tuple[int, int, int]]) -> None:
    cancel = threading.Event()
    cancel.set()
    rec = UserUserCFRecommender(config=UserCFConfig(num_workers=2), cancel=cancel)

    with pytest.raises(PhaseError) as info:
        rec.fit(synthetic_records)
    assert info.value.phase == "rating_store"
    assert isinstance(info.value.cause, PhaseCancelledError)
    assert not rec.is_fitted


def test_run_user_cf_batch_from_config(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    synthetic_records: list[tuple[int, int, int]],
) -> None:
    (tmp_path / "config.yaml").write_text(CONFIG_YAML)
    write_ratings_dat(tmp_path / "data" / "raw" / "ratings.dat", synthetic_records)
    monkeypatch.chdir(tmp_path)

    rec = run_user_cf_batch(config_path=Path("config.yaml"), overrides={"top_n": 7})
    assert rec.config.top_n == 7
    assert rec.config.num_workers == 4
    assert rec.summary is not None and rec.summary.n_users == 40

    with pytest.raises(PhaseError) as info:
        run_user_cf_batch(config_path=Path("config.yaml"), ratings_path=tmp_path / "missing.dat")
    assert info.value.phase == "load_ratings"
    assert isinstance(info.value.cause, FileNotFoundError)


def test_cli_prints_report(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    synthetic_records: list[tuple[int, int, int]],
) -> None:
    (tmp_path / "config.yaml").write_text(CONFIG_YAML)
    write_ratings_dat(tmp_path / "data" / "raw" / "ratings.dat", synthetic_records)
    monkeypatch.chdir(tmp_path)

    cli.main(["--user-id", "1", "--k", "5", "--num-workers", "2"])
    out = capsys.readouterr().out
    assert "=== Similar Users ===" in out
    assert "Recommended Items" in out or "Popular Items (cold-start)" in out

    cli.main(["--user-id", "9999"])
    assert "has no ratings" in capsys.readouterr().out
