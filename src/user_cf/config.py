from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml


@dataclass(frozen=True)
class UserCFConfig:
    """Tunables of one batch run. Fixed for the whole run."""

    k_neighbors: int = 20
    min_overlap: int = 5
    top_n: int = 500
    num_workers: int = 16
    cold_threshold: int = 10
    min_rating: int = 1
    max_rating: int = 5

    def __post_init__(self) -> None:
        for name in ("k_neighbors", "top_n", "num_workers"):
            if int(getattr(self, name)) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        for name in ("min_overlap", "cold_threshold"):
            if int(getattr(self, name)) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if int(self.min_rating) > int(self.max_rating):
            raise ValueError(f"min_rating ({self.min_rating}) must be <= max_rating ({self.max_rating})")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "UserCFConfig":
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ValueError(f"user_cf config must be a mapping, got {type(raw)}")
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in raw.items() if k in known and v is not None})

    def with_overrides(self, **overrides: int | None) -> "UserCFConfig":
        return replace(self, **{k: int(v) for k, v in overrides.items() if v is not None})


@dataclass(frozen=True)
class DatasetConfig:
    raw_dir: str = "data/raw"
    ratings_file: str = "ratings.dat"
    separator: str = "::"


def load_yaml_config(path: Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    obj = yaml.safe_load(path.read_text())
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"Expected YAML mapping at {path}, got {type(obj)}")
    return obj


def dataset_config_from(cfg_yaml: Mapping[str, Any]) -> DatasetConfig:
    raw = cfg_yaml.get("dataset", {}) if isinstance(cfg_yaml.get("dataset"), dict) else {}
    return DatasetConfig(
        raw_dir=str(raw.get("raw_dir", "data/raw")),
        ratings_file=str(raw.get("ratings_file", "ratings.dat")),
        separator=str(raw.get("separator", "::")),
    )


def user_cf_config_from(cfg_yaml: Mapping[str, Any]) -> UserCFConfig:
    raw = cfg_yaml.get("user_cf", {}) if isinstance(cfg_yaml.get("user_cf"), dict) else {}
    return UserCFConfig.from_mapping(raw)
