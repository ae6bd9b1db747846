from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

# Ensure `import src...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture(scope="session")
def synthetic_records() -> list[tuple[int, int, int]]:
    """Deterministic sparse (user, item, rating) triples with a mix of cold and warm users."""
    rng = random.Random(7)
    records: list[tuple[int, int, int]] = []
    n_items = 30
    for u in range(1, 41):
        n_rated = rng.randint(3, 25)
        taste = rng.choice([-1, 1])
        for i in rng.sample(range(1, n_items + 1), n_rated):
            base = 3 + taste * (1 if i % 2 == 0 else -1)
            records.append((u, i, max(1, min(5, base + rng.choice([-1, 0, 0, 1])))))
    return records

