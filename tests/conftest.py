"""Pytest configuration and shared fixtures."""

import numpy as np
import pandas as pd
import pytest

from buspred.config import EvaluationConfig

# Coefficients used to generate measured times in the synthetic records
TRUE_COEF = (0.5, 0.3, 0.25)


def make_trip_records(
    n_records: int = 2000,
    max_base: float = 1600.0,
    noise: float = 20.0,
    seed: int = 42,
) -> pd.DataFrame:
    """Generate synthetic trip records with three independently varying predictors."""
    rng = np.random.default_rng(seed)

    base = rng.uniform(30, max_base, n_records)
    hist_cum = base * rng.uniform(0.9, 1.1, n_records)
    rece_cum = base * rng.uniform(0.8, 1.2, n_records)
    sche_cum = base * rng.uniform(0.85, 1.15, n_records)

    h, r, s = TRUE_COEF
    t_measured = h * hist_cum + r * rece_cum + s * sche_cum + rng.normal(0, noise, n_records)
    t_predicted = 0.4 * hist_cum + 0.4 * rece_cum + 0.2 * sche_cum

    timestamps = pd.Timestamp("2016-03-01", tz="America/New_York") + pd.to_timedelta(
        np.sort(rng.integers(0, 14 * 24 * 3600, n_records)), unit="s"
    )

    return pd.DataFrame(
        {
            "vehicle": rng.choice(["MTA_4301", "MTA_4302", "MTA_7712"], n_records),
            "timestamp": timestamps,
            "stop_sequence": rng.integers(1, 40, n_records),
            "hist_cum": hist_cum,
            "rece_cum": rece_cum,
            "sche_cum": sche_cum,
            "t_predicted": t_predicted,
            "t_measured": t_measured,
            "route": rng.choice(["M15", "BX12", "Q44"], n_records),
            "depot": rng.choice(["MQ", "CP"], n_records),
            "is_express": rng.choice([0, 1], n_records),
        }
    )


@pytest.fixture
def sample_config():
    """Minimal configuration for testing."""
    return {
        "data": {
            "record_path": "data/mta_bus_data.duckdb",
            "table": "mta_bus_data",
            "output_dir": "outputs",
        },
        "filters": {
            "is_express": None,
            "route": None,
        },
        "evaluation": {
            "bin_cutoffs": [0, 120, 240, 360, 600, 900, 1200, float("inf")],
            "residual_cutoffs": [0, 60, 120, 240, 360, float("inf")],
            "original_coef": [0.4, 0.4, 0.2],
            "degenerate_policy": "nan",
            "evaluation_binning": "model",
            "n_workers": 1,
        },
    }


@pytest.fixture
def eval_config():
    """Default evaluation settings, run in-process."""
    return EvaluationConfig(n_workers=1)


@pytest.fixture
def sample_records():
    """Synthetic records covering every default bin."""
    return make_trip_records()


@pytest.fixture
def short_trip_records():
    """Synthetic records whose travel times stay well under 10 minutes."""
    return make_trip_records(n_records=600, max_base=300.0, noise=10.0, seed=7)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "regression: marks tests as regression tests")
