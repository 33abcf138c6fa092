"""
NYC Shooting Insights - Pytest Configuration and Fixtures

Shared fixtures for all tests:
- Configuration fixtures
- Raw and canonical shooting record fixtures
"""

import os
from collections.abc import Generator
from datetime import time
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import pytest

# Set test environment
os.environ["NSI_ENVIRONMENT"] = "dev"

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def configs_dir(project_root: Path) -> Path:
    """Get the configs directory."""
    return project_root / "configs"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> Any:
    """Get test configuration."""
    from src.shared.config import get_config, reload_config

    # Ensure fresh config for tests
    reload_config("dev")
    return get_config("dev")


@pytest.fixture
def fast_config(test_config: Any) -> Any:
    """Test configuration with small search spaces and forests."""
    return test_config.model_copy(
        update={
            "forecast": test_config.forecast.model_copy(
                update={
                    "search": test_config.forecast.search.model_copy(
                        update={
                            "max_p": 1,
                            "max_d": 0,
                            "max_q": 1,
                            "max_seasonal_p": 1,
                            "max_seasonal_d": 0,
                            "max_seasonal_q": 0,
                        }
                    )
                }
            ),
            "classification": test_config.classification.model_copy(
                update={
                    "forest_estimators": 25,
                    "forest_grid": {"max_features": [2, 4]},
                    "cv_folds": 3,
                }
            ),
        }
    )


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def sample_raw_shootings() -> pd.DataFrame:
    """Raw rows in the NYPD export layout, including dirty values."""
    return pd.DataFrame(
        {
            "INCIDENT_KEY": ["1001", "1002", "1003", "1002", "1004", "1005"],
            "OCCUR_DATE": [
                "01/15/2021",
                "02/03/2021",
                "02/28/2021",
                "02/03/2021",
                "03/10/2021",
                "03/22/2021",
            ],
            "OCCUR_TIME": ["14:30:00", "23:05:00", "02:15:00", "23:05:00", "18:00:00", "09:45:00"],
            "BORO": ["BRONX", "Brooklyn", "QUEENS", "BROOKLYN", "(null)", "STATEN ISLAND"],
            "PRECINCT": ["44", "75", "113", "75", "", "120"],
            "STATISTICAL_MURDER_FLAG": ["false", "true", "N", "true", "Y", "false"],
            "VIC_AGE_GROUP": ["25-44", "18-24", "1022", "18-24", "<18", "UNKNOWN"],
            "VIC_SEX": ["M", "M", "F", "M", "U", "F"],
            "VIC_RACE": [
                "BLACK",
                "WHITE HISPANIC",
                "BLACK HISPANIC",
                "WHITE HISPANIC",
                "AMERICAN INDIAN/ALASKAN NATIVE",
                "(null)",
            ],
            "Latitude": ["40.8370", "40.6700", "40.7000", "40.6700", "0.0", "40.5800"],
            "Longitude": ["-73.9190", "-73.9000", "-73.8000", "-73.9000", "0.0", "-74.1500"],
        }
    )


def make_canonical_records(n: int = 240, seed: int = 0, fatal_rate: float = 0.2) -> pd.DataFrame:
    """Synthetic canonical records spread over 2017-2021."""
    rng = np.random.default_rng(seed)
    start = pd.Timestamp("2017-01-01")
    days = rng.integers(0, 365 * 5, size=n)
    dates = (start + pd.to_timedelta(days, unit="D")).normalize()
    hours = rng.integers(0, 24, size=n)

    return pd.DataFrame(
        {
            "incident_key": [f"K{i:05d}" for i in range(n)],
            "occur_date": dates,
            "occur_time": [time(int(h), 0) for h in hours],
            "borough": rng.choice(
                ["BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND", "UNKNOWN"], size=n
            ),
            "precinct": pd.array(rng.integers(1, 124, size=n), dtype="Int64"),
            "is_fatal": rng.random(n) < fatal_rate,
            "vic_age_group": rng.choice(["<18", "18-24", "25-44", "45-64", "65+", "UNKNOWN"], size=n),
            "vic_sex": rng.choice(["F", "M", "UNKNOWN"], size=n),
            "vic_race": rng.choice(["BLACK", "HISPANIC", "WHITE", "OTHER", "UNKNOWN"], size=n),
            "latitude": rng.uniform(40.55, 40.9, size=n),
            "longitude": rng.uniform(-74.2, -73.75, size=n),
        }
    )


def make_raw_shootings(n: int = 720, seed: int = 0, fatal_rate: float = 0.3) -> pd.DataFrame:
    """Synthetic raw export rows covering every month of 2018-2021."""
    rng = np.random.default_rng(seed)
    start = pd.Timestamp("2018-01-01")
    end = pd.Timestamp("2021-12-31")
    dates = start + pd.to_timedelta(rng.integers(0, (end - start).days + 1, size=n), unit="D")
    # Pin both ends of the range
    dates = dates.to_series().reset_index(drop=True)
    dates.iloc[0] = start
    dates.iloc[1] = end
    hours = rng.integers(0, 24, size=n)
    minutes = rng.integers(0, 60, size=n)

    return pd.DataFrame(
        {
            "INCIDENT_KEY": [str(100000 + i) for i in range(n)],
            "OCCUR_DATE": dates.dt.strftime("%m/%d/%Y"),
            "OCCUR_TIME": [f"{h:02d}:{m:02d}:00" for h, m in zip(hours, minutes, strict=True)],
            "BORO": rng.choice(
                ["BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND"], size=n
            ),
            "PRECINCT": rng.integers(1, 124, size=n).astype(str),
            "STATISTICAL_MURDER_FLAG": np.where(rng.random(n) < fatal_rate, "true", "false"),
            "VIC_AGE_GROUP": rng.choice(["<18", "18-24", "25-44", "45-64", "65+"], size=n),
            "VIC_SEX": rng.choice(["F", "M"], size=n),
            "VIC_RACE": rng.choice(
                ["BLACK", "WHITE HISPANIC", "WHITE", "ASIAN / PACIFIC ISLANDER"], size=n
            ),
            "Latitude": [f"{v:.4f}" for v in rng.uniform(40.55, 40.9, size=n)],
            "Longitude": [f"{v:.4f}" for v in rng.uniform(-74.2, -73.75, size=n)],
        }
    )


@pytest.fixture
def raw_shootings() -> pd.DataFrame:
    """Raw export rows large enough for the full pipeline."""
    return make_raw_shootings()


@pytest.fixture
def borough_population() -> pd.DataFrame:
    """Borough population table."""
    return pd.DataFrame(
        {
            "Borough": ["Bronx", "Brooklyn", "Manhattan", "Queens", "Staten Island"],
            "Population": [1_472_654, 2_736_074, 1_694_251, 2_405_464, 495_747],
        }
    )


@pytest.fixture
def canonical_records() -> pd.DataFrame:
    """Canonical records as produced by the normalizer."""
    return make_canonical_records()


@pytest.fixture
def records_factory() -> Any:
    """Factory for canonical records with a chosen size, seed and fatal rate."""
    return make_canonical_records


# =============================================================================
# Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def cleanup_env() -> Generator[None, None, None]:
    """Clean up environment variables after each test."""
    original_env = os.environ.copy()
    yield
    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
