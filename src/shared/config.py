"""
NYC Shooting Insights - Configuration Loader

Pydantic-based configuration management with:
- Environment-based configuration (dev/prod)
- YAML file loading with inheritance
- Environment variable overrides
- Type validation via Pydantic

Usage:
    from src.shared.config import get_config

    config = get_config()  # Uses NSI_ENVIRONMENT env var
    config = get_config("dev")  # Explicit environment

    # Access config values
    horizon = config.forecast.horizon_months
    folds = config.classification.cv_folds
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENVIRONMENTS = ("dev", "prod")

# =============================================================================
# Configuration Models
# =============================================================================


class ProjectConfig(BaseModel):
    """Project metadata configuration."""

    name: str = "nyc-shooting-insights"
    version: str = "0.1.0"
    description: str = "Forecasting and classification of fatal NYC shooting incidents"


class NormalizationConfig(BaseModel):
    """Record normalization configuration."""

    date_format: str = "%m/%d/%Y"
    time_format: str = "%H:%M:%S"
    truthy_tokens: list[str] = Field(default_factory=lambda: ["TRUE", "Y", "YES", "1"])
    falsy_tokens: list[str] = Field(default_factory=lambda: ["FALSE", "N", "NO", "0"])
    sentinels: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "borough": ["(NULL)", "UNKNOWN", ""],
            "vic_age_group": ["1022", "1020", "940", "224", "(NULL)", "UNKNOWN", ""],
            "vic_sex": ["U", "(NULL)", "UNKNOWN", ""],
            "vic_race": ["(NULL)", "UNKNOWN", ""],
        }
    )
    recodes: dict[str, dict[str, str]] = Field(
        default_factory=lambda: {
            "vic_race": {
                "BLACK HISPANIC": "HISPANIC",
                "WHITE HISPANIC": "HISPANIC",
                "AMERICAN INDIAN/ALASKAN NATIVE": "OTHER",
            }
        }
    )


class GeoBoundsConfig(BaseModel):
    """Geographic bounds for New York City."""

    min_lat: float = 40.49
    max_lat: float = 40.92
    min_lon: float = -74.27
    max_lon: float = -73.68


class ValidationConfig(BaseModel):
    """Validation configuration."""

    geo_bounds: GeoBoundsConfig = Field(default_factory=GeoBoundsConfig)


class FeaturesConfig(BaseModel):
    """Feature layout configuration."""

    label_field: str = "is_fatal"
    year_origin: int = 2006


class OrderSearchConfig(BaseModel):
    """Bounds of the (p, d, q) x (P, D, Q) order search."""

    max_p: int = 2
    max_d: int = 1
    max_q: int = 2
    max_seasonal_p: int = 1
    max_seasonal_d: int = 1
    max_seasonal_q: int = 1
    max_iterations: int = 200


class ForecastConfig(BaseModel):
    """Time-series forecasting configuration."""

    outcome_filter: Literal["all", "positive_only", "negative_only"] = "positive_only"
    decomposition_model: Literal["additive", "multiplicative"] = "additive"
    seasonal_period: int = 12
    horizon_months: int = 120
    confidence_level: float = 0.95
    ljung_box_lags: list[int] = Field(default_factory=lambda: [5, 10, 15])
    white_noise_alpha: float = 0.05
    information_criterion: Literal["aic", "bic"] = "aic"
    search: OrderSearchConfig = Field(default_factory=OrderSearchConfig)

    @field_validator("confidence_level")
    @classmethod
    def validate_confidence_level(cls, v: float) -> float:
        """Confidence level must be a proper probability."""
        if not 0.0 < v < 1.0:
            raise ValueError(f"confidence_level must be in (0, 1), got {v}")
        return v


class ClassificationConfig(BaseModel):
    """Classifier training configuration."""

    split_ratio: float = 0.8
    cv_folds: int = 3
    random_seed: int = 42
    balance_training: bool = True
    logistic_max_iter: int = 1000
    logistic_grid: dict[str, list[Any]] = Field(default_factory=lambda: {"C": [1.0]})
    forest_estimators: int = 200
    forest_grid: dict[str, list[Any]] = Field(
        default_factory=lambda: {"max_features": [2, 4, 8, 16]}
    )
    search_timeout_seconds: float | None = None
    n_jobs: int = 1

    @field_validator("split_ratio")
    @classmethod
    def validate_split_ratio(cls, v: float) -> float:
        """Split ratio must leave rows on both sides."""
        if not 0.0 < v < 1.0:
            raise ValueError(f"split_ratio must be in (0, 1), got {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"
    include_timestamp: bool = True


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main configuration class for NYC Shooting Insights.

    Loads configuration from:
    1. YAML files in configs/environments/
    2. Environment variables

    Environment variables take precedence over YAML values.
    """

    model_config = SettingsConfigDict(
        env_prefix="NSI_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "prod"] = "dev"

    # Configuration sections
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment variables override values loaded from YAML."""
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        if v not in ENVIRONMENTS:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {ENVIRONMENTS}")
        return v


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _get_config_dir() -> Path:
    """Get the configuration directory path."""
    # Try relative path from project root
    config_dir = Path(__file__).parent.parent.parent / "configs"
    if config_dir.exists():
        return config_dir

    # Try from current working directory
    config_dir = Path.cwd() / "configs"
    if config_dir.exists():
        return config_dir

    raise FileNotFoundError(
        "Could not find configs directory. Ensure you're running from the project root."
    )


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_config_for_environment(environment: str) -> dict[str, Any]:
    """Load and merge configuration for a specific environment."""
    config_dir = _get_config_dir()
    env_dir = config_dir / "environments"

    base_config = _load_yaml_file(env_dir / "base.yaml")
    env_config = _load_yaml_file(env_dir / f"{environment}.yaml")

    # Remove inheritance marker if present
    env_config.pop("_inherit", None)

    merged = _deep_merge(base_config, env_config)
    merged["environment"] = environment

    return merged


@lru_cache(maxsize=4)
def get_config(environment: str | None = None) -> Settings:
    """
    Get configuration for the specified environment.

    Args:
        environment: Environment name (dev, prod).
                    If None, uses NSI_ENVIRONMENT env var, defaulting to "dev".

    Returns:
        Settings: Validated configuration object.

    Example:
        config = get_config()  # Uses NSI_ENVIRONMENT or defaults to dev
        config = get_config("prod")  # Explicit production config

        folds = config.classification.cv_folds
    """
    if environment is None:
        environment = os.getenv("NSI_ENVIRONMENT", "dev")
    if environment not in ENVIRONMENTS:
        raise ValueError(f"Invalid environment: {environment}. Must be one of: {ENVIRONMENTS}")

    yaml_config = _load_config_for_environment(environment)

    # Create Settings object (also loads env vars)
    settings = Settings(**yaml_config)

    # The requested environment wins over NSI_ENVIRONMENT
    if settings.environment != environment:
        settings = settings.model_copy(update={"environment": environment})
    return settings


def reload_config(environment: str | None = None) -> Settings:
    """
    Reload configuration, clearing the cache.

    Useful for testing or when config files have changed.
    """
    get_config.cache_clear()
    return get_config(environment)
