"""
Shooting Analysis Script
Runs the forecasting and classification pipeline on an NYPD shooting export
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.pipeline.runner import ShootingAnalysisPipeline  # noqa: E402
from src.shared.config import get_config  # noqa: E402
from src.shared.errors import PipelineError  # noqa: E402

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with the message escaped."""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        payload = {}
        if self.include_timestamp:
            payload["time"] = self.formatTime(record)
        payload["logger"] = record.name
        payload["level"] = record.levelname
        payload["message"] = record.getMessage()
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def build_formatter(config) -> logging.Formatter:
    """Formatter for the configured log format."""
    if config.logging.format == "json":
        return JsonFormatter(include_timestamp=config.logging.include_timestamp)
    fmt = TEXT_FORMAT
    if not config.logging.include_timestamp:
        fmt = fmt.replace("%(asctime)s - ", "")
    return logging.Formatter(fmt)


def configure_logging(config) -> None:
    """Set up root logging from the logging config section."""
    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(config))
    logging.basicConfig(level=config.logging.level, handlers=[handler])


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="NYC shooting incident analysis")
    parser.add_argument("input_path", help="Raw NYPD shooting incident CSV")
    parser.add_argument("--population", dest="population_path", help="Borough population CSV")
    parser.add_argument(
        "--environment",
        choices=["dev", "prod"],
        default=os.getenv("NSI_ENVIRONMENT", "dev"),
        help="Configuration environment",
    )
    parser.add_argument("--execution-date", help="Execution date (YYYY-MM-DD)")
    return parser.parse_args(argv)


def log_summary(result) -> None:
    """Log the headline numbers of a pipeline run"""
    norm = result.normalization
    logger.info(
        f"Records: {norm.rows_output} kept, {norm.duplicates_removed} duplicates removed, "
        f"{len(norm.malformed_records)} malformed"
    )

    forecast = result.forecast
    logger.info(
        f"Forecast: SARIMA{forecast.order}x{forecast.seasonal_order}, "
        f"{forecast.horizon} months from {forecast.point_forecast.index[0].date()}, "
        f"residuals white: {forecast.residuals_look_white()}"
    )

    if result.borough_rates is not None:
        for row in result.borough_rates.itertuples():
            logger.info(f"  {row.borough}: {row.rate:.2f} per 100k ({row.incidents} incidents)")

    for kind, report in result.classifiers.items():
        logger.info(
            f"{kind}: accuracy={report.accuracy:.3f} sensitivity={report.sensitivity:.3f} "
            f"specificity={report.specificity:.3f} kappa={report.kappa:.3f} "
            f"params={report.model.best_params}"
        )
    for kind, error in result.classifier_errors.items():
        logger.warning(f"{kind}: not trained ({error})")


def main(argv=None) -> int:
    args = parse_args(argv)
    config = get_config(args.environment)
    configure_logging(config)

    raw_df = pd.read_csv(args.input_path, dtype=str, keep_default_na=False)
    logger.info(f"Loaded {len(raw_df)} rows from {args.input_path}")

    population_df = None
    if args.population_path:
        population_df = pd.read_csv(args.population_path)

    try:
        result = ShootingAnalysisPipeline(config).run(
            raw_df, population_df=population_df, execution_date=args.execution_date
        )
    except PipelineError as e:
        logger.error(f"Shooting analysis failed: {e}")
        return 1

    log_summary(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
