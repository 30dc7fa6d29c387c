"""
Runtime settings for the pipeline.

Values come from the environment, optionally seeded from a ``.env`` file in the
working directory. Command-line flags in run_pipeline override them.
"""

import os
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_DB_PATH = "database/ecommerce_analysis.db"
DEFAULT_CUSTOMERS_CSV = "data/sample/customer_data.csv"
DEFAULT_SHIPMENTS_CSV = "data/sample/shipping_ecommerce.csv"
DEFAULT_EXPORT_DIR = "data/export"
DEFAULT_REGION = "us-east-1"


class UnknownCategoryPolicy(str, Enum):
    """What the cleaner does with categorical values it does not recognize."""

    PASS_THROUGH = "pass-through"
    LOG_AND_PASS_THROUGH = "log-and-pass-through"
    REJECT = "reject"


@dataclass
class PipelineSettings:
    db_path: str = DEFAULT_DB_PATH
    customers_csv: str = DEFAULT_CUSTOMERS_CSV
    shipments_csv: str = DEFAULT_SHIPMENTS_CSV
    export_dir: str = DEFAULT_EXPORT_DIR
    s3_bucket: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = DEFAULT_REGION
    unknown_category_policy: UnknownCategoryPolicy = UnknownCategoryPolicy.PASS_THROUGH
    assignment_seed: Optional[int] = None
    build_indexes: bool = True
    log_dir: Optional[str] = "logs"
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "PipelineSettings":
        """
        Build settings from environment variables.

        Args:
            dotenv_path: Optional path to a .env file (default: search from the working directory)

        Returns:
            PipelineSettings with defaults for anything not set
        """
        load_dotenv(dotenv_path)

        raw_policy = os.environ.get("UNKNOWN_CATEGORY_POLICY", UnknownCategoryPolicy.PASS_THROUGH.value)
        try:
            policy = UnknownCategoryPolicy(raw_policy)
        except ValueError:
            choices = ", ".join(p.value for p in UnknownCategoryPolicy)
            raise ConfigurationError(f"UNKNOWN_CATEGORY_POLICY must be one of {choices}, got {raw_policy!r}") from None

        seed = os.environ.get("ASSIGNMENT_SEED")
        try:
            assignment_seed = int(seed) if seed else None
        except ValueError:
            raise ConfigurationError(f"ASSIGNMENT_SEED must be an integer, got {seed!r}") from None

        level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
        return cls(
            db_path=os.environ.get("PIPELINE_DB_PATH", DEFAULT_DB_PATH),
            customers_csv=os.environ.get("CUSTOMERS_CSV", DEFAULT_CUSTOMERS_CSV),
            shipments_csv=os.environ.get("SHIPMENTS_CSV", DEFAULT_SHIPMENTS_CSV),
            export_dir=os.environ.get("EXPORT_DIR", DEFAULT_EXPORT_DIR),
            s3_bucket=os.environ.get("S3_BUCKET") or None,
            aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
            aws_region=os.environ.get("AWS_REGION", DEFAULT_REGION),
            unknown_category_policy=policy,
            assignment_seed=assignment_seed,
            build_indexes=os.environ.get("BUILD_INDEXES", "1").lower() not in ("0", "false", "no"),
            log_dir=os.environ.get("LOG_DIR", "logs") or None,
            log_level=getattr(logging, level_name, logging.INFO),
        )
