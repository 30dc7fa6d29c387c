#!/usr/bin/env python3
"""
Customer & shipping analysis pipeline.

Runs the three stages in order against one SQLite database:

    bronze - load both CSV files verbatim into staging tables
    silver - clean both tables in place
    gold   - link shipments to customers, create the summary views and indexes

and optionally exports the results to Parquet and uploads them to S3.
"""

import os
import sys
import sqlite3
import logging
import argparse
import datetime
from contextlib import closing
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from utils.logger import setup_logger

from .analysis import data_quality_profile
from .bronze import ingest_customers, ingest_shipments
from .config import PipelineSettings, UnknownCategoryPolicy
from .errors import CleaningIncomplete, ConfigurationError, PipelineError
from .export import export_table_to_parquet, upload_file_to_s3
from .gold import (
    CUSTOMER_SPENDING_VIEW,
    SHIPMENT_PERFORMANCE_VIEW,
    AssignmentStrategy,
    RandomCustomerAssignment,
    ReconcileReport,
    reconcile,
)
from .schemas import CUSTOMER_TABLE, SHIPPING_TABLE
from .silver import CleaningReport, clean_customers, clean_shipments

logger = logging.getLogger("ETL_Pipeline")

EXPORTED_OBJECTS = (CUSTOMER_TABLE, SHIPPING_TABLE, CUSTOMER_SPENDING_VIEW, SHIPMENT_PERFORMANCE_VIEW)


@dataclass
class PipelineResult:
    loaded: Dict[str, int]
    cleaning: Dict[str, CleaningReport]
    reconcile: ReconcileReport
    exported: Dict[str, str] = field(default_factory=dict)
    uploaded: List[str] = field(default_factory=list)


class ShippingAnalysisPipeline:
    """Loads, cleans and summarises the customer and shipping datasets in SQLite."""

    def __init__(
        self,
        db_path: Optional[str] = None,
        settings: Optional[PipelineSettings] = None,
        strategy: Optional[AssignmentStrategy] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            db_path: Path to the SQLite database file (overrides settings.db_path)
            settings: Pipeline settings (default: built-in defaults)
            strategy: Customer assignment strategy (default: random, seeded from settings)
        """
        self.settings = settings or PipelineSettings()
        self.db_path = db_path or self.settings.db_path
        self.strategy = strategy or RandomCustomerAssignment(self.settings.assignment_seed)
        self._ensure_db_directory()

    def _ensure_db_directory(self) -> None:
        """Ensure the database directory exists."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def load(self, customers_csv: Optional[str] = None, shipments_csv: Optional[str] = None) -> Dict[str, int]:
        """
        Load both CSV files into fresh staging tables.

        Returns:
            Rows loaded per table
        """
        customers_csv = customers_csv or self.settings.customers_csv
        shipments_csv = shipments_csv or self.settings.shipments_csv
        with closing(self.connect()) as conn:
            loaded = {
                CUSTOMER_TABLE: ingest_customers(conn, customers_csv),
                SHIPPING_TABLE: ingest_shipments(conn, shipments_csv),
            }
            profile = data_quality_profile(conn)
        logger.info(f"Raw data quality: {profile}")
        return loaded

    def clean(self) -> Dict[str, CleaningReport]:
        """
        Clean both tables.

        Both tables are cleaned even when the first one fails; the first
        failure is raised afterwards.
        """
        policy = self.settings.unknown_category_policy
        reports = {}
        failures = []
        with closing(self.connect()) as conn:
            for table, cleaner in ((CUSTOMER_TABLE, clean_customers), (SHIPPING_TABLE, clean_shipments)):
                try:
                    reports[table] = cleaner(conn, policy)
                except CleaningIncomplete as e:
                    reports[table] = e.report
                    failures.append(e)
        if failures:
            raise failures[0]
        return reports

    def reconcile(self) -> ReconcileReport:
        with closing(self.connect()) as conn:
            return reconcile(conn, self.strategy, build_indexes=self.settings.build_indexes)

    def export_data(self, output_dir: Optional[str] = None) -> Dict[str, str]:
        """
        Export the cleaned tables and the summary views to timestamped Parquet files.

        Returns:
            Mapping of exported table/view name to file path (empty ones are skipped)
        """
        output_dir = output_dir or self.settings.export_dir
        ts = datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        exported = {}
        with closing(self.connect()) as conn:
            for name in EXPORTED_OBJECTS:
                output_file = os.path.join(output_dir, f"{ts}_{name}.parquet")
                if export_table_to_parquet(conn, name, output_file):
                    exported[name] = output_file
        return exported

    def upload_exports(self, exported: Dict[str, str], bucket: Optional[str] = None) -> List[str]:
        """
        Upload exported files to S3.

        Returns:
            Paths of the files that were uploaded
        """
        bucket = bucket or self.settings.s3_bucket
        if not bucket:
            return []
        uploaded = []
        for path in exported.values():
            if upload_file_to_s3(path, bucket, os.path.basename(path), self.settings):
                uploaded.append(path)
        return uploaded

    def get_table_stats(self) -> Dict[str, int]:
        """
        Get record counts for each table and view.

        Tables or views that do not exist yet are reported as -1.
        """
        stats = {}
        with closing(self.connect()) as conn:
            for name in EXPORTED_OBJECTS:
                try:
                    stats[name] = conn.execute(f"SELECT COUNT(*) FROM {name}").fetchone()[0]
                except sqlite3.OperationalError:
                    stats[name] = -1
        return stats

    def run_pipeline(
        self,
        customers_csv: Optional[str] = None,
        shipments_csv: Optional[str] = None,
        export: bool = True,
    ) -> PipelineResult:
        """
        Run bronze, silver and gold in order, then export.

        A stage that fails stops the run; earlier stages stay committed.
        """
        logger.info("Starting ETL pipeline...")
        loaded = self.load(customers_csv, shipments_csv)
        logger.info("Bronze layer processing completed successfully.")

        cleaning = self.clean()
        logger.info("Silver layer processing completed successfully.")

        reconciled = self.reconcile()
        logger.info("Gold layer processing completed successfully.")

        result = PipelineResult(loaded=loaded, cleaning=cleaning, reconcile=reconciled)
        if export:
            result.exported = self.export_data()
            result.uploaded = self.upload_exports(result.exported)

        logger.info(f"Pipeline completed successfully. Table statistics: {self.get_table_stats()}")
        return result


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Load, clean and summarise the customer and shipping datasets')
    parser.add_argument('--customers', type=str, help='Path to the customer CSV file')
    parser.add_argument('--shipments', type=str, help='Path to the shipping CSV file')
    parser.add_argument('--db', type=str, help='Path to SQLite database')
    parser.add_argument('--export-dir', type=str, help='Directory for exported Parquet files')
    parser.add_argument('--s3-bucket', type=str, help='Upload exported files to this S3 bucket')
    parser.add_argument('--seed', type=int, help='Seed for the random customer assignment')
    parser.add_argument('--unknown-category-policy', type=str,
                        choices=[policy.value for policy in UnknownCategoryPolicy],
                        help='What to do with unrecognized categorical values')
    parser.add_argument('--no-indexes', action='store_true', help='Skip creating the lookup indexes')
    parser.add_argument('--no-export', action='store_true', help='Do not export results to Parquet')
    parser.add_argument('--export-only', action='store_true', help='Only export data without processing')
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> PipelineSettings:
    """Environment settings with command-line overrides applied."""
    settings = PipelineSettings.from_env()
    if args.customers:
        settings.customers_csv = args.customers
    if args.shipments:
        settings.shipments_csv = args.shipments
    if args.db:
        settings.db_path = args.db
    if args.export_dir:
        settings.export_dir = args.export_dir
    if args.s3_bucket:
        settings.s3_bucket = args.s3_bucket
    if args.seed is not None:
        settings.assignment_seed = args.seed
    if args.unknown_category_policy:
        settings.unknown_category_policy = UnknownCategoryPolicy(args.unknown_category_policy)
    if args.no_indexes:
        settings.build_indexes = False
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point for the pipeline."""
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logger("ETL_Pipeline", log_file="etl_pipeline.log", level=settings.log_level, log_dir=settings.log_dir)

    pipeline = ShippingAnalysisPipeline(settings=settings)
    try:
        if args.export_only:
            exported = pipeline.export_data()
            pipeline.upload_exports(exported)
        else:
            pipeline.run_pipeline(export=not args.no_export)
    except (PipelineError, sqlite3.Error) as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    stats = pipeline.get_table_stats()
    print("\nTable statistics:")
    for name, count in stats.items():
        print(f"{name}: {count} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
