#!/usr/bin/env python3
"""
Layoffs Cleaning & Reporting Pipeline

Loads the raw layoffs CSV into SQLite, copies it into a staging table, cleans
the staging table in place, checks it against the data-quality assertions and
builds the aggregate reports. Cleaned data and reports are exported as Parquet
or CSV and can optionally be published to S3.
"""

import argparse
import os
import sqlite3
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from layoffs_pipeline import config
from layoffs_pipeline.cleaning import clean_staging_table
from layoffs_pipeline.exceptions import DataQualityError, PipelineError
from layoffs_pipeline.quality import assert_clean, run_quality_checks
from layoffs_pipeline.raw import create_staging_table, ingest_csv
from layoffs_pipeline.reports import DEFAULT_TOP_N, REPORTS, run_all_reports, run_report
from layoffs_pipeline.storage import S3Uploader
from utils.logger import setup_logger

logger = setup_logger("Layoffs_Pipeline", log_file="layoffs_pipeline.log")

EXPORT_FORMATS = ("parquet", "csv")


class LayoffsPipeline:
    """Runs the layoffs cleaning and reporting pipeline against a SQLite database."""

    def __init__(self, db_path: str = config.DB_PATH, export_dir: str = config.EXPORT_DIR):
        """
        Initialize the pipeline with database path.

        Args:
            db_path: Path to the SQLite database file
            export_dir: Directory for exported tables and reports
        """
        self.db_path = db_path
        self.export_dir = export_dir
        self._ensure_db_directory()

    def _ensure_db_directory(self) -> None:
        """Ensure the database directory exists."""
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        """
        Create a connection to the SQLite database.

        Returns:
            SQLite connection object
        """
        return sqlite3.connect(self.db_path)

    def load(self, csv_file: str) -> int:
        """
        Load the CSV into the raw table and build a fresh staging copy.

        Returns:
            Number of rows in the staging table
        """
        conn = self.connect()
        try:
            ingest_csv(csv_file, conn)
            return create_staging_table(conn)
        finally:
            conn.close()

    def clean(self) -> Dict[str, int]:
        """Clean the staging table in place."""
        conn = self.connect()
        try:
            return clean_staging_table(conn)
        finally:
            conn.close()

    def check_quality(self, strict: bool = True) -> Dict[str, int]:
        """
        Run the acceptance checks on the cleaned table.

        Args:
            strict: Raise DataQualityError on failures instead of only logging them
        """
        conn = self.connect()
        try:
            if strict:
                return assert_clean(conn)
            return run_quality_checks(conn)
        finally:
            conn.close()

    def build_reports(self, top_n: int = DEFAULT_TOP_N) -> Dict[str, pd.DataFrame]:
        conn = self.connect()
        try:
            return run_all_reports(conn, top_n=top_n)
        finally:
            conn.close()

    def build_report(self, name: str, top_n: int = DEFAULT_TOP_N) -> pd.DataFrame:
        conn = self.connect()
        try:
            return run_report(conn, name, top_n=top_n)
        finally:
            conn.close()

    @staticmethod
    def _write_frame(df: pd.DataFrame, output_file: str, fmt: str) -> None:
        if fmt == "parquet":
            df.to_parquet(output_file, index=False)
        else:
            df.to_csv(output_file, index=False)

    @staticmethod
    def _check_format(fmt: str) -> None:
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format '{fmt}', expected one of {EXPORT_FORMATS}")

    def export_table(
        self,
        table: str = config.STAGING_TABLE,
        output_dir: Optional[str] = None,
        fmt: str = "parquet"
    ) -> Optional[str]:
        """
        Export a table to a timestamped Parquet or CSV file.

        Returns:
            Path to the exported file, or None if the table is empty
        """
        self._check_format(fmt)
        output_dir = output_dir or self.export_dir
        os.makedirs(output_dir, exist_ok=True)

        if table not in (config.RAW_TABLE, config.STAGING_TABLE):
            raise ValueError(f"Invalid table: {table}")

        conn = self.connect()
        try:
            df = pd.read_sql(f"SELECT * FROM {table}", conn)
        finally:
            conn.close()

        if df.empty:
            logger.warning(f"Table '{table}' is empty. No data to export.")
            return None

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        output_file = os.path.join(output_dir, f"{table}_{timestamp}.{fmt}")
        self._write_frame(df, output_file, fmt)
        logger.info(f"Exported {len(df)} records from table '{table}' to {output_file}")
        return output_file

    def export_reports(
        self,
        reports: Dict[str, pd.DataFrame],
        output_dir: Optional[str] = None,
        fmt: str = "parquet"
    ) -> Dict[str, str]:
        """
        Export each report to its own timestamped file.

        Returns:
            Mapping of report name to exported file path
        """
        self._check_format(fmt)
        output_dir = output_dir or self.export_dir
        os.makedirs(output_dir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        exported = {}
        for name, df in reports.items():
            output_file = os.path.join(output_dir, f"{name}_{timestamp}.{fmt}")
            self._write_frame(df, output_file, fmt)
            exported[name] = output_file
        logger.info(f"Exported {len(exported)} reports to {output_dir}")
        return exported

    def get_table_stats(self) -> Dict[str, int]:
        """
        Get record counts for the raw and staging tables.

        Returns:
            Dictionary with record counts, 0 for tables that do not exist yet
        """
        conn = self.connect()
        try:
            stats = {}
            for key, table in (("raw_count", config.RAW_TABLE), ("staging_count", config.STAGING_TABLE)):
                exists = conn.execute(
                    "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
                ).fetchone()[0]
                stats[key] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] if exists else 0
            return stats
        finally:
            conn.close()

    def run_pipeline(
        self,
        csv_file: str,
        top_n: int = DEFAULT_TOP_N,
        export: bool = True,
        fmt: str = "parquet",
        strict: bool = True
    ) -> Dict[str, Any]:
        """
        Run the full pipeline.

        Args:
            csv_file: Path to the raw layoffs CSV
            top_n: Companies per year kept in the ranking report
            export: Whether to write the cleaned table and reports to disk
            fmt: Export format, parquet or csv
            strict: Fail on data-quality check failures

        Returns:
            Dictionary with the cleaning summary, quality results, reports,
            exported file paths and table statistics

        Raises:
            PipelineError: if any stage fails
        """
        logger.info(f"Starting layoffs pipeline for {csv_file}")
        try:
            self.load(csv_file)
            cleaning = self.clean()
            quality = self.check_quality(strict=strict)
            reports = self.build_reports(top_n=top_n)

            exported: Dict[str, Optional[str]] = {}
            if export:
                exported[config.STAGING_TABLE] = self.export_table(config.STAGING_TABLE, fmt=fmt)
                exported.update(self.export_reports(reports, fmt=fmt))
        except DataQualityError as e:
            logger.error(f"Cleaned data failed acceptance checks: {e.failures}")
            raise
        except PipelineError as e:
            logger.error(f"Error running pipeline: {e}")
            raise
        except (OSError, ValueError, ImportError) as e:
            logger.error(f"Error exporting pipeline outputs: {e}")
            raise PipelineError(f"Export failed: {e}") from e

        stats = self.get_table_stats()
        logger.info(f"Pipeline completed successfully. Table statistics: {stats}")
        return {
            'cleaning': cleaning,
            'quality': quality,
            'reports': reports,
            'exported': exported,
            'stats': stats,
        }


def publish(paths: List[str], bucket: str) -> Dict[str, Optional[str]]:
    """Upload exported files to S3."""
    uploader = S3Uploader(bucket=bucket, region=config.AWS_REGION, prefix=config.S3_PREFIX)
    return uploader.upload_files(paths)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Clean the layoffs dataset and build its reports')
    parser.add_argument('--csv', type=str, default=config.CSV_PATH, help='Path to input CSV file')
    parser.add_argument('--db', type=str, default=config.DB_PATH, help='Path to SQLite database')
    parser.add_argument('--export-dir', type=str, default=config.EXPORT_DIR, help='Directory for exported files')
    parser.add_argument('--format', type=str, choices=EXPORT_FORMATS, default='parquet',
                        help='Export file format (default: parquet)')
    parser.add_argument('--top-n', type=_positive_int, default=DEFAULT_TOP_N,
                        help=f'Companies per year in the ranking report (default: {DEFAULT_TOP_N})')
    parser.add_argument('--report', type=str, choices=sorted(REPORTS),
                        help='Print one report from an existing database without reprocessing')
    parser.add_argument('--no-export', action='store_true', help='Skip writing export files')
    parser.add_argument('--upload-bucket', type=str, default=config.S3_BUCKET,
                        help='S3 bucket to publish exported files to')
    parser.add_argument('--lenient', action='store_true',
                        help='Log data-quality failures instead of aborting')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point for the pipeline."""
    args = build_parser().parse_args(argv)
    pipeline = LayoffsPipeline(db_path=args.db, export_dir=args.export_dir)

    if args.report:
        try:
            df = pipeline.build_report(args.report, top_n=args.top_n)
        except PipelineError as e:
            logger.error(f"Could not build report '{args.report}': {e}")
            return 1
        print(df.to_string(index=False))
        return 0

    try:
        result = pipeline.run_pipeline(
            csv_file=args.csv,
            top_n=args.top_n,
            export=not args.no_export,
            fmt=args.format,
            strict=not args.lenient,
        )
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    print("Pipeline execution completed:")
    for step, count in result['cleaning'].items():
        print(f"  {step}: {count} rows")
    print("\nQuality checks:")
    for check, count in result['quality'].items():
        print(f"  {check}: {'OK' if count == 0 else f'{count} failing'}")

    exported = [path for path in result['exported'].values() if path]
    if exported:
        print(f"\nExported {len(exported)} files to {args.export_dir}")

    if args.upload_bucket and exported:
        uploads = publish(exported, args.upload_bucket)
        failed = [path for path, uri in uploads.items() if uri is None]
        print(f"Uploaded {len(uploads) - len(failed)} of {len(uploads)} files to s3://{args.upload_bucket}")
        if failed:
            return 1

    stats = result['stats']
    print("\nTable statistics:")
    print(f"Raw table: {stats['raw_count']} records")
    print(f"Staging table: {stats['staging_count']} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
