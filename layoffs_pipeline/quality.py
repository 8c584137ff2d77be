"""
Data-quality acceptance checks for the cleaned layoffs table.

Each check returns the number of offending rows (or spellings); a clean table
scores zero on every check.
"""
import sqlite3
from typing import Callable, Dict

from layoffs_pipeline.config import BUSINESS_COLUMNS, STAGING_TABLE, US_COUNTRY_PATTERN
from layoffs_pipeline.exceptions import DataQualityError
from utils.logger import setup_logger

logger = setup_logger("QualityChecks", log_file="layoffs_pipeline.log")


def count_duplicate_rows(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """Rows beyond the first within any partition of identical business columns."""
    partition = ", ".join(f'"{col}"' for col in BUSINESS_COLUMNS)
    query = f"""
    SELECT COUNT(*)
    FROM (
        SELECT ROW_NUMBER() OVER (PARTITION BY {partition} ORDER BY rowid) AS row_num
        FROM {table}
    )
    WHERE row_num > 1
    """
    return conn.execute(query).fetchone()[0]


def count_rows_missing_layoff_figures(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """Rows with neither total_laid_off nor percentage_laid_off."""
    query = f"""
    SELECT COUNT(*)
    FROM {table}
    WHERE total_laid_off IS NULL AND percentage_laid_off IS NULL
    """
    return conn.execute(query).fetchone()[0]


def count_invalid_dates(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """
    Non-NULL dates that are not valid ISO calendar dates.

    SQLite's date() rolls impossible days forward (2023-02-30 -> 2023-03-02), so
    a value is valid only if date() returns it unchanged.
    """
    query = f"""
    SELECT COUNT(*)
    FROM {table}
    WHERE "date" IS NOT NULL
      AND (typeof("date") != 'text' OR date("date") IS NULL OR date("date") != "date")
    """
    return conn.execute(query).fetchone()[0]


def count_unnormalized_countries(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """
    United States spellings still carrying a trailing period, plus any extra
    distinct spellings beyond a single one.
    """
    query = f"""
    SELECT
        SUM(CASE WHEN country LIKE '%.' THEN 1 ELSE 0 END),
        COUNT(DISTINCT country)
    FROM {table}
    WHERE TRIM(country) LIKE ?
    """
    trailing, spellings = conn.execute(query, (US_COUNTRY_PATTERN,)).fetchone()
    return (trailing or 0) + max((spellings or 0) - 1, 0)


QUALITY_CHECKS: Dict[str, Callable[[sqlite3.Connection], int]] = {
    "duplicate_rows": count_duplicate_rows,
    "missing_layoff_figures": count_rows_missing_layoff_figures,
    "invalid_dates": count_invalid_dates,
    "unnormalized_countries": count_unnormalized_countries,
}


def run_quality_checks(conn: sqlite3.Connection) -> Dict[str, int]:
    """
    Run every acceptance check.

    Returns:
        Mapping of check name to failure count
    """
    results = {name: check(conn) for name, check in QUALITY_CHECKS.items()}
    failed = {name: count for name, count in results.items() if count}
    if failed:
        logger.warning(f"Quality checks failed: {failed}")
    else:
        logger.info(f"All {len(results)} quality checks passed")
    return results


def assert_clean(conn: sqlite3.Connection) -> Dict[str, int]:
    """
    Run every acceptance check and raise if any of them fails.

    Raises:
        DataQualityError: listing every failing check and its count
    """
    results = run_quality_checks(conn)
    failed = {name: count for name, count in results.items() if count}
    if failed:
        raise DataQualityError(failed)
    return results
