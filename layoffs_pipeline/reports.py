import sqlite3
from functools import partial
from typing import Callable, Dict

import pandas as pd

from layoffs_pipeline.config import BUSINESS_COLUMNS, STAGING_TABLE
from layoffs_pipeline.exceptions import ReportError
from utils.logger import setup_logger

logger = setup_logger("Reports", log_file="layoffs_pipeline.log")

DEFAULT_TOP_N = 3

YEAR_EXPR = """CAST(strftime('%Y', "date") AS INTEGER)"""

# Report dimension -> SQL expression it groups by
DIMENSIONS: Dict[str, str] = {
    "company": "company",
    "location": "location",
    "industry": "industry",
    "country": "country",
    "stage": "stage",
    "year": YEAR_EXPR,
}


def max_layoffs(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> pd.DataFrame:
    """Largest single layoff and largest share of staff laid off."""
    query = f"""
    SELECT
        MAX(total_laid_off) AS max_total_laid_off,
        MAX(percentage_laid_off) AS max_percentage_laid_off
    FROM {table}
    """
    return pd.read_sql(query, conn)


def full_shutdowns(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> pd.DataFrame:
    """Companies that laid off their entire staff, best funded first."""
    columns = ", ".join(f'"{col}"' for col in BUSINESS_COLUMNS)
    query = f"""
    SELECT {columns}
    FROM {table}
    WHERE percentage_laid_off = 1
    ORDER BY funds_raised_millions IS NULL, funds_raised_millions DESC, company
    """
    return pd.read_sql(query, conn)


def date_range(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> pd.DataFrame:
    query = f"""
    SELECT MIN("date") AS earliest_date, MAX("date") AS latest_date
    FROM {table}
    """
    return pd.read_sql(query, conn)


def totals_by(conn: sqlite3.Connection, dimension: str, table: str = STAGING_TABLE) -> pd.DataFrame:
    """
    Layoff totals grouped by a single dimension.

    Args:
        dimension: One of company, location, industry, country, stage or year

    Returns:
        DataFrame with the dimension, layoff_events, total_laid_off,
        largest_layoff and smallest_layoff, biggest totals first

    Raises:
        ValueError: for an unknown dimension
    """
    if dimension not in DIMENSIONS:
        raise ValueError(f"Unknown dimension '{dimension}', expected one of {sorted(DIMENSIONS)}")

    query = f"""
    SELECT
        {DIMENSIONS[dimension]} AS {dimension},
        COUNT(*) AS layoff_events,
        SUM(total_laid_off) AS total_laid_off,
        MAX(total_laid_off) AS largest_layoff,
        MIN(total_laid_off) AS smallest_layoff
    FROM {table}
    GROUP BY 1
    ORDER BY total_laid_off DESC, 1
    """
    return pd.read_sql(query, conn)


def rolling_monthly_totals(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> pd.DataFrame:
    """
    Layoffs per calendar month with a running total, in month order.

    Rows without a date are left out.
    """
    query = f"""
    WITH monthly AS (
        SELECT
            substr("date", 1, 7) AS month,
            COALESCE(SUM(total_laid_off), 0) AS total_laid_off
        FROM {table}
        WHERE "date" IS NOT NULL
        GROUP BY month
    )
    SELECT
        month,
        total_laid_off,
        SUM(total_laid_off) OVER (ORDER BY month) AS rolling_total
    FROM monthly
    ORDER BY month
    """
    return pd.read_sql(query, conn)


def top_companies_by_year(
    conn: sqlite3.Connection,
    top_n: int = DEFAULT_TOP_N,
    table: str = STAGING_TABLE
) -> pd.DataFrame:
    """
    The companies with the most layoffs in each year.

    Companies are dense-ranked within each year, so tied totals share a rank
    and a year can return more than top_n companies.

    Raises:
        ValueError: if top_n is less than 1
    """
    if top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")

    query = f"""
    WITH company_year AS (
        SELECT
            company,
            {YEAR_EXPR} AS year,
            SUM(total_laid_off) AS total_laid_off
        FROM {table}
        WHERE "date" IS NOT NULL
        GROUP BY company, year
    ),
    company_year_rank AS (
        SELECT
            year,
            company,
            total_laid_off,
            DENSE_RANK() OVER (PARTITION BY year ORDER BY total_laid_off DESC) AS ranking
        FROM company_year
        WHERE total_laid_off IS NOT NULL
    )
    SELECT year, company, total_laid_off, ranking
    FROM company_year_rank
    WHERE ranking <= ?
    ORDER BY year, ranking, company
    """
    return pd.read_sql(query, conn, params=(int(top_n),))


REPORTS: Dict[str, Callable[..., pd.DataFrame]] = {
    "max_layoffs": max_layoffs,
    "full_shutdowns": full_shutdowns,
    "date_range": date_range,
    "totals_by_company": partial(totals_by, dimension="company"),
    "totals_by_location": partial(totals_by, dimension="location"),
    "totals_by_industry": partial(totals_by, dimension="industry"),
    "totals_by_country": partial(totals_by, dimension="country"),
    "totals_by_stage": partial(totals_by, dimension="stage"),
    "totals_by_year": partial(totals_by, dimension="year"),
    "rolling_monthly_totals": rolling_monthly_totals,
    "top_companies_by_year": top_companies_by_year,
}

RANKED_REPORTS = {"top_companies_by_year"}


def run_report(conn: sqlite3.Connection, name: str, top_n: int = DEFAULT_TOP_N) -> pd.DataFrame:
    """
    Build one report from the catalog by name.

    Raises:
        ReportError: if the report is unknown or its query fails
    """
    if name not in REPORTS:
        raise ReportError(f"Unknown report '{name}', expected one of {sorted(REPORTS)}")

    try:
        if name in RANKED_REPORTS:
            return REPORTS[name](conn, top_n=top_n)
        return REPORTS[name](conn)
    except (sqlite3.Error, pd.errors.DatabaseError) as e:
        logger.error(f"Error building report '{name}': {e}")
        raise ReportError(f"Report '{name}' failed: {e}") from e


def run_all_reports(conn: sqlite3.Connection, top_n: int = DEFAULT_TOP_N) -> Dict[str, pd.DataFrame]:
    """
    Build every report in the catalog.

    Returns:
        Mapping of report name to DataFrame
    """
    results = {name: run_report(conn, name, top_n=top_n) for name in REPORTS}
    logger.info(f"Built {len(results)} reports")
    return results
