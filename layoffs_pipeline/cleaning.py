import sqlite3
from typing import Callable, Dict, Iterable, List, Mapping, Tuple

import pandas as pd

from layoffs_pipeline.config import BUSINESS_COLUMNS, STAGING_TABLE, US_COUNTRY_NAME, US_COUNTRY_PATTERN
from layoffs_pipeline.exceptions import CleaningError
from utils.logger import setup_logger

logger = setup_logger("CleaningLayer", log_file="layoffs_pipeline.log")

# LIKE pattern -> canonical industry label
INDUSTRY_ALIASES: Dict[str, str] = {
    "Crypto%": "Crypto",
}

# LIKE pattern (matched against the trimmed value) -> canonical country name
COUNTRY_ALIASES: Dict[str, str] = {
    US_COUNTRY_PATTERN: US_COUNTRY_NAME,
}

NULLABLE_TEXT_COLUMNS: Tuple[str, ...] = ("industry", "stage")

SOURCE_DATE_FORMAT = "%m/%d/%Y"
ISO_DATE_FORMAT = "%Y-%m-%d"

_PARTITION = ", ".join(f'"{col}"' for col in BUSINESS_COLUMNS)


def _check_columns(columns: Iterable[str]) -> List[str]:
    columns = list(columns)
    unknown = [col for col in columns if col not in BUSINESS_COLUMNS]
    if unknown:
        raise ValueError(f"Unknown columns: {unknown}")
    return columns


def find_duplicates(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> pd.DataFrame:
    """
    List the rows that duplicate an earlier row across every business column.

    Rows are partitioned by all nine business columns and numbered in load
    order; anything numbered above 1 is a duplicate. Nothing is modified.
    """
    query = f"""
    SELECT *
    FROM (
        SELECT
            {_PARTITION},
            ROW_NUMBER() OVER (PARTITION BY {_PARTITION} ORDER BY rowid) AS row_num
        FROM {table}
    )
    WHERE row_num > 1
    """
    return pd.read_sql(query, conn)


def remove_duplicates(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """
    Delete every row but the first occurrence within each duplicate partition.

    Returns:
        Number of rows deleted
    """
    cursor = conn.execute(f"""
    DELETE FROM {table}
    WHERE rowid IN (
        SELECT row_id
        FROM (
            SELECT
                rowid AS row_id,
                ROW_NUMBER() OVER (PARTITION BY {_PARTITION} ORDER BY rowid) AS row_num
            FROM {table}
        )
        WHERE row_num > 1
    )
    """)
    logger.info(f"Removed {cursor.rowcount} duplicate rows from {table}")
    return cursor.rowcount


def trim_company_names(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """Strip surrounding whitespace from company names."""
    cursor = conn.execute(
        f"UPDATE {table} SET company = TRIM(company) WHERE company != TRIM(company)"
    )
    logger.info(f"Trimmed {cursor.rowcount} company names")
    return cursor.rowcount


def standardize_industries(
    conn: sqlite3.Connection,
    aliases: Mapping[str, str] = INDUSTRY_ALIASES,
    table: str = STAGING_TABLE
) -> int:
    """
    Collapse industry spellings onto a canonical label.

    Args:
        aliases: LIKE pattern -> canonical label, e.g. {"Crypto%": "Crypto"}

    Returns:
        Number of rows relabelled
    """
    updated = 0
    for pattern, label in aliases.items():
        cursor = conn.execute(
            f"UPDATE {table} SET industry = ? WHERE industry LIKE ? AND industry != ?",
            (label, pattern, label),
        )
        if cursor.rowcount:
            logger.info(f"Relabelled {cursor.rowcount} industries matching '{pattern}' as '{label}'")
        updated += cursor.rowcount
    return updated


def normalize_countries(
    conn: sqlite3.Connection,
    aliases: Mapping[str, str] = COUNTRY_ALIASES,
    table: str = STAGING_TABLE
) -> int:
    """
    Collapse country spellings onto one canonical name.

    LIKE is case-insensitive, so "United States.", "united states" and
    " United States" all match {"United State%": "United States"}.
    """
    updated = 0
    for pattern, name in aliases.items():
        cursor = conn.execute(
            f"UPDATE {table} SET country = ? WHERE TRIM(country) LIKE ? AND country != ?",
            (name, pattern, name),
        )
        updated += cursor.rowcount
    logger.info(f"Normalized {updated} country values")
    return updated


def blank_to_null(
    conn: sqlite3.Connection,
    columns: Iterable[str] = NULLABLE_TEXT_COLUMNS,
    table: str = STAGING_TABLE
) -> int:
    """
    Turn empty or whitespace-only strings into NULL.

    Raises:
        ValueError: if a column is not one of the business columns
    """
    updated = 0
    for column in _check_columns(columns):
        cursor = conn.execute(
            f'UPDATE {table} SET "{column}" = NULL WHERE TRIM("{column}") = \'\''
        )
        if cursor.rowcount:
            logger.info(f"Set {cursor.rowcount} blank '{column}' values to NULL")
        updated += cursor.rowcount
    return updated


def fill_missing_industries(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """
    Fill NULL industries from another row of the same company.

    Companies that never report an industry keep NULL.
    """
    cursor = conn.execute(f"""
    UPDATE {table}
    SET industry = (
        SELECT t2.industry
        FROM {table} AS t2
        WHERE t2.company = {table}.company
          AND t2.industry IS NOT NULL
        ORDER BY t2.rowid
        LIMIT 1
    )
    WHERE industry IS NULL
      AND EXISTS (
        SELECT 1
        FROM {table} AS t2
        WHERE t2.company = {table}.company
          AND t2.industry IS NOT NULL
    )
    """)
    logger.info(f"Filled {cursor.rowcount} missing industries from sibling rows")
    return cursor.rowcount


def _parse_dates(values: pd.Series, date_format: str) -> pd.Series:
    stripped = values.str.strip()
    parsed = pd.to_datetime(stripped, format=date_format, errors='coerce')
    # Already-converted values are kept so re-running the step is harmless
    already_iso = pd.to_datetime(stripped, format=ISO_DATE_FORMAT, errors='coerce')
    return parsed.combine_first(already_iso)


def convert_dates(
    conn: sqlite3.Connection,
    date_format: str = SOURCE_DATE_FORMAT,
    table: str = STAGING_TABLE
) -> int:
    """
    Rewrite the date column as ISO YYYY-MM-DD.

    Values that are not valid calendar dates in the source format become NULL.

    Args:
        date_format: strptime format of the source dates (default: month/day/year)

    Returns:
        Number of rows whose date value changed
    """
    df = pd.read_sql(
        f'SELECT rowid AS row_id, "date" FROM {table} WHERE "date" IS NOT NULL',
        conn,
    )
    if df.empty:
        logger.info("No dates to convert")
        return 0

    df['date'] = df['date'].astype(str)
    parsed = _parse_dates(df['date'], date_format)
    df['converted'] = parsed.dt.strftime(ISO_DATE_FORMAT)

    invalid = df[parsed.isna() & (df['date'].str.strip() != '')]
    if not invalid.empty:
        samples = invalid['date'].head(5).tolist()
        logger.warning(f"{len(invalid)} unparseable dates set to NULL, e.g. {samples}")

    changed = df[df['converted'].isna() | (df['converted'] != df['date'])]
    updates = [
        (value if isinstance(value, str) else None, int(row_id))
        for value, row_id in zip(changed['converted'], changed['row_id'])
    ]
    conn.executemany(f'UPDATE {table} SET "date" = ? WHERE rowid = ?', updates)
    logger.info(f"Converted {len(updates)} dates to {ISO_DATE_FORMAT}")
    return len(updates)


def cast_percentages(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """
    Store percentage_laid_off as a REAL fraction; non-numeric text becomes NULL.
    """
    cast = conn.execute(f"""
    UPDATE {table}
    SET percentage_laid_off = CAST(TRIM(percentage_laid_off) AS REAL)
    WHERE typeof(percentage_laid_off) = 'text'
      AND TRIM(percentage_laid_off) != ''
      AND TRIM(percentage_laid_off) NOT GLOB '*[^0-9.]*'
      AND TRIM(percentage_laid_off) GLOB '*[0-9]*'
      AND TRIM(percentage_laid_off) NOT GLOB '*.*.*'
    """).rowcount
    nulled = conn.execute(f"""
    UPDATE {table}
    SET percentage_laid_off = NULL
    WHERE typeof(percentage_laid_off) = 'text'
    """).rowcount
    if nulled:
        logger.warning(f"{nulled} non-numeric percentage_laid_off values set to NULL")
    return cast + nulled


def remove_unusable_rows(conn: sqlite3.Connection, table: str = STAGING_TABLE) -> int:
    """Delete rows that report neither a layoff count nor a percentage."""
    cursor = conn.execute(
        f"DELETE FROM {table} WHERE total_laid_off IS NULL AND percentage_laid_off IS NULL"
    )
    logger.info(f"Removed {cursor.rowcount} rows with no layoff figures")
    return cursor.rowcount


# Every value is normalized before deduplication so rows that only differed in formatting collapse.
CLEANING_STEPS: List[Tuple[str, Callable[[sqlite3.Connection], int]]] = [
    ("blank_to_null", blank_to_null),
    ("trim_company_names", trim_company_names),
    ("standardize_industries", standardize_industries),
    ("fill_missing_industries", fill_missing_industries),
    ("normalize_countries", normalize_countries),
    ("convert_dates", convert_dates),
    ("cast_percentages", cast_percentages),
    ("remove_duplicates", remove_duplicates),
    ("remove_unusable_rows", remove_unusable_rows),
]


def clean_staging_table(conn: sqlite3.Connection) -> Dict[str, int]:
    """
    Run every cleaning step against the staging table in a single transaction.

    Returns:
        Mapping of step name to the number of rows it affected

    Raises:
        CleaningError: if any step fails; no step's changes are kept
    """
    summary: Dict[str, int] = {}
    current = None
    if not conn.in_transaction:
        conn.execute("BEGIN TRANSACTION")
    try:
        for current, step in CLEANING_STEPS:
            summary[current] = step(conn)
        conn.commit()
    except (sqlite3.Error, ValueError) as e:
        conn.rollback()
        logger.error(f"Error cleaning staging table during {current}: {e}")
        raise CleaningError(f"Cleaning failed during {current}: {e}") from e

    remaining = conn.execute(f"SELECT COUNT(*) FROM {STAGING_TABLE}").fetchone()[0]
    logger.info(f"Cleaning completed: {summary}; {remaining} rows remain in {STAGING_TABLE}")
    return summary
