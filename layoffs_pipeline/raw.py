import csv
import os
import sqlite3
from typing import Sequence

import pandas as pd

from layoffs_pipeline.config import BUSINESS_COLUMNS, RAW_TABLE, STAGING_TABLE
from layoffs_pipeline.exceptions import IngestionError
from utils.logger import setup_logger

logger = setup_logger("RawLayer", log_file="layoffs_pipeline.log")

REQUIRED_COLUMNS = list(BUSINESS_COLUMNS)
NUMERIC_COLUMNS = ["total_laid_off", "funds_raised_millions"]

# Only this token marks a missing value in the source file; blank cells are kept as ''.
NULL_TOKEN = "NULL"


def create_raw_table(cursor, table: str = RAW_TABLE) -> None:
    """
    Create the raw layoffs table, replacing any previous load.
    """
    cursor.execute(f"DROP TABLE IF EXISTS {table}")
    cursor.execute(f"""
        CREATE TABLE {table} (
            company TEXT,
            location TEXT,
            industry TEXT,
            total_laid_off INTEGER,
            percentage_laid_off TEXT,
            "date" TEXT,
            stage TEXT,
            country TEXT,
            funds_raised_millions INTEGER
        )
    """)


def create_staging_schema(cursor, table: str = STAGING_TABLE) -> None:
    """
    Create the empty staging table. percentage_laid_off carries REAL affinity so
    numeric text is stored as a fraction on copy.
    """
    cursor.execute(f"DROP TABLE IF EXISTS {table}")
    cursor.execute(f"""
        CREATE TABLE {table} (
            company TEXT,
            location TEXT,
            industry TEXT,
            total_laid_off INTEGER,
            percentage_laid_off REAL,
            "date" TEXT,
            stage TEXT,
            country TEXT,
            funds_raised_millions INTEGER
        )
    """)


def validate_csv_structure(csv_file: str, required_columns: Sequence[str] = REQUIRED_COLUMNS) -> bool:
    """
    Validate the structure of the CSV file.

    Args:
        csv_file: Path to the CSV file
        required_columns: List of required column names

    Returns:
        True if the CSV structure is valid, False otherwise
    """
    try:
        with open(csv_file, newline='', encoding='utf-8-sig') as f:
            reader = csv.DictReader(f)
            csv_columns = reader.fieldnames
            if not csv_columns:
                logger.error("CSV file is empty or has no headers.")
                return False
            csv_columns = [col.strip() for col in csv_columns]
            missing_columns = [col for col in required_columns if col not in csv_columns]
            if missing_columns:
                logger.error(f"CSV file is missing required columns: {missing_columns}")
                return False
        return True
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        logger.error(f"Error validating CSV structure: {e}")
        return False


def read_layoffs_csv(csv_file: str) -> pd.DataFrame:
    """
    Read the layoffs CSV as text, keeping only the business columns.

    Blank cells are preserved as empty strings so cleaning can normalize them;
    only the literal NULL token is read as missing. Layoff counts and funding
    are coerced to numbers, anything unparseable becomes NULL.
    """
    df = pd.read_csv(
        csv_file,
        dtype=str,
        keep_default_na=False,
        na_values=[NULL_TOKEN],
        encoding='utf-8-sig',
    )
    df.columns = [col.strip() for col in df.columns]
    df = df[REQUIRED_COLUMNS].copy()

    for column in NUMERIC_COLUMNS:
        as_text = df[column].map(lambda value: value.strip() if isinstance(value, str) else value)
        numeric = pd.to_numeric(as_text, errors='coerce')
        unparseable = int((numeric.isna() & as_text.notna() & (as_text != '')).sum())
        if unparseable:
            logger.warning(f"{unparseable} non-numeric values in '{column}' were read as NULL")
        df[column] = numeric

    return df


def ingest_csv(csv_file: str, conn: sqlite3.Connection) -> int:
    """
    Load the layoffs CSV into the raw table, replacing any previous load.

    Args:
        csv_file: Path to the CSV file
        conn: Open SQLite connection

    Returns:
        Number of rows loaded

    Raises:
        IngestionError: if the file is missing or its header is invalid
    """
    if not os.path.exists(csv_file):
        logger.error(f"CSV file not found: {csv_file}")
        raise IngestionError(f"CSV file not found: {csv_file}")

    if not validate_csv_structure(csv_file, REQUIRED_COLUMNS):
        logger.error("CSV structure validation failed. Aborting ingestion.")
        raise IngestionError(f"Invalid CSV structure: {csv_file}")

    try:
        df = read_layoffs_csv(csv_file)
        cursor = conn.cursor()
        create_raw_table(cursor)
        df.to_sql(RAW_TABLE, conn, if_exists='append', index=False)
        conn.commit()
    except (sqlite3.Error, ValueError) as e:
        conn.rollback()
        logger.error(f"Error during data ingestion: {e}")
        raise IngestionError(f"Failed to load {csv_file}: {e}") from e

    logger.info(f"Successfully ingested {len(df)} records into {RAW_TABLE}.")
    return len(df)


def create_staging_table(
    conn: sqlite3.Connection,
    source: str = RAW_TABLE,
    staging: str = STAGING_TABLE
) -> int:
    """
    Copy every row of the source table into a fresh staging table.

    The source table is left untouched so the original data is always available.

    Returns:
        Number of rows copied
    """
    columns = ", ".join(f'"{col}"' for col in BUSINESS_COLUMNS)
    try:
        cursor = conn.cursor()
        create_staging_schema(cursor, staging)
        cursor.execute(f"INSERT INTO {staging} ({columns}) SELECT {columns} FROM {source}")
        copied = cursor.rowcount
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Error creating staging table {staging}: {e}")
        raise IngestionError(f"Could not build staging table {staging}: {e}") from e

    logger.info(f"Copied {copied} rows from {source} into {staging}")
    return copied


if __name__ == "__main__":
    from layoffs_pipeline.config import CSV_PATH, DB_PATH

    logger.info(f"Ingesting data from: {CSV_PATH} into {DB_PATH}")
    os.makedirs(os.path.dirname(DB_PATH) or ".", exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    try:
        ingest_csv(CSV_PATH, conn)
        create_staging_table(conn)
    finally:
        conn.close()
