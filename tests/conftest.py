"""
Pytest configuration and fixtures for layoffs pipeline tests

Provides a small dirty layoffs CSV, SQLite connections at each stage of the
pipeline and a helper to seed the staging table directly.
"""
import os
import sqlite3
import tempfile
from typing import Generator

import pytest

# Module loggers write files on import; keep them out of the working tree.
os.environ.setdefault("LAYOFFS_LOG_DIR", tempfile.mkdtemp(prefix="layoffs-logs-"))

from layoffs_pipeline.cleaning import clean_staging_table  # noqa: E402
from layoffs_pipeline.config import BUSINESS_COLUMNS, STAGING_TABLE  # noqa: E402
from layoffs_pipeline.raw import create_staging_schema, create_staging_table, ingest_csv  # noqa: E402


# Eleven source rows. After cleaning, eight remain:
#   row 2 duplicates row 1 exactly, row 3 duplicates it once trimmed,
#   Ghost reports neither layoff figure.
DIRTY_CSV = """company,location,industry,total_laid_off,percentage_laid_off,date,stage,country,funds_raised_millions
Acme,SF Bay Area,Retail,100,0.1,1/15/2022,Series B,United States,50
Acme,SF Bay Area,Retail,100,0.1,1/15/2022,Series B,United States,50
 Acme ,SF Bay Area,Retail,100,0.1,1/15/2022,Series B,United States,50
Acme,SF Bay Area,,200,0.2,3/1/2023,Series B,United States.,50
CoinCo,New York City,Crypto Currency,300,NULL,6/14/2022,Post-IPO,United States,500
CoinCo,New York City,CryptoCurrency,150,0.5,2/2/2023,Post-IPO,United States.,500
Ghost,Berlin,NULL,NULL,NULL,7/7/2021,Seed,Germany,5
Lonely,London,,NULL,1,11/30/2022,Unknown,United Kingdom,NULL
Oldco,Paris,Food,400,1,not a date,Unknown,France,80
BigCorp,Seattle,Consumer,1000,0.05,12/1/2022,Post-IPO,United States,2000
BigCorp,Seattle,Consumer,500,0.02,1/10/2023,Post-IPO,United States,2000
"""


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests against a single module")
    config.addinivalue_line("markers", "integration: Tests that run the pipeline end to end")


@pytest.fixture
def dirty_csv(tmp_path) -> str:
    """Path to the small dirty layoffs CSV."""
    path = tmp_path / "layoffs.csv"
    path.write_text(DIRTY_CSV, encoding="utf-8")
    return str(path)


@pytest.fixture
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory SQLite connection."""
    connection = sqlite3.connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def loaded_conn(conn, dirty_csv) -> sqlite3.Connection:
    """Connection with the dirty CSV loaded into the raw and staging tables."""
    ingest_csv(dirty_csv, conn)
    create_staging_table(conn)
    return conn


@pytest.fixture
def cleaned_conn(loaded_conn) -> sqlite3.Connection:
    """Connection with a fully cleaned staging table."""
    clean_staging_table(loaded_conn)
    return loaded_conn


@pytest.fixture
def seed_staging(conn):
    """
    Factory that recreates the staging table with the given rows.

    Rows are dicts keyed by business column; missing keys are stored as NULL.
    """
    def _seed(rows):
        create_staging_schema(conn.cursor())
        columns = ", ".join(f'"{col}"' for col in BUSINESS_COLUMNS)
        placeholders = ", ".join("?" for _ in BUSINESS_COLUMNS)
        conn.executemany(
            f"INSERT INTO {STAGING_TABLE} ({columns}) VALUES ({placeholders})",
            [tuple(row.get(col) for col in BUSINESS_COLUMNS) for row in rows],
        )
        conn.commit()
        return conn

    return _seed


@pytest.fixture
def column_values():
    """Factory returning the values of one staging column, in load order."""
    def _values(connection: sqlite3.Connection, column: str, where: str = "1 = 1"):
        return [
            row[0]
            for row in connection.execute(
                f'SELECT "{column}" FROM {STAGING_TABLE} WHERE {where} ORDER BY rowid'
            ).fetchall()
        ]

    return _values
