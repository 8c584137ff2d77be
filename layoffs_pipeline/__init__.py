"""
Layoffs Cleaning & Reporting Package

Modules:
    raw.py          - Loads the layoffs CSV into the raw table and builds the staging copy.
    cleaning.py     - Deduplicates, standardizes and fills the staging table in place.
    quality.py      - Data-quality acceptance checks over the cleaned table.
    reports.py      - Aggregate and window-function reports over the cleaned table.
    storage.py      - Uploads exported files to S3.
    run_pipeline.py - Orchestrates the full pipeline and exports outputs.

Version: 1.0.0
"""

__version__ = "1.0.0"
