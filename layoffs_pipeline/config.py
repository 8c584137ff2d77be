import os
from dotenv import load_dotenv

load_dotenv()  # load environment variables from .env file

DB_PATH = os.environ.get("LAYOFFS_DB_PATH", "database/layoffs.db")
CSV_PATH = os.environ.get("LAYOFFS_CSV_PATH", "data/sample/layoffs.csv")
EXPORT_DIR = os.environ.get("LAYOFFS_EXPORT_DIR", "data/exports")

AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")
S3_BUCKET = os.environ.get("LAYOFFS_S3_BUCKET")
S3_PREFIX = os.environ.get("LAYOFFS_S3_PREFIX", "layoffs")

# Every spelling matching the pattern collapses onto the canonical name.
US_COUNTRY_PATTERN = "United State%"
US_COUNTRY_NAME = "United States"

RAW_TABLE = "layoffs_raw"
STAGING_TABLE = "layoffs_staging"

# Every business column, in source order. Also the partition key for duplicate detection.
BUSINESS_COLUMNS = (
    "company",
    "location",
    "industry",
    "total_laid_off",
    "percentage_laid_off",
    "date",
    "stage",
    "country",
    "funds_raised_millions",
)
