#!/usr/bin/env python3
"""
Layoffs Data Generator

This script generates a synthetic layoffs dataset in the raw CSV layout, seeded
with the kinds of dirt the cleaning layer is built to handle: exact duplicate
rows, padded company names, inconsistent industry and country spellings,
blank or NULL fields, unparseable dates and rows with no layoff figures.
"""

import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from layoffs_pipeline.config import BUSINESS_COLUMNS
from utils.logger import setup_logger

logger = setup_logger("Data_Generator", log_file="data_generator.log")

# Define constants
DEFAULT_OUTPUT_DIR = "data/sample"
DEFAULT_FILENAME = "layoffs.csv"
DEFAULT_NUM_RECORDS = 2400
DEFAULT_NUM_COMPANIES = 600
DEFAULT_START_DATE = datetime(2020, 3, 11)
DEFAULT_END_DATE = datetime(2023, 3, 6)
NULL_TOKEN = "NULL"

# Industries with their probability weights
INDUSTRIES = {
    'Retail': 0.12,
    'Consumer': 0.10,
    'Transportation': 0.09,
    'Finance': 0.12,
    'Healthcare': 0.08,
    'Food': 0.07,
    'Real Estate': 0.06,
    'Crypto': 0.08,
    'Marketing': 0.06,
    'Education': 0.06,
    'Travel': 0.05,
    'Media': 0.05,
    'Other': 0.06,
}

CRYPTO_VARIANTS = ['Crypto Currency', 'CryptoCurrency']

STAGES = {
    'Post-IPO': 0.25,
    'Series B': 0.15,
    'Series C': 0.13,
    'Series D': 0.10,
    'Series A': 0.08,
    'Acquired': 0.08,
    'Seed': 0.06,
    'Private Equity': 0.05,
    'Unknown': 0.10,
}

# Country -> cities companies can be headquartered in
LOCATIONS = {
    'United States': ['SF Bay Area', 'New York City', 'Seattle', 'Boston', 'Austin', 'Los Angeles'],
    'India': ['Bengaluru', 'Mumbai', 'Gurugram'],
    'United Kingdom': ['London'],
    'Germany': ['Berlin', 'Munich'],
    'Canada': ['Toronto', 'Vancouver'],
    'Brazil': ['Sao Paulo'],
    'Israel': ['Tel Aviv'],
}

COUNTRY_WEIGHTS = {
    'United States': 0.62,
    'India': 0.1,
    'United Kingdom': 0.06,
    'Germany': 0.05,
    'Canada': 0.06,
    'Brazil': 0.05,
    'Israel': 0.06,
}

NAME_PREFIXES = ['Blue', 'Bright', 'Cloud', 'Data', 'Flex', 'Green', 'Hyper', 'Loop', 'Nova',
                 'Open', 'Pixel', 'Quick', 'Rocket', 'Smart', 'True', 'Urban', 'Vivid', 'Zen']
NAME_SUFFIXES = ['ly', 'io', 'Labs', 'Hub', 'Pay', 'Works', 'Base', 'Cart', 'Wave', 'Stack']

# Kinds of dirt and how often each is injected per record
DIRT_RATES = {
    'padded_company': 0.03,
    'country_trailing_period': 0.05,
    'blank_industry': 0.03,
    'null_industry': 0.01,
    'blank_stage': 0.01,
    'null_date': 0.005,
    'missing_figures': 0.08,
}


def choose_weighted(rng: np.random.Generator, options: Dict[str, float]) -> str:
    """Choose an option based on weighted probabilities."""
    choices = list(options)
    weights = np.array(list(options.values()), dtype=float)
    return str(rng.choice(choices, p=weights / weights.sum()))


def generate_companies(rng: np.random.Generator, num_companies: int) -> List[Dict[str, Any]]:
    """Generate companies with a fixed location, industry, stage and funding.

    Args:
        rng: Random generator
        num_companies: Number of companies to generate

    Returns:
        List of company attribute dictionaries
    """
    companies = []
    seen = set()
    while len(companies) < num_companies:
        name = f"{rng.choice(NAME_PREFIXES)}{rng.choice(NAME_SUFFIXES)}"
        if name in seen:
            name = f"{name} {len(companies) + 1}"
        seen.add(name)

        country = choose_weighted(rng, COUNTRY_WEIGHTS)
        companies.append({
            'company': name,
            'location': str(rng.choice(LOCATIONS[country])),
            'industry': choose_weighted(rng, INDUSTRIES),
            'stage': choose_weighted(rng, STAGES),
            'country': country,
            # Right-skewed funding, missing for a tenth of companies
            'funds_raised_millions': None if rng.random() < 0.1 else int(rng.gamma(1.2, 250)) + 1,
        })
    return companies


def format_source_date(value: datetime) -> str:
    """Month/day/year without zero padding, e.g. 3/6/2023."""
    return f"{value.month}/{value.day}/{value.year}"


def create_layoff_record(
    rng: np.random.Generator,
    company: Dict[str, Any],
    start_date: datetime,
    end_date: datetime
) -> Dict[str, str]:
    """Create a single clean layoff record as CSV text fields."""
    days = (end_date - start_date).days
    event_date = start_date + timedelta(days=int(rng.integers(0, days + 1)))

    total = int(rng.gamma(1.1, 180)) + 1
    percentage = round(float(rng.beta(1.5, 6)), 2)
    if rng.random() < 0.03:
        percentage = 1.0

    # Roughly a third of real records report only one of the two figures
    report = rng.random()
    total_text = NULL_TOKEN if report < 0.15 else str(total)
    percentage_text = NULL_TOKEN if 0.15 <= report < 0.35 else str(percentage)

    funds = company['funds_raised_millions']
    return {
        'company': company['company'],
        'location': company['location'],
        'industry': company['industry'],
        'total_laid_off': total_text,
        'percentage_laid_off': percentage_text,
        'date': format_source_date(event_date),
        'stage': company['stage'],
        'country': company['country'],
        'funds_raised_millions': NULL_TOKEN if funds is None else str(funds),
    }


def add_dirt(rng: np.random.Generator, record: Dict[str, str]) -> Dict[str, str]:
    """Inject the formatting problems found in the real dataset."""
    record = dict(record)
    if rng.random() < DIRT_RATES['padded_company']:
        record['company'] = f" {record['company']}"
    if record['industry'] == 'Crypto' and rng.random() < 0.5:
        record['industry'] = str(rng.choice(CRYPTO_VARIANTS))
    if record['country'] == 'United States' and rng.random() < DIRT_RATES['country_trailing_period']:
        record['country'] = 'United States.'
    if rng.random() < DIRT_RATES['blank_industry']:
        record['industry'] = ''
    elif rng.random() < DIRT_RATES['null_industry']:
        record['industry'] = NULL_TOKEN
    if rng.random() < DIRT_RATES['blank_stage']:
        record['stage'] = ''
    if rng.random() < DIRT_RATES['null_date']:
        record['date'] = NULL_TOKEN
    if rng.random() < DIRT_RATES['missing_figures']:
        record['total_laid_off'] = NULL_TOKEN
        record['percentage_laid_off'] = NULL_TOKEN
    return record


def generate_layoff_records(
    num_records: int = DEFAULT_NUM_RECORDS,
    num_companies: int = DEFAULT_NUM_COMPANIES,
    seed: Optional[int] = None,
    duplicate_rate: float = 0.01,
    start_date: datetime = DEFAULT_START_DATE,
    end_date: datetime = DEFAULT_END_DATE
) -> List[Dict[str, str]]:
    """Generate dirty layoff records in the raw CSV layout.

    Args:
        num_records: Number of distinct events to generate before duplication
        num_companies: Number of distinct companies
        seed: Seed for reproducible output
        duplicate_rate: Share of records appended again as exact duplicates
        start_date: Earliest layoff date
        end_date: Latest layoff date

    Returns:
        List of records keyed by business column, all values as text
    """
    if num_records < 0:
        raise ValueError("num_records must not be negative")
    if not 0 <= duplicate_rate <= 1:
        raise ValueError("duplicate_rate must be between 0 and 1")

    rng = np.random.default_rng(seed)
    companies = generate_companies(rng, max(1, min(num_companies, num_records or 1)))

    records = []
    for _ in range(num_records):
        company = companies[int(rng.integers(0, len(companies)))]
        records.append(add_dirt(rng, create_layoff_record(rng, company, start_date, end_date)))

    num_duplicates = int(round(num_records * duplicate_rate))
    if records and num_duplicates:
        picks = rng.integers(0, len(records), size=num_duplicates)
        records.extend(dict(records[int(i)]) for i in picks)

    return records


def write_sample_csv(
    output_dir: str = DEFAULT_OUTPUT_DIR,
    filename: str = DEFAULT_FILENAME,
    **kwargs
) -> str:
    """Generate dirty layoff records and save them as CSV.

    Keyword arguments are passed to generate_layoff_records.

    Returns:
        Path to the generated file
    """
    os.makedirs(output_dir, exist_ok=True)
    output_file = os.path.join(output_dir, filename)

    records = generate_layoff_records(**kwargs)
    df = pd.DataFrame(records, columns=list(BUSINESS_COLUMNS))
    df.to_csv(output_file, index=False)

    logger.info(f"Successfully generated {len(df)} records in {output_file}")
    return output_file


def main():
    """Main entry point for the script."""
    import argparse

    parser = argparse.ArgumentParser(description='Generate a synthetic dirty layoffs dataset')
    parser.add_argument('--records', type=int, default=DEFAULT_NUM_RECORDS,
                        help=f'Number of records to generate (default: {DEFAULT_NUM_RECORDS})')
    parser.add_argument('--companies', type=int, default=DEFAULT_NUM_COMPANIES,
                        help=f'Number of unique companies (default: {DEFAULT_NUM_COMPANIES})')
    parser.add_argument('--duplicate-rate', type=float, default=0.01,
                        help='Share of records duplicated exactly (default: 0.01)')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--output-dir', type=str, default=DEFAULT_OUTPUT_DIR,
                        help=f'Output directory (default: {DEFAULT_OUTPUT_DIR})')
    parser.add_argument('--filename', type=str, default=DEFAULT_FILENAME,
                        help=f'Output filename (default: {DEFAULT_FILENAME})')

    args = parser.parse_args()

    output_file = write_sample_csv(
        output_dir=args.output_dir,
        filename=args.filename,
        num_records=args.records,
        num_companies=args.companies,
        duplicate_rate=args.duplicate_rate,
        seed=args.seed,
    )
    print(f"Data generation complete. File saved to: {output_file}")


if __name__ == "__main__":
    main()
