"""
Unit tests for the cleaned-table acceptance checks.
"""
import pytest

from layoffs_pipeline.exceptions import DataQualityError
from layoffs_pipeline.quality import (
    assert_clean,
    count_duplicate_rows,
    count_invalid_dates,
    count_rows_missing_layoff_figures,
    count_unnormalized_countries,
    run_quality_checks,
)

CLEAN_ROW = {
    "company": "Acme",
    "location": "Austin",
    "industry": "Retail",
    "total_laid_off": 10,
    "percentage_laid_off": 0.1,
    "date": "2022-01-01",
    "stage": "Seed",
    "country": "United States",
    "funds_raised_millions": 5,
}


def row(**overrides):
    return {**CLEAN_ROW, **overrides}


@pytest.mark.unit
class TestIndividualChecks:

    def test_duplicate_rows(self, seed_staging):
        conn = seed_staging([row(), row(), row(), row(company="Beta")])

        assert count_duplicate_rows(conn) == 2

    def test_missing_layoff_figures(self, seed_staging):
        conn = seed_staging([
            row(total_laid_off=None, percentage_laid_off=None),
            row(total_laid_off=None),
            row(percentage_laid_off=None),
        ])

        assert count_rows_missing_layoff_figures(conn) == 1

    def test_invalid_dates(self, seed_staging):
        conn = seed_staging([
            row(date="2022-01-01"),
            row(date=None),
            row(date="1/15/2022"),
            row(date="2023-02-30"),
            row(date="yesterday"),
        ])

        assert count_invalid_dates(conn) == 3

    def test_unnormalized_countries(self, seed_staging):
        conn = seed_staging([
            row(country="United States"),
            row(country="United States."),
            row(country="Canada."),
        ])

        # one trailing period plus one extra spelling
        assert count_unnormalized_countries(conn) == 2

    def test_normalized_countries_pass(self, seed_staging):
        conn = seed_staging([row(country="United States"), row(country="India")])

        assert count_unnormalized_countries(conn) == 0

    def test_no_united_states_rows(self, seed_staging):
        conn = seed_staging([row(country="India")])

        assert count_unnormalized_countries(conn) == 0


@pytest.mark.unit
class TestRunQualityChecks:

    def test_dirty_staging_fails(self, loaded_conn):
        results = run_quality_checks(loaded_conn)

        assert results == {
            "duplicate_rows": 1,
            "missing_layoff_figures": 1,
            "invalid_dates": 11,
            "unnormalized_countries": 3,
        }

    def test_cleaned_staging_passes(self, cleaned_conn):
        results = assert_clean(cleaned_conn)

        assert all(count == 0 for count in results.values())

    def test_assert_clean_names_failing_checks(self, loaded_conn):
        with pytest.raises(DataQualityError) as exc_info:
            assert_clean(loaded_conn)

        assert exc_info.value.failures["duplicate_rows"] == 1
        assert "invalid_dates=11" in str(exc_info.value)
