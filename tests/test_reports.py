"""
Unit tests for the aggregate and window-function reports.

Expected figures come from the eight rows left after cleaning the dirty fixture:

    Acme     2022-01-15   100   Acme     2023-03-01   200
    CoinCo   2022-06-14   300   CoinCo   2023-02-02   150
    BigCorp  2022-12-01  1000   BigCorp  2023-01-10   500
    Lonely   2022-11-30  NULL (100%)
    Oldco    NULL         400 (100%)
"""
import pandas as pd
import pytest

from layoffs_pipeline.exceptions import ReportError
from layoffs_pipeline.reports import (
    REPORTS,
    date_range,
    full_shutdowns,
    max_layoffs,
    rolling_monthly_totals,
    run_all_reports,
    run_report,
    top_companies_by_year,
    totals_by,
)


@pytest.mark.unit
class TestSimpleAggregates:

    def test_max_layoffs(self, cleaned_conn):
        df = max_layoffs(cleaned_conn)

        assert df.loc[0, "max_total_laid_off"] == 1000
        assert df.loc[0, "max_percentage_laid_off"] == 1.0

    def test_full_shutdowns_ordered_by_funding(self, cleaned_conn):
        df = full_shutdowns(cleaned_conn)

        assert df["company"].tolist() == ["Oldco", "Lonely"]

    def test_date_range(self, cleaned_conn):
        df = date_range(cleaned_conn)

        assert df.loc[0, "earliest_date"] == "2022-01-15"
        assert df.loc[0, "latest_date"] == "2023-03-01"


@pytest.mark.unit
class TestTotalsBy:

    def test_by_company(self, cleaned_conn):
        df = totals_by(cleaned_conn, "company")

        assert df["company"].tolist() == ["BigCorp", "CoinCo", "Oldco", "Acme", "Lonely"]
        bigcorp = df.iloc[0]
        assert bigcorp["layoff_events"] == 2
        assert bigcorp["total_laid_off"] == 1500
        assert bigcorp["largest_layoff"] == 1000
        assert bigcorp["smallest_layoff"] == 500
        assert pd.isna(df.iloc[-1]["total_laid_off"])

    def test_by_country(self, cleaned_conn):
        df = totals_by(cleaned_conn, "country").set_index("country")

        assert df.loc["United States", "total_laid_off"] == 2250
        assert df.loc["France", "total_laid_off"] == 400
        assert len(df) == 3

    def test_by_industry_merges_crypto_spellings(self, cleaned_conn):
        df = totals_by(cleaned_conn, "industry")
        crypto = df[df["industry"] == "Crypto"]

        assert crypto["total_laid_off"].tolist() == [450]

    def test_by_year(self, cleaned_conn):
        df = totals_by(cleaned_conn, "year")

        assert df["total_laid_off"].tolist() == [1400, 850, 400]
        assert df["year"].iloc[0] == 2022
        assert df["year"].iloc[1] == 2023
        assert pd.isna(df["year"].iloc[2])

    def test_unknown_dimension(self, cleaned_conn):
        with pytest.raises(ValueError, match="Unknown dimension"):
            totals_by(cleaned_conn, "ceo")


@pytest.mark.unit
class TestWindowReports:

    def test_rolling_monthly_totals(self, cleaned_conn):
        df = rolling_monthly_totals(cleaned_conn)

        assert df["month"].tolist() == [
            "2022-01", "2022-06", "2022-11", "2022-12", "2023-01", "2023-02", "2023-03",
        ]
        assert df["total_laid_off"].tolist() == [100, 300, 0, 1000, 500, 150, 200]
        assert df["rolling_total"].tolist() == [100, 400, 400, 1400, 1900, 2050, 2250]

    def test_top_companies_by_year(self, cleaned_conn):
        df = top_companies_by_year(cleaned_conn)

        by_year = {year: group["company"].tolist() for year, group in df.groupby("year")}
        assert by_year == {
            2022: ["BigCorp", "CoinCo", "Acme"],
            2023: ["BigCorp", "Acme", "CoinCo"],
        }
        assert df["ranking"].tolist() == [1, 2, 3, 1, 2, 3]

    def test_top_n_limits_ranks(self, cleaned_conn):
        df = top_companies_by_year(cleaned_conn, top_n=1)

        assert df["company"].tolist() == ["BigCorp", "BigCorp"]

    def test_dense_rank_keeps_ties(self, seed_staging):
        base = {"location": "Austin", "industry": "Retail", "percentage_laid_off": 0.1,
                "stage": "Seed", "country": "United States", "funds_raised_millions": 5}
        conn = seed_staging([
            {**base, "company": "A", "total_laid_off": 100, "date": "2022-05-01"},
            {**base, "company": "B", "total_laid_off": 100, "date": "2022-06-01"},
            {**base, "company": "C", "total_laid_off": 50, "date": "2022-07-01"},
            {**base, "company": "D", "total_laid_off": 10, "date": "2022-08-01"},
        ])

        df = top_companies_by_year(conn, top_n=2)

        assert df["company"].tolist() == ["A", "B", "C"]
        assert df["ranking"].tolist() == [1, 1, 2]

    def test_invalid_top_n(self, cleaned_conn):
        with pytest.raises(ValueError):
            top_companies_by_year(cleaned_conn, top_n=0)


@pytest.mark.unit
class TestReportCatalog:

    def test_run_report_by_name(self, cleaned_conn):
        df = run_report(cleaned_conn, "totals_by_stage")

        assert "stage" in df.columns

    def test_run_report_passes_top_n(self, cleaned_conn):
        df = run_report(cleaned_conn, "top_companies_by_year", top_n=1)

        assert len(df) == 2

    def test_unknown_report(self, cleaned_conn):
        with pytest.raises(ReportError, match="Unknown report"):
            run_report(cleaned_conn, "layoffs_by_mood")

    def test_missing_table_raises_report_error(self, conn):
        with pytest.raises(ReportError):
            run_report(conn, "max_layoffs")

    def test_run_all_reports(self, cleaned_conn):
        reports = run_all_reports(cleaned_conn)

        assert set(reports) == set(REPORTS)
        assert all(isinstance(df, pd.DataFrame) for df in reports.values())
