"""
Tests for the day-first statement date parser.
"""

from datetime import date

from banking_pipeline.pipeline.date_parser import date_or_none, parse_statement_date


class TestParseStatementDate:

    def test_iso_format(self):
        result = parse_statement_date("2024-03-15")
        assert result.parsed_date == date(2024, 3, 15)
        assert result.format_detected == "YYYY-MM-DD"
        assert not result.is_ambiguous

    def test_dd_mm_yyyy_slash(self):
        result = parse_statement_date("01/02/2024")
        assert result.parsed_date == date(2024, 2, 1)  # day first

    def test_dd_mon_yyyy(self):
        result = parse_statement_date("15 Jan 2024")
        assert result.parsed_date == date(2024, 1, 15)
        assert not result.is_ambiguous

    def test_mon_dd_yyyy(self):
        assert parse_statement_date("March 3, 2024").parsed_date == date(2024, 3, 3)

    def test_samples(self, sample_date_strings):
        for raw, expected in sample_date_strings:
            assert parse_statement_date(raw).parsed_date == date.fromisoformat(expected), raw

    def test_ambiguous_date_flagged(self):
        result = parse_statement_date("05/06/2024")
        assert result.parsed_date == date(2024, 6, 5)
        assert result.is_ambiguous
        assert result.ambiguity_note

    def test_unambiguous_date_not_flagged(self):
        result = parse_statement_date("25/06/2024")
        assert result.parsed_date == date(2024, 6, 25)
        assert not result.is_ambiguous

    def test_period_disambiguation(self):
        result = parse_statement_date("05/01/2024", date(2024, 1, 1), date(2024, 1, 31))
        assert result.parsed_date == date(2024, 1, 5)
        assert not result.is_ambiguous

    def test_year_inferred_from_period(self):
        result = parse_statement_date("14 Mar", date(2023, 3, 1), date(2023, 3, 31))
        assert result.parsed_date == date(2023, 3, 14)

    def test_year_rolls_over_in_december_period(self):
        result = parse_statement_date("03 Jan", date(2023, 12, 15), date(2024, 1, 14))
        assert result.parsed_date == date(2024, 1, 3)

    def test_year_less_date_without_period_is_unparsed(self):
        result = parse_statement_date("5 Jan")
        assert result.parsed_date is None
        assert result.format_detected == "UNKNOWN"

    def test_year_less_leap_day_outside_leap_year(self):
        assert parse_statement_date("29 Feb", date(2023, 2, 1), date(2023, 2, 28)).parsed_date is None
        assert parse_statement_date("29 Feb", date(2024, 2, 1), date(2024, 2, 29)).parsed_date == date(2024, 2, 29)

    def test_invalid_calendar_date(self):
        assert parse_statement_date("2024-02-30").parsed_date is None

    def test_unparseable_returns_none(self):
        result = parse_statement_date("not a date")
        assert result.parsed_date is None
        assert result.format_detected == "UNKNOWN"

    def test_empty_string(self):
        assert parse_statement_date("").parsed_date is None


class TestDateOrNone:

    def test_parses(self):
        assert date_or_none("2024-01-31") == date(2024, 1, 31)

    def test_none_input(self):
        assert date_or_none(None) is None
