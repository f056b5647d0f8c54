"""
Tests for the CSV projection of canonical statements.
"""

from datetime import date
from decimal import Decimal

from banking_pipeline.models.enums import ReviewStatus
from banking_pipeline.pipeline.csv_projector import (
    CSV_HEADER,
    export_annotated_csv,
    format_decimal,
    project_csv,
)
from banking_pipeline.schemas.canonical import CanonicalStatement, Transaction
from banking_pipeline.schemas.review import AnnotatedTransaction


class TestProjectCsv:

    def test_header(self, sample_statement):
        projection = project_csv(sample_statement)
        assert projection.header == CSV_HEADER
        assert projection.to_text().splitlines()[0] == (
            "Date,Description,Amount,Balance,Category,Transfer_Type,Transfer_Target"
        )

    def test_row_count_matches_transactions(self, sample_statement):
        projection = project_csv(sample_statement)
        assert projection.row_count == len(sample_statement.transactions)

    def test_rows_in_statement_order(self, sample_statement):
        rows = project_csv(sample_statement).rows
        assert rows[0] == ["2024-01-05", "Salary", "5000.00", "5500.00", "Income", "", ""]
        assert rows[1] == ["2024-01-10", "Rent", "-2000.00", "3500.00", "Housing", "Transfer Out", "Landlord"]

    def test_values_with_commas_are_quoted(self, sample_statement):
        text = project_csv(sample_statement).to_text()
        assert '"Woolworths, Sydney & Co"' in text

    def test_quotes_doubled(self):
        statement = CanonicalStatement(transactions=[
            Transaction(transaction_date=date(2024, 1, 1), description='Cafe "Blue"', amount=Decimal("-4.50")),
        ])
        text = project_csv(statement).to_text()
        assert '"Cafe ""Blue"""' in text

    def test_undated_transaction_keeps_raw_text(self):
        statement = CanonicalStatement(transactions=[
            Transaction(date_text=" 31 Feb ", description="Odd", amount=Decimal("1")),
        ])
        assert project_csv(statement).rows[0][0] == "31 Feb"

    def test_empty_statement(self):
        projection = project_csv(CanonicalStatement())
        assert projection.row_count == 0
        assert projection.to_text() == ",".join(CSV_HEADER) + "\n"

    def test_idempotent(self, sample_statement):
        assert project_csv(sample_statement).to_text() == project_csv(sample_statement).to_text()


class TestExportAnnotatedCsv:

    def _rows(self, sample_statement):
        return [
            AnnotatedTransaction(
                row_index=i,
                transaction=t,
                status=ReviewStatus.QUERY if i == 2 else ReviewStatus.NONE,
                comment="check lease" if i == 2 else "",
            )
            for i, t in enumerate(sample_statement.transactions, start=1)
        ]

    def test_only_flagged_rows_by_default(self, sample_statement):
        lines = export_annotated_csv(self._rows(sample_statement)).splitlines()
        assert lines[0] == "Row,Date,Description,Amount,Balance,Category,Status,Comment"
        assert lines[1:] == ["2,2024-01-10,Rent,-2000.00,3500.00,Housing,query,check lease"]

    def test_all_rows(self, sample_statement):
        lines = export_annotated_csv(self._rows(sample_statement), status=None).splitlines()
        assert len(lines) == 1 + len(sample_statement.transactions)


class TestFormatDecimal:

    def test_none(self):
        assert format_decimal(None) == ""

    def test_no_exponent(self):
        assert format_decimal(Decimal("1E+3")) == "1000"
