"""
Shared test fixtures.
"""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from banking_pipeline.models.database import Base
from banking_pipeline.models.tables import BankingDocument
from banking_pipeline.pipeline.xml_parser import parse_statement_xml
from banking_pipeline.schemas.canonical import CanonicalStatement, Transaction


SAMPLE_STATEMENT_XML = """Here is the analysis you asked for:

```xml
<transaction_analysis>
  <institution>Commonwealth Bank of Australia</institution>
  <account_holders>
    <account_holder>MR JOHN SMITH</account_holder>
    <account_holder>Jane Smith</account_holder>
  </account_holders>
  <account_type>Everyday Account</account_type>
  <start_date>2024-01-01</start_date>
  <end_date>2024-02-29</end_date>
  <account_number>06 2000 1234 5678</account_number>
  <account_bsb>062-000</account_bsb>
  <currency>AUD</currency>
  <total_credits>5,600.00</total_credits>
  <total_debits>2,620.50</total_debits>
  <transactions>
    <transaction>
      <transaction_date>2024-01-10</transaction_date>
      <transaction_description>Rent</transaction_description>
      <amount>-2000.00</amount>
      <balance>3500.00</balance>
      <transaction_category>Housing</transaction_category>
      <transfer_type>Transfer Out</transfer_type>
      <transfer_target>Landlord</transfer_target>
    </transaction>
    <transaction>
      <transaction_date>2024-01-05</transaction_date>
      <transaction_description>Salary</transaction_description>
      <amount>5000.00</amount>
      <balance>5500.00</balance>
      <transaction_category>Income</transaction_category>
    </transaction>
    <transaction>
      <transaction_date>2024-02-02</transaction_date>
      <transaction_description>Woolworths, Sydney &amp; Co</transaction_description>
      <amount>-120.50</amount>
      <balance>3379.50</balance>
      <transaction_category>Groceries</transaction_category>
    </transaction>
    <transaction>
      <transaction_date>2024-02-15</transaction_date>
      <transaction_description>Refund</transaction_description>
      <amount>600.00</amount>
      <balance>3979.50</balance>
    </transaction>
    <transaction>
      <transaction_date>2024-02-20</transaction_date>
      <transaction_description>Transfer to xx1234</transaction_description>
      <amount>-500.00</amount>
      <balance>3479.50</balance>
      <transfer_type>Transfer Out</transfer_type>
      <transfer_target>xx1234</transfer_target>
    </transaction>
  </transactions>
  <inflows>
    <from><target>Employer</target><total_amount>5000.00</total_amount></from>
    <from><target>Refunds</target><total_amount>600.00</total_amount></from>
  </inflows>
  <outflows>
    <to><target>Landlord</target><total_amount>2000.00</total_amount></to>
    <to><target>Groceries</target><total_amount>120.50</total_amount></to>
    <to><target>xx1234</target><total_amount>500.00</total_amount></to>
  </outflows>
  <analysis_summary>Regular salary, rent and groceries.</analysis_summary>
</transaction_analysis>
```

Let me know if you need anything else."""


@pytest.fixture
def sample_statement_xml():
    return SAMPLE_STATEMENT_XML


@pytest.fixture
def sample_statement():
    return parse_statement_xml(SAMPLE_STATEMENT_XML)


@pytest.fixture
def worked_example_statement():
    """Salary / rent / transfer with no explicit flow totals."""
    return CanonicalStatement(
        institution="Westpac",
        account_number="1234",
        transactions=[
            Transaction(
                transaction_date=date(2024, 1, 5), date_text="2024-01-05",
                description="Salary", amount=Decimal("5000"), category="Income",
            ),
            Transaction(
                transaction_date=date(2024, 1, 10), date_text="2024-01-10",
                description="Rent", amount=Decimal("-2000"), transfer_target="Landlord",
            ),
            Transaction(
                transaction_date=date(2024, 1, 15), date_text="2024-01-15",
                description="Transfer to xx1234", amount=Decimal("-500"), transfer_target="xx1234",
            ),
        ],
    )


@pytest.fixture
def sample_date_strings():
    """Common AU date string samples for testing."""
    return [
        ("01/02/2024", "2024-02-01"),      # DD/MM/YYYY
        ("15 Jan 2024", "2024-01-15"),       # DD MON YYYY
        ("5 February 2024", "2024-02-05"),   # D MONTH YYYY
        ("2024-03-15", "2024-03-15"),        # ISO
        ("01/02/24", "2024-02-01"),          # DD/MM/YY
        ("1st Jan 2024", "2024-01-01"),      # Ordinal
    ]


@pytest.fixture
def sample_amounts():
    """Common amount string samples for testing."""
    return [
        ("1,234.56", "1234.56", False),
        ("(500.00)", "-500.00", True),
        ("100.00 DR", "-100.00", True),
        ("250.00 CR", "250.00", False),
        ("-75.50", "-75.50", True),
        ("75.50-", "-75.50", True),
        ("$0.01", "0.01", False),
        ("AUD 10000", "10000", False),
    ]


# ── Database ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite with working SAVEPOINTs."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def make_document(db_session):
    """Insert a banking document and return it."""

    async def _make(case_id: int = 1, **fields) -> BankingDocument:
        document = BankingDocument(case_id=case_id, file_name=fields.pop("file_name", "statement.pdf"), **fields)
        db_session.add(document)
        await db_session.flush()
        return document

    return _make
