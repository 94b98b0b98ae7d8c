import json
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kyc_portal.main import app
from kyc_portal.database import get_db, create_all_tables
from kyc_portal.credit_scoring.api import get_provider

SQLALCHEMY_DATABASE_URL = "sqlite://"


def sourced(value, source="crc"):
    return [{"source": source, "value": value}]

def build_report(
    bvn="22212345890", active=0, closed=0, total_loans=None, delinquent=0, overdue=0,
    borrowed=0, outstanding=0, overdue_amount=0, loans=None, non_performing=0,
    last3=0, last12=0, last36=0, enquiries=None,
):
    """Dojah-shaped bureau payload with every summary field sourced from 'crc'."""
    loans = loans or []
    score = {
        "totalNoOfActiveLoans": sourced(active),
        "totalNoOfClosedLoans": sourced(closed),
        "totalNoOfLoans": sourced(total_loans if total_loans is not None else active + closed),
        "totalNoOfDelinquentFacilities": sourced(delinquent),
        "totalNoOfOverdueAccounts": sourced(overdue),
        "totalBorrowed": sourced(borrowed),
        "totalOutstanding": sourced(outstanding),
        "totalOverdue": sourced(overdue_amount),
        "loanHistory": sourced(loans),
        "loanPerformance": sourced([{"loanProvider": "Access Bank", "noOfNonPerforming": non_performing,
                                     "noOfPerforming": 0}]),
        "creditEnquiriesSummary": sourced({
            "Last3MonthCount": str(last3),
            "Last12MonthCount": str(last12),
            "Last36MonthCount": str(last36),
        }),
        "creditEnquiries": sourced(enquiries or []),
    }
    return {"entity": {"bvn": bvn, "score": score}}

def loan(provider="Access Bank", loan_type="Personal Loan", status="Open", performance="Performing",
         outstanding="0", date_reported="2023-01-01"):
    return {
        "loanProvider": provider, "type": loan_type, "loanAmount": "100000", "status": status,
        "performanceStatus": performance, "outstandingBalance": outstanding, "overdueAmount": "0",
        "dateReported": date_reported,
    }

def session_cookie(payload: dict) -> str:
    return quote(json.dumps(payload))


class FakeProvider:
    def __init__(self, report=None, error=None):
        self.report = report
        self.error = error
        self.calls = []

    def fetch_credit_report(self, bvn, correlation_id=None):
        self.calls.append(bvn)
        if self.error is not None:
            raise self.error
        return self.report


@pytest.fixture
def engine():
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all_tables(bind=engine)
    yield engine
    engine.dispose()

@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def fake_provider():
    return FakeProvider(report=build_report(
        active=2, closed=1, borrowed=1000000, outstanding=250000,
        loans=[loan("Access Bank", "Personal Loan"), loan("GTBank", "Mortgage"),
               loan("UBA", "Auto Loan", status="Closed")],
        last12=1, enquiries=[{"loanProvider": "GTBank"}],
    ))

@pytest.fixture
def client(engine, fake_provider):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        try:
            db = TestingSessionLocal()
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider] = lambda: fake_provider
    yield TestClient(app)
    app.dependency_overrides.clear()
