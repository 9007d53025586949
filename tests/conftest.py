"""Pytest fixtures for testing"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from loan_origination.api.dependencies import get_application_store, get_recordkeeper_client
from loan_origination.api.main import create_app
from loan_origination.domain.models import (
    FundingSource,
    ParticipantContext,
    PaymentCadence,
    PlanConfig,
)
from loan_origination.infrastructure.store import InMemoryApplicationStore


class RecordingRecordkeeper:
    """Captures submission events instead of posting them"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    async def send_submission_event(self, payload: Dict[str, Any]) -> None:
        self.events.append(payload)


@pytest.fixture
def plan_config() -> PlanConfig:
    """Default plan policy: $1k-$50k, 50% of vested, 1-5 years, 8.5%, 1% fee"""
    return PlanConfig(
        max_loan_absolute=Decimal("50000"),
        max_loan_pct_of_vested=Decimal("0.5"),
        min_loan_amount=Decimal("1000"),
        term_years_min=1,
        term_years_max=5,
        default_annual_rate=Decimal("0.085"),
        origination_fee_pct=Decimal("0.01"),
        allowed_payment_cadences=frozenset(PaymentCadence),
        requires_spousal_consent=True,
    )


@pytest.fixture
def participant() -> ParticipantContext:
    """Enrolled, married participant with $120k vested"""
    return ParticipantContext(
        vested_balance=Decimal("120000"),
        outstanding_loan_balance=Decimal("0"),
        is_enrolled=True,
        is_married=True,
    )


@pytest.fixture
def funding_sources() -> List[FundingSource]:
    return [
        FundingSource(source_id="fund_sp500", source_name="S&P 500 Index"),
        FundingSource(source_id="fund_bond", source_name="Total Bond Market"),
        FundingSource(source_id="fund_2045", source_name="Target Date 2045"),
    ]


@pytest.fixture
def today() -> date:
    return date(2026, 3, 15)


@pytest.fixture
def recordkeeper() -> RecordingRecordkeeper:
    return RecordingRecordkeeper()


@pytest.fixture
def client(recordkeeper: RecordingRecordkeeper) -> TestClient:
    """Create FastAPI test client with an isolated draft store"""
    app = create_app()
    store = InMemoryApplicationStore()

    app.dependency_overrides[get_application_store] = lambda: store
    app.dependency_overrides[get_recordkeeper_client] = lambda: recordkeeper
    return TestClient(app)
