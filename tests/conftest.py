"""Shared fixtures for the Cash-Flow Planner tests."""

from datetime import date
from decimal import Decimal

import pytest

from cashflow.config import EngineSettings, StorageSettings
from cashflow.models import (
    Client,
    Frequency,
    Project,
    ProjectStatus,
    RecurringMaster,
    Transaction,
    TransactionType,
)
from cashflow.services.storage import InMemoryAuditStorage, InMemoryPlannerStorage


OWNER_ID = "owner-1"


@pytest.fixture
def owner_id():
    return OWNER_ID


@pytest.fixture
def client_25_10():
    """Closes on the 25th, pays on the 10th of the following month."""
    return Client(
        id="client-1",
        owner_id=OWNER_ID,
        name="Acme",
        closing_day=25,
        payment_month_offset=1,
        payment_day=10,
    )


@pytest.fixture
def month_end_client():
    """Closes at month end, pays at the end of the following month."""
    return Client(
        id="client-2",
        owner_id=OWNER_ID,
        name="Globex",
        closing_day=99,
        payment_month_offset=1,
        payment_day=99,
    )


@pytest.fixture
def monthly_master():
    return RecurringMaster(
        id="master-1",
        owner_id=OWNER_ID,
        title="Office rent",
        base_amount=Decimal("120000"),
        type=TransactionType.EXPENSE,
        frequency=Frequency.MONTHLY,
        day_of_period=31,
        start_date=date(2024, 1, 31),
    )


@pytest.fixture
def project(client_25_10):
    return Project(
        id="project-1",
        owner_id=OWNER_ID,
        client_id=client_25_10.id,
        title="Website redesign",
        start_date=date(2024, 1, 5),
        end_date=date(2024, 1, 20),
        status=ProjectStatus.DRAFT,
        estimated_amount=Decimal("500000"),
    )


@pytest.fixture
def storage():
    return InMemoryPlannerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def engine_settings():
    return EngineSettings()


@pytest.fixture
def fast_retry():
    """Retry policy without backoff sleeps."""
    return StorageSettings(
        commit_retry_attempts=3,
        commit_retry_min_wait_seconds=0,
        commit_retry_max_wait_seconds=0,
    )


def _make_income(project_id, **overrides):
    fields = dict(
        owner_id=OWNER_ID,
        type=TransactionType.INCOME,
        amount=Decimal("250000"),
        transaction_date=date(2024, 1, 20),
        settlement_date=date(2024, 2, 10),
        client_id="client-1",
        memo="[Project] Website redesign",
        project_id=project_id,
    )
    fields.update(overrides)
    return Transaction(**fields)


@pytest.fixture
def make_income():
    """Factory for income transactions linked to a project."""
    return _make_income


@pytest.fixture
def seed():
    """Put records into an in-memory store and return the stored copies."""
    def _seed(store, collection, *records):
        return [store.put(collection, record) for record in records]
    return _seed
