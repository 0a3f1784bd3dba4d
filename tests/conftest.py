"""
Shared fixtures.

Everything runs on in-memory storage and a stub language model:
no real API calls in tests.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.groups import GroupWorkflow
from finance_tracker.models import (
    AuthUser,
    Category,
    Currency,
    OwnerScope,
    Transaction,
    TransactionInput,
    TransactionType,
)
from finance_tracker.orchestrator import AccountFlow, TransactionFlow
from finance_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryProfileStorage,
    InMemoryTransactionStorage,
)


class StubModel:
    """Stands in for a Gemini model: returns canned replies, records prompts."""

    def __init__(self, reply: str = "", error: Exception = None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.reply)


def make_transaction(
    amount="10.00",
    type=TransactionType.EXPENSE,
    category=Category.GROCERIES,
    currency=Currency.USD,
    date=None,
    description="Weekly groceries",
    created_by="alice",
    created_by_name="Alice",
    **extra,
) -> Transaction:
    return Transaction(
        date=date or datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc),
        description=description,
        amount=Decimal(amount),
        currency=currency,
        type=type,
        category=category,
        created_by=created_by,
        created_by_name=created_by_name,
        **extra,
    )


@pytest.fixture
def alice():
    return AuthUser(uid="alice", email="alice@example.com", display_name="Alice", email_verified=True)


@pytest.fixture
def bob():
    return AuthUser(uid="bob", email="bob@example.com", display_name="Bob", email_verified=True)


@pytest.fixture
def carol():
    return AuthUser(uid="carol", email="carol@example.com", display_name="Carol", email_verified=True)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def group_storage():
    return InMemoryGroupStorage()


@pytest.fixture
def transaction_storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def profile_storage():
    return InMemoryProfileStorage()


@pytest.fixture
def group_workflow(group_storage, audit_logger):
    return GroupWorkflow(group_storage, audit_logger=audit_logger)


@pytest.fixture
def stub_model():
    return StubModel('{"suggestedCategory": "Groceries", "confidence": 0.9}')


@pytest.fixture
def transaction_flow(transaction_storage, group_workflow, audit_logger, stub_model):
    from finance_tracker.agents import CategorySuggestionAgent

    return TransactionFlow(
        transaction_storage=transaction_storage,
        group_workflow=group_workflow,
        suggestion_agent=CategorySuggestionAgent(model=stub_model, audit_logger=audit_logger),
        audit_logger=audit_logger,
    )


@pytest.fixture
def account_flow(profile_storage, audit_logger):
    return AccountFlow(profile_storage, audit_logger=audit_logger)


@pytest.fixture
def personal_scope(alice):
    return OwnerScope.for_user(alice.uid)


@pytest.fixture
def expense_input():
    return TransactionInput(
        date=datetime(2024, 6, 15, tzinfo=timezone.utc),
        description="Weekly groceries",
        amount=Decimal("45.50"),
        currency=Currency.USD,
        type=TransactionType.EXPENSE,
        category=Category.GROCERIES,
    )
