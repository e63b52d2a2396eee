"""
Shared fixtures for SplitLedger tests.

No real API calls in tests: storage is in-memory or a fake spreadsheet.
"""

from datetime import date
from decimal import Decimal

import pytest

from splitledger.config import AppSettings
from splitledger.models.transaction import (
    Participant,
    ParticipantShare,
    SplitMethod,
    Transaction,
    TransactionDraft,
    UserProfile,
)


ME = "demo-user-123"
ALICE = "alice"
BOB = "bob"


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        app_environment="test",
        session_store_path=".splitledger-test/session.json",
    )


@pytest.fixture
def me() -> UserProfile:
    return UserProfile(uid=ME, email="demo@example.com", display_name="Demo User")


def make_transaction(
    title: str = "Dinner",
    amount: str = "45.00",
    paid_by: str = ME,
    others: tuple[str, ...] = (ALICE,),
    settled: bool = False,
    category: str = "Food & Drinks",
    transaction_date: date = date(2025, 1, 15),
    currency: str = "USD",
    description: str | None = None,
) -> Transaction:
    """An equal split between `paid_by` and `others`, payer's share paid."""
    people = [paid_by] + [o for o in others if o != paid_by]
    share = (Decimal(amount) / len(people)).quantize(Decimal("0.01"))
    return Transaction(
        title=title,
        description=description,
        amount=Decimal(amount),
        currency=currency,
        transaction_date=transaction_date,
        category=category,
        paid_by=paid_by,
        paid_by_name=paid_by.title(),
        participants=[
            Participant(user_id=uid, name=uid.title(), amount=share, paid=uid == paid_by)
            for uid in people
        ],
        settled=settled,
    )


def make_draft(
    amount: str | None = "30.00",
    method: SplitMethod = SplitMethod.EQUAL,
    shares: tuple[tuple[str, str], ...] = ((ME, "0"), (ALICE, "0"), (BOB, "0")),
    paid_by: str = ME,
    **overrides,
) -> TransactionDraft:
    data = {
        "title": "Dinner at Luigi's",
        "amount": Decimal(amount) if amount is not None else None,
        "currency": "USD",
        "transaction_date": date(2025, 1, 15),
        "category": "Food & Drinks",
        "paid_by": paid_by,
        "split_method": method,
        "participants": [
            ParticipantShare(user_id=uid, name=uid.title(), share=Decimal(share))
            for uid, share in shares
        ],
    }
    data.update(overrides)
    return TransactionDraft(**data)
