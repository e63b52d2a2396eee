"""
Balance Aggregator

Computes, for the acting user, how much others owe them and how much they
owe others, in a single pass over the ledger.

Rules:
- Settled transactions are ignored entirely.
- As payer, the user is owed every OTHER participant's unpaid share.
- As non-payer, the user owes their own unpaid share to the payer.

Amounts are summed across currencies as plain numbers; the dashboard shows
them in the default currency.
"""

from decimal import Decimal
from typing import Iterable

from splitledger.models.transaction import BalanceSummary, Member, Transaction


def calculate_balances(
    transactions: Iterable[Transaction],
    user_id: str,
) -> BalanceSummary:
    owed_to_me = Decimal("0")
    i_owe = Decimal("0")
    debtors: set[str] = set()
    creditors: set[str] = set()
    settled_count = 0
    pending_count = 0

    for txn in transactions:
        if txn.settled:
            settled_count += 1
            continue
        pending_count += 1

        if txn.paid_by == user_id:
            for p in txn.participants:
                if p.user_id != user_id and not p.paid:
                    owed_to_me += p.amount
                    debtors.add(p.user_id)
        else:
            me = txn.participant(user_id)
            if me is not None and not me.paid:
                i_owe += me.amount
                creditors.add(txn.paid_by)

    return BalanceSummary(
        owed_to_me=owed_to_me,
        i_owe=i_owe,
        people_owe_me=len(debtors),
        people_i_owe=len(creditors),
        settled_count=settled_count,
        pending_count=pending_count,
    )


def balance_with(
    transactions: Iterable[Transaction],
    user_id: str,
    counterparty_id: str,
) -> Decimal:
    """
    Net amount between two users over unsettled transactions.

    Positive: the counterparty owes the user. Negative: the user owes them.
    """
    net = Decimal("0")
    for txn in transactions:
        if txn.settled:
            continue
        if txn.paid_by == user_id:
            other = txn.participant(counterparty_id)
            if other is not None and not other.paid:
                net += other.amount
        elif txn.paid_by == counterparty_id:
            me = txn.participant(user_id)
            if me is not None and not me.paid:
                net -= me.amount
    return net


def list_counterparties(
    transactions: Iterable[Transaction],
    user_id: str,
) -> list[Member]:
    """
    Everyone the user has shared a transaction with, in first-seen order.

    Used to suggest people when adding participants to a new transaction.
    """
    seen: dict[str, Member] = {}
    for txn in transactions:
        if not txn.involves(user_id):
            continue
        for p in txn.participants:
            if p.user_id == user_id or p.user_id in seen:
                continue
            seen[p.user_id] = Member(
                id=p.user_id,
                name=p.name,
                email=p.email,
                photo_url=p.photo_url,
            )
    return list(seen.values())
