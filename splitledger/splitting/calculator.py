"""
Split Calculator

Turns a total, a list of participants and a split method into per-participant
shares. One strategy per split method, all behind SplitStrategy.

DESIGN DECISION: Equal splits round each share to cents independently and do
NOT distribute the remainder. 10.00 split three ways is 3.33 / 3.33 / 3.33.
The one-cent drift is accepted; percentage and exact splits, which the user
typed in, must reconcile with the total within the configured tolerance.

DESIGN DECISION: Converting entered shares (percentages, exact amounts) into
currency amounts is one explicit step, finalize_split(). It builds new
Participant objects and never touches the draft, so running it twice cannot
convert a percentage twice.
"""

from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from splitledger.models.transaction import (
    Participant,
    ParticipantShare,
    SplitMethod,
    TransactionDraft,
)


CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_TOLERANCE = Decimal("0.01")


class SplitError(ValueError):
    """The entered shares do not add up. The message is user-facing."""
    pass


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _fmt(value: Decimal) -> str:
    return f"{round_money(value):.2f}"


class SplitStrategy(ABC):
    """Abstract strategy for splitting a total between participants."""

    method: SplitMethod

    @abstractmethod
    def check(
        self,
        total: Decimal,
        shares: list[ParticipantShare],
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> Optional[str]:
        """Return a user-facing error message, or None if the shares are valid."""
        pass

    @abstractmethod
    def amounts(self, total: Decimal, shares: list[ParticipantShare]) -> list[Decimal]:
        """Currency amount owed by each participant, in input order."""
        pass

    def validate(
        self,
        total: Decimal,
        shares: list[ParticipantShare],
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> None:
        """Raise SplitError if the shares are invalid."""
        message = self.check(total, shares, tolerance)
        if message:
            raise SplitError(message)


class EqualSplitStrategy(SplitStrategy):
    """Everyone owes total / N, rounded to cents."""

    method = SplitMethod.EQUAL

    def check(self, total, shares, tolerance=DEFAULT_TOLERANCE):
        if not shares:
            return "Please add at least one more person to split with"
        return None

    def amounts(self, total, shares):
        if not shares:
            return []
        per_person = round_money(total / len(shares))
        return [per_person for _ in shares]


class PercentageSplitStrategy(SplitStrategy):
    """Each participant owes a percentage of the total; percentages sum to 100."""

    method = SplitMethod.PERCENTAGE

    def check(self, total, shares, tolerance=DEFAULT_TOLERANCE):
        for share in shares:
            if share.share < 0 or share.share > HUNDRED:
                return f"Percentage for {share.name or share.user_id} must be between 0 and 100"
        total_percentage = sum((s.share for s in shares), Decimal("0"))
        if abs(total_percentage - HUNDRED) > tolerance:
            return f"The sum of percentages ({_fmt(total_percentage)}%) should equal 100%"
        return None

    def amounts(self, total, shares):
        return [round_money(s.share / HUNDRED * total) for s in shares]


class ExactSplitStrategy(SplitStrategy):
    """Each participant owes the amount entered for them."""

    method = SplitMethod.AMOUNT

    def check(self, total, shares, tolerance=DEFAULT_TOLERANCE):
        for share in shares:
            if share.share < 0:
                return f"Amount for {share.name or share.user_id} cannot be negative"
            if share.share != round_money(share.share):
                return (
                    f"Amount for {share.name or share.user_id} "
                    f"can't have more than 2 decimal places"
                )
        total_shares = sum((s.share for s in shares), Decimal("0"))
        if abs(total_shares - total) > tolerance:
            return (
                f"The sum of individual amounts ({_fmt(total_shares)}) "
                f"doesn't match the total ({_fmt(total)})"
            )
        return None

    def amounts(self, total, shares):
        return [s.share for s in shares]


STRATEGIES: dict[SplitMethod, SplitStrategy] = {
    SplitMethod.EQUAL: EqualSplitStrategy(),
    SplitMethod.PERCENTAGE: PercentageSplitStrategy(),
    SplitMethod.AMOUNT: ExactSplitStrategy(),
}


def get_strategy(method: SplitMethod) -> SplitStrategy:
    return STRATEGIES[SplitMethod(method)]


def finalize_split(
    draft: TransactionDraft,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[Participant]:
    """
    Convert a draft's entered shares into final participants.

    The payer's share is marked paid; everyone else starts unpaid.

    Raises:
        SplitError: If the draft has no amount or the shares don't reconcile
    """
    if draft.amount is None:
        raise SplitError("Please enter a valid amount")

    strategy = get_strategy(draft.split_method)
    strategy.validate(draft.amount, draft.participants, tolerance)

    amounts = strategy.amounts(draft.amount, draft.participants)
    return [
        Participant(
            user_id=share.user_id,
            name=share.name,
            email=share.email,
            photo_url=share.photo_url,
            amount=amount,
            paid=share.user_id == draft.paid_by,
        )
        for share, amount in zip(draft.participants, amounts)
    ]
