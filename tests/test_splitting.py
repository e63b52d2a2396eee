"""
Tests for split strategies and balance aggregation.
"""

import pytest
from decimal import Decimal

from splitledger.models.transaction import ParticipantShare, SplitMethod
from splitledger.splitting import (
    EqualSplitStrategy,
    ExactSplitStrategy,
    PercentageSplitStrategy,
    SplitError,
    balance_with,
    calculate_balances,
    finalize_split,
    get_strategy,
    list_counterparties,
    round_money,
)

from conftest import ALICE, BOB, ME, make_draft, make_transaction


def shares(*values: str) -> list[ParticipantShare]:
    return [
        ParticipantShare(user_id=f"user-{i}", share=Decimal(v))
        for i, v in enumerate(values)
    ]


class TestRounding:
    """Tests for money rounding."""

    def test_round_half_up(self):
        """Test that half a cent rounds away from zero."""
        assert round_money(Decimal("2.005")) == Decimal("2.01")
        assert round_money(Decimal("2.004")) == Decimal("2.00")


class TestEqualSplit:
    """Tests for EqualSplitStrategy."""

    def test_even_split(self):
        """Test an amount that divides evenly."""
        amounts = EqualSplitStrategy().amounts(Decimal("45.00"), shares("0", "0"))
        assert amounts == [Decimal("22.50"), Decimal("22.50")]

    def test_rounding_drift_is_kept(self):
        """Test that 10.00 over 3 gives 3.33 each, summing to 9.99."""
        amounts = EqualSplitStrategy().amounts(Decimal("10.00"), shares("0", "0", "0"))
        assert amounts == [Decimal("3.33")] * 3
        assert sum(amounts) == Decimal("9.99")

    def test_requires_participants(self):
        """Test that an empty participant list is rejected."""
        assert EqualSplitStrategy().check(Decimal("10"), []) is not None


class TestPercentageSplit:
    """Tests for PercentageSplitStrategy."""

    def test_valid_percentages(self):
        """Test percentages that sum to 100."""
        strategy = PercentageSplitStrategy()
        assert strategy.check(Decimal("200"), shares("50", "30", "20")) is None
        assert strategy.amounts(Decimal("200"), shares("50", "30", "20")) == [
            Decimal("100.00"), Decimal("60.00"), Decimal("40.00"),
        ]

    def test_sum_must_be_100(self):
        """Test the message for percentages not summing to 100."""
        message = PercentageSplitStrategy().check(Decimal("100"), shares("50", "40"))
        assert message == "The sum of percentages (90.00%) should equal 100%"

    def test_within_tolerance(self):
        """Test that a 0.01 difference is tolerated."""
        assert PercentageSplitStrategy().check(
            Decimal("100"), shares("33.33", "33.33", "33.34")
        ) is None
        assert PercentageSplitStrategy().check(
            Decimal("100"), shares("33.33", "33.33", "33.33")
        ) is None

    def test_out_of_range_percentage(self):
        """Test that a percentage above 100 is rejected."""
        message = PercentageSplitStrategy().check(Decimal("100"), shares("150", "-50"))
        assert "between 0 and 100" in message


class TestExactSplit:
    """Tests for ExactSplitStrategy."""

    def test_matching_amounts(self):
        """Test amounts that add up to the total."""
        strategy = ExactSplitStrategy()
        assert strategy.check(Decimal("30"), shares("10", "20")) is None
        assert strategy.amounts(Decimal("30"), shares("10", "20")) == [
            Decimal("10"), Decimal("20"),
        ]

    def test_mismatch_message(self):
        """Test the message when amounts don't add up."""
        message = ExactSplitStrategy().check(Decimal("30"), shares("10", "15"))
        assert message == "The sum of individual amounts (25.00) doesn't match the total (30.00)"

    def test_validate_raises(self):
        """Test that validate() raises SplitError."""
        with pytest.raises(SplitError):
            ExactSplitStrategy().validate(Decimal("30"), shares("10", "15"))

    def test_negative_amount(self):
        """Test that negative amounts are rejected."""
        assert "cannot be negative" in ExactSplitStrategy().check(
            Decimal("0"), shares("10", "-10")
        )

    def test_sub_cent_amounts_rejected(self):
        """Test that amounts finer than a cent never reach the stored shares."""
        message = ExactSplitStrategy().check(Decimal("20"), shares("10.005", "9.995"))
        assert message == "Amount for user-0 can't have more than 2 decimal places"
        with pytest.raises(SplitError):
            ExactSplitStrategy().validate(Decimal("20"), shares("10.005", "9.995"))

    def test_trailing_zeros_accepted(self):
        """Test that 10.500 counts as a whole-cent amount."""
        assert ExactSplitStrategy().check(Decimal("20"), shares("10.500", "9.5")) is None


class TestFinalizeSplit:
    """Tests for finalize_split()."""

    def test_equal_split_marks_payer_paid(self):
        """Test that only the payer's share starts paid."""
        participants = finalize_split(make_draft())
        assert [p.amount for p in participants] == [Decimal("10.00")] * 3
        assert [p.paid for p in participants] == [True, False, False]

    def test_percentage_converted_once(self):
        """Test that finalizing twice gives the same result."""
        draft = make_draft(
            amount="200",
            method=SplitMethod.PERCENTAGE,
            shares=((ME, "50"), (ALICE, "25"), (BOB, "25")),
        )
        first = finalize_split(draft)
        second = finalize_split(draft)
        assert [p.amount for p in first] == [Decimal("100.00"), Decimal("50.00"), Decimal("50.00")]
        assert first == second
        # the draft still holds percentages
        assert draft.participants[0].share == Decimal("50")

    def test_missing_amount(self):
        """Test that a draft without an amount cannot be finalized."""
        with pytest.raises(SplitError, match="valid amount"):
            finalize_split(make_draft(amount=None))

    def test_get_strategy(self):
        """Test strategy lookup by method value."""
        assert isinstance(get_strategy("amount"), ExactSplitStrategy)


class TestBalances:
    """Tests for the balance aggregator."""

    def test_user_paid_45_split_equally(self):
        """Test that the other participant owes 22.50 until they pay."""
        txn = make_transaction(amount="45.00", paid_by=ME, others=(ALICE,))
        summary = calculate_balances([txn], ME)
        assert summary.owed_to_me == Decimal("22.50")
        assert summary.i_owe == Decimal("0")
        assert summary.people_owe_me == 1

        txn.participant(ALICE).paid = True
        summary = calculate_balances([txn], ME)
        assert summary.owed_to_me == Decimal("0")

    def test_user_owes_payer(self):
        """Test that the user's unpaid share is owed to the payer."""
        txn = make_transaction(amount="30.00", paid_by=ALICE, others=(ME, BOB))
        summary = calculate_balances([txn], ME)
        assert summary.i_owe == Decimal("10.00")
        assert summary.owed_to_me == Decimal("0")
        assert summary.people_i_owe == 1

    def test_settled_transactions_ignored(self):
        """Test that settled transactions count as settled, not owed."""
        txns = [
            make_transaction(settled=True),
            make_transaction(paid_by=ALICE, others=(ME,)),
        ]
        summary = calculate_balances(txns, ME)
        assert summary.settled_count == 1
        assert summary.pending_count == 1
        assert summary.owed_to_me == Decimal("0")
        assert summary.i_owe == Decimal("22.50")
        assert summary.net == Decimal("-22.50")

    def test_balance_with_counterparty(self):
        """Test the net balance between two users."""
        txns = [
            make_transaction(amount="40.00", paid_by=ME, others=(ALICE,)),
            make_transaction(amount="10.00", paid_by=ALICE, others=(ME,)),
            make_transaction(amount="90.00", paid_by=BOB, others=(ME, ALICE)),
        ]
        assert balance_with(txns, ME, ALICE) == Decimal("15.00")
        assert balance_with(txns, ME, BOB) == Decimal("-30.00")

    def test_counterparties_in_first_seen_order(self):
        """Test that everyone the user split with is listed once."""
        txns = [
            make_transaction(others=(ALICE,)),
            make_transaction(others=(BOB, ALICE)),
        ]
        assert [m.id for m in list_counterparties(txns, ME)] == [ALICE, BOB]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
