"""Tests for transaction models and commission math."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dealdesk.commerce.transactions.models import (
    VALID_ESCROW_TRANSITIONS,
    EscrowStatus,
    PaymentStatus,
    Transaction,
    compute_commission,
)
from dealdesk.commerce.transactions.storage import matches_expected

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_transaction(**overrides) -> Transaction:
    data = dict(
        id="txn-1",
        project_id="proj-1",
        buyer_id="buyer-1",
        seller_id="seller-1",
        amount_cents=50_000,
        commission_cents=9_000,
        seller_receives_cents=41_000,
        escrow_release_date=NOW + timedelta(days=7),
        created_at=NOW,
    )
    data.update(overrides)
    return Transaction(**data)


class TestCommission:
    def test_default_rate(self):
        assert compute_commission(50_000, Decimal("0.18")) == (9_000, 41_000)

    def test_thousand_dollar_sale(self):
        assert compute_commission(100_000, Decimal("0.18")) == (18_000, 82_000)

    def test_rounds_half_up(self):
        # 18% of 2525 is 454.5
        assert compute_commission(2525, Decimal("0.18")) == (455, 2070)

    def test_rounds_down_below_half(self):
        # 18% of 1001 is 180.18
        assert compute_commission(1001, Decimal("0.18")) == (180, 821)

    def test_float_rate_is_not_binary_rounded(self):
        assert compute_commission(2525, 0.18) == (455, 2070)

    @pytest.mark.parametrize("amount", [1000, 1999, 4_999, 123_457])
    def test_parts_always_sum_to_amount(self, amount):
        commission, net = compute_commission(amount, Decimal("0.18"))
        assert commission + net == amount

    def test_zero_rate(self):
        assert compute_commission(50_000, Decimal("0")) == (0, 50_000)


class TestTransactionValidation:
    def test_defaults(self):
        txn = make_transaction()
        assert txn.payment_status == "pending"
        assert txn.escrow_status == "pending"
        assert txn.code_delivery_status == "not_accessed"
        assert not txn.is_paid
        assert not txn.is_released

    def test_enum_values_normalized(self):
        txn = make_transaction(payment_status=PaymentStatus.SUCCEEDED, escrow_status=EscrowStatus.HELD)
        assert txn.payment_status == "succeeded"
        assert txn.escrow_status == "held"

    def test_parts_must_add_up(self):
        with pytest.raises(ValueError, match="add up"):
            make_transaction(commission_cents=9_001)

    def test_amount_positive(self):
        with pytest.raises(ValueError):
            make_transaction(amount_cents=0, commission_cents=0, seller_receives_cents=0)

    def test_buyer_is_not_seller(self):
        with pytest.raises(ValueError, match="differ"):
            make_transaction(buyer_id="seller-1")

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            make_transaction(escrow_status="frozen")


class TestReleaseEligibility:
    def test_due_only_when_paid_held_and_past_date(self):
        txn = make_transaction(payment_status="succeeded", escrow_status="held")
        assert not txn.is_due_for_release(NOW)
        assert txn.is_due_for_release(NOW + timedelta(days=7))

    def test_disputed_is_never_due(self):
        txn = make_transaction(payment_status="succeeded", escrow_status="disputed")
        assert not txn.is_due_for_release(NOW + timedelta(days=30))

    def test_unpaid_is_never_due(self):
        txn = make_transaction()
        assert not txn.is_due_for_release(NOW + timedelta(days=30))

    def test_released_and_refunded_are_final(self):
        assert VALID_ESCROW_TRANSITIONS[EscrowStatus.RELEASED] == set()
        assert VALID_ESCROW_TRANSITIONS[EscrowStatus.REFUNDED] == set()


class TestSerialization:
    def test_from_dict_of_to_dict(self):
        txn = make_transaction(payment_status="succeeded", escrow_status="held", offer_id="offer-1")
        again = Transaction.from_dict(txn.to_dict())
        assert again == txn


class TestMatchesExpected:
    def test_scalar_and_tuple_conditions(self):
        row = {"payment_status": "succeeded", "escrow_status": "disputed"}
        assert matches_expected(row, {"payment_status": PaymentStatus.SUCCEEDED})
        assert matches_expected(row, {"escrow_status": (EscrowStatus.HELD, EscrowStatus.DISPUTED)})
        assert not matches_expected(row, {"escrow_status": EscrowStatus.HELD})
