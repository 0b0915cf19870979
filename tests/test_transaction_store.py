"""
Transaction store tests - order numbers, status guards and settlement
"""

import re
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from copo_gateway.core.transactions.models import (
    Transaction,
    TransactionDirection,
    TransactionStatus,
)
from copo_gateway.services import transaction_store
from copo_gateway.services.exceptions import ValidationError
from copo_gateway.services.transaction_store import SettlementOutcome


def _reload(db: Session, tx: Transaction) -> Transaction:
    db.expire_all()
    return db.get(Transaction, tx.id)


class TestOrderNumbers:
    def test_deposit_order_no_format(self):
        order_no = transaction_store.generate_order_no(TransactionDirection.DEPOSIT, "production")
        assert re.fullmatch(r"COPproduction\d{17}", order_no)
        assert not transaction_store.is_withdraw_order_no(order_no)

    def test_withdraw_order_no_format(self):
        order_no = transaction_store.generate_order_no(TransactionDirection.WITHDRAW, "production")
        assert re.fullmatch(r"COP_WITHDRAW_production_\d{17}", order_no)
        assert transaction_store.is_withdraw_order_no(order_no)

    def test_order_numbers_are_unique_within_a_burst(self):
        numbers = {
            transaction_store.generate_order_no(TransactionDirection.DEPOSIT, "s1")
            for _ in range(200)
        }
        assert len(numbers) > 190

    @pytest.mark.parametrize("order_no", [None, ""])
    def test_empty_order_no_is_not_withdraw(self, order_no):
        assert transaction_store.is_withdraw_order_no(order_no) is False


class TestCreateTransaction:
    def test_creates_pending_row(self, db_session: Session, deposit_tx: Transaction):
        assert deposit_tx.id is not None
        assert deposit_tx.status == TransactionStatus.PENDING
        assert deposit_tx.direction == TransactionDirection.DEPOSIT
        assert deposit_tx.amount == Decimal("100.00")
        assert deposit_tx.merchant_order_no.startswith("COPproduction")
        assert deposit_tx.settled_at is None

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_non_positive_amount_rejected(self, db_session: Session, amount):
        with pytest.raises(ValidationError):
            transaction_store.create_transaction(
                db=db_session,
                direction=TransactionDirection.DEPOSIT,
                site="production",
                amount=amount,
                customer_id="player001",
            )
        assert db_session.query(Transaction).count() == 0

    def test_order_no_collision_is_retried(self, db_session: Session, deposit_tx: Transaction, monkeypatch):
        numbers = iter([deposit_tx.merchant_order_no, "COPproduction99999999999999999"])
        monkeypatch.setattr(transaction_store, "generate_order_no", lambda direction, site: next(numbers))

        tx = transaction_store.create_transaction(
            db=db_session,
            direction=TransactionDirection.DEPOSIT,
            site="production",
            amount=Decimal("50.00"),
            customer_id="player002",
        )
        assert tx.merchant_order_no == "COPproduction99999999999999999"
        assert db_session.query(Transaction).count() == 2


class TestLookups:
    def test_find_by_order_no(self, db_session: Session, deposit_tx: Transaction):
        found = transaction_store.find_by_order_no(db_session, deposit_tx.merchant_order_no)
        assert found is not None
        assert found.id == deposit_tx.id
        assert transaction_store.find_by_order_no(db_session, "COPunknown") is None
        assert transaction_store.find_by_order_no(db_session, None) is None

    def test_get_transaction_scoped_to_site(self, db_session: Session, withdraw_tx: Transaction):
        assert transaction_store.get_transaction(db_session, withdraw_tx.id, site="production") is not None
        assert transaction_store.get_transaction(db_session, withdraw_tx.id, site="staging") is None


class TestRequestOutcome:
    def test_accepted_deposit_stays_pending(self, db_session: Session, deposit_tx: Transaction):
        transaction_store.mark_request_accepted(
            db=db_session,
            transaction_id=deposit_tx.id,
            provider_ref="ZF001",
            pay_url="https://pay.copo.test/qr/1",
        )
        tx = _reload(db_session, deposit_tx)
        assert tx.status == TransactionStatus.PENDING
        assert tx.provider_ref == "ZF001"
        assert tx.pay_url == "https://pay.copo.test/qr/1"

    def test_accepted_withdraw_moves_to_processing(self, db_session: Session, withdraw_tx: Transaction):
        transaction_store.mark_request_accepted(
            db=db_session,
            transaction_id=withdraw_tx.id,
            provider_ref="DF001",
        )
        tx = _reload(db_session, withdraw_tx)
        assert tx.status == TransactionStatus.PROCESSING
        assert tx.provider_ref == "DF001"

    def test_accepted_never_overrides_terminal(self, db_session: Session, withdraw_tx: Transaction):
        """A callback can settle the row before the create response is processed"""
        transaction_store.apply_terminal_status(
            db=db_session,
            transaction_id=withdraw_tx.id,
            final_status=TransactionStatus.SUCCESS,
            credited_amount=Decimal("500.00"),
            fee_amount=Decimal("0"),
        )
        transaction_store.mark_request_accepted(
            db=db_session,
            transaction_id=withdraw_tx.id,
            provider_ref="DF001",
        )
        assert _reload(db_session, withdraw_tx).status == TransactionStatus.SUCCESS

    def test_rejected_marks_failed(self, db_session: Session, deposit_tx: Transaction):
        changed = transaction_store.mark_request_rejected(
            db=db_session,
            transaction_id=deposit_tx.id,
            error_code="E01",
            error_message="Invalid merchant",
        )
        tx = _reload(db_session, deposit_tx)
        assert changed is True
        assert tx.status == TransactionStatus.FAILED
        assert tx.error_code == "E01"
        assert tx.error_message == "Invalid merchant"


class TestApplyTerminalStatus:
    def test_first_settlement_applies(self, db_session: Session, deposit_tx: Transaction):
        outcome = transaction_store.apply_terminal_status(
            db=db_session,
            transaction_id=deposit_tx.id,
            final_status=TransactionStatus.SUCCESS,
            credited_amount=Decimal("100.00"),
            fee_amount=Decimal("2.00"),
            provider_status="1",
        )
        tx = _reload(db_session, deposit_tx)
        assert outcome == SettlementOutcome.APPLIED
        assert tx.status == TransactionStatus.SUCCESS
        assert tx.credited_amount == Decimal("100.00")
        assert tx.fee_amount == Decimal("2.00")
        assert tx.provider_status == "1"
        assert tx.settled_at is not None

    def test_terminal_status_is_immutable(self, db_session: Session, deposit_tx: Transaction):
        transaction_store.apply_terminal_status(
            db=db_session,
            transaction_id=deposit_tx.id,
            final_status=TransactionStatus.FAILED,
            credited_amount=None,
            fee_amount=Decimal("0"),
        )
        outcome = transaction_store.apply_terminal_status(
            db=db_session,
            transaction_id=deposit_tx.id,
            final_status=TransactionStatus.SUCCESS,
            credited_amount=Decimal("100.00"),
            fee_amount=Decimal("0"),
        )
        tx = _reload(db_session, deposit_tx)
        assert outcome == SettlementOutcome.ALREADY_SETTLED
        assert tx.status == TransactionStatus.FAILED
        assert tx.credited_amount is None

    @pytest.mark.parametrize("status", [TransactionStatus.PENDING, TransactionStatus.PROCESSING])
    def test_non_terminal_target_rejected(self, db_session: Session, deposit_tx: Transaction, status):
        with pytest.raises(ValueError):
            transaction_store.apply_terminal_status(
                db=db_session,
                transaction_id=deposit_tx.id,
                final_status=status,
                credited_amount=None,
                fee_amount=None,
            )


class TestAmountScale:
    @pytest.mark.parametrize("amount", [Decimal("0.004"), Decimal("100.005"), Decimal("1E+19")])
    def test_unrepresentable_amount_rejected(self, db_session: Session, amount):
        with pytest.raises(ValidationError):
            transaction_store.create_transaction(
                db=db_session,
                direction=TransactionDirection.WITHDRAW,
                site="production",
                amount=amount,
                customer_id="player001",
            )
        assert db_session.query(Transaction).count() == 0

    @pytest.mark.parametrize("amount", [Decimal("0.01"), Decimal("100.50"), Decimal("100.500"), Decimal("1E+2")])
    def test_two_decimal_amounts_accepted(self, db_session: Session, amount):
        tx = transaction_store.create_transaction(
            db=db_session,
            direction=TransactionDirection.DEPOSIT,
            site="production",
            amount=amount,
            customer_id="player001",
        )
        assert tx.amount == amount

    def test_non_collision_integrity_error_is_not_retried(self, db_session: Session, monkeypatch):
        """Only a duplicate order number is worth regenerating"""
        calls = []

        def order_no(direction, site):
            calls.append(site)
            return f"COP{site}{len(calls)}"

        monkeypatch.setattr(transaction_store, "generate_order_no", order_no)

        with pytest.raises(IntegrityError):
            transaction_store.create_transaction(
                db=db_session,
                direction=TransactionDirection.DEPOSIT,
                site="production",
                amount=Decimal("10.00"),
                customer_id=None,
            )
        assert len(calls) == 1
