"""
Transaction store - durable record of every request sent to Copo

All status changes go through conditional UPDATE statements so that the
row's current status is checked and changed in one step. This is what keeps
duplicate or concurrent callbacks from settling a transaction twice.
"""

import enum
import logging
import secrets
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from copo_gateway.core.transactions.models import (
    NON_TERMINAL_STATUSES,
    TERMINAL_STATUSES,
    Transaction,
    TransactionDirection,
    TransactionStatus,
)
from copo_gateway.schemas.common import check_amount
from copo_gateway.services.exceptions import ValidationError

logger = logging.getLogger(__name__)

ORDER_PREFIX = "COP"
WITHDRAW_MARKER = "WITHDRAW"
MAX_ORDER_NO_ATTEMPTS = 3


class SettlementOutcome(str, enum.Enum):
    """Result of apply_terminal_status"""
    APPLIED = "APPLIED"
    ALREADY_SETTLED = "ALREADY_SETTLED"


def generate_order_no(direction: TransactionDirection, site: str) -> str:
    """
    Generate a merchant order number.

    Wire format (kept for compatibility with existing callbacks):
    - Deposit:  COP<site><digits>
    - Withdraw: COP_WITHDRAW_<site>_<digits>

    <digits> is the millisecond timestamp plus a 4-digit random suffix, so two
    orders created in the same millisecond for the same site do not collide.
    """
    digits = f"{time.time_ns() // 1_000_000}{secrets.randbelow(10_000):04d}"
    if direction == TransactionDirection.WITHDRAW:
        return f"{ORDER_PREFIX}_{WITHDRAW_MARKER}_{site}_{digits}"
    return f"{ORDER_PREFIX}{site}{digits}"


def is_withdraw_order_no(order_no: Optional[str]) -> bool:
    """Naming-convention hint only; the stored direction is authoritative"""
    return bool(order_no) and WITHDRAW_MARKER in order_no


def _is_order_no_collision(error: IntegrityError) -> bool:
    """Unique violation on merchant_order_no (SQLite and PostgreSQL both name the column or its index)"""
    return "merchant_order_no" in str(error.orig)


def create_transaction(
    *,
    db: Session,
    direction: TransactionDirection,
    site: str,
    amount: Decimal,
    customer_id: str,
    merchant_id: Optional[str] = None,
    gateway_id: Optional[str] = None,
    callback_url: Optional[str] = None,
    bank_name: Optional[str] = None,
    bank_account: Optional[str] = None,
    bank_account_name: Optional[str] = None,
) -> Transaction:
    """
    Create a PENDING transaction with its merchant order number.

    The order number is assigned here, once, before any provider call.

    Raises:
        ValidationError: amount is not positive or has more than 2 decimal places
    """
    try:
        amount = check_amount(Decimal(str(amount)))
    except (ArithmeticError, ValueError) as e:
        raise ValidationError(str(e), {"amount": str(amount)})

    for attempt in range(1, MAX_ORDER_NO_ATTEMPTS + 1):
        transaction = Transaction(
            merchant_order_no=generate_order_no(direction, site),
            direction=direction,
            status=TransactionStatus.PENDING,
            amount=amount,
            site=site,
            merchant_id=merchant_id,
            gateway_id=gateway_id,
            callback_url=callback_url,
            customer_id=customer_id,
            bank_name=bank_name,
            bank_account=bank_account,
            bank_account_name=bank_account_name,
        )
        db.add(transaction)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if not _is_order_no_collision(e) or attempt == MAX_ORDER_NO_ATTEMPTS:
                raise
            logger.warning(
                f"Order number collision, regenerating: order_no={transaction.merchant_order_no}, attempt={attempt}"
            )
            continue

        db.refresh(transaction)
        logger.info(
            f"Transaction created: id={transaction.id}, order_no={transaction.merchant_order_no}, "
            f"direction={direction.value}, amount={amount}, site={site}"
        )
        return transaction


def mark_request_accepted(
    *,
    db: Session,
    transaction_id: UUID,
    provider_ref: Optional[str],
    pay_url: Optional[str] = None,
    expired_at: Optional[datetime] = None,
) -> None:
    """
    Record that Copo accepted the request.

    Never moves the status to a terminal value. Payouts move PENDING ->
    PROCESSING; deposits stay PENDING until the callback. If a callback has
    already settled the row (it can overtake the HTTP response), the status
    is left alone.
    """
    db.execute(
        update(Transaction)
        .where(Transaction.id == transaction_id)
        .values(provider_ref=provider_ref, pay_url=pay_url, expired_at=expired_at)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(Transaction)
        .where(
            Transaction.id == transaction_id,
            Transaction.direction == TransactionDirection.WITHDRAW,
            Transaction.status == TransactionStatus.PENDING,
        )
        .values(status=TransactionStatus.PROCESSING)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Provider accepted request: id={transaction_id}, provider_ref={provider_ref}")


def mark_request_rejected(
    *,
    db: Session,
    transaction_id: UUID,
    error_code: Optional[str],
    error_message: Optional[str],
) -> bool:
    """
    Record that Copo rejected the request: status FAILED (terminal).

    Returns True if the row was moved to FAILED, False if it was already terminal.
    """
    result = db.execute(
        update(Transaction)
        .where(
            Transaction.id == transaction_id,
            Transaction.status.in_(NON_TERMINAL_STATUSES),
        )
        .values(
            status=TransactionStatus.FAILED,
            error_code=(error_code or "")[:32] or None,
            error_message=(error_message or "")[:512] or None,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    rejected = result.rowcount == 1
    logger.info(
        f"Provider rejected request: id={transaction_id}, error_code={error_code}, "
        f"error_message={error_message}, status_changed={rejected}"
    )
    return rejected


def find_by_order_no(db: Session, order_no: Optional[str]) -> Optional[Transaction]:
    """Find a transaction by its merchant order number"""
    if not order_no:
        return None
    return db.query(Transaction).filter(
        Transaction.merchant_order_no == order_no
    ).first()


def get_transaction(db: Session, transaction_id: UUID, site: Optional[str] = None) -> Optional[Transaction]:
    """Find a transaction by id, optionally scoped to a site"""
    query = db.query(Transaction).filter(Transaction.id == transaction_id)
    if site is not None:
        query = query.filter(Transaction.site == site)
    return query.first()


def apply_terminal_status(
    *,
    db: Session,
    transaction_id: UUID,
    final_status: TransactionStatus,
    credited_amount: Optional[Decimal],
    fee_amount: Optional[Decimal],
    provider_status: Optional[str] = None,
) -> SettlementOutcome:
    """
    Settle a transaction - at most once.

    Single statement: UPDATE ... WHERE id = :id AND status IN (PENDING, PROCESSING).
    Of two concurrent callbacks for the same order, exactly one updates the
    row; the other matches nothing and reports ALREADY_SETTLED.
    """
    if final_status not in TERMINAL_STATUSES:
        raise ValueError(f"{final_status} is not a terminal status")

    result = db.execute(
        update(Transaction)
        .where(
            Transaction.id == transaction_id,
            Transaction.status.in_(NON_TERMINAL_STATUSES),
        )
        .values(
            status=final_status,
            credited_amount=credited_amount,
            fee_amount=fee_amount,
            provider_status=provider_status,
            settled_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount == 1:
        logger.info(f"Transaction {transaction_id} settled as {final_status.value}")
        return SettlementOutcome.APPLIED

    logger.info(f"Transaction {transaction_id} already settled, callback ignored")
    return SettlementOutcome.ALREADY_SETTLED
