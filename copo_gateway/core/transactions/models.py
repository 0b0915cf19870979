"""
Transaction model - one row per deposit or payout sent to Copo
"""

from sqlalchemy import Column, String, Numeric, DateTime, CheckConstraint, Enum as SQLEnum
import enum
from copo_gateway.core.common.base_model import BaseModel


class TransactionDirection(str, enum.Enum):
    """Direction of the money movement"""
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"


class TransactionStatus(str, enum.Enum):
    """Transaction status enum - PENDING -> (PROCESSING) -> SUCCESS | FAILED"""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"  # Payouts only, once Copo accepted the order
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


NON_TERMINAL_STATUSES = (TransactionStatus.PENDING, TransactionStatus.PROCESSING)
TERMINAL_STATUSES = (TransactionStatus.SUCCESS, TransactionStatus.FAILED)


class Transaction(BaseModel):
    """
    Transaction model - local record of a provider-bound request

    merchant_order_no is generated here, sent to Copo as orderNo and echoed
    back in the callback; it is the correlation key between the two sides.

    Status only moves forward. SUCCESS and FAILED are terminal and the
    settlement fields (settled_at, credited_amount, fee_amount) are written
    in the same statement as the terminal status.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_transactions_amount_positive"),
    )

    merchant_order_no = Column(String(64), nullable=False, unique=True, index=True)
    provider_ref = Column(String(128), nullable=True, index=True)  # Copo payOrderNo
    direction = Column(SQLEnum(TransactionDirection, name="transaction_direction", create_constraint=True), nullable=False, index=True)
    status = Column(SQLEnum(TransactionStatus, name="transaction_status", create_constraint=True), nullable=False, default=TransactionStatus.PENDING, index=True)
    amount = Column(Numeric(20, 2), nullable=False)

    # Merchant / site partition
    site = Column(String(64), nullable=False, index=True)
    merchant_id = Column(String(64), nullable=True)
    gateway_id = Column(String(64), nullable=True)
    callback_url = Column(String(512), nullable=True)  # Caller's URL, kept for the record

    # Counterparty
    customer_id = Column(String(128), nullable=False, index=True)
    bank_name = Column(String(128), nullable=True)
    bank_account = Column(String(64), nullable=True)
    bank_account_name = Column(String(255), nullable=True)

    # Deposit preview returned by Copo
    pay_url = Column(String(1024), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)

    # Provider outcome
    provider_status = Column(String(8), nullable=True)  # Raw orderStatus code of the last callback
    error_code = Column(String(32), nullable=True)
    error_message = Column(String(512), nullable=True)

    # Settlement
    credited_amount = Column(Numeric(20, 2), nullable=True)
    fee_amount = Column(Numeric(20, 2), nullable=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
