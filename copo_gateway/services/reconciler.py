"""
Callback reconciler - applies Copo callbacks to local transactions

Callback format (deposit):
{
  "accessType": "1",
  "fee": "2.00",
  "language": "zh-CN",
  "merchantId": "ME00807",
  "orderAmount": "100.00",
  "orderNo": "COPproduction17681402929001234",
  "orderStatus": "1",
  "orderTime": "20260111220812900",
  "payOrderId": "ZF20260111225648bXPrl",
  "payOrderTime": "20260111220812900",
  "sign": "..."
}
Withdraw callbacks carry the same core fields with a COP_WITHDRAW_ order number.

Copo redelivers any callback that is not answered with the literal string
"success", so every logically handled callback is acknowledged - including
duplicates for orders that are already settled. Only a bad signature or an
unknown order is reported as an error.
"""

import enum
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from copo_gateway.core.transactions.models import TransactionDirection, TransactionStatus
from copo_gateway.services import transaction_store
from copo_gateway.services.exceptions import InvalidSignatureError, OrderNotFoundError
from copo_gateway.services.signing import SIGN_FIELD, verify
from copo_gateway.services.transaction_store import SettlementOutcome
from copo_gateway.utils.metrics import record_callback_rejected, record_settlement

logger = logging.getLogger(__name__)

CALLBACK_ACK = "success"


class CopoOrderStatus(str, enum.Enum):
    """orderStatus codes sent by Copo"""
    PROCESSING = "0"
    SUCCESS = "1"
    FAILED = "2"
    MANUAL_SUCCESS = "3"


# Codes that end the transaction; PROCESSING is acknowledged without a transition
FINAL_STATUS_BY_CODE = {
    CopoOrderStatus.SUCCESS.value: TransactionStatus.SUCCESS,
    CopoOrderStatus.MANUAL_SUCCESS.value: TransactionStatus.SUCCESS,
    CopoOrderStatus.FAILED.value: TransactionStatus.FAILED,
}


def resolve_final_status(order_status: Any) -> Optional[TransactionStatus]:
    """
    Map a Copo orderStatus code to a terminal status.

    Returns None for PROCESSING and for any code outside the known table;
    an unknown code is never treated as success.
    """
    return FINAL_STATUS_BY_CODE.get(str(order_status).strip() if order_status is not None else "")


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def handle_callback(
    *,
    db: Session,
    payload: Mapping[str, Any],
    secret_key: str,
) -> str:
    """
    Verify and apply a Copo callback.

    Returns:
        "success" - the acknowledgement Copo expects

    Raises:
        InvalidSignatureError: signature does not verify (nothing looked up, nothing changed)
        OrderNotFoundError: no transaction with this orderNo
    """
    if not verify(payload, payload.get(SIGN_FIELD), secret_key):
        record_callback_rejected(reason="signature_invalid")
        logger.error("Invalid callback signature, callback discarded")
        raise InvalidSignatureError()

    order_no = payload.get("orderNo")
    order_status = payload.get("orderStatus")

    tx = transaction_store.find_by_order_no(db, order_no)
    if tx is None:
        record_callback_rejected(reason="order_not_found")
        logger.warning(f"Transaction not found for orderNo: {order_no}")
        raise OrderNotFoundError("Order not found")

    transaction_id = tx.id
    direction = tx.direction.value.lower()
    if (tx.direction == TransactionDirection.WITHDRAW) != transaction_store.is_withdraw_order_no(order_no):
        logger.warning(
            f"Order number marker disagrees with stored direction: orderNo={order_no}, direction={tx.direction.value}"
        )

    logger.info(
        f"Callback for order {order_no}, orderStatus: {order_status}, tx status: {tx.status.value}"
    )

    final_status = resolve_final_status(order_status)
    if final_status is None:
        if str(order_status) == CopoOrderStatus.PROCESSING.value:
            record_settlement(direction=direction, outcome="processing")
            logger.info(f"Order {order_no} still processing at provider, no transition")
        else:
            record_settlement(direction=direction, outcome="unknown_status")
            logger.warning(
                f"Unrecognized orderStatus {order_status!r} for order {order_no}, no transition"
            )
        return CALLBACK_ACK

    credited_amount = _parse_amount(payload.get("orderAmount"))
    if credited_amount is None:
        logger.warning(
            f"Unusable orderAmount {payload.get('orderAmount')!r} for order {order_no}, crediting 0"
        )
        credited_amount = Decimal("0")
    fee_amount = _parse_amount(payload.get("fee")) or Decimal("0")

    outcome = transaction_store.apply_terminal_status(
        db=db,
        transaction_id=transaction_id,
        final_status=final_status,
        credited_amount=credited_amount,
        fee_amount=fee_amount,
        provider_status=str(order_status),
    )

    if outcome == SettlementOutcome.APPLIED:
        record_settlement(direction=direction, outcome=final_status.value)
        logger.info(f"Transaction {transaction_id} updated to {final_status.value}")
    else:
        record_settlement(direction=direction, outcome="already_settled")
        logger.info(f"Callback for already settled transaction {transaction_id}, no change")

    return CALLBACK_ACK
