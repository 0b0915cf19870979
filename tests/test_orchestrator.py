"""
Orchestrator tests - deposit and payout creation against a fake Copo
"""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy.orm import Session

from copo_gateway.core.transactions.models import (
    Transaction,
    TransactionDirection,
    TransactionStatus,
)
from copo_gateway.schemas.payment import CopoProviderParams, DepositRequest
from copo_gateway.schemas.withdraw import WithdrawRequest
from copo_gateway.services import orchestrator
from copo_gateway.services.copo_client import (
    PAY_ORDER_PATH,
    PROXY_ORDER_PATH,
    PROXY_QUERY_PATH,
    QUERY_BALANCE_PATH,
)
from copo_gateway.services.exceptions import (
    OrderNotFoundError,
    ProviderRejectedError,
    UpstreamError,
)
from copo_gateway.services.signing import sign
from tests.copo_utils import TEST_MERCHANT_ID, TEST_SIGN_KEY


@pytest.fixture
def provider_params() -> CopoProviderParams:
    return CopoProviderParams(
        site="production",
        merchantId=TEST_MERCHANT_ID,
        signKey=TEST_SIGN_KEY,
        callbackURL="https://bo.example.com/deposit/callback",
        gatewayId="copo",
    )


@pytest.fixture
def deposit_request(provider_params) -> DepositRequest:
    return DepositRequest(username="player001", amount=Decimal("100.00"), params=provider_params)


@pytest.fixture
def withdraw_request() -> WithdrawRequest:
    return WithdrawRequest(
        site="production",
        gatewayId="copo",
        username="player001",
        amount=Decimal("500.00"),
        bankName="KBANK",
        bankAccount="1234567890",
        bankAccountName="Somchai Jaidee",
        merchantId=TEST_MERCHANT_ID,
        signKey=TEST_SIGN_KEY,
        callbackURL="https://bo.example.com/withdraw/callback",
    )


def _only_transaction(db: Session) -> Transaction:
    db.expire_all()
    rows = db.query(Transaction).all()
    assert len(rows) == 1
    return rows[0]


class TestInitiateDeposit:
    def test_accepted_deposit(self, db_session, copo_client, fake_copo, deposit_request):
        result = orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)

        tx = _only_transaction(db_session)
        assert tx.status == TransactionStatus.PENDING
        assert tx.direction == TransactionDirection.DEPOSIT
        assert tx.provider_ref == "ZF20260111225648bXPrl"
        assert tx.pay_url == "https://pay.copo.test/qr/ZF20260111225648"

        assert result.transaction_id == tx.id
        assert result.merchant_order_no == tx.merchant_order_no
        assert result.pay_url == "https://pay.copo.test/qr/ZF20260111225648"
        assert result.pay_amount == Decimal("100.00")
        assert result.payee == "player001"
        assert result.expired_at.utcoffset() is not None

    def test_payload_is_signed_and_notifies_this_service(self, db_session, copo_client, fake_copo, deposit_request):
        orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)

        payload = fake_copo.last_payload(PAY_ORDER_PATH)
        assert payload["notifyUrl"] == "https://gateway.test/callback"
        assert payload["notifyUrl"] != deposit_request.params.callback_url
        assert payload["orderAmount"] == "100.00"
        assert payload["merchantId"] == TEST_MERCHANT_ID
        assert payload["currency"] == "THB"
        assert payload["orderNo"].startswith("COPproduction")
        assert payload["sign"] == sign(payload, TEST_SIGN_KEY)

    def test_rejected_deposit_is_failed(self, db_session, copo_client, fake_copo, deposit_request):
        fake_copo.respond(PAY_ORDER_PATH, {"respCode": "E01", "respMsg": "Invalid merchant"})

        with pytest.raises(ProviderRejectedError) as exc_info:
            orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)

        assert exc_info.value.message == "Invalid merchant"
        assert exc_info.value.provider_code == "E01"
        tx = _only_transaction(db_session)
        assert tx.status == TransactionStatus.FAILED
        assert tx.error_code == "E01"

    def test_rejection_without_message_uses_default(self, db_session, copo_client, fake_copo, deposit_request):
        fake_copo.respond(PAY_ORDER_PATH, {"respCode": "999"})

        with pytest.raises(ProviderRejectedError) as exc_info:
            orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)
        assert exc_info.value.message == "Payment creation failed"

    def test_unreachable_provider_leaves_pending(self, db_session, copo_client, fake_copo, deposit_request):
        fake_copo.respond(PAY_ORDER_PATH, httpx.ConnectError("connection refused"))

        with pytest.raises(UpstreamError):
            orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)

        tx = _only_transaction(db_session)
        assert tx.status == TransactionStatus.PENDING
        assert tx.provider_ref is None

    def test_provider_http_error_is_upstream_error(self, db_session, copo_client, fake_copo, deposit_request):
        fake_copo.respond(PAY_ORDER_PATH, httpx.Response(500, text="Internal Server Error"))

        with pytest.raises(UpstreamError):
            orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)
        assert _only_transaction(db_session).status == TransactionStatus.PENDING

    def test_non_json_body_is_upstream_error(self, db_session, copo_client, fake_copo, deposit_request):
        fake_copo.respond(PAY_ORDER_PATH, httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(UpstreamError):
            orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)

    def test_non_url_answer_has_empty_pay_url(self, db_session, copo_client, fake_copo, deposit_request):
        fake_copo.respond(PAY_ORDER_PATH, {"respCode": "000", "type": "html", "info": "<form/>", "payOrderNo": "ZF9"})

        result = orchestrator.initiate_deposit(db=db_session, client=copo_client, request=deposit_request)
        assert result.pay_url == ""
        assert result.provider_ref == "ZF9"


class TestInitiatePayout:
    def test_accepted_payout_is_processing(self, db_session, copo_client, fake_copo, withdraw_request):
        result = orchestrator.initiate_payout(db=db_session, client=copo_client, request=withdraw_request)

        tx = _only_transaction(db_session)
        assert tx.status == TransactionStatus.PROCESSING
        assert tx.direction == TransactionDirection.WITHDRAW
        assert tx.provider_ref == "DF20260111230011aBcDe"
        assert tx.bank_account == "1234567890"
        assert result.merchant_order_no.startswith("COP_WITHDRAW_production_")

        payload = fake_copo.last_payload(PROXY_ORDER_PATH)
        assert payload["bankName"] == "KBANK"
        assert payload["bankAccount"] == "1234567890"
        assert payload["bankAccountName"] == "Somchai Jaidee"
        assert payload["notifyUrl"] == "https://gateway.test/callback"
        assert payload["sign"] == sign(payload, TEST_SIGN_KEY)

    def test_rejected_payout_is_failed(self, db_session, copo_client, fake_copo, withdraw_request):
        fake_copo.respond(PROXY_ORDER_PATH, {"respCode": "E02", "respMsg": "Insufficient balance"})

        with pytest.raises(ProviderRejectedError):
            orchestrator.initiate_payout(db=db_session, client=copo_client, request=withdraw_request)
        assert _only_transaction(db_session).status == TransactionStatus.FAILED

    def test_timeout_leaves_pending(self, db_session, copo_client, fake_copo, withdraw_request):
        fake_copo.respond(PROXY_ORDER_PATH, httpx.ReadTimeout("timed out"))

        with pytest.raises(UpstreamError):
            orchestrator.initiate_payout(db=db_session, client=copo_client, request=withdraw_request)
        assert _only_transaction(db_session).status == TransactionStatus.PENDING


class TestQueries:
    def test_balance(self, copo_client, fake_copo, provider_params):
        result = orchestrator.get_balance(client=copo_client, params=provider_params)

        assert result.deposit_balance == Decimal("1500.50")
        assert result.withdraw_balance == Decimal("1500.50")
        assert result.pay_amount == Decimal("200.00")
        assert result.proxy_amount == Decimal("100.00")
        payload = fake_copo.last_payload(QUERY_BALANCE_PATH)
        assert payload["sign"] == sign(payload, TEST_SIGN_KEY)

    def test_balance_rejected(self, copo_client, fake_copo, provider_params):
        fake_copo.respond(QUERY_BALANCE_PATH, {"respCode": "E03", "respMsg": "Bad sign"})
        with pytest.raises(ProviderRejectedError):
            orchestrator.get_balance(client=copo_client, params=provider_params)

    def test_payout_query_returns_raw_answer(self, copo_client, fake_copo):
        data = orchestrator.query_payout_status(
            client=copo_client,
            merchant_id=TEST_MERCHANT_ID,
            sign_key=TEST_SIGN_KEY,
            order_no="COP_WITHDRAW_production_17681402929001234",
        )
        assert data["orderStatus"] == "1"
        assert fake_copo.last_payload(PROXY_QUERY_PATH)["orderNo"] == "COP_WITHDRAW_production_17681402929001234"

    def test_check_deposit_status(self, db_session, deposit_tx):
        tx = orchestrator.check_deposit_status(db=db_session, order_no=deposit_tx.merchant_order_no)
        assert tx.id == deposit_tx.id

    def test_check_deposit_status_unknown(self, db_session):
        with pytest.raises(OrderNotFoundError):
            orchestrator.check_deposit_status(db=db_session, order_no="COPproduction000")

    def test_check_deposit_status_ignores_withdrawals(self, db_session, withdraw_tx):
        with pytest.raises(OrderNotFoundError):
            orchestrator.check_deposit_status(db=db_session, order_no=withdraw_tx.merchant_order_no)

    def test_check_withdraw_status(self, db_session, withdraw_tx):
        tx = orchestrator.check_withdraw_status(db=db_session, site="production", transaction_id=withdraw_tx.id)
        assert tx.id == withdraw_tx.id
        with pytest.raises(OrderNotFoundError):
            orchestrator.check_withdraw_status(db=db_session, site="staging", transaction_id=withdraw_tx.id)
