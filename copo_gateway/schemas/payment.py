"""
Deposit and balance request/response schemas

Field names on the wire are camelCase, as sent by the upstream payment
gateway; extra parameters are tolerated and ignored.
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from copo_gateway.schemas.common import check_amount, check_text


class CopoProviderParams(BaseModel):
    """Per-merchant Copo parameters supplied with every request"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    site: str = Field(..., min_length=1, description="Site identifier (order number partition)")
    merchant_id: str = Field(..., alias="merchantId", min_length=1, description="Copo merchant ID")
    sign_key: str = Field(..., alias="signKey", min_length=1, description="Merchant MD5 sign key")
    callback_url: Optional[str] = Field(None, alias="callbackURL", description="Caller's own callback URL")
    result_url: Optional[str] = Field(None, alias="resultURL", description="Page the payer returns to")
    gateway_id: Optional[str] = Field(None, alias="gatewayId")


class DepositRequest(BaseModel):
    """Create deposit request"""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "username": "player001",
                "amount": "100.00",
                "params": {
                    "site": "production",
                    "merchantId": "ME00807",
                    "signKey": "merchant-sign-key",
                    "callbackURL": "https://bo.example.com/deposit/callback",
                    "gatewayId": "copo",
                },
            }
        },
    )

    username: str = Field(..., min_length=1, description="Customer identifier")
    amount: Decimal = Field(..., description="Deposit amount")
    params: CopoProviderParams

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Positive with at most 2 decimal places"""
        return check_amount(v)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v: str) -> str:
        return check_text(v)


class DepositData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    merchant_ref: str = Field(..., alias="merchantRef")
    system_ref: Optional[str] = Field(None, alias="systemRef")
    payee: str
    pay_amount: Decimal = Field(..., alias="payAmount")
    qr_code: str = Field("", alias="qrCode")
    expired_date: str = Field(..., alias="expiredDate")


class DepositResponse(BaseModel):
    status: bool = True
    data: DepositData


class BalanceRequest(BaseModel):
    """Balance request - only the provider params are needed"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    params: CopoProviderParams


class BalanceData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deposit_balance: Decimal = Field(..., alias="depositBalance")
    withdraw_balance: Decimal = Field(..., alias="withdrawBalance")
    withdraw_pending: Decimal = Field(Decimal("0"), alias="withdrawPending")
    pay_amount: Decimal = Field(Decimal("0"), alias="payAmount")
    proxy_amount: Decimal = Field(Decimal("0"), alias="proxyAmount")


class BalanceResponse(BaseModel):
    status: bool = True
    data: BalanceData


class OrderStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="customerId")
    status: str
    amount: Decimal
