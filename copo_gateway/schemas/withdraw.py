"""
Withdraw (payout) request/response schemas
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from copo_gateway.schemas.common import check_amount, check_text


class WithdrawRequest(BaseModel):
    """Create payout request"""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "site": "production",
                "gatewayId": "copo",
                "username": "player001",
                "amount": "1000.00",
                "bankName": "KBANK",
                "bankAccount": "1234567890",
                "bankAccountName": "Somchai Jaidee",
                "merchantId": "ME00807",
                "signKey": "merchant-sign-key",
                "callbackURL": "https://bo.example.com/withdraw/callback",
            }
        },
    )

    site: str = Field(..., min_length=1)
    gateway_id: str = Field(..., alias="gatewayId", min_length=1)
    username: str = Field(..., min_length=1)
    amount: Decimal
    bank_name: str = Field(..., alias="bankName", min_length=1)
    bank_account: str = Field(..., alias="bankAccount", min_length=1)
    bank_account_name: str = Field(..., alias="bankAccountName", min_length=1)
    merchant_id: str = Field(..., alias="merchantId", min_length=1)
    sign_key: str = Field(..., alias="signKey", min_length=1)
    callback_url: str = Field(..., alias="callbackURL", min_length=1)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Positive with at most 2 decimal places"""
        return check_amount(v)

    @field_validator('username', 'bank_name', 'bank_account', 'bank_account_name')
    @classmethod
    def validate_text(cls, v: str) -> str:
        return check_text(v)


class WithdrawData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    withdraw_id: str = Field(..., alias="withdrawId")
    system_ref: Optional[str] = Field(None, alias="systemRef")
    order_no: str = Field(..., alias="orderNo")
    fee: Decimal = Decimal("0")
    status_code: int = Field(201, alias="statusCode")


class WithdrawResponse(BaseModel):
    status: bool = True
    data: WithdrawData


class WithdrawStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="customerId")
    status: str
    amount: Decimal
