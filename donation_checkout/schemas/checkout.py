from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Any, Dict, Optional

from donation_checkout.core.errors import PaymentSessionError


class DonorDetails(BaseModel):
    """Donor block forwarded to the relay"""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_anonymous: Optional[bool] = False
    note: Optional[str] = None

    model_config = ConfigDict(coerce_numbers_to_str=True)


class CheckoutRequest(BaseModel):
    """
    Relay request body.

    Everything is optional here so the relay itself can answer a missing
    order_id or amount with a 400 instead of FastAPI's 422.
    """
    order_id: Optional[str] = None
    amount: Optional[float] = Field(None, allow_inf_nan=False)
    channel: Optional[str] = None
    donor: Optional[DonorDetails] = None
    campaign_id: Optional[str] = None

    @field_validator("donor", mode="before")
    @classmethod
    def drop_malformed_donor(cls, value: Any) -> Any:
        # Snap falls back to default customer details
        return value if isinstance(value, (dict, DonorDetails)) else None

    model_config = ConfigDict(
        extra="ignore",
        coerce_numbers_to_str=True,
        json_schema_extra={
            "example": {
                "order_id": "7d6c1c2e-2c7a-4f0b-8f5b-0f3f8a4f2a11",
                "amount": 25000,
                "channel": "qris",
                "donor": {
                    "name": "Budi",
                    "email": "budi@example.com",
                    "phone": "",
                    "is_anonymous": False,
                    "note": "Semoga lancar"
                },
                "campaign_id": "2f1c7d0e-5a57-4c4e-9d3c-4b8b8d2c1a10"
            }
        }
    )


class CheckoutResponse(BaseModel):
    """Relay success body"""
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    order_id: str


class CheckoutConfigResponse(BaseModel):
    """Public gateway settings for the browser SDK"""
    client_key: str
    snap_js_url: str
    is_production: bool


class PaymentSession(BaseModel):
    """Canonical payment session, whatever field names the relay used"""
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    order_id: str

    @property
    def usable(self) -> bool:
        return bool(self.token or self.redirect_url)

    @classmethod
    def from_relay(cls, data: Optional[Dict[str, Any]], fallback_order_id: str) -> "PaymentSession":
        """Normalize a relay response (token/snap_token, redirect_url/redirectUrl)"""
        if not isinstance(data, dict):
            raise PaymentSessionError("Relay returned an unexpected body")
        return cls(
            token=data.get("token") or data.get("snap_token") or None,
            redirect_url=data.get("redirect_url") or data.get("redirectUrl") or None,
            order_id=str(data.get("order_id") or fallback_order_id),
        )


class MidtransNotification(BaseModel):
    """HTTP notification the gateway posts when a transaction changes"""
    order_id: str
    status_code: str
    gross_amount: str
    transaction_status: str
    signature_key: Optional[str] = None
    fraud_status: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_type: Optional[str] = None
    settlement_time: Optional[str] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class NotificationResult(BaseModel):
    """Outcome of applying a gateway notification"""
    order_id: str
    status: str
    applied: bool = Field(..., description="False when the row was already terminal or the event carries no outcome")
