"""
Midtrans Snap client used by the checkout relay.

This is the only code that reads the gateway server key. It is stateless
and never touches the donation store.
"""
import math
from typing import Any, Dict, Optional

import httpx
import structlog

from donation_checkout.core.config import Settings, get_settings
from donation_checkout.core.errors import (
    BadRequestError,
    GatewayConfigurationError,
    UpstreamError,
)
from donation_checkout.schemas.checkout import CheckoutRequest, CheckoutResponse, DonorDetails

logger = structlog.get_logger(__name__)

DEFAULT_DONOR_NAME = "Donatur"
DEFAULT_DONOR_EMAIL = "donatur@email.com"
ITEM_NAME = "Donasi"


def gross_amount(amount: float) -> int:
    """Round half up to whole rupiah"""
    return int(math.floor(amount + 0.5))


def build_transaction_payload(
    order_id: str,
    amount: float,
    donor: Optional[DonorDetails] = None,
    campaign_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Snap transaction body: transaction, customer and a single line item"""
    donor = donor or DonorDetails()
    total = gross_amount(amount)
    return {
        "transaction_details": {
            "order_id": order_id,
            "gross_amount": total,
        },
        "customer_details": {
            "first_name": donor.name or DEFAULT_DONOR_NAME,
            "email": donor.email or DEFAULT_DONOR_EMAIL,
            "phone": donor.phone or "",
        },
        "item_details": [
            {
                "id": campaign_id or "donation",
                "price": total,
                "quantity": 1,
                "name": ITEM_NAME,
            }
        ],
    }


def _response_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


class MidtransSnapClient:
    """HTTP client for the Snap transaction endpoint"""

    def __init__(
        self,
        server_key: str,
        snap_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_key = server_key
        self.snap_url = snap_url
        self.timeout = httpx.Timeout(timeout, connect=5.0)
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "MidtransSnapClient":
        return cls(
            server_key=settings.midtrans_server_key,
            snap_url=settings.midtrans_snap_url,
            timeout=settings.midtrans_timeout_seconds,
        )

    async def create_transaction(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a transaction to Snap, signed with the server key.

        Raises:
            GatewayConfigurationError: no server key configured
            UpstreamError: Snap answered non-2xx or could not be reached
        """
        if not self.server_key:
            raise GatewayConfigurationError()

        order_id = payload["transaction_details"]["order_id"]
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.snap_url,
                    json=payload,
                    auth=httpx.BasicAuth(self.server_key, ""),
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException:
            logger.error("Timeout while creating Snap transaction", order_id=order_id)
            raise UpstreamError(504, {"message": "Midtrans timeout"})
        except httpx.HTTPError as e:
            logger.error("Connection error to Midtrans", order_id=order_id, error=str(e))
            raise UpstreamError(503, {"message": "Midtrans unavailable"})

        data = _response_payload(response)
        if not response.is_success:
            logger.error(
                "Midtrans rejected transaction",
                order_id=order_id,
                status_code=response.status_code,
                response=data,
            )
            raise UpstreamError(response.status_code, data)

        logger.info("Snap transaction created", order_id=order_id)
        return data

    async def create_payment_session(self, request: Optional[CheckoutRequest]) -> CheckoutResponse:
        """Validate a relay request, create the Snap transaction, return token and redirect URL"""
        if request is None or not request.order_id or not request.amount:
            raise BadRequestError()
        if not math.isfinite(request.amount) or gross_amount(request.amount) <= 0:
            raise BadRequestError()

        payload = build_transaction_payload(
            order_id=request.order_id,
            amount=request.amount,
            donor=request.donor,
            campaign_id=request.campaign_id,
        )
        data = await self.create_transaction(payload)
        if not isinstance(data, dict):
            data = {}

        return CheckoutResponse(
            token=data.get("token"),
            redirect_url=data.get("redirect_url"),
            order_id=request.order_id,
        )


def get_snap_client() -> MidtransSnapClient:
    """Dependency to get the Snap client"""
    return MidtransSnapClient.from_settings(get_settings())
