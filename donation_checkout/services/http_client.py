"""
HTTP client for the checkout service, used by the client-side flow
"""
from typing import Any, Dict, Optional

import httpx
import structlog

from donation_checkout.core.config import Settings, get_settings
from donation_checkout.core.errors import PaymentSessionError
from donation_checkout.schemas.checkout import PaymentSession
from donation_checkout.schemas.donation import DonationResponse

logger = structlog.get_logger(__name__)


class CheckoutHTTPClient:
    """Calls the relay and the reconciliation read endpoint"""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = httpx.Timeout(timeout, connect=5.0)
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CheckoutHTTPClient":
        settings = settings or get_settings()
        return cls(base_url=settings.checkout_api_url, api_key=settings.checkout_api_key)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    async def create_payment_session(self, body: Dict[str, Any]) -> PaymentSession:
        """
        Invoke the relay for one donation.

        Args:
            body: relay request (order_id, amount, channel, donor, campaign_id)

        Returns:
            The normalized payment session

        Raises:
            PaymentSessionError: relay unreachable, relay error, or no token/redirect URL
        """
        order_id = body["order_id"]
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/checkout",
                    json=body,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            logger.error("Timeout while invoking checkout relay", order_id=order_id)
            raise PaymentSessionError("Checkout relay timeout") from e
        except httpx.HTTPError as e:
            logger.error("Connection error to checkout relay", order_id=order_id, error=str(e))
            raise PaymentSessionError("Checkout relay unavailable") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            message = "Unknown error"
            if isinstance(data, dict):
                message = data.get("message") or data.get("error") or message
            logger.error(
                "Checkout relay returned an error",
                order_id=order_id,
                status_code=response.status_code,
                response=data,
            )
            raise PaymentSessionError(
                f"Relay error (HTTP {response.status_code}): {message}",
                user_message=f"Gagal membuat pembayaran.\n{message}",
            )

        session = PaymentSession.from_relay(data, fallback_order_id=order_id)
        if not session.usable:
            logger.error("Checkout relay returned no session token", order_id=order_id, response=data)
            raise PaymentSessionError("Relay returned neither token nor redirect_url")

        logger.info("Payment session created", order_id=order_id, has_token=bool(session.token))
        return session

    async def get_donation(self, donation_id: str) -> Optional[DonationResponse]:
        """Fetch the reconciliation projection of one donation, None when unknown"""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(
                f"{self.base_url}/donations/{donation_id}",
                headers=self._headers(),
            )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return DonationResponse.model_validate(response.json())
