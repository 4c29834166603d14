from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
import structlog

from donation_checkout.core.config import Settings, get_settings
from donation_checkout.core.errors import (
    BadRequestError,
    GatewayConfigurationError,
    UpstreamError,
)
from donation_checkout.middleware.metrics import payment_sessions_total
from donation_checkout.schemas.checkout import (
    CheckoutConfigResponse,
    CheckoutRequest,
    CheckoutResponse,
)
from donation_checkout.services.gateway import MidtransSnapClient, get_snap_client

router = APIRouter(prefix="/checkout", tags=["checkout"])
logger = structlog.get_logger(__name__)


@router.post("", response_model=CheckoutResponse)
async def create_payment_session(
    request: Request,
    snap_client: MidtransSnapClient = Depends(get_snap_client),
):
    """
    Relay a donation order to Midtrans Snap
    Flow:
    1. Reject bodies without order_id or a positive amount (400)
    2. Sign the transaction with the server key and forward it to Snap
    3. Return the Snap token and redirect URL
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    try:
        checkout = CheckoutRequest.model_validate(body) if isinstance(body, dict) else None
    except PydanticValidationError:
        checkout = None

    try:
        session = await snap_client.create_payment_session(checkout)
    except BadRequestError as e:
        payment_sessions_total.labels(outcome="bad_request").inc()
        logger.warning("Rejected checkout request", body=body)
        return JSONResponse(status_code=400, content={"error": e.user_message})
    except GatewayConfigurationError as e:
        payment_sessions_total.labels(outcome="misconfigured").inc()
        logger.error("Checkout relay has no server key")
        return JSONResponse(status_code=500, content={"error": e.user_message})
    except UpstreamError as e:
        payment_sessions_total.labels(outcome="upstream_error").inc()
        return JSONResponse(
            status_code=500,
            content={"error": "Midtrans API error", "details": e.details},
        )

    payment_sessions_total.labels(outcome="created").inc()
    logger.info("Checkout session relayed", order_id=session.order_id, channel=checkout.channel)
    return session


@router.get("/config", response_model=CheckoutConfigResponse)
def get_checkout_config(settings: Settings = Depends(get_settings)):
    """Public gateway settings the browser needs to load Snap.js"""
    return CheckoutConfigResponse(
        client_key=settings.midtrans_client_key,
        snap_js_url=settings.midtrans_snap_js_url,
        is_production=settings.midtrans_is_production,
    )
