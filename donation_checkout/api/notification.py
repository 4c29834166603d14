from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_checkout.core.config import Settings, get_settings
from donation_checkout.core.errors import GatewayConfigurationError, InvalidSignatureError
from donation_checkout.database.database import get_db
from donation_checkout.middleware.metrics import payment_notifications_total
from donation_checkout.schemas.checkout import MidtransNotification, NotificationResult
from donation_checkout.services.notification import handle_notification

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = structlog.get_logger(__name__)


@router.post("/midtrans", response_model=NotificationResult)
async def midtrans_notification(
    notification: MidtransNotification,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Midtrans HTTP notification
    Moves a pending donation to paid or failed; replays are acknowledged
    without changes so the gateway stops retrying.
    """
    try:
        result = await handle_notification(db, notification, settings)
    except InvalidSignatureError as e:
        payment_notifications_total.labels(result="invalid_signature").inc()
        logger.warning("Rejected notification with bad signature", order_id=notification.order_id)
        return JSONResponse(status_code=403, content={"error": e.user_message})
    except GatewayConfigurationError as e:
        payment_notifications_total.labels(result="misconfigured").inc()
        return JSONResponse(status_code=500, content={"error": e.user_message})

    if result is None:
        payment_notifications_total.labels(result="unknown_order").inc()
        return JSONResponse(status_code=404, content={"error": "Donation not found"})

    payment_notifications_total.labels(result="applied" if result.applied else "ignored").inc()
    return result
