"""
Midtrans HTTP notification handling: the only writer that moves a
donation out of PENDING.
"""
import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_checkout.core.config import Settings
from donation_checkout.core.errors import GatewayConfigurationError, InvalidSignatureError
from donation_checkout.models import DonationStatus
from donation_checkout.schemas.checkout import MidtransNotification, NotificationResult
from donation_checkout.services.donation import DonationService

logger = structlog.get_logger(__name__)

FAILED_TRANSACTION_STATUSES = {"deny", "cancel", "expire", "failure"}

# Midtrans reports settlement_time in Western Indonesia Time
WIB = timezone(timedelta(hours=7))


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_signature(notification: MidtransNotification, server_key: str) -> None:
    if not server_key:
        raise GatewayConfigurationError()
    expected = notification_signature(
        notification.order_id,
        notification.status_code,
        notification.gross_amount,
        server_key,
    )
    if not hmac.compare_digest(expected, notification.signature_key or ""):
        raise InvalidSignatureError(f"Invalid signature for order {notification.order_id}")


def resolve_status(notification: MidtransNotification) -> Optional[DonationStatus]:
    """Terminal donation status for a notification, or None if it is not final yet"""
    transaction_status = (notification.transaction_status or "").lower()
    fraud_status = (notification.fraud_status or "accept").lower()

    if transaction_status == "settlement":
        return DonationStatus.PAID
    if transaction_status == "capture":
        return DonationStatus.PAID if fraud_status == "accept" else None
    if transaction_status in FAILED_TRANSACTION_STATUSES:
        return DonationStatus.FAILED
    return None


def _settlement_time(notification: MidtransNotification) -> Optional[datetime]:
    if not notification.settlement_time:
        return None
    try:
        parsed = datetime.strptime(notification.settlement_time, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    return parsed.replace(tzinfo=WIB)


async def handle_notification(
    db: AsyncSession,
    notification: MidtransNotification,
    settings: Settings,
) -> Optional[NotificationResult]:
    """
    Apply a gateway notification to its donation.

    Returns None when the order_id matches no donation. Replays and
    notifications for rows that are already terminal are acknowledged
    without changing anything.
    """
    if settings.midtrans_verify_signature:
        verify_signature(notification, settings.midtrans_server_key)

    target = resolve_status(notification)
    logger.info("Payment notification received",
                order_id=notification.order_id,
                transaction_status=notification.transaction_status,
                fraud_status=notification.fraud_status,
                target_status=target.value if target else None)

    if target is None:
        donation = await DonationService.get_donation(db, notification.order_id)
        if donation is None:
            return None
        return NotificationResult(order_id=donation.id, status=donation.status.value, applied=False)

    donation, applied = await DonationService.apply_payment_status(
        db,
        notification.order_id,
        target,
        paid_at=_settlement_time(notification),
    )
    if donation is None:
        return None

    return NotificationResult(order_id=donation.id, status=donation.status.value, applied=applied)
