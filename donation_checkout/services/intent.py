"""
Donation intent: turn a donate-form submission into a pending donation row
and a live payment session.

Flow:
1. Validate the form locally (no I/O on failure)
2. Insert the donation with PENDING status, keep its id
3. Ask the relay for a payment session using that id as order_id
4. Open the gateway payment UI with the token, or redirect
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlencode

import structlog

from donation_checkout.core.config import get_settings
from donation_checkout.core.errors import (
    CheckoutError,
    IntentCreationError,
    IntentInProgressError,
    PaymentSessionError,
    ValidationError,
)
from donation_checkout.schemas.checkout import PaymentSession
from donation_checkout.schemas.donation import (
    CampaignResponse,
    CreateDonationRequest,
    DonationForm,
)

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


def validate_donation_form(form: DonationForm, min_amount: int = 5000) -> None:
    """Raise ValidationError listing every rule the form breaks"""
    errors = []
    if form.amount < min_amount:
        errors.append(f"amount must be at least {min_amount}")
    if not EMAIL_PATTERN.search(form.email or ""):
        errors.append("email is not valid")
    if not form.is_anonymous and len(form.name.strip()) <= 1:
        errors.append("name is required unless donating anonymously")
    if errors:
        raise ValidationError(errors)


@dataclass
class PaymentCallbacks:
    """Outcome hooks handed to the gateway payment UI"""
    on_success: Callable[..., None]
    on_pending: Callable[..., None]
    on_error: Callable[..., None]
    on_close: Callable[..., None]


class PaymentLauncher(Protocol):
    """Gateway payment UI (Snap popup or equivalent)"""

    @property
    def ready(self) -> bool: ...

    def pay(self, token: str, callbacks: PaymentCallbacks) -> None: ...


class Navigator(Protocol):
    def success(self, ref: str, slug: str, pending: bool = False) -> None: ...

    def failure(self, ref: str, slug: str, msg: Optional[str] = None) -> None: ...

    def redirect(self, url: str) -> None: ...


class UrlNavigator:
    """Navigator that turns outcomes into donate result URLs"""

    def __init__(self, go: Callable[[str], Any], base_path: str = "/donate"):
        self.go = go
        self.base_path = base_path.rstrip("/")

    def success(self, ref: str, slug: str, pending: bool = False) -> None:
        params = {"ref": ref}
        if pending:
            params["pending"] = "1"
        params["slug"] = slug
        self.go(f"{self.base_path}/success?{urlencode(params)}")

    def failure(self, ref: str, slug: str, msg: Optional[str] = None) -> None:
        params = {"ref": ref, "slug": slug}
        if msg:
            params["msg"] = msg
        self.go(f"{self.base_path}/failed?{urlencode(params)}")

    def redirect(self, url: str) -> None:
        self.go(url)


class IntentOutcome(str, Enum):
    LAUNCHED = "launched"
    REDIRECTED = "redirected"


@dataclass
class DonationIntent:
    donation_id: str
    session: PaymentSession
    outcome: IntentOutcome


class DonationIntentManager:
    """Creates donation intents for one donate form"""

    def __init__(
        self,
        store,
        relay,
        navigator: Navigator,
        launcher: Optional[PaymentLauncher] = None,
        min_amount: Optional[int] = None,
    ):
        self.store = store
        self.relay = relay
        self.navigator = navigator
        self.launcher = launcher
        self.min_amount = min_amount if min_amount is not None else get_settings().min_donation_amount
        self.submitting = False
        self.created_ref: Optional[str] = None

    async def create_donation_intent(self, campaign: Optional[CampaignResponse], form: DonationForm) -> DonationIntent:
        """
        Create a pending donation and open its payment session.

        Raises:
            IntentInProgressError: another submission is still in flight
            ValidationError: form or campaign rejected, nothing was stored
            IntentCreationError: the donation row could not be inserted
            PaymentSessionError: the row exists (pending) but no session was opened
        """
        if self.submitting:
            raise IntentInProgressError("A donation is already being submitted")

        validate_donation_form(form, self.min_amount)
        if campaign is None:
            raise ValidationError(["campaign not found"])
        if not campaign.is_published:
            raise ValidationError([f"campaign {campaign.slug} is not accepting donations"])

        self.submitting = True
        ui_open = False
        try:
            donation_id = await self._insert_pending(campaign, form)
            session = await self._open_session(donation_id, campaign, form)
            intent = self._launch(donation_id, session, campaign)
            ui_open = intent.outcome is IntentOutcome.LAUNCHED
            return intent
        finally:
            if not ui_open:
                self.submitting = False

    async def _insert_pending(self, campaign: CampaignResponse, form: DonationForm) -> str:
        donation_data = CreateDonationRequest.from_form(campaign.id, form)
        try:
            donation = await self.store.create_pending_donation(donation_data)
        except IntentCreationError:
            raise
        except Exception as e:
            logger.error("Failed to insert pending donation", campaign_id=campaign.id, error=str(e))
            raise IntentCreationError(f"Failed to create donation: {str(e)}") from e

        if donation is None or not donation.id:
            raise IntentCreationError("Store returned no donation id")

        self.created_ref = donation.id
        logger.info("Pending donation created", donation_id=donation.id, campaign_id=campaign.id)
        return donation.id

    async def _open_session(self, donation_id: str, campaign: CampaignResponse, form: DonationForm) -> PaymentSession:
        body = {
            "order_id": donation_id,
            "amount": form.amount,
            "channel": form.channel.value,
            "donor": {
                "name": None if form.is_anonymous else form.name.strip(),
                "email": form.email.strip(),
                "phone": form.phone.strip(),
                "is_anonymous": form.is_anonymous,
                "note": form.message,
            },
            "campaign_id": campaign.id,
        }
        try:
            session = await self.relay.create_payment_session(body)
        except CheckoutError:
            raise
        except Exception as e:
            logger.error("Relay call failed", donation_id=donation_id, error=str(e))
            raise PaymentSessionError(str(e)) from e

        if session is None or not session.usable:
            raise PaymentSessionError("Relay returned neither token nor redirect_url")
        if session.order_id != donation_id:
            logger.warning("Relay echoed a different order_id", donation_id=donation_id, order_id=session.order_id)
        return session

    def _launch(self, donation_id: str, session: PaymentSession, campaign: CampaignResponse) -> DonationIntent:
        slug = campaign.slug

        if session.token and self.launcher is not None and self.launcher.ready:
            def on_success(*_):
                self.submitting = False
                self.navigator.success(donation_id, slug)

            def on_pending(*_):
                self.submitting = False
                self.navigator.success(donation_id, slug, pending=True)

            def on_error(*_):
                self.submitting = False
                self.navigator.failure(donation_id, slug)

            def on_close(*_):
                self.submitting = False

            self.launcher.pay(session.token, PaymentCallbacks(on_success, on_pending, on_error, on_close))
            logger.info("Payment UI opened", donation_id=donation_id)
            return DonationIntent(donation_id, session, IntentOutcome.LAUNCHED)

        if session.redirect_url:
            logger.info("Redirecting to payment page", donation_id=donation_id)
            self.navigator.redirect(session.redirect_url)
            return DonationIntent(donation_id, session, IntentOutcome.REDIRECTED)

        raise PaymentSessionError(
            "Payment UI is not loaded and no redirect_url was returned",
            user_message="Snap.js belum termuat. Coba refresh halaman.",
        )
