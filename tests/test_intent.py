"""
Donation intent tests
Covers form validation, the pending insert, the relay call and payment UI launch
"""
import sys
from pathlib import Path
# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from donation_checkout.core.errors import (
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
    DonationResponse,
)
from donation_checkout.services.http_client import CheckoutHTTPClient
from donation_checkout.services.intent import (
    DonationIntentManager,
    IntentOutcome,
    PaymentCallbacks,
    UrlNavigator,
    validate_donation_form,
)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def campaign():
    return CampaignResponse(
        id="camp-1",
        slug="air-bersih",
        title="Air Bersih untuk Desa",
        target_amount=1_000_000,
        raised_amount=250_000,
        status="published",
    )


@pytest.fixture
def form():
    return DonationForm(
        amount=25000,
        channel="qris",
        name="Budi",
        email="budi@example.com",
        message="Semoga lancar",
    )


@pytest.fixture
def pending_donation():
    return DonationResponse(
        id="d-123",
        campaign_id="camp-1",
        amount=25000,
        donor_name="Budi",
        is_anonymous=False,
        channel="qris",
        status="pending",
        created_at=datetime(2025, 11, 21, 10, 0, 0, tzinfo=timezone.utc),
        paid_at=None,
    )


@pytest.fixture
def store(pending_donation):
    store = MagicMock()
    store.create_pending_donation = AsyncMock(return_value=pending_donation)
    return store


@pytest.fixture
def relay():
    relay = MagicMock()
    relay.create_payment_session = AsyncMock(
        return_value=PaymentSession(token="abc", order_id="d-123")
    )
    return relay


@pytest.fixture
def launcher():
    launcher = MagicMock()
    launcher.ready = True
    return launcher


@pytest.fixture
def navigator():
    return MagicMock()


@pytest.fixture
def manager(store, relay, navigator, launcher):
    return DonationIntentManager(store, relay, navigator, launcher=launcher, min_amount=5000)


# ============================================================================
# FORM VALIDATION
# ============================================================================

class TestValidateDonationForm:

    def test_valid_form(self, form):
        validate_donation_form(form)

    @pytest.mark.parametrize("amount", [0, 1000, 4999])
    def test_amount_below_minimum(self, form, amount):
        form.amount = amount
        with pytest.raises(ValidationError) as exc_info:
            validate_donation_form(form)
        assert exc_info.value.errors == ["amount must be at least 5000"]

    @pytest.mark.parametrize("email", ["", "budi", "budi@example", "budi @example.com", "@."])
    def test_invalid_email(self, form, email):
        form.email = email
        with pytest.raises(ValidationError):
            validate_donation_form(form)

    @pytest.mark.parametrize("name", ["", " ", "B", "  B  "])
    def test_name_required_unless_anonymous(self, form, name):
        form.name = name
        with pytest.raises(ValidationError):
            validate_donation_form(form)

        form.is_anonymous = True
        validate_donation_form(form)

    def test_collects_every_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_donation_form(DonationForm(amount=100))
        assert len(exc_info.value.errors) == 3
        assert exc_info.value.user_message == "Lengkapi data donasi terlebih dahulu."


# ============================================================================
# CREATE DONATION INTENT
# ============================================================================

class TestCreateDonationIntent:
    """Pending insert, relay call and payment UI launch"""

    @pytest.mark.asyncio
    async def test_happy_path_opens_payment_ui(self, manager, campaign, form, store, relay, launcher, navigator):
        intent = await manager.create_donation_intent(campaign, form)

        assert intent.outcome is IntentOutcome.LAUNCHED
        assert intent.donation_id == "d-123"
        assert manager.created_ref == "d-123"

        inserted = store.create_pending_donation.await_args.args[0]
        assert isinstance(inserted, CreateDonationRequest)
        assert inserted.status == "pending"
        assert inserted.campaign_id == "camp-1"
        assert inserted.amount == 25000
        assert inserted.donor_name == "Budi"

        body = relay.create_payment_session.await_args.args[0]
        assert body["order_id"] == "d-123"
        assert body["amount"] == 25000
        assert body["channel"] == "qris"
        assert body["campaign_id"] == "camp-1"
        assert body["donor"]["name"] == "Budi"
        assert body["donor"]["note"] == "Semoga lancar"

        token, callbacks = launcher.pay.call_args.args
        assert token == "abc"
        assert isinstance(callbacks, PaymentCallbacks)
        # Stays in flight while the payment UI is open
        assert manager.submitting is True
        assert navigator.method_calls == []

    @pytest.mark.asyncio
    async def test_success_callback_navigates_with_store_id(self, manager, campaign, form, launcher, navigator):
        await manager.create_donation_intent(campaign, form)
        callbacks = launcher.pay.call_args.args[1]

        callbacks.on_success({"transaction_status": "settlement"})

        navigator.success.assert_called_once_with("d-123", "air-bersih")
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_pending_callback(self, manager, campaign, form, launcher, navigator):
        await manager.create_donation_intent(campaign, form)

        launcher.pay.call_args.args[1].on_pending()

        navigator.success.assert_called_once_with("d-123", "air-bersih", pending=True)

    @pytest.mark.asyncio
    async def test_error_callback(self, manager, campaign, form, launcher, navigator):
        await manager.create_donation_intent(campaign, form)

        launcher.pay.call_args.args[1].on_error()

        navigator.failure.assert_called_once_with("d-123", "air-bersih")
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_closing_payment_ui_only_resets_submitting(self, manager, campaign, form, launcher, navigator):
        await manager.create_donation_intent(campaign, form)

        launcher.pay.call_args.args[1].on_close()

        assert manager.submitting is False
        assert navigator.method_calls == []

    @pytest.mark.asyncio
    async def test_navigation_ignores_relay_order_id(self, manager, campaign, form, relay, launcher, navigator):
        relay.create_payment_session.return_value = PaymentSession(token="abc", order_id="other")

        intent = await manager.create_donation_intent(campaign, form)
        launcher.pay.call_args.args[1].on_success()

        assert intent.donation_id == "d-123"
        navigator.success.assert_called_once_with("d-123", "air-bersih")

    @pytest.mark.asyncio
    async def test_below_minimum_does_no_io(self, manager, campaign, form, store, relay, launcher):
        form.amount = 1000

        with pytest.raises(ValidationError):
            await manager.create_donation_intent(campaign, form)

        store.create_pending_donation.assert_not_awaited()
        relay.create_payment_session.assert_not_awaited()
        launcher.pay.assert_not_called()
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_unpublished_campaign_rejected(self, manager, campaign, form, store):
        campaign.status = "draft"

        with pytest.raises(ValidationError):
            await manager.create_donation_intent(campaign, form)

        store.create_pending_donation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_campaign_rejected(self, manager, form, store):
        with pytest.raises(ValidationError):
            await manager.create_donation_intent(None, form)

        store.create_pending_donation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_skips_relay(self, manager, campaign, form, store, relay):
        store.create_pending_donation.side_effect = Exception("connection reset")

        with pytest.raises(IntentCreationError) as exc_info:
            await manager.create_donation_intent(campaign, form)

        assert exc_info.value.user_message == "Gagal membuat donasi. Coba lagi ya."
        relay.create_payment_session.assert_not_awaited()
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_store_without_id(self, manager, campaign, form, store, relay):
        store.create_pending_donation.return_value = None

        with pytest.raises(IntentCreationError):
            await manager.create_donation_intent(campaign, form)

        relay.create_payment_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relay_failure_keeps_pending_row(self, manager, campaign, form, store, relay, launcher, navigator):
        relay.create_payment_session.side_effect = PaymentSessionError("Relay error (HTTP 500)")

        with pytest.raises(PaymentSessionError):
            await manager.create_donation_intent(campaign, form)

        # The pending row is left in place, nothing deletes it
        assert [name for name, _, _ in store.method_calls] == ["create_pending_donation"]
        launcher.pay.assert_not_called()
        assert navigator.method_calls == []
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_unexpected_relay_exception_is_wrapped(self, manager, campaign, form, relay):
        relay.create_payment_session.side_effect = RuntimeError("boom")

        with pytest.raises(PaymentSessionError):
            await manager.create_donation_intent(campaign, form)

    @pytest.mark.asyncio
    async def test_session_without_token_or_redirect(self, manager, campaign, form, relay, launcher):
        relay.create_payment_session.return_value = PaymentSession(order_id="d-123")

        with pytest.raises(PaymentSessionError):
            await manager.create_donation_intent(campaign, form)

        launcher.pay.assert_not_called()
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_redirect_when_launcher_missing(self, store, relay, navigator, campaign, form):
        relay.create_payment_session.return_value = PaymentSession(
            token="abc", redirect_url="https://app.sandbox.midtrans.com/snap/v2/vtweb/abc", order_id="d-123"
        )
        manager = DonationIntentManager(store, relay, navigator, launcher=None, min_amount=5000)

        intent = await manager.create_donation_intent(campaign, form)

        assert intent.outcome is IntentOutcome.REDIRECTED
        navigator.redirect.assert_called_once_with("https://app.sandbox.midtrans.com/snap/v2/vtweb/abc")
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_launcher_not_ready_without_redirect(self, manager, campaign, form, launcher):
        launcher.ready = False

        with pytest.raises(PaymentSessionError) as exc_info:
            await manager.create_donation_intent(campaign, form)

        assert exc_info.value.user_message == "Snap.js belum termuat. Coba refresh halaman."
        launcher.pay.assert_not_called()
        assert manager.submitting is False

    @pytest.mark.asyncio
    async def test_anonymous_donor_name_never_sent(self, manager, campaign, form, store, relay):
        form.is_anonymous = True

        await manager.create_donation_intent(campaign, form)

        assert store.create_pending_donation.await_args.args[0].donor_name is None
        body = relay.create_payment_session.await_args.args[0]
        assert body["donor"]["name"] is None
        assert body["donor"]["is_anonymous"] is True


class TestDuplicateSubmission:
    """Only one submission per form may be in flight"""

    @pytest.mark.asyncio
    async def test_second_submit_while_inserting(self, manager, campaign, form, store, pending_donation):
        release = asyncio.Event()

        async def slow_insert(data):
            await release.wait()
            return pending_donation

        store.create_pending_donation.side_effect = slow_insert

        first = asyncio.create_task(manager.create_donation_intent(campaign, form))
        await asyncio.sleep(0)

        with pytest.raises(IntentInProgressError):
            await manager.create_donation_intent(campaign, form)

        release.set()
        await first
        assert store.create_pending_donation.await_count == 1

    @pytest.mark.asyncio
    async def test_second_submit_while_payment_ui_open(self, manager, campaign, form, store, launcher):
        await manager.create_donation_intent(campaign, form)

        with pytest.raises(IntentInProgressError):
            await manager.create_donation_intent(campaign, form)

        launcher.pay.call_args.args[1].on_close()
        await manager.create_donation_intent(campaign, form)
        assert store.create_pending_donation.await_count == 2


# ============================================================================
# NAVIGATION
# ============================================================================

class TestUrlNavigator:

    def test_success_urls(self):
        visited = []
        navigator = UrlNavigator(visited.append)

        navigator.success("d-1", "air-bersih")
        navigator.success("d-1", "air-bersih", pending=True)

        assert visited == [
            "/donate/success?ref=d-1&slug=air-bersih",
            "/donate/success?ref=d-1&pending=1&slug=air-bersih",
        ]

    def test_failure_url(self):
        visited = []
        navigator = UrlNavigator(visited.append, base_path="/donate/")

        navigator.failure("d-1", "air-bersih", msg="Gagal")
        navigator.redirect("https://pay.example/abc")

        assert visited == [
            "/donate/failed?ref=d-1&slug=air-bersih&msg=Gagal",
            "https://pay.example/abc",
        ]


# ============================================================================
# RELAY HTTP CLIENT
# ============================================================================

class TestCheckoutHTTPClient:
    """Client-side calls to the relay and the reconciliation read"""

    @pytest.mark.asyncio
    async def test_create_payment_session(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json={"snap_token": "abc", "redirectUrl": "https://snap/abc"})

        client = CheckoutHTTPClient("http://checkout.local/", api_key="anon-key",
                                    transport=httpx.MockTransport(handler))
        session = await client.create_payment_session({"order_id": "d-123", "amount": 25000})

        assert session.token == "abc"
        assert session.redirect_url == "https://snap/abc"
        assert session.order_id == "d-123"
        assert str(captured[0].url) == "http://checkout.local/checkout"
        assert captured[0].headers["Authorization"] == "Bearer anon-key"
        assert captured[0].headers["apikey"] == "anon-key"
        assert json.loads(captured[0].content)["order_id"] == "d-123"

    @pytest.mark.asyncio
    async def test_relay_error_message_reaches_user(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Midtrans API error", "details": {"status_message": "x"}})

        client = CheckoutHTTPClient("http://checkout.local", transport=httpx.MockTransport(handler))

        with pytest.raises(PaymentSessionError) as exc_info:
            await client.create_payment_session({"order_id": "d-123", "amount": 25000})

        assert exc_info.value.user_message == "Gagal membuat pembayaran.\nMidtrans API error"

    @pytest.mark.asyncio
    async def test_relay_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = CheckoutHTTPClient("http://checkout.local", transport=httpx.MockTransport(handler))

        with pytest.raises(PaymentSessionError):
            await client.create_payment_session({"order_id": "d-123", "amount": 25000})

    @pytest.mark.asyncio
    async def test_relay_without_token(self):
        def handler(request):
            return httpx.Response(200, json={"order_id": "d-123"})

        client = CheckoutHTTPClient("http://checkout.local", transport=httpx.MockTransport(handler))

        with pytest.raises(PaymentSessionError):
            await client.create_payment_session({"order_id": "d-123", "amount": 25000})

    @pytest.mark.asyncio
    async def test_get_donation(self, pending_donation):
        def handler(request):
            if request.url.path == "/donations/d-123":
                return httpx.Response(200, json=pending_donation.model_dump(mode="json"))
            return httpx.Response(404, json={"detail": "Donation not found"})

        client = CheckoutHTTPClient("http://checkout.local", transport=httpx.MockTransport(handler))

        donation = await client.get_donation("d-123")
        missing = await client.get_donation("nope")

        assert donation.id == "d-123"
        assert donation.status == "pending"
        assert missing is None
