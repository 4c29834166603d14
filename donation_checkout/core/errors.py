"""
Checkout error taxonomy.

Every error carries a ``user_message`` (Indonesian, shown in the donate
form or alert) next to the technical message passed to ``Exception``.
"""
from typing import Any, List, Optional


class CheckoutError(Exception):
    """Base class for checkout failures scoped to one donation attempt"""

    user_message = "Terjadi kesalahan koneksi."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(CheckoutError):
    """Donation form rejected before any network call"""

    user_message = "Lengkapi data donasi terlebih dahulu."

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid donation form")


class IntentInProgressError(CheckoutError):
    """A donation intent is already being submitted"""

    user_message = "Donasi sedang diproses."


class IntentCreationError(CheckoutError):
    """The pending donation row could not be stored"""

    user_message = "Gagal membuat donasi. Coba lagi ya."


class PaymentSessionError(CheckoutError):
    """No usable payment session came back from the relay"""

    user_message = "Gagal membuat pembayaran."


class UpstreamError(CheckoutError):
    """The payment gateway rejected the transaction request"""

    user_message = "Midtrans API error"

    def __init__(self, status_code: int, details: Any = None):
        self.status_code = status_code
        self.details = details
        super().__init__(f"Midtrans API error (HTTP {status_code})")


class BadRequestError(CheckoutError):
    """Relay request is missing order_id or amount"""

    user_message = "Missing required fields: order_id, amount"


class GatewayConfigurationError(CheckoutError):
    """Relay has no server key to sign gateway requests with"""

    user_message = "MIDTRANS_SERVER_KEY not configured"


class InvalidSignatureError(CheckoutError):
    """Payment notification signature does not match"""

    user_message = "Invalid signature"
