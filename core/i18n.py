from __future__ import annotations

import gettext
import logging
from contextvars import ContextVar
from pathlib import Path

_current_locale: ContextVar[str] = ContextVar("current_locale", default="en")
_translators: dict[str, gettext.NullTranslations] = {}
_logger = logging.getLogger(__name__)

# English texts used when no catalog provides a translation for a key
DEFAULT_MESSAGES: dict[str, str] = {
    "validation.domain": "Validation failed",
    "validation.failed": "Validation failed: {reason}",
    "error.internal": "Internal server error",
    "resource.not_found": "{resource} not found",
    "subject.not_found": "No user or special user found for this SAP ID",
    "account.not_found": "No account registered with this email",
    "otp.invalid": "Invalid or expired OTP",
    "otp.sent": "OTP sent to your email",
    "otp.verified": "OTP verified",
    "rate.limited": "Too many requests, please try again later",
    "payment.duplicate_in_progress": "A {resource} for this item is already in progress",
    "payment.gateway_error": "Payment provider rejected the request",
    "payment.gateway_timeout": "Payment provider did not respond, please retry shortly",
    "payment.signature_invalid": "Invalid payment signature",
    "payment.not_found": "Payment not found",
    "payment.order_settled": "Payment for this {resource} is already being settled",
    "payment.completed": "Payment completed",
    "payment.failed": "Payment failed",
    "payment.pending": "Payment is being verified",
    "webhook.received": "Webhook received",
    "webhook.ip_not_allowed": "Webhook source address not allowed",
    "welcome": "Welcome to the {name} API",
    "health.ok": "Service is healthy",
    "booking.created": "Booking created, complete the payment to confirm it",
    "booking.cancelled": "Booking cancelled",
    "booking.attempts_exhausted": "Maximum attempts ({max}) reached for this test",
    "certificate.not_eligible": "Not eligible for a certificate",
    "certificate.purchase_created": "Certificate purchase created, complete the payment to receive it",
}


def set_locale(locale: str) -> None:
    """Set current request locale (fallback to 'en')."""
    _current_locale.set(locale or "en")


def get_locale() -> str:
    """Get current request locale (default 'en')."""
    return _current_locale.get()


def _get_translator(locale: str) -> gettext.NullTranslations:
    tr = _translators.get(locale)
    if tr is not None:
        return tr
    localedir = Path(__file__).resolve().parent.parent / "locales"
    try:
        tr = gettext.translation(
            domain="messages",
            localedir=str(localedir),
            languages=[locale],
            fallback=True,
        )
    except OSError:
        tr = gettext.NullTranslations()
    _translators[locale] = tr
    return tr


def t(msgid: str, **params) -> str:
    """Translate msgid using current locale and format with params.

    Falls back to the English default for known keys, then to msgid itself.
    """
    text = _get_translator(get_locale()).gettext(msgid)
    if text == msgid:
        text = DEFAULT_MESSAGES.get(msgid, msgid)
    if not params:
        return text
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError) as exc:
        # fall back to the unformatted text
        _logger.warning("i18n_format_failed msgid=%s params=%s error=%s", msgid, list(params.keys()), exc)
        return text
