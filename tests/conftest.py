"""Pytest bootstrap configuration.

Environment is set before any module that reads settings is imported.
"""
import os
import tempfile

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CELERY__BROKER_URL", "memory://")
os.environ.setdefault("CERTIFICATE__OUTPUT_DIR", tempfile.mkdtemp(prefix="certificates-"))
os.environ.setdefault("PAYMENT__RAZORPAY__KEY_ID", "rzp_test_key")
os.environ.setdefault("PAYMENT__RAZORPAY__KEY_SECRET", "test_key_secret")
os.environ.setdefault("PAYMENT__RAZORPAY__WEBHOOK_SECRET", "test_webhook_secret")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402

from application.services.booking_service import BookingApplicationService, BookingSettlementHandler  # noqa: E402
from application.services.certificate_service import CertificateApplicationService  # noqa: E402
from application.services.payment_service import PaymentService  # noqa: E402
from application.services.settlement_service import PaymentSettlementService  # noqa: E402
from tests.support.fakes import RecordingNotifier, RecordingRenderer, StubGateway, seeded_store  # noqa: E402


@pytest.fixture
def store():
    return seeded_store()


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def settlement(store, gateway, notifier):
    return PaymentSettlementService(
        store.uow,
        PaymentService(gateway),
        notifier=notifier,
        handlers=[BookingSettlementHandler()],
        pending_ttl=timedelta(minutes=60),
    )


@pytest.fixture
def bookings(store, settlement):
    return BookingApplicationService(store.uow, settlement, pending_ttl=timedelta(minutes=60))


@pytest.fixture
def certificates(store, settlement, renderer, notifier):
    return CertificateApplicationService(
        store.uow,
        settlement,
        renderer,
        notifier=notifier,
        pending_ttl=timedelta(minutes=60),
    )
