from datetime import timedelta
from decimal import Decimal

import pytest

from domain.assessment.entity import Test, TestResult
from domain.payment.entity import PaymentPurpose
from domain.subject.entity import Subject
from infrastructure.certificates import HtmlCertificateRenderer
from infrastructure.container import build_container
from infrastructure.notifications import CeleryEmailNotifier
from infrastructure.tasks.tasks.email import send_otp_email, send_payment_receipt_email
from infrastructure.tasks.tasks.payments import reconcile_pending_payments
from infrastructure.tasks.utils.base_task import redact
from infrastructure.tasks.worker import worker_argv
from tests.support.fakes import USER, RecordingNotifier, StubGateway


class RecordingDispatcher:
    def __init__(self):
        self.calls = []

    def send_otp_email(self, *args):
        self.calls.append(("otp", args))

    def send_payment_receipt_email(self, *args):
        self.calls.append(("receipt", args))

    def send_certificate_email(self, *args):
        self.calls.append(("certificate", args))


@pytest.mark.asyncio
async def test_html_renderer_writes_escaped_certificate(tmp_path):
    renderer = HtmlCertificateRenderer(str(tmp_path / "out"), "/static/certificates/")
    subject = Subject(ref=USER, name="Asha <Rao>", email="asha@example.com")
    test = Test(id=1, title="Python & Data", price=Decimal("10"))
    result = TestResult(id=10, test_id=1, subject=USER, total_questions=10, correct_answers=8)

    url = await renderer.render(purchase_id=42, subject=subject, test=test, result=result)

    assert url.startswith("/static/certificates/CERT-") and url.endswith("-000042.html")
    content = (tmp_path / "out" / url.rsplit("/", 1)[1]).read_text(encoding="utf-8")
    assert "Asha &lt;Rao&gt;" in content
    assert "Python &amp; Data" in content
    assert "80.00%" in content and "Best Performer" in content


@pytest.mark.asyncio
async def test_celery_notifier_hands_off_to_dispatcher():
    dispatcher = RecordingDispatcher()
    notifier = CeleryEmailNotifier(dispatcher)

    await notifier.send_otp("a@example.com", "123456", 10)
    await notifier.send_payment_receipt("a@example.com", {"transaction_id": "book_1"})
    await notifier.send_certificate("a@example.com", "/certificates/x.html", {"test": "Python"})

    assert [kind for kind, _ in dispatcher.calls] == ["otp", "receipt", "certificate"]
    assert dispatcher.calls[0][1] == ("a@example.com", "123456", 10)


def test_task_logging_redacts_secrets():
    assert redact({"email": "a@example.com", "code": "123456"}) == {"email": "a@example.com", "code": "***"}
    assert redact(None) == {}


def test_worker_consumes_both_queues():
    argv = worker_argv(concurrency=4)
    assert "--queues=default,payments" in argv
    assert "--concurrency=4" in argv
    assert "--beat" in argv
    assert "--beat" not in worker_argv(beat=False)


def test_email_tasks_run():
    assert send_otp_email.apply(kwargs={"email": "a@example.com", "code": "123456", "ttl_minutes": 10}).successful()
    receipt = {"transaction_id": "book_1", "purpose": "booking", "amount": "499.50", "currency": "INR"}
    assert send_payment_receipt_email.apply(kwargs={"email": "a@example.com", "receipt": receipt}).successful()


def test_reconcile_task_uses_a_fresh_container(monkeypatch):
    seen = {}

    class Settlement:
        async def reconcile_pending(self, older_than, limit=100):
            seen["older_than"], seen["limit"] = older_than, limit
            return 2

    class FakeContainer:
        settlement = Settlement()

        async def aclose(self):
            seen["closed"] = True

    monkeypatch.setattr("infrastructure.container.build_container", lambda: FakeContainer())

    result = reconcile_pending_payments.apply(kwargs={"min_age_minutes": 5, "limit": 10}).get()

    assert result == {"settled": 2}
    assert seen == {"older_than": timedelta(minutes=5), "limit": 10, "closed": True}


@pytest.mark.asyncio
async def test_container_registers_both_settlement_handlers(store):
    gateway = StubGateway()
    container = build_container(gateway=gateway, notifier=RecordingNotifier(), uow_factory=store.uow)

    assert set(container.settlement._handlers) == {PaymentPurpose.BOOKING, PaymentPurpose.CERTIFICATE}
    checkout = await container.bookings.initiate_booking(1, "SAP001")
    assert checkout.transaction_id.startswith("bkg_")

    await container.aclose()
    assert gateway.closed
