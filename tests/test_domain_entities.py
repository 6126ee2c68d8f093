from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.account.entity import Account, AccountKind
from domain.assessment.entity import TestResult, score_rating
from domain.booking.entity import Booking, BookingStatus
from domain.certificate.entity import CertificatePurchase
from domain.common.exceptions import DomainValidationException
from domain.payment.entity import PaymentOrder, PaymentPurpose, PaymentStatus
from domain.subject.entity import SubjectRef

USER = SubjectRef.user("SAP001")


def _order(**kwargs):
    values = dict(
        id=1,
        transaction_id="book_20260101_abc",
        purpose=PaymentPurpose.BOOKING,
        reference_id=7,
        subject=USER,
        amount=Decimal("499.50"),
        amount_minor=49950,
    )
    values.update(kwargs)
    return PaymentOrder(**values)


def test_order_completes_once():
    order = _order()
    assert order.mark_completed("pay_1") is True
    paid_at = order.paid_at

    assert order.mark_completed("pay_2") is False
    assert order.paid_at == paid_at
    assert order.provider_payment_id == "pay_1"


def test_completed_order_cannot_fail():
    order = _order()
    order.mark_completed("pay_1")
    with pytest.raises(DomainValidationException):
        order.mark_failed("late failure")
    assert order.status is PaymentStatus.COMPLETED


def test_failed_order_cannot_complete():
    order = _order()
    assert order.mark_failed("declined") is True
    assert order.mark_failed("declined again") is False
    with pytest.raises(DomainValidationException):
        order.mark_completed("pay_1")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
def test_order_rejects_non_positive_amount(amount):
    with pytest.raises(DomainValidationException):
        _order(amount=amount)


def test_order_staleness():
    created = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
    order = _order(created_at=created)
    assert not order.is_stale(timedelta(minutes=60), now=created + timedelta(minutes=59))
    assert order.is_stale(timedelta(minutes=60), now=created + timedelta(minutes=60))
    order.mark_failed("expired")
    assert not order.is_stale(timedelta(minutes=60), now=created + timedelta(hours=5))


def test_naive_timestamps_are_treated_as_utc():
    order = _order(created_at=datetime(2026, 1, 1, 9, 0))
    assert order.created_at.tzinfo is timezone.utc


def test_booking_transitions():
    booking = Booking(id=1, test_id=1, subject=USER)
    assert booking.confirm() is True
    assert booking.confirm() is False
    for move in (booking.cancel, booking.supersede):
        with pytest.raises(DomainValidationException):
            move()
    with pytest.raises(DomainValidationException):
        booking.fail("late")
    assert booking.status is BookingStatus.CONFIRMED


def test_certificate_url_set_once():
    purchase = CertificatePurchase(id=1, test_result_id=10, subject=USER, amount=Decimal("1000"))
    with pytest.raises(DomainValidationException):
        purchase.attach_certificate("/certificates/a.html")

    purchase.complete("pay_1")
    assert purchase.attach_certificate("/certificates/a.html") is True
    assert purchase.attach_certificate("/certificates/b.html") is False
    assert purchase.certificate_url == "/certificates/a.html"


@pytest.mark.parametrize(
    "correct,total,eligible",
    [(59999, 100000, False), (3, 5, True), (10, 10, True), (0, 0, False)],
)
def test_certificate_eligibility(correct, total, eligible):
    result = TestResult(id=1, test_id=1, subject=USER, total_questions=total, correct_answers=correct)
    assert result.is_certificate_eligible() is eligible


@pytest.mark.parametrize(
    "percentage,rating",
    [(80, "Best Performer"), (79.9, "Good Performer"), (60, "Average Performer"), (59.99, "Below Average")],
)
def test_score_rating_bands(percentage, rating):
    assert score_rating(percentage) == rating


def test_otp_verification_is_single_use():
    now = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
    account = Account(kind=AccountKind.USER, sap_id="SAP001", email=" Asha@Example.com ")
    assert account.email == "asha@example.com"

    account.issue_otp("042137", timedelta(minutes=10), now=now)
    assert account.verify_otp("042137", now=now + timedelta(minutes=11)) is False
    assert account.verify_otp("042137", now=now + timedelta(minutes=5)) is True
    assert account.otp_verified
    assert account.verify_otp("042137", now=now + timedelta(minutes=6)) is False
