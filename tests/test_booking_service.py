from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from domain.booking.entity import Booking, BookingStatus
from domain.common.exceptions import (
    AttemptsExhaustedException,
    DomainValidationException,
    DuplicateInProgressException,
    ResourceNotFoundException,
    SubjectNotFoundException,
)
from domain.payment.entity import PaymentStatus
from domain.payment.exceptions import PaymentGatewayError, PaymentGatewayTimeout, PaymentOrderSettledException
from shared.codes.payment_codes import PaymentCode
from tests.support.fakes import SPECIAL, USER, FakeBookingRepository, FakePaymentOrderRepository, StubGateway


def _only_booking(store):
    assert len(store.bookings) == 1
    return next(iter(store.bookings.values()))


@pytest.mark.asyncio
async def test_initiate_creates_pending_booking_and_checkout(store, bookings, gateway):
    checkout = await bookings.initiate_booking(1, "SAP001")

    booking = _only_booking(store)
    order = store.order_for(checkout.transaction_id)
    assert booking.status is BookingStatus.PENDING
    assert booking.subject == USER
    assert order.reference_id == booking.id
    assert order.amount_minor == 49950
    assert order.provider_order_id == checkout.provider_order_id
    assert checkout.checkout.amount == 49950
    assert gateway.created[0].transaction_id == checkout.transaction_id


@pytest.mark.asyncio
async def test_special_user_resolved_by_sap_id(store, bookings):
    await bookings.initiate_booking(1, "SAP900")
    assert _only_booking(store).subject == SPECIAL


@pytest.mark.asyncio
async def test_unknown_subject_and_test(bookings):
    with pytest.raises(SubjectNotFoundException):
        await bookings.initiate_booking(1, "NOPE")
    with pytest.raises(ResourceNotFoundException):
        await bookings.initiate_booking(99, "SAP001")


@pytest.mark.asyncio
async def test_second_initiate_while_pending_is_rejected(store, bookings):
    await bookings.initiate_booking(1, "SAP001")
    with pytest.raises(DuplicateInProgressException) as exc_info:
        await bookings.initiate_booking(1, "SAP001")
    assert exc_info.value.details["existing_status"] == "pending"
    assert len(store.bookings) == 1


@pytest.mark.asyncio
async def test_concurrent_initiate_is_pointed_at_the_winner(store, bookings, gateway, monkeypatch):
    original = FakeBookingRepository.create
    winners = []

    async def racing(self, booking):
        winners.append(store.commit_elsewhere("bookings", replace(booking, transaction_id="bkg_winner")))
        return await original(self, booking)

    monkeypatch.setattr(FakeBookingRepository, "create", racing)

    with pytest.raises(DuplicateInProgressException) as exc_info:
        await bookings.initiate_booking(1, "SAP001")

    assert exc_info.value.details["existing_id"] == winners[0].id
    assert exc_info.value.details["existing_status"] == "pending"
    assert list(store.bookings) == [winners[0].id]
    assert gateway.created == []


@pytest.mark.asyncio
async def test_stale_pending_booking_is_superseded(store, bookings):
    first = await bookings.initiate_booking(1, "SAP001")
    old = _only_booking(store)
    old.booked_at = datetime.now(timezone.utc) - timedelta(minutes=61)

    second = await bookings.initiate_booking(1, "SAP001")

    assert store.bookings[old.id].status is BookingStatus.SUPERSEDED
    assert store.order_for(first.transaction_id).status is PaymentStatus.FAILED
    assert store.order_for(first.transaction_id).failure_reason == "Payment session expired"
    assert store.order_for(second.transaction_id).is_pending


@pytest.mark.asyncio
async def test_attempt_limit(store, bookings, settlement, gateway):
    store.tests[1].max_attempts = 1
    checkout = await bookings.initiate_booking(1, "SAP001")
    gateway.add_payment("pay_1", checkout.provider_order_id)
    await settlement.settle_callback(
        checkout.provider_order_id, "pay_1", gateway.signature(checkout.provider_order_id, "pay_1")
    )

    with pytest.raises(AttemptsExhaustedException):
        await bookings.initiate_booking(1, "SAP001")


@pytest.mark.asyncio
async def test_reattempt_flagged_after_confirmed_booking(store, bookings, settlement, gateway):
    checkout = await bookings.initiate_booking(1, "SAP001")
    gateway.add_payment("pay_1", checkout.provider_order_id)
    await settlement.settle_callback(
        checkout.provider_order_id, "pay_1", gateway.signature(checkout.provider_order_id, "pay_1")
    )

    await bookings.initiate_booking(1, "SAP001")
    latest = max(store.bookings.values(), key=lambda b: b.id)
    assert latest.is_reattempt


@pytest.mark.asyncio
async def test_gateway_error_fails_booking_and_order(store, bookings, gateway):
    gateway.create_error = PaymentGatewayError("Order creation failed: bad key", provider="razorpay", status_code=401)
    with pytest.raises(PaymentGatewayError):
        await bookings.initiate_booking(1, "SAP001")

    booking = _only_booking(store)
    order = next(iter(store.orders.values()))
    assert booking.status is BookingStatus.FAILED
    assert "bad key" in booking.status_reason
    assert order.status is PaymentStatus.FAILED

    # the failed record stays and does not block a new attempt
    gateway.create_error = None
    await bookings.initiate_booking(1, "SAP001")
    assert len(store.bookings) == 2


@pytest.mark.asyncio
async def test_gateway_timeout_leaves_booking_pending(store, bookings, gateway):
    gateway.create_error = PaymentGatewayTimeout("Timed out", provider="razorpay")
    with pytest.raises(PaymentGatewayTimeout):
        await bookings.initiate_booking(1, "SAP001")
    assert _only_booking(store).status is BookingStatus.PENDING
    assert next(iter(store.orders.values())).is_pending


@pytest.mark.asyncio
async def test_cancel_pending_booking(store, bookings):
    checkout = await bookings.initiate_booking(1, "SAP001")
    booking = _only_booking(store)

    dto = await bookings.cancel_booking(booking.id, "SAP001")

    assert dto.status == "cancelled"
    assert store.order_for(checkout.transaction_id).failure_reason == "Cancelled by user"
    with pytest.raises(DomainValidationException):
        await bookings.cancel_booking(booking.id, "SAP001")


@pytest.mark.asyncio
async def test_cancel_after_payment_settled_is_rejected(store, bookings, monkeypatch):
    checkout = await bookings.initiate_booking(1, "SAP001")
    booking = _only_booking(store)

    async def settled_meanwhile(self, order, expected):
        return False

    monkeypatch.setattr(FakePaymentOrderRepository, "save_transition", settled_meanwhile)
    with pytest.raises(PaymentOrderSettledException) as exc_info:
        await bookings.cancel_booking(booking.id, "SAP001")

    assert exc_info.value.code == PaymentCode.ORDER_SETTLED
    assert exc_info.value.details["transaction_id"] == checkout.transaction_id
    assert _only_booking(store).status is BookingStatus.PENDING
    assert store.order_for(checkout.transaction_id).status is PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_cancel_with_completed_order_is_rejected(store, bookings):
    checkout = await bookings.initiate_booking(1, "SAP001")
    store.order_for(checkout.transaction_id).status = PaymentStatus.COMPLETED

    with pytest.raises(PaymentOrderSettledException):
        await bookings.cancel_booking(_only_booking(store).id, "SAP001")
    assert _only_booking(store).status is BookingStatus.PENDING


@pytest.mark.asyncio
async def test_cancel_requires_owner(store, bookings):
    await bookings.initiate_booking(1, "SAP001")
    with pytest.raises(ResourceNotFoundException):
        await bookings.cancel_booking(_only_booking(store).id, "SAP900")


@pytest.mark.asyncio
async def test_list_bookings_newest_first(store, bookings):
    await bookings.initiate_booking(1, "SAP001")
    booking = _only_booking(store)
    await bookings.cancel_booking(booking.id, "SAP001")
    await bookings.initiate_booking(1, "SAP001")

    listed = await bookings.list_bookings("SAP001")
    assert [b.status for b in listed] == ["pending", "cancelled"]
    assert (await bookings.get_booking(booking.id)).status == "cancelled"


@pytest.mark.asyncio
async def test_confirmation_supersedes_other_pending_bookings(store, bookings, settlement, gateway):
    checkout = await bookings.initiate_booking(1, "SAP001")
    # a pending row left over from before the uniqueness key existed
    legacy = Booking(id=next(store.ids), test_id=1, subject=USER, transaction_id="legacy_1")
    store.bookings[legacy.id] = legacy
    gateway.add_payment("pay_1", checkout.provider_order_id)

    await settlement.settle_callback(
        checkout.provider_order_id, "pay_1", gateway.signature(checkout.provider_order_id, "pay_1")
    )

    assert store.bookings[checkout.reference_id].status is BookingStatus.CONFIRMED
    assert store.bookings[legacy.id].status is BookingStatus.SUPERSEDED
    assert store.bookings[legacy.id].status_reason == "Duplicate booking superseded during payment"


@pytest.mark.asyncio
async def test_payment_for_closed_booking_is_kept(store, bookings, settlement, gateway):
    checkout = await bookings.initiate_booking(1, "SAP001")
    store.bookings[checkout.reference_id].status = BookingStatus.SUPERSEDED
    gateway.add_payment("pay_1", checkout.provider_order_id)

    outcome = await settlement.settle_callback(
        checkout.provider_order_id, "pay_1", gateway.signature(checkout.provider_order_id, "pay_1")
    )

    assert outcome.success
    assert store.order_for(checkout.transaction_id).status is PaymentStatus.COMPLETED
    assert store.bookings[checkout.reference_id].status is BookingStatus.SUPERSEDED
