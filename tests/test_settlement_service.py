from datetime import datetime, timedelta, timezone

import pytest

from domain.booking.entity import BookingStatus
from domain.payment.entity import PaymentStatus
from domain.payment.exceptions import PaymentGatewayError, PaymentSignatureError
from tests.support.fakes import FakePaymentOrderRepository, webhook_body


async def _pending_booking(bookings):
    checkout = await bookings.initiate_booking(1, "SAP001")
    return checkout.transaction_id, checkout.provider_order_id


def _booking(store):
    return next(iter(store.bookings.values()))


@pytest.mark.asyncio
async def test_callback_confirms_booking_and_sends_receipt(store, bookings, settlement, gateway, notifier):
    txn, order_id = await _pending_booking(bookings)
    gateway.add_payment("pay_1", order_id)

    outcome = await settlement.settle_callback(order_id, "pay_1", gateway.signature(order_id, "pay_1"))

    assert outcome.success and outcome.status == "completed"
    assert outcome.transaction_id == txn
    order = store.order_for(txn)
    assert order.provider_payment_id == "pay_1"
    assert order.paid_at is not None
    assert _booking(store).status is BookingStatus.CONFIRMED
    assert len(notifier.receipts) == 1
    assert notifier.receipts[0][0] == "asha@example.com"


@pytest.mark.asyncio
async def test_repeated_signals_settle_once(store, bookings, settlement, gateway, notifier):
    txn, order_id = await _pending_booking(bookings)
    gateway.add_payment("pay_1", order_id)
    sig = gateway.signature(order_id, "pay_1")

    await settlement.settle_callback(order_id, "pay_1", sig)
    paid_at = store.order_for(txn).paid_at
    again = await settlement.settle_callback(order_id, "pay_1", sig)
    hook = await settlement.handle_webhook(
        {"X-Razorpay-Signature": "valid"}, webhook_body("payment.captured", "pay_1", order_id)
    )

    assert again.success and hook.success
    assert store.order_for(txn).paid_at == paid_at
    assert len(notifier.receipts) == 1


@pytest.mark.asyncio
async def test_bad_signature_fails_order_and_booking(store, bookings, settlement):
    txn, order_id = await _pending_booking(bookings)

    outcome = await settlement.settle_callback(order_id, "pay_1", "forged")

    assert not outcome.success
    assert outcome.status == "failed"
    assert store.order_for(txn).status is PaymentStatus.FAILED
    assert _booking(store).status is BookingStatus.FAILED


@pytest.mark.asyncio
async def test_status_check_error_leaves_order_pending(store, bookings, settlement, gateway):
    txn, order_id = await _pending_booking(bookings)
    gateway.fetch_error = PaymentGatewayError("Provider returned 503", provider="razorpay", status_code=503)

    outcome = await settlement.settle_callback(order_id, "pay_1", gateway.signature(order_id, "pay_1"))

    assert not outcome.success
    assert outcome.status == "pending"
    assert store.order_for(txn).is_pending


@pytest.mark.asyncio
async def test_payment_for_another_order_fails(store, bookings, settlement, gateway):
    txn, order_id = await _pending_booking(bookings)
    gateway.add_payment("pay_1", "order_someone_else")

    outcome = await settlement.settle_callback(order_id, "pay_1", gateway.signature(order_id, "pay_1"))

    assert outcome.status == "failed"
    assert store.order_for(txn).failure_reason == "Payment does not belong to this order"


@pytest.mark.asyncio
async def test_declined_payment_fails_with_provider_reason(store, bookings, settlement, gateway):
    txn, order_id = await _pending_booking(bookings)
    gateway.add_payment("pay_1", order_id, status="failed", error="Card declined")

    outcome = await settlement.settle_callback(order_id, "pay_1", gateway.signature(order_id, "pay_1"))

    assert outcome.status == "failed"
    assert _booking(store).status_reason == "Card declined"


@pytest.mark.asyncio
async def test_unknown_provider_order(settlement, gateway):
    gateway.add_payment("pay_1", "order_missing")
    outcome = await settlement.settle_callback("order_missing", "pay_1", gateway.signature("order_missing", "pay_1"))
    assert outcome.status == "not_found"


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_raises(bookings, settlement, store):
    txn, order_id = await _pending_booking(bookings)
    with pytest.raises(PaymentSignatureError):
        await settlement.handle_webhook(
            {"X-Razorpay-Signature": "nope"}, webhook_body("payment.failed", "pay_1", order_id)
        )
    # untrusted payloads never change state
    assert store.order_for(txn).is_pending


@pytest.mark.asyncio
async def test_late_failure_does_not_undo_completion(store, bookings, settlement, gateway):
    txn, order_id = await _pending_booking(bookings)
    await settlement.handle_webhook(
        {"X-Razorpay-Signature": "valid"}, webhook_body("payment.captured", "pay_1", order_id)
    )
    outcome = await settlement.handle_webhook(
        {"X-Razorpay-Signature": "valid"}, webhook_body("payment.failed", "pay_2", order_id, status="failed")
    )

    assert outcome.success
    assert store.order_for(txn).status is PaymentStatus.COMPLETED
    assert _booking(store).status is BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_completion_after_failure_is_reported_not_applied(store, bookings, settlement, gateway):
    txn, order_id = await _pending_booking(bookings)
    await settlement.handle_webhook(
        {"X-Razorpay-Signature": "valid"}, webhook_body("payment.failed", "pay_1", order_id, status="failed")
    )
    outcome = await settlement.handle_webhook(
        {"X-Razorpay-Signature": "valid"}, webhook_body("payment.captured", "pay_2", order_id)
    )

    assert not outcome.success
    assert store.order_for(txn).status is PaymentStatus.FAILED


@pytest.mark.asyncio
async def test_other_webhook_events_are_ignored(bookings, settlement, store):
    txn, order_id = await _pending_booking(bookings)
    outcome = await settlement.handle_webhook(
        {"X-Razorpay-Signature": "valid"}, webhook_body("refund.created", "pay_1", order_id)
    )
    assert outcome.status == "ignored"
    assert store.order_for(txn).is_pending


@pytest.mark.asyncio
async def test_lost_race_is_retried_against_fresh_state(store, bookings, settlement, gateway, notifier, monkeypatch):
    txn, order_id = await _pending_booking(bookings)
    gateway.add_payment("pay_1", order_id)
    original = FakePaymentOrderRepository.save_transition
    calls = []

    async def racing(self, order, expected):
        calls.append(order.status)
        if len(calls) == 1:
            # a concurrent webhook settles the order first
            stored = self.store.order_for(txn)
            stored.mark_completed("pay_1")
            return False
        return await original(self, order, expected)

    monkeypatch.setattr(FakePaymentOrderRepository, "save_transition", racing)

    outcome = await settlement.settle_callback(order_id, "pay_1", gateway.signature(order_id, "pay_1"))

    assert outcome.success
    assert len(calls) == 1
    assert notifier.receipts == []


@pytest.mark.asyncio
async def test_reconcile_completes_paid_orders_and_expires_stale_ones(store, bookings, settlement, gateway):
    paid_txn, paid_order = await _pending_booking(bookings)
    gateway.add_payment("pay_1", paid_order, status="authorized")

    settled = await settlement.reconcile_pending(timedelta(0))

    assert settled == 1
    assert store.order_for(paid_txn).status is PaymentStatus.COMPLETED

    unpaid = await bookings.initiate_booking(1, "SAP001")
    store.order_for(unpaid.transaction_id).created_at = datetime.now(timezone.utc) - timedelta(hours=2)
    assert await settlement.reconcile_pending(timedelta(minutes=15)) == 1
    assert store.order_for(unpaid.transaction_id).failure_reason == "Payment session expired"


@pytest.mark.asyncio
async def test_reconcile_skips_gateway_errors(store, bookings, settlement, gateway):
    txn, _ = await _pending_booking(bookings)
    gateway.fetch_error = PaymentGatewayError("down", provider="razorpay")
    assert await settlement.reconcile_pending(timedelta(0)) == 0
    assert store.order_for(txn).is_pending


@pytest.mark.asyncio
async def test_notification_failure_does_not_affect_settlement(store, bookings, settlement, gateway, notifier):
    notifier.fail = True
    txn, order_id = await _pending_booking(bookings)
    gateway.add_payment("pay_1", order_id)

    outcome = await settlement.settle_callback(order_id, "pay_1", gateway.signature(order_id, "pay_1"))

    assert outcome.success
    assert store.order_for(txn).status is PaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_get_order(bookings, settlement):
    txn, order_id = await _pending_booking(bookings)
    dto = await settlement.get_order(txn)
    assert dto.status == "pending"
    assert dto.provider_order_id == order_id
