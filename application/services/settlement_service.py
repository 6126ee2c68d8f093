"""
Settlement of payment orders.

Every provider signal (checkout callback, webhook, reconciliation poll) ends
here. The order moves Pending -> Completed | Failed exactly once; the booking
or certificate purchase that owns it is moved in the same transaction by the
handler registered for the order's purpose. Side effects (receipt emails,
certificate generation) run after the commit.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional, Protocol

from application.dtos.payments import CheckoutDTO, ContactInfo, OrderRequest, PaymentOutcome, PaymentOrderDTO
from application.ports.notifier import Notifier
from application.services.payment_service import PaymentService
from application.utils.notifications import notify_safely
from core.i18n import t
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentOrder, PaymentPurpose, PaymentStatus
from domain.payment.events import PaymentCompleted, PaymentFailed
from domain.payment.exceptions import (
    PaymentGatewayError,
    PaymentGatewayTimeout,
    PaymentOrderNotFoundException,
)


logger = get_logger(__name__)

SUCCESS_EVENTS = {"payment.authorized", "payment.captured"}
FAILURE_EVENTS = {"payment.failed"}

CONFIRM_REASONS = {
    "callback": "Payment confirmed",
    "webhook": "Payment confirmed via webhook",
    "reconciliation": "Payment confirmed via reconciliation",
}

SESSION_EXPIRED = "Payment session expired"


class SettlementHandler(Protocol):
    """Moves the record that owns a payment order along with it."""

    purpose: PaymentPurpose

    async def mark_completed(self, uow: AbstractUnitOfWork, order: PaymentOrder, source: str) -> None: ...

    async def mark_failed(self, uow: AbstractUnitOfWork, order: PaymentOrder, reason: str) -> None: ...

    async def fulfil(self, order: PaymentOrder) -> dict[str, Any]:
        """Idempotent post-commit work for a completed order; returns outcome extras."""
        ...


class PaymentSettlementService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        payments: PaymentService,
        *,
        notifier: Optional[Notifier] = None,
        handlers: Iterable[SettlementHandler] = (),
        pending_ttl: timedelta = timedelta(minutes=60),
    ) -> None:
        self._uow_factory = uow_factory
        self.payments = payments
        self._notifier = notifier
        self._handlers: dict[PaymentPurpose, SettlementHandler] = {}
        self.pending_ttl = pending_ttl
        for handler in handlers:
            self.register(handler)

    def register(self, handler: SettlementHandler) -> None:
        self._handlers[handler.purpose] = handler

    def _handler(self, purpose: PaymentPurpose) -> SettlementHandler:
        try:
            return self._handlers[purpose]
        except KeyError:
            raise LookupError(f"No settlement handler registered for {purpose.value}") from None

    # Checkout

    async def submit_order(self, req: OrderRequest, contact: ContactInfo) -> CheckoutDTO:
        """Open the provider order for a locally pending payment order.

        A gateway error fails the order and its owner before re-raising; a
        timeout leaves both pending for reconciliation.
        """
        try:
            provider_order_id = await self.payments.create_order(req)
        except PaymentGatewayTimeout:
            logger.warning("payment_order_create_timeout", transaction_id=req.transaction_id)
            raise
        except PaymentGatewayError as exc:
            await self._fail(
                transaction_id=req.transaction_id,
                reason=f"Payment gateway error: {exc.message}"[:500],
            )
            raise

        async with self._uow_factory() as uow:
            order = await uow.payment_order_repository.get_by_transaction_id(req.transaction_id)
            if order is None:
                raise PaymentOrderNotFoundException(req.transaction_id)
            order.attach_provider_order(provider_order_id)
            await uow.payment_order_repository.update(order)

        return CheckoutDTO(
            transaction_id=order.transaction_id,
            purpose=order.purpose.value,
            reference_id=order.reference_id,
            provider_order_id=provider_order_id,
            amount=order.amount,
            currency=order.currency,
            checkout=self.payments.checkout_options(req, provider_order_id, contact),
        )

    async def get_order(self, transaction_id: str) -> PaymentOrderDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.payment_order_repository.get_by_transaction_id(transaction_id)
        if order is None:
            raise PaymentOrderNotFoundException(transaction_id)
        return PaymentOrderDTO(
            transaction_id=order.transaction_id,
            purpose=order.purpose.value,
            reference_id=order.reference_id,
            amount=order.amount,
            currency=order.currency,
            status=order.status.value,
            provider_order_id=order.provider_order_id,
            provider_payment_id=order.provider_payment_id,
            failure_reason=order.failure_reason,
            created_at=order.created_at,
            paid_at=order.paid_at,
        )

    # Provider signals

    async def settle_callback(self, order_id: str, payment_id: str, signature: str) -> PaymentOutcome:
        """Settle the checkout redirect. Never raises."""
        try:
            if not self.payments.verify_payment_signature(order_id, payment_id, signature):
                logger.warning(
                    "payment_signature_mismatch",
                    provider_order_id=order_id,
                    payment_id=payment_id,
                    source="callback",
                )
                return await self._fail(
                    provider_order_id=order_id,
                    payment_id=payment_id,
                    reason=t("payment.signature_invalid"),
                )
            try:
                status = await self.payments.fetch_payment(payment_id)
            except (PaymentGatewayError, PaymentGatewayTimeout) as exc:
                logger.warning(
                    "payment_status_check_failed",
                    provider_order_id=order_id,
                    payment_id=payment_id,
                    error=exc.message,
                )
                return await self._pending(order_id)
            if status.order_id and status.order_id != order_id:
                logger.warning(
                    "payment_order_mismatch",
                    provider_order_id=order_id,
                    payment_id=payment_id,
                    payment_order_id=status.order_id,
                )
                return await self._fail(
                    provider_order_id=order_id,
                    payment_id=payment_id,
                    reason="Payment does not belong to this order",
                )
            if status.is_success:
                return await self._complete(provider_order_id=order_id, payment_id=payment_id, source="callback")
            if status.is_failure:
                return await self._fail(
                    provider_order_id=order_id,
                    payment_id=payment_id,
                    reason=status.error_description or f"Payment status: {status.status}",
                )
            return await self._pending(order_id)
        except Exception:
            logger.exception("payment_settlement_error", provider_order_id=order_id, source="callback")
            return PaymentOutcome(success=False, status="error", message=t("error.internal"))

    async def handle_webhook(self, headers: dict[str, Any], body: bytes) -> PaymentOutcome:
        """Settle a provider webhook.

        Signature and payload errors propagate to the caller; everything after
        verification is converted into an outcome.
        """
        event = self.payments.handle_webhook(headers, body)
        try:
            if not event.order_id or not event.payment_id:
                logger.info("payment_webhook_ignored", event_type=event.type, event_id=event.id, reason="no_payment")
                return PaymentOutcome(success=True, status="ignored", message=t("webhook.received"))
            if event.type in SUCCESS_EVENTS:
                return await self._complete(
                    provider_order_id=event.order_id,
                    payment_id=event.payment_id,
                    source="webhook",
                )
            if event.type in FAILURE_EVENTS:
                return await self._fail(
                    provider_order_id=event.order_id,
                    payment_id=event.payment_id,
                    reason=event.error_description or t("payment.failed"),
                )
            logger.info("payment_webhook_ignored", event_type=event.type, event_id=event.id, reason="event_type")
            return PaymentOutcome(success=True, status="ignored", message=t("webhook.received"))
        except Exception:
            logger.exception("payment_settlement_error", event_id=event.id, source="webhook")
            return PaymentOutcome(success=False, status="error", message=t("error.internal"))

    async def reconcile_pending(self, older_than: timedelta, limit: int = 100) -> int:
        """Poll the provider for pending orders; returns how many were settled."""
        cutoff = datetime.now(timezone.utc) - older_than
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.payment_order_repository.list_pending(cutoff, limit=limit)

        settled = 0
        for order in orders:
            try:
                outcome = await self._reconcile_one(order)
            except (PaymentGatewayError, PaymentGatewayTimeout) as exc:
                logger.warning("payment_reconcile_gateway_error", transaction_id=order.transaction_id, error=exc.message)
                continue
            except Exception:
                logger.exception("payment_reconcile_error", transaction_id=order.transaction_id)
                continue
            if outcome is not None and outcome.status != PaymentStatus.PENDING.value:
                settled += 1
        logger.info("payment_reconcile_finished", checked=len(orders), settled=settled)
        return settled

    async def _reconcile_one(self, order: PaymentOrder) -> Optional[PaymentOutcome]:
        if order.provider_order_id:
            payments = await self.payments.fetch_order_payments(order.provider_order_id)
            paid = next((p for p in payments if p.is_success), None)
            if paid is not None:
                return await self._complete(
                    provider_order_id=order.provider_order_id,
                    payment_id=paid.payment_id,
                    source="reconciliation",
                )
        if order.is_stale(self.pending_ttl):
            return await self._fail(transaction_id=order.transaction_id, reason=SESSION_EXPIRED)
        return None

    # Transitions

    async def _load(
        self,
        uow: AbstractUnitOfWork,
        *,
        provider_order_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Optional[PaymentOrder]:
        repo = uow.payment_order_repository
        if transaction_id:
            return await repo.get_by_transaction_id(transaction_id)
        if provider_order_id:
            return await repo.get_by_provider_order_id(provider_order_id)
        return None

    def _outcome(self, order: PaymentOrder, *, success: bool, message: str, **extra: Any) -> PaymentOutcome:
        return PaymentOutcome(
            success=success,
            status=order.status.value,
            message=message,
            transaction_id=order.transaction_id,
            purpose=order.purpose.value,
            reference_id=order.reference_id,
            **extra,
        )

    async def _pending(self, provider_order_id: str) -> PaymentOutcome:
        async with self._uow_factory(readonly=True) as uow:
            order = await self._load(uow, provider_order_id=provider_order_id)
        if order is None:
            return PaymentOutcome(success=False, status="not_found", message=t("payment.not_found"))
        return self._outcome(order, success=False, message=t("payment.pending"))

    async def _complete(
        self,
        *,
        provider_order_id: str,
        payment_id: str,
        source: str,
        retried: bool = False,
    ) -> PaymentOutcome:
        event: Optional[PaymentCompleted] = None
        lost_race = False
        async with self._uow_factory() as uow:
            order = await self._load(uow, provider_order_id=provider_order_id)
            if order is None:
                logger.warning("payment_order_unknown", provider_order_id=provider_order_id, source=source)
                return PaymentOutcome(success=False, status="not_found", message=t("payment.not_found"))
            if order.status is PaymentStatus.FAILED:
                logger.warning(
                    "payment_completed_after_failure",
                    transaction_id=order.transaction_id,
                    payment_id=payment_id,
                    failure_reason=order.failure_reason,
                    source=source,
                )
                return self._outcome(order, success=False, message=order.failure_reason or t("payment.failed"))
            if order.mark_completed(payment_id):
                if await uow.payment_order_repository.save_transition(order, PaymentStatus.PENDING):
                    await self._handler(order.purpose).mark_completed(uow, order, source)
                    event = PaymentCompleted(
                        transaction_id=order.transaction_id,
                        purpose=order.purpose,
                        reference_id=order.reference_id,
                        provider_payment_id=payment_id,
                    )
                else:
                    lost_race = True

        if lost_race:
            if retried:
                raise RuntimeError(f"payment order {order.transaction_id} kept changing during settlement")
            return await self._complete(
                provider_order_id=provider_order_id, payment_id=payment_id, source=source, retried=True
            )

        if event is not None:
            logger.info(
                "payment_completed",
                event_id=event.event_id,
                transaction_id=order.transaction_id,
                purpose=order.purpose.value,
                reference_id=order.reference_id,
                source=source,
            )
            await self._send_receipt(order)
        else:
            logger.info("payment_already_completed", transaction_id=order.transaction_id, source=source)

        extras = await self._handler(order.purpose).fulfil(order)
        extras.setdefault("message", t("payment.completed"))
        return self._outcome(order, success=True, **extras)

    async def _fail(
        self,
        *,
        reason: str,
        provider_order_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        payment_id: Optional[str] = None,
        retried: bool = False,
    ) -> PaymentOutcome:
        event: Optional[PaymentFailed] = None
        lost_race = False
        async with self._uow_factory() as uow:
            order = await self._load(uow, provider_order_id=provider_order_id, transaction_id=transaction_id)
            if order is None:
                logger.warning(
                    "payment_order_unknown",
                    provider_order_id=provider_order_id,
                    transaction_id=transaction_id,
                )
                return PaymentOutcome(success=False, status="not_found", message=t("payment.not_found"))
            if order.is_completed:
                # completed is terminal; a late failure signal does not undo it
                logger.warning("payment_failure_after_completion", transaction_id=order.transaction_id, reason=reason)
                return self._outcome(order, success=True, message=t("payment.completed"))
            if order.mark_failed(reason, payment_id):
                if await uow.payment_order_repository.save_transition(order, PaymentStatus.PENDING):
                    await self._handler(order.purpose).mark_failed(uow, order, reason)
                    event = PaymentFailed(
                        transaction_id=order.transaction_id,
                        purpose=order.purpose,
                        reference_id=order.reference_id,
                        provider_payment_id=payment_id,
                        reason=reason,
                    )
                else:
                    lost_race = True

        if lost_race:
            if retried:
                raise RuntimeError(f"payment order {order.transaction_id} kept changing during settlement")
            return await self._fail(
                reason=reason,
                provider_order_id=provider_order_id,
                transaction_id=transaction_id,
                payment_id=payment_id,
                retried=True,
            )

        if event is not None:
            logger.info(
                "payment_failed",
                event_id=event.event_id,
                transaction_id=order.transaction_id,
                purpose=order.purpose.value,
                reference_id=order.reference_id,
                reason=reason,
            )
        return self._outcome(order, success=False, message=order.failure_reason or reason)

    async def _send_receipt(self, order: PaymentOrder) -> None:
        if self._notifier is None:
            return
        try:
            async with self._uow_factory(readonly=True) as uow:
                subject = await uow.subject_repository.get(order.subject)
        except Exception as exc:
            logger.warning("payment_receipt_skipped", transaction_id=order.transaction_id, error=str(exc))
            return
        if subject is None or not subject.email:
            return
        receipt = {
            "name": subject.name,
            "transaction_id": order.transaction_id,
            "payment_id": order.provider_payment_id,
            "purpose": order.purpose.value,
            "amount": str(order.amount),
            "currency": order.currency,
            "paid_at": order.paid_at.isoformat() if order.paid_at else None,
        }
        await notify_safely(
            self._notifier.send_payment_receipt(subject.email, receipt),
            kind="payment_receipt",
            transaction_id=order.transaction_id,
        )
