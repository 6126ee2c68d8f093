"""
Wires application services to their infrastructure adapters.

Used by the API dependencies (one container per process) and by Celery
tasks (one container per task run).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from application.ports.notifier import Notifier
from application.ports.payment_gateway import PaymentGateway
from application.ports.rate_limiter import RateLimiter
from application.services.booking_service import BookingApplicationService, BookingSettlementHandler
from application.services.certificate_service import CertificateApplicationService
from application.services.otp_service import OtpApplicationService
from application.services.payment_service import PaymentService
from application.services.settlement_service import PaymentSettlementService
from core.config import settings
from infrastructure.certificates import HtmlCertificateRenderer
from infrastructure.external.payments import get_payment_gateway
from infrastructure.notifications import CeleryEmailNotifier
from infrastructure.rate_limit import SlidingWindowRateLimiter
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def build_rate_limiter() -> SlidingWindowRateLimiter:
    cfg = settings.rate_limit
    return SlidingWindowRateLimiter(
        max_per_email=cfg.max_requests_per_email,
        max_per_ip=cfg.max_requests_per_ip,
        window=timedelta(minutes=cfg.window_minutes),
        sweep_interval=timedelta(seconds=cfg.sweep_interval_seconds),
    )


@dataclass
class Container:
    payments: PaymentService
    settlement: PaymentSettlementService
    bookings: BookingApplicationService
    certificates: CertificateApplicationService
    otp: OtpApplicationService
    rate_limiter: RateLimiter = field(repr=False)

    async def aclose(self) -> None:
        await self.payments.aclose()


def build_container(
    *,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[Notifier] = None,
    rate_limiter: Optional[RateLimiter] = None,
    uow_factory=SQLAlchemyUnitOfWork,
) -> Container:
    notifier = notifier or CeleryEmailNotifier()
    rate_limiter = rate_limiter or build_rate_limiter()
    payments = PaymentService(gateway or get_payment_gateway())

    settlement = PaymentSettlementService(
        uow_factory,
        payments,
        notifier=notifier,
        handlers=[BookingSettlementHandler()],
        pending_ttl=timedelta(minutes=settings.booking.pending_ttl_minutes),
    )
    bookings = BookingApplicationService(
        uow_factory,
        settlement,
        pending_ttl=timedelta(minutes=settings.booking.pending_ttl_minutes),
    )
    cert = settings.certificate
    certificates = CertificateApplicationService(
        uow_factory,
        settlement,
        HtmlCertificateRenderer(cert.output_dir, cert.public_base_path),
        notifier=notifier,
        price=cert.price,
        currency=cert.currency,
        pass_percentage=cert.pass_percentage,
        pending_ttl=timedelta(minutes=cert.pending_ttl_minutes),
    )
    otp = OtpApplicationService(
        uow_factory,
        rate_limiter,
        notifier,
        ttl=timedelta(minutes=settings.otp.ttl_minutes),
        length=settings.otp.length,
        retry_after=settings.rate_limit.window_minutes * 60,
    )
    return Container(
        payments=payments,
        settlement=settlement,
        bookings=bookings,
        certificates=certificates,
        otp=otp,
        rate_limiter=rate_limiter,
    )
