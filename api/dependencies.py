"""
API dependencies - application services for the routes.

One container per process; the rate limiter keeps its attempt logs in it,
so every route shares the same limiter instance.
"""
from functools import lru_cache

from fastapi import Depends

from application.services.booking_service import BookingApplicationService
from application.services.certificate_service import CertificateApplicationService
from application.services.otp_service import OtpApplicationService
from application.services.settlement_service import PaymentSettlementService
from infrastructure.container import Container, build_container


@lru_cache(maxsize=1)
def get_container() -> Container:
    return build_container()


async def get_settlement_service(
    container: Container = Depends(get_container),
) -> PaymentSettlementService:
    return container.settlement


async def get_booking_service(
    container: Container = Depends(get_container),
) -> BookingApplicationService:
    return container.bookings


async def get_certificate_service(
    container: Container = Depends(get_container),
) -> CertificateApplicationService:
    return container.certificates


async def get_otp_service(
    container: Container = Depends(get_container),
) -> OtpApplicationService:
    return container.otp
