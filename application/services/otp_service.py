"""
OTP application service - issue and verify one-time passcodes by email.
"""
from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Callable, Optional

from application.dtos.auth import OtpIssuedDTO
from application.ports.notifier import Notifier
from application.ports.rate_limiter import RateLimiter
from application.utils.notifications import notify_safely
from core.exceptions import RateLimitException
from core.logging_config import get_logger
from domain.common.exceptions import AccountNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


def generate_otp(length: int = 6) -> str:
    """Zero-padded numeric code from the system CSPRNG."""
    return f"{secrets.randbelow(10 ** length):0{length}d}"


class OtpApplicationService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        rate_limiter: RateLimiter,
        notifier: Optional[Notifier] = None,
        *,
        ttl: timedelta = timedelta(minutes=10),
        length: int = 6,
        retry_after: Optional[int] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._limiter = rate_limiter
        self._notifier = notifier
        self.ttl = ttl
        self.length = length
        self._retry_after = retry_after

    async def request_otp(self, email: str, ip: str) -> OtpIssuedDTO:
        email = (email or "").strip().lower()
        if not self._limiter.is_allowed(email, ip):
            logger.warning("otp_rate_limited", email=email, ip=ip)
            raise RateLimitException(retry_after=self._retry_after)
        self._limiter.record_attempt(email, ip)

        async with self._uow_factory() as uow:
            account = await uow.account_repository.get_by_email(email)
            if account is None:
                raise AccountNotFoundException(email)
            code = generate_otp(self.length)
            expires_at = account.issue_otp(code, self.ttl)
            await uow.account_repository.save_otp_state(account)

        logger.info("otp_issued", email=email, account_kind=account.kind.value, expires_at=expires_at.isoformat())
        if self._notifier is not None:
            await notify_safely(
                self._notifier.send_otp(email, code, int(self.ttl.total_seconds() // 60)),
                kind="otp",
                email=email,
            )
        return OtpIssuedDTO(email=email, expires_at=expires_at)

    async def verify_otp(self, email: str, code: str) -> bool:
        email = (email or "").strip().lower()
        async with self._uow_factory() as uow:
            account = await uow.account_repository.get_by_email(email)
            if account is None:
                logger.info("otp_verification_failed", email=email, reason="unknown_account")
                return False
            verified = account.verify_otp(code)
            if verified:
                await uow.account_repository.save_otp_state(account)

        logger.info("otp_verified" if verified else "otp_verification_failed", email=email)
        return verified
