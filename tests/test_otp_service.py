from datetime import datetime, timedelta, timezone

import pytest

from application.services.otp_service import OtpApplicationService, generate_otp
from core.exceptions import RateLimitException
from domain.account.entity import AccountKind
from domain.common.exceptions import AccountNotFoundException
from infrastructure.rate_limit import SlidingWindowRateLimiter


@pytest.fixture
def limiter():
    return SlidingWindowRateLimiter(max_per_email=3, max_per_ip=20, window=timedelta(minutes=10))


@pytest.fixture
def otp(store, limiter, notifier):
    return OtpApplicationService(store.uow, limiter, notifier, ttl=timedelta(minutes=10), retry_after=600)


def _account(store, kind):
    return next(a for a in store.accounts if a.kind is kind)


def test_generate_otp_is_zero_padded_digits():
    codes = {generate_otp(6) for _ in range(200)}
    assert all(len(c) == 6 and c.isdigit() for c in codes)
    assert len(codes) > 1


@pytest.mark.asyncio
async def test_issue_and_verify(store, otp, notifier):
    issued = await otp.request_otp("  ASHA@example.com ", "10.0.0.1")

    assert issued.email == "asha@example.com"
    email, code, ttl_minutes = notifier.otps[0]
    assert (email, ttl_minutes) == ("asha@example.com", 10)

    assert await otp.verify_otp("asha@example.com", code) is True
    account = _account(store, AccountKind.USER)
    assert account.otp_verified and account.otp_code is None
    # single use
    assert await otp.verify_otp("asha@example.com", code) is False


@pytest.mark.asyncio
async def test_wrong_or_expired_code_rejected(store, otp, notifier):
    await otp.request_otp("asha@example.com", "10.0.0.1")
    code = notifier.otps[0][1]
    wrong = "000000" if code != "000000" else "111111"

    assert await otp.verify_otp("asha@example.com", wrong) is False

    _account(store, AccountKind.USER).otp_expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    assert await otp.verify_otp("asha@example.com", code) is False


@pytest.mark.asyncio
async def test_non_ascii_digits_are_rejected(store, otp, notifier):
    await otp.request_otp("asha@example.com", "10.0.0.1")
    code = notifier.otps[0][1]
    arabic_indic = "".join(chr(0x0660 + int(d)) for d in code)

    assert await otp.verify_otp("asha@example.com", arabic_indic) is False
    # the real code still works afterwards
    assert await otp.verify_otp("asha@example.com", code) is True


@pytest.mark.asyncio
async def test_new_code_replaces_previous(otp, notifier):
    await otp.request_otp("asha@example.com", "10.0.0.1")
    await otp.request_otp("asha@example.com", "10.0.0.1")
    first, second = notifier.otps[0][1], notifier.otps[1][1]

    if first != second:
        assert await otp.verify_otp("asha@example.com", first) is False
    assert await otp.verify_otp("asha@example.com", second) is True


@pytest.mark.asyncio
async def test_fourth_request_is_rate_limited(otp, notifier):
    for _ in range(3):
        await otp.request_otp("asha@example.com", "10.0.0.1")

    with pytest.raises(RateLimitException) as exc_info:
        await otp.request_otp("Asha@Example.com", "10.0.0.2")

    assert exc_info.value.details == {"retry_after": 600}
    assert len(notifier.otps) == 3


@pytest.mark.asyncio
async def test_unknown_email_still_counts_against_limit(otp, limiter):
    with pytest.raises(AccountNotFoundException):
        await otp.request_otp("nobody@example.com", "10.0.0.1")

    assert limiter.attempts("nobody@example.com", "10.0.0.1") == (1, 1)


@pytest.mark.asyncio
async def test_organization_account(store, otp, notifier):
    await otp.request_otp("admin@acme.example", "10.0.0.1")
    code = notifier.otps[0][1]

    assert _account(store, AccountKind.ORGANIZATION).otp_code == code
    assert await otp.verify_otp("admin@acme.example", code) is True


@pytest.mark.asyncio
async def test_delivery_failure_does_not_fail_request(store, otp, notifier):
    notifier.fail = True
    issued = await otp.request_otp("asha@example.com", "10.0.0.1")
    assert issued.expires_at is not None
    assert _account(store, AccountKind.USER).otp_code is not None


@pytest.mark.asyncio
async def test_unknown_account_verification_is_false(otp):
    assert await otp.verify_otp("nobody@example.com", "123456") is False
