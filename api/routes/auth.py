"""
OTP login routes
"""
from fastapi import APIRouter, Depends, Request

from api.dependencies import get_otp_service
from application.dtos.auth import OtpIssuedDTO, OtpRequestDTO, OtpVerifyDTO
from application.services.otp_service import OtpApplicationService
from core.i18n import t
from core.response import Response as ApiResponse, success_response
from domain.common.exceptions import OtpInvalidException

router = APIRouter(prefix="/auth/otp", tags=["Auth"])


def _client_ip(request: Request) -> str:
    return getattr(request.state, "client_ip", None) or (request.client.host if request.client else "unknown")


@router.post("/request", summary="Email a one-time passcode", response_model=ApiResponse[OtpIssuedDTO])
async def request_otp(
    payload: OtpRequestDTO,
    request: Request,
    service: OtpApplicationService = Depends(get_otp_service),
):
    """
    Issue a login OTP for a registered user or organization.

    Limited per email and per client IP over a sliding window.
    """
    issued = await service.request_otp(payload.email, _client_ip(request))
    return success_response(data=issued, message=t("otp.sent"))


@router.post("/verify", summary="Verify a one-time passcode")
async def verify_otp(
    payload: OtpVerifyDTO,
    service: OtpApplicationService = Depends(get_otp_service),
):
    if not await service.verify_otp(payload.email, payload.code):
        raise OtpInvalidException()
    return success_response(data={"email": payload.email.lower(), "verified": True}, message=t("otp.verified"))
