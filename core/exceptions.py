"""
Exception mapping and global exception handlers
"""
from typing import Optional
from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import traceback
import uuid
from starlette import status as http_status

from .response import error_response
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from core.i18n import t, get_locale


class RateLimitException(BusinessException):
    """Rate limit exceeded"""

    def __init__(self, retry_after: Optional[int] = None):
        details = {"retry_after": retry_after} if retry_after else None
        super().__init__(
            code=BusinessCode.TOO_MANY_REQUESTS,
            message="Too many requests, please try again later",
            error_type="RateLimit",
            details=details,
            message_key="rate.limited",
            format_params=details or {},
        )


_BUSINESS_STATUS = {
    BusinessCode.PARAM_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_MISSING: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_TYPE_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_422_UNPROCESSABLE_ENTITY,

    BusinessCode.BUSINESS_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.SUBJECT_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.ACCOUNT_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.OTP_INVALID: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.DUPLICATE_IN_PROGRESS: http_status.HTTP_409_CONFLICT,
    BusinessCode.NOT_ELIGIBLE: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.ATTEMPTS_EXHAUSTED: http_status.HTTP_403_FORBIDDEN,

    BusinessCode.PERMISSION_ERROR: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,

    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.DATABASE_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.NETWORK_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,

    BusinessCode.RATE_LIMIT_ERROR: http_status.HTTP_429_TOO_MANY_REQUESTS,
    BusinessCode.TOO_MANY_REQUESTS: http_status.HTTP_429_TOO_MANY_REQUESTS,
}

_PAYMENT_STATUS = {
    PaymentCode.PROVIDER_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    PaymentCode.SIGNATURE_ERROR: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.TIMEOUT: http_status.HTTP_504_GATEWAY_TIMEOUT,
    PaymentCode.ORDER_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    PaymentCode.ORDER_SETTLED: http_status.HTTP_409_CONFLICT,
}


def business_code_to_http_status(code: int) -> int:
    """Map a business or payment code to an HTTP status (400 by default)."""
    try:
        return _BUSINESS_STATUS.get(BusinessCode(code), http_status.HTTP_400_BAD_REQUEST)
    except ValueError:
        pass
    try:
        return _PAYMENT_STATUS.get(PaymentCode(code), http_status.HTTP_400_BAD_REQUEST)
    except ValueError:
        return http_status.HTTP_400_BAD_REQUEST


def _request_id(request: Request) -> str:
    return getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())


def register_exception_handlers(app: FastAPI):
    """
    Register global exception handlers

    Args:
        app: FastAPI application
    """

    logger = get_logger(__name__)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        request_id = _request_id(request)
        # Render i18n message if message_key is provided, otherwise fallback to original message
        fmt_params = exc.format_params if isinstance(exc.format_params, dict) else {}
        translated = t(exc.message_key, **fmt_params) if exc.message_key else exc.message
        response = error_response(
            code=exc.code,
            message=translated,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
            request_id=request_id,
            locale=get_locale(),
            message_key=exc.message_key,
        )
        status_code = business_code_to_http_status(exc.code)
        logger.info(
            "business_exception",
            request_id=request_id,
            error_type=exc.error_type,
            code=int(exc.code),
            status_code=status_code,
        )
        headers = None
        retry_after = (exc.details or {}).get("retry_after")
        if status_code == http_status.HTTP_429_TOO_MANY_REQUESTS and retry_after:
            headers = {"Retry-After": str(retry_after)}
        return JSONResponse(status_code=status_code, content=response.model_dump(mode='json'), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        request_id = _request_id(request)
        errors = exc.errors()

        # report the first error's location as the field
        first_error = errors[0] if errors else {}
        field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])

        response = error_response(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=t("validation.failed", reason=first_error.get('msg', 'unknown')),
            error_type="ValidationError",
            details={"errors": [{k: v for k, v in e.items() if k != "ctx"} for e in errors]},
            field=field,
            request_id=request_id,
            locale=get_locale(),
            message_key="validation.failed",
        )
        return JSONResponse(
            status_code=http_status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=response.model_dump(mode='json')
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        request_id = _request_id(request)

        code_mapping = {
            401: BusinessCode.UNAUTHORIZED,
            403: BusinessCode.FORBIDDEN,
            404: BusinessCode.NOT_FOUND,
            429: BusinessCode.TOO_MANY_REQUESTS,
            500: BusinessCode.SYSTEM_ERROR,
            503: BusinessCode.SERVICE_UNAVAILABLE
        }
        code = code_mapping.get(exc.status_code, BusinessCode.SYSTEM_ERROR)

        response = error_response(
            code=code,
            message=str(exc.detail),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
            request_id=request_id,
            locale=get_locale(),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=response.model_dump(mode='json'),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        request_id = _request_id(request)

        # expose details only in debug mode
        details = None
        if app.debug:
            details = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        response = error_response(
            code=BusinessCode.SYSTEM_ERROR,
            message=t("error.internal"),
            error_type="SystemError",
            details=details,
            request_id=request_id,
            locale=get_locale(),
            message_key="error.internal",
        )

        logger.error(
            "unhandled_exception",
            request_id=request_id,
            error=str(exc),
            exc_info=True,
        )

        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response.model_dump(mode='json')
        )
