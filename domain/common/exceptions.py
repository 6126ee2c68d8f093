"""Domain-level business exceptions shared by the domain and infrastructure layers.

The core layer only maps these to HTTP responses; the domain never depends on core.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """Base class for business errors."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
        format_params: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key or "validation.domain",
            format_params=format_params,
        )


class ResourceNotFoundException(BusinessException):
    def __init__(self, resource: str, identifier: object):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"{resource} not found",
            error_type=f"{resource}NotFound",
            details={"resource": resource, "id": str(identifier)},
            message_key="resource.not_found",
            format_params={"resource": resource},
        )


class SubjectNotFoundException(BusinessException):
    def __init__(self, sap_id: str):
        super().__init__(
            code=BusinessCode.SUBJECT_NOT_FOUND,
            message="No user or special user with this SAP ID",
            error_type="SubjectNotFound",
            details={"sap_id": sap_id},
            field="subject_id",
            message_key="subject.not_found",
        )


class AccountNotFoundException(BusinessException):
    def __init__(self, email: str):
        super().__init__(
            code=BusinessCode.ACCOUNT_NOT_FOUND,
            message="No account registered with this email",
            error_type="AccountNotFound",
            details={"email": email},
            field="email",
            message_key="account.not_found",
        )


class OtpInvalidException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.OTP_INVALID,
            message="Invalid or expired OTP",
            error_type="OtpInvalid",
            field="code",
            message_key="otp.invalid",
        )


class DuplicateInProgressException(BusinessException):
    """Another live record already owns the key the caller tried to initiate."""

    def __init__(
        self,
        resource: str,
        key: str,
        *,
        existing_id: Optional[int] = None,
        existing_status: Optional[str] = None,
    ):
        details: dict = {"resource": resource, "key": key}
        if existing_id is not None:
            details["existing_id"] = existing_id
        if existing_status is not None:
            details["existing_status"] = existing_status
        super().__init__(
            code=BusinessCode.DUPLICATE_IN_PROGRESS,
            message=f"A {resource} for {key} is already in progress",
            error_type="DuplicateInProgress",
            details=details,
            message_key="payment.duplicate_in_progress",
            format_params={"resource": resource},
        )


class NotEligibleException(BusinessException):
    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.NOT_ELIGIBLE,
            message=message,
            error_type="NotEligible",
            details=details,
            message_key="certificate.not_eligible",
        )


class AttemptsExhaustedException(BusinessException):
    def __init__(self, test_id: int, max_attempts: int):
        super().__init__(
            code=BusinessCode.ATTEMPTS_EXHAUSTED,
            message="Maximum attempts reached for this test",
            error_type="AttemptsExhausted",
            details={"test_id": test_id, "max_attempts": max_attempts},
            message_key="booking.attempts_exhausted",
            format_params={"max": max_attempts},
        )
