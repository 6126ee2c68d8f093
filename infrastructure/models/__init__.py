"""Infrastructure models package exports."""
from .base import Base, metadata
from .account import UserModel, OrganizationModel, SpecialUserModel
from .assessment import TestModel, TestResultModel
from .booking import BookingModel
from .certificate import CertificatePurchaseModel
from .payment import PaymentOrderModel

__all__ = [
    "Base",
    "metadata",
    "UserModel",
    "OrganizationModel",
    "SpecialUserModel",
    "TestModel",
    "TestResultModel",
    "BookingModel",
    "CertificatePurchaseModel",
    "PaymentOrderModel",
]
