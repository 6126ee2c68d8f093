"""
Certificate API routes
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_certificate_service
from application.dtos.certificates import (
    CertificateEligibilityDTO,
    CertificatePurchaseCreateDTO,
    CertificatePurchaseDTO,
)
from application.dtos.payments import CheckoutDTO
from application.services.certificate_service import CertificateApplicationService
from core.i18n import t
from core.response import Response as ApiResponse, success_response

router = APIRouter(prefix="/certificates", tags=["Certificates"])


@router.get(
    "/results/{test_result_id}/eligibility",
    summary="Check certificate eligibility",
    response_model=ApiResponse[CertificateEligibilityDTO],
)
async def check_eligibility(
    test_result_id: int,
    service: CertificateApplicationService = Depends(get_certificate_service),
):
    return success_response(data=await service.check_eligibility(test_result_id))


@router.post("/purchases", summary="Buy a certificate", response_model=ApiResponse[CheckoutDTO])
async def create_purchase(
    payload: CertificatePurchaseCreateDTO,
    service: CertificateApplicationService = Depends(get_certificate_service),
):
    """
    Start a certificate purchase for an eligible test result.

    Only one pending or completed purchase may exist per result.
    """
    checkout = await service.initiate_purchase(payload.test_result_id, payload.subject_id)
    return success_response(data=checkout, message=t("certificate.purchase_created"))


@router.get(
    "/purchases/{test_result_id}",
    summary="Get the purchase for a test result",
    response_model=ApiResponse[CertificatePurchaseDTO],
)
async def get_purchase(
    test_result_id: int,
    service: CertificateApplicationService = Depends(get_certificate_service),
):
    return success_response(data=await service.get_purchase(test_result_id))


@router.post("/purchases/{purchase_id}/certificate", summary="Generate the certificate again")
async def regenerate_certificate(
    purchase_id: int,
    service: CertificateApplicationService = Depends(get_certificate_service),
):
    url = await service.generate_certificate(purchase_id)
    return success_response(data={"purchase_id": purchase_id, "certificate_url": url})
