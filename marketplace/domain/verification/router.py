"""Verification router - cron trigger and admin endpoints"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_settings, require_admin, require_cron_secret
from ...config import Settings
from ...database import get_db
from ...models import User
from ...rate_limiter import api_rate_limit, auth_rate_limit
from .rules import ProviderStats, evaluate
from .schemas import (
    ManualVerificationRequest,
    ProviderFailureResponse,
    ProviderVerificationResponse,
    VerificationPassData,
    VerificationPassResponse,
)
from .service import VerificationService

logger = logging.getLogger(__name__)

cron_router = APIRouter(prefix="/api/cron", tags=["Cron"])
admin_router = APIRouter(
    prefix="/api/admin/providers", tags=["Admin"], dependencies=[Depends(api_rate_limit)]
)


def get_verification_service(
    db: Session = Depends(get_db), settings: Settings = Depends(get_settings)
) -> VerificationService:
    """Dependency injection for VerificationService"""
    return VerificationService(db, role=settings.verification_role)


def _provider_response(stats: ProviderStats) -> ProviderVerificationResponse:
    return ProviderVerificationResponse(
        id=stats.id,
        completedBookings=stats.completed_bookings,
        averageRating=stats.average_rating,
        verifiedAt=stats.verified_at,
        isVerified=stats.is_verified,
        pendingAction=evaluate(stats).action,
    )


# ============================================================================
# CRON
# ============================================================================


@cron_router.api_route(
    "/verify-companies",
    methods=["GET", "POST"],
    response_model=VerificationPassResponse,
    dependencies=[Depends(auth_rate_limit), Depends(require_cron_secret)],
)
def verify_companies(service: VerificationService = Depends(get_verification_service)):
    """
    Re-evaluate provider verification.
    Called by the external scheduler with the CRON_SECRET bearer token.
    """
    result = service.run_pass()
    return VerificationPassResponse(
        message="Provider verification checked",
        data=VerificationPassData(
            verified=result.verified,
            revoked=result.revoked,
            failed=result.failed,
            skipped=result.skipped,
            failures=[
                ProviderFailureResponse(provider_id=f.provider_id, error=f.error)
                for f in result.failures
            ],
        ),
    )


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("/{provider_id}/verification", response_model=ProviderVerificationResponse)
def get_provider_verification(
    provider_id: int,
    _admin: User = Depends(require_admin),
    service: VerificationService = Depends(get_verification_service),
):
    return _provider_response(service.get_provider(provider_id))


@admin_router.patch("/{provider_id}/verification", response_model=ProviderVerificationResponse)
def set_provider_verification(
    provider_id: int,
    data: ManualVerificationRequest,
    admin: User = Depends(require_admin),
    service: VerificationService = Depends(get_verification_service),
):
    """Manually grant or revoke a provider's verified status"""
    logger.info(f"📥 Admin {admin.id} setting verification of provider {provider_id} to {data.verified}")
    return _provider_response(service.set_verification(provider_id, data.verified))
