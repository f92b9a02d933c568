"""Verification domain schemas - Pydantic models for requests and responses"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .rules import VerificationAction


class ProviderFailureResponse(BaseModel):
    provider_id: int
    error: str


class VerificationPassData(BaseModel):
    verified: int
    revoked: int
    failed: int = 0
    skipped: int = 0
    failures: list[ProviderFailureResponse] = []


class VerificationPassResponse(BaseModel):
    success: bool = True
    message: str
    data: VerificationPassData


class ProviderVerificationResponse(BaseModel):
    """Current verification state of a provider and what the rules would do now"""

    id: int
    completedBookings: int
    averageRating: Optional[float] = None
    verifiedAt: Optional[datetime] = None
    isVerified: bool
    pendingAction: VerificationAction


class ManualVerificationRequest(BaseModel):
    verified: bool
