"""
Provider verification eligibility rules

Grant:  unverified, at least 50 completed bookings and average rating >= 4.5
Revoke: verified and average rating < 4.0
Anything else leaves the provider as is.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

MIN_COMPLETED_BOOKINGS = 50
GRANT_MIN_RATING = 4.5
REVOKE_BELOW_RATING = 4.0


class VerificationAction(str, Enum):
    GRANT = "grant"
    REVOKE = "revoke"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class ProviderStats:
    """Read-only snapshot of a provider, built fresh for every pass"""

    id: int
    completed_bookings: int
    average_rating: Optional[float] = None
    verified_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return self.verified_at is not None

    @property
    def effective_rating(self) -> float:
        # No reviews counts as a zero rating
        return float(self.average_rating) if self.average_rating else 0.0


@dataclass(frozen=True)
class VerificationDecision:
    provider_id: int
    action: VerificationAction


def evaluate(stats: ProviderStats) -> VerificationDecision:
    """Decide whether a provider gains, loses, or keeps its verification"""
    rating = stats.effective_rating

    if (
        not stats.is_verified
        and stats.completed_bookings >= MIN_COMPLETED_BOOKINGS
        and rating >= GRANT_MIN_RATING
    ):
        action = VerificationAction.GRANT
    elif stats.is_verified and rating < REVOKE_BELOW_RATING:
        action = VerificationAction.REVOKE
    else:
        action = VerificationAction.NO_CHANGE

    return VerificationDecision(provider_id=stats.id, action=action)
