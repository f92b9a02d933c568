"""Verification service - runs the automated verification pass"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...errors import StorageWriteError, VerificationPassInProgressError
from ...models import PROVIDER_ROLES
from .repository import ProviderRepository
from .rules import ProviderStats, VerificationAction, VerificationDecision, evaluate

logger = logging.getLogger(__name__)

# One pass at a time per process
_pass_lock = threading.Lock()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProviderFailure:
    provider_id: int
    error: str


@dataclass
class VerificationPassResult:
    verified: int = 0
    revoked: int = 0
    failed: int = 0
    # Conditional write matched nothing: state changed after it was read
    skipped: int = 0
    failures: list[ProviderFailure] = field(default_factory=list)


class VerificationService:
    """Service layer for provider verification"""

    def __init__(
        self,
        db: Session,
        role: str,
        repo: Optional[ProviderRepository] = None,
        clock: Callable[[], datetime] = utcnow,
        evaluator: Callable[[ProviderStats], VerificationDecision] = evaluate,
    ):
        self.db = db
        self.role = role
        self.repo = repo or ProviderRepository()
        self.clock = clock
        self.evaluator = evaluator

    def run_pass(self) -> VerificationPassResult:
        """
        Re-evaluate every provider of the configured role and persist transitions.

        Raises VerificationPassInProgressError if another pass is running and
        StorageReadError if the provider list cannot be loaded.
        """
        if not _pass_lock.acquire(blocking=False):
            logger.warning("⚠️ Verification pass already running, rejecting trigger")
            raise VerificationPassInProgressError("A verification pass is already running")

        try:
            return self._run_pass()
        finally:
            _pass_lock.release()

    def _run_pass(self) -> VerificationPassResult:
        logger.info(f"🔄 Starting verification pass for role {self.role}")
        providers = self.repo.list_providers_with_completed_booking_counts(self.db, self.role)
        result = VerificationPassResult()

        for stats in providers:
            decision = self.evaluator(stats)
            if decision.action is VerificationAction.NO_CHANGE:
                continue

            granting = decision.action is VerificationAction.GRANT
            try:
                applied = self.repo.set_verified_at(
                    self.db,
                    stats.id,
                    self.clock() if granting else None,
                    expect_verified=stats.is_verified,
                )
            except StorageWriteError as e:
                logger.error(f"❌ Verification {decision.action.value} failed for provider {stats.id}: {e}")
                result.failed += 1
                result.failures.append(ProviderFailure(provider_id=stats.id, error=str(e)))
                continue

            if not applied:
                logger.info(f"ℹ️ Provider {stats.id} changed since it was read, skipping {decision.action.value}")
                result.skipped += 1
            elif granting:
                logger.info(
                    f"✅ Provider {stats.id} verified "
                    f"({stats.completed_bookings} completed bookings, rating {stats.effective_rating:.2f})"
                )
                result.verified += 1
            else:
                logger.info(f"🚫 Provider {stats.id} lost verification (rating {stats.effective_rating:.2f})")
                result.revoked += 1

        logger.info(
            f"📊 Verification pass done: {len(providers)} providers, verified={result.verified}, "
            f"revoked={result.revoked}, failed={result.failed}, skipped={result.skipped}"
        )
        return result

    def get_provider(self, provider_id: int) -> ProviderStats:
        """Get a provider's current verification stats"""
        user = self.repo.get_user(self.db, provider_id)
        if not user or user.role not in PROVIDER_ROLES:
            raise HTTPException(status_code=404, detail="Provider not found")
        return self.repo.get_provider_stats(self.db, provider_id)

    def set_verification(self, provider_id: int, verified: bool) -> ProviderStats:
        """Manually grant or revoke verification, regardless of the rules"""
        stats = self.get_provider(provider_id)
        if stats.is_verified == verified:
            # Keep the original verification date
            return stats

        self.repo.set_verified_at(self.db, provider_id, self.clock() if verified else None)
        logger.info(f"🛠️ Provider {provider_id} verification manually set to {verified}")
        return self.repo.get_provider_stats(self.db, provider_id)
