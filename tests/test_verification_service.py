from datetime import datetime, timezone

import pytest

from marketplace.domain.verification import service as service_module
from marketplace.domain.verification.repository import ProviderRepository
from marketplace.domain.verification.service import VerificationService
from marketplace.errors import (
    StorageReadError,
    StorageWriteError,
    VerificationPassInProgressError,
)
from marketplace.models import ROLE_COMPANY, ROLE_FREELANCER, User

NOW = datetime(2025, 6, 1, 8, 30, tzinfo=timezone.utc)


def _service(db, repo=None):
    return VerificationService(db, role=ROLE_COMPANY, repo=repo, clock=lambda: NOW)


def _verified_at(db, provider):
    db.expire_all()
    return db.get(User, provider.id).verified_at


def test_pass_grants_revokes_and_leaves_grace_band(db, make_provider):
    a = make_provider(completed=60, rating=4.6)
    b = make_provider(completed=5, rating=3.9, verified=True)
    c = make_provider(completed=5, rating=4.2, verified=True)

    result = _service(db).run_pass()

    assert (result.verified, result.revoked, result.failed, result.skipped) == (1, 1, 0, 0)
    assert _verified_at(db, a) is not None
    assert _verified_at(db, b) is None
    assert _verified_at(db, c).year == 2024


def test_second_pass_is_a_no_op(db, make_provider):
    make_provider(completed=60, rating=4.6)
    make_provider(completed=5, rating=3.9, verified=True)

    _service(db).run_pass()
    result = _service(db).run_pass()

    assert (result.verified, result.revoked, result.failed, result.skipped) == (0, 0, 0, 0)


def test_only_configured_role_is_evaluated(db, make_provider):
    freelancer = make_provider(completed=60, rating=4.9, role=ROLE_FREELANCER)

    result = _service(db).run_pass()

    assert result.verified == 0
    assert _verified_at(db, freelancer) is None


def test_cancelled_bookings_do_not_count(db, make_provider):
    provider = make_provider(completed=49, cancelled=10, rating=4.8)

    assert _service(db).run_pass().verified == 0
    assert _verified_at(db, provider) is None


class FlakyRepository(ProviderRepository):
    def __init__(self, failing_ids):
        self.failing_ids = set(failing_ids)

    def set_verified_at(self, db, provider_id, value, expect_verified=None):
        if provider_id in self.failing_ids:
            raise StorageWriteError(provider_id, f"write failed for {provider_id}")
        return ProviderRepository.set_verified_at(db, provider_id, value, expect_verified)


def test_write_failure_is_reported_and_pass_continues(db, make_provider):
    broken = make_provider(completed=60, rating=4.6)
    fine = make_provider(completed=70, rating=4.9)
    revoked = make_provider(rating=2.0, verified=True)

    result = _service(db, repo=FlakyRepository([broken.id])).run_pass()

    assert (result.verified, result.revoked, result.failed) == (1, 1, 1)
    assert result.failures[0].provider_id == broken.id
    assert "write failed" in result.failures[0].error
    assert _verified_at(db, broken) is None
    assert _verified_at(db, fine) is not None
    assert _verified_at(db, revoked) is None


class FailingReadRepository(ProviderRepository):
    def list_providers_with_completed_booking_counts(self, db, role):
        raise StorageReadError("db down")


def test_read_failure_aborts_without_writes(db, make_provider):
    provider = make_provider(completed=60, rating=4.6)

    with pytest.raises(StorageReadError):
        _service(db, repo=FailingReadRepository()).run_pass()

    assert _verified_at(db, provider) is None


class RacingRepository(ProviderRepository):
    """Simulates an admin revoking a provider right after the pass read it"""

    def list_providers_with_completed_booking_counts(self, db, role):
        stats = ProviderRepository.list_providers_with_completed_booking_counts(db, role)
        for s in stats:
            ProviderRepository.set_verified_at(db, s.id, None)
        return stats


def test_write_is_skipped_when_state_changed_since_read(db, make_provider):
    provider = make_provider(rating=3.0, verified=True)

    result = _service(db, repo=RacingRepository()).run_pass()

    assert (result.revoked, result.skipped, result.failed) == (0, 1, 0)
    assert _verified_at(db, provider) is None


def test_overlapping_pass_is_rejected(db, make_provider):
    provider = make_provider(completed=60, rating=4.6)

    assert service_module._pass_lock.acquire(blocking=False)
    try:
        with pytest.raises(VerificationPassInProgressError):
            _service(db).run_pass()
    finally:
        service_module._pass_lock.release()

    assert _verified_at(db, provider) is None


def test_lock_is_released_after_failure(db):
    with pytest.raises(StorageReadError):
        _service(db, repo=FailingReadRepository()).run_pass()

    assert _service(db).run_pass().verified == 0


def test_manual_verification(db, make_provider):
    provider = make_provider(completed=1, rating=3.0)

    stats = _service(db).set_verification(provider.id, True)
    assert stats.is_verified

    stats = _service(db).set_verification(provider.id, False)
    assert not stats.is_verified


def test_manual_grant_of_verified_provider_keeps_date(db, make_provider):
    provider = make_provider(completed=60, rating=4.9, verified=True)

    stats = _service(db).set_verification(provider.id, True)

    assert stats.verified_at.year == 2024
    assert _verified_at(db, provider).year == 2024


def test_manual_revoke_of_unverified_provider_is_a_no_op(db, make_provider):
    provider = make_provider(rating=2.0)

    stats = _service(db).set_verification(provider.id, False)

    assert stats.verified_at is None
    assert _verified_at(db, provider) is None
