"""Provider repository - Database operations for verification status"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import StorageReadError, StorageWriteError
from ...models import BOOKING_COMPLETED, Booking, User
from .rules import ProviderStats

logger = logging.getLogger(__name__)


class ProviderRepository:
    """Repository for provider verification reads and writes"""

    @staticmethod
    def _stats_query(db: Session):
        completed = func.count(Booking.id).label("completed_bookings")
        return (
            db.query(User.id, User.average_rating, User.verified_at, completed)
            .outerjoin(
                Booking,
                and_(Booking.provider_id == User.id, Booking.status == BOOKING_COMPLETED),
            )
            .group_by(User.id, User.average_rating, User.verified_at)
        )

    @staticmethod
    def _to_stats(row) -> ProviderStats:
        return ProviderStats(
            id=row.id,
            completed_bookings=row.completed_bookings or 0,
            average_rating=row.average_rating,
            verified_at=row.verified_at,
        )

    @staticmethod
    def list_providers_with_completed_booking_counts(db: Session, role: str) -> list[ProviderStats]:
        """Load every user with the given role and their completed booking count"""
        try:
            rows = (
                ProviderRepository._stats_query(db)
                .filter(User.role == role)
                .order_by(User.id)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageReadError(f"Failed to load providers with role {role}: {e}") from e

        return [ProviderRepository._to_stats(row) for row in rows]

    @staticmethod
    def get_provider_stats(db: Session, provider_id: int) -> Optional[ProviderStats]:
        try:
            row = ProviderRepository._stats_query(db).filter(User.id == provider_id).first()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageReadError(f"Failed to load provider {provider_id}: {e}") from e

        return ProviderRepository._to_stats(row) if row else None

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        try:
            return db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageReadError(f"Failed to load user {user_id}: {e}") from e

    @staticmethod
    def set_verified_at(
        db: Session,
        provider_id: int,
        value: Optional[datetime],
        expect_verified: Optional[bool] = None,
    ) -> bool:
        """
        Set or clear a provider's verified_at and commit.

        When expect_verified is given the update only applies if the stored
        state still matches it. Returns False when no row was updated.
        """
        query = db.query(User).filter(User.id == provider_id)
        if expect_verified is True:
            query = query.filter(User.verified_at.isnot(None))
        elif expect_verified is False:
            query = query.filter(User.verified_at.is_(None))

        try:
            updated = query.update({User.verified_at: value}, synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageWriteError(provider_id, f"Failed to update provider {provider_id}: {e}") from e

        return updated > 0
