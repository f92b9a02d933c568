from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# User roles
ROLE_CLIENT = "CLIENT"
ROLE_FREELANCER = "FREELANCER"
ROLE_COMPANY = "COMPANY"
ROLE_ADMIN = "ADMIN"

PROVIDER_ROLES = (ROLE_FREELANCER, ROLE_COMPANY)

# Booking statuses: PENDING → CONFIRMED → COMPLETED, or CANCELLED
BOOKING_PENDING = "PENDING"
BOOKING_CONFIRMED = "CONFIRMED"
BOOKING_COMPLETED = "COMPLETED"
BOOKING_CANCELLED = "CANCELLED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    role = Column(String(20), default=ROLE_CLIENT, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Maintained by the review subsystem; null until the first review
    average_rating = Column(Float, nullable=True)
    # Present = verified provider
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bookings_as_provider = relationship(
        "Booking", foreign_keys="Booking.provider_id", back_populates="provider"
    )
    bookings_as_client = relationship(
        "Booking", foreign_keys="Booking.client_id", back_populates="client"
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), default=BOOKING_PENDING, nullable=False, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    provider = relationship("User", foreign_keys=[provider_id], back_populates="bookings_as_provider")
    client = relationship("User", foreign_keys=[client_id], back_populates="bookings_as_client")
