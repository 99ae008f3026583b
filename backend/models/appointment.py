"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time, func
from sqlalchemy.orm import relationship

from backend.database import Base


STATUS_SCHEDULED = 'scheduled'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
APPOINTMENT_STATUSES = (STATUS_SCHEDULED, STATUS_COMPLETED, STATUS_CANCELLED)


class Appointment(Base):
    """Represents a scheduled visit between a patient and a provider."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    users_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider_id = Column(Integer, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    reason = Column(String)
    status = Column(String, nullable=False, default=STATUS_SCHEDULED)
    created_at = Column(DateTime, server_default=func.now())

    patient = relationship("User", back_populates="appointments")
    provider = relationship("Provider", back_populates="appointments")
