"""Provider profile model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from backend.database import Base


class Provider(Base):
    """Clinical-specialty profile attached to exactly one user."""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    users_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specialty = Column(String, nullable=False)

    user = relationship("User", back_populates="provider_profile")
    appointments = relationship(
        "Appointment",
        back_populates="provider",
        cascade="all, delete-orphan",
    )
