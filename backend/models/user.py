"""User model definitions."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from backend.database import Base


ROLE_ADMIN = 'admin'
ROLE_PROVIDER = 'provider'
ROLE_PATIENT = 'patient'
ROLES = (ROLE_ADMIN, ROLE_PROVIDER, ROLE_PATIENT)


class User(Base):
    """Represents an application account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    lastname = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String)
    image = Column(String)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_PATIENT)  # admin/provider/patient

    provider_profile = relationship(
        "Provider",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    appointments = relationship(
        "Appointment",
        back_populates="patient",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f'{self.name} {self.lastname}'.strip()
