import enum

from sqlalchemy import Column, DateTime, Enum, Integer, String

from ..database import Base, utcnow


class Role(str, enum.Enum):
    """Closed set of roles an identity can hold."""

    USER = "user"
    ADMIN = "admin"


class User(Base):
    """SQLAlchemy model for application users and their credentials."""

    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(
        Enum(
            Role,
            native_enum=False,
            length=16,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        default=Role.USER,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
