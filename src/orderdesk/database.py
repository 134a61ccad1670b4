"""Database setup and the order-management tables."""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import (
    create_engine,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship, sessionmaker, declarative_base

from .config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def engine_options(url: str, statement_timeout_ms: int = 0) -> Dict[str, Any]:
    """Return ``create_engine`` keyword arguments suited to the backend."""
    connect_args: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        # sessions are handed to FastAPI's threadpool workers
        connect_args["check_same_thread"] = False
    elif url.startswith("postgresql") and statement_timeout_ms > 0:
        connect_args["options"] = f"-c statement_timeout={statement_timeout_ms}"
    # bound parameters (password hashes among them) stay out of error messages
    return {
        "future": True,
        "pool_pre_ping": True,
        "hide_parameters": True,
        "connect_args": connect_args,
    }


engine = create_engine(
    settings.database_url,
    **engine_options(settings.database_url, settings.db_statement_timeout_ms),
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


class ItemType(Base):
    """Kind of item a design belongs to."""

    __tablename__ = "itemtype"

    id = Column(Integer, primary_key=True, index=True)
    itemtype = Column(String, nullable=False)


class Color(Base):
    """A named color grouped under a primary color."""

    __tablename__ = "colors"

    id = Column(Integer, primary_key=True, index=True)
    color_name = Column(String, nullable=False)
    primary_color = Column(String)


class Design(Base):
    """One design number in one color."""

    __tablename__ = "designs"

    id = Column(Integer, primary_key=True, index=True)
    design_number = Column(String, index=True, nullable=False)
    item_type_id = Column(Integer, ForeignKey("itemtype.id"), nullable=False)
    color_id = Column(Integer, ForeignKey("colors.id"), nullable=False)
    created_by = Column(Integer, ForeignKey("user_profiles.id"))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True))

    creator = relationship("User", lazy="joined")
    item_type = relationship("ItemType", lazy="joined")
    color = relationship("Color", lazy="joined")


class Party(Base):
    """A customer the business ships orders to."""

    __tablename__ = "parties"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="", nullable=False)
    address = Column(Text, default="", nullable=False)
    city = Column(String, default="", nullable=False)
    state = Column(String, default="", nullable=False)
    pincode = Column(String, default="", nullable=False)
    phone_number = Column(String, default="", nullable=False)
    gst_number = Column(String, default="", nullable=False)
    created_by = Column(Integer, ForeignKey("user_profiles.id"))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True))

    creator = relationship("User", lazy="joined")


class Transport(Base):
    """A transport option orders can be dispatched with."""

    __tablename__ = "transport"

    id = Column(Integer, primary_key=True, index=True)
    transport_name = Column(String, unique=True, nullable=False)
    description = Column(Text, default="", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


def init_db() -> None:
    """Create database tables if they do not exist."""
    # registers user_profiles on Base.metadata
    from .models import user  # noqa: F401

    Base.metadata.create_all(bind=engine)
