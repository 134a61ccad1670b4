"""Service layer for users, designs, parties and transport options."""

import logging
from typing import Any, Dict, Iterable, List, NoReturn

from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .database import Color, Design, ItemType, Party, Transport, utcnow
from .errors import DuplicateUser, StoreError, ValidationError
from .models.user import Role, User


logger = logging.getLogger(__name__)

# Prometheus counters for key service events
USER_REGISTRATION_COUNTER = Counter(
    "user_registrations_total", "Total users registered"
)
DESIGN_COUNTER = Counter("designs_created_total", "Total design rows created")
PARTY_COUNTER = Counter("parties_created_total", "Total parties created")
TRANSPORT_COUNTER = Counter(
    "transport_options_created_total", "Total transport options created"
)

PARTY_TEXT_FIELDS = (
    "description",
    "address",
    "city",
    "state",
    "pincode",
    "phone_number",
    "gst_number",
)


def _handle_service_error(session: Session, exc: Exception, message: str) -> NoReturn:
    """Rollback the transaction and raise a store error with a generic message."""
    session.rollback()
    logger.exception("service layer error: %s", message, exc_info=exc)
    raise StoreError(message) from exc


# -- users ------------------------------------------------------------------


def get_user_by_phone(session: Session, phone: str) -> User | None:
    try:
        return session.query(User).filter(User.phone == phone).first()
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch user")


def get_user_by_id(session: Session, user_id: int) -> User | None:
    try:
        return session.get(User, user_id)
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch user")


def create_user(session: Session, name: str, phone: str, password_hash: str) -> User:
    """Insert a new ``user``-role account.

    The unique constraint on ``phone`` decides races between concurrent
    registrations; the loser gets :class:`DuplicateUser`.
    """
    user = User(name=name, phone=phone, password_hash=password_hash, role=Role.USER)
    try:
        session.add(user)
        session.commit()
        session.refresh(user)
    except IntegrityError as exc:
        session.rollback()
        logger.info("registration rejected by phone uniqueness constraint")
        raise DuplicateUser() from exc
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to register user")
    USER_REGISTRATION_COUNTER.inc()
    logger.info("registered user id=%s", user.id)
    return user


def list_users(session: Session) -> List[User]:
    try:
        return session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch users")


def update_user_role(session: Session, user_id: int, role: Role) -> User | None:
    try:
        user = session.get(User, user_id)
        if user is None:
            return None
        user.role = role
        session.commit()
        session.refresh(user)
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to update user role")
    logger.info("user id=%s role set to %s", user_id, role.value)
    return user


# -- designs ----------------------------------------------------------------


def list_item_types(session: Session) -> List[ItemType]:
    try:
        return session.query(ItemType).order_by(ItemType.id).all()
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch item types")


def list_colors(session: Session) -> List[Color]:
    try:
        return (
            session.query(Color)
            .order_by(Color.primary_color.asc(), Color.color_name.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch colors")


def list_designs(session: Session) -> List[Design]:
    try:
        return (
            session.query(Design)
            .order_by(Design.created_at.desc(), Design.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch designs")


def create_designs(
    session: Session,
    design_number: str,
    item_type_id: int,
    color_ids: Iterable[int],
    created_by: int,
) -> List[Design]:
    """Create one design row per color."""
    designs = [
        Design(
            design_number=design_number,
            item_type_id=item_type_id,
            color_id=color_id,
            created_by=created_by,
        )
        for color_id in color_ids
    ]
    try:
        session.add_all(designs)
        session.commit()
        for design in designs:
            session.refresh(design)
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to create design")
    DESIGN_COUNTER.inc(len(designs))
    return designs


def update_design(
    session: Session,
    design_id: int,
    design_number: str,
    item_type_id: int,
    color_id: int,
) -> Design | None:
    try:
        design = session.get(Design, design_id)
        if design is None:
            return None
        design.design_number = design_number
        design.item_type_id = item_type_id
        design.color_id = color_id
        design.updated_at = utcnow()
        session.commit()
        session.refresh(design)
        return design
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to update design")


def delete_design(session: Session, design_id: int) -> None:
    try:
        session.query(Design).filter(Design.id == design_id).delete()
        session.commit()
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to delete design")


# -- parties ----------------------------------------------------------------


def _party_values(fields: Dict[str, Any]) -> Dict[str, str]:
    values = {"name": fields["name"]}
    for key in PARTY_TEXT_FIELDS:
        values[key] = fields.get(key) or ""
    return values


def list_parties(session: Session) -> List[Party]:
    try:
        return (
            session.query(Party)
            .order_by(Party.created_at.desc(), Party.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch parties")


def get_party(session: Session, party_id: int) -> Party | None:
    try:
        return session.get(Party, party_id)
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch party")


def create_party(session: Session, fields: Dict[str, Any], created_by: int) -> Party:
    party = Party(created_by=created_by, **_party_values(fields))
    try:
        session.add(party)
        session.commit()
        session.refresh(party)
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to create party")
    PARTY_COUNTER.inc()
    return party


def update_party(session: Session, party_id: int, fields: Dict[str, Any]) -> Party | None:
    try:
        party = session.get(Party, party_id)
        if party is None:
            return None
        for key, value in _party_values(fields).items():
            setattr(party, key, value)
        party.updated_at = utcnow()
        session.commit()
        session.refresh(party)
        return party
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to update party")


def delete_party(session: Session, party_id: int) -> None:
    try:
        session.query(Party).filter(Party.id == party_id).delete()
        session.commit()
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to delete party")


# -- transport --------------------------------------------------------------


def list_transport_options(session: Session) -> List[Transport]:
    try:
        return (
            session.query(Transport)
            .order_by(Transport.created_at.desc(), Transport.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch transport options")


def get_transport_option(session: Session, transport_id: int) -> Transport | None:
    try:
        return session.get(Transport, transport_id)
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to fetch transport option")


def create_transport_option(
    session: Session, transport_name: str, description: str | None
) -> Transport:
    transport = Transport(transport_name=transport_name, description=description or "")
    try:
        session.add(transport)
        session.commit()
        session.refresh(transport)
    except IntegrityError as exc:
        session.rollback()
        raise ValidationError("Transport name already exists") from exc
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to create transport option")
    TRANSPORT_COUNTER.inc()
    return transport


def update_transport_option(
    session: Session, transport_id: int, transport_name: str, description: str | None
) -> Transport | None:
    try:
        transport = session.get(Transport, transport_id)
        if transport is None:
            return None
        transport.transport_name = transport_name
        transport.description = description or ""
        session.commit()
        session.refresh(transport)
        return transport
    except IntegrityError as exc:
        session.rollback()
        raise ValidationError("Transport name already exists") from exc
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to update transport option")


def delete_transport_option(session: Session, transport_id: int) -> None:
    try:
        session.query(Transport).filter(Transport.id == transport_id).delete()
        session.commit()
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "Failed to delete transport option")
