from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Generator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .database import SessionLocal
from .errors import Forbidden, MissingToken
from .models.user import Role
from .security import PasswordHasher, TokenClaims, TokenCodec

# auto_error is off so a missing token renders as our own 401 body
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller attached to a request."""

    id: int
    phone: str
    role: Role

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "Identity":
        return cls(id=claims.user_id, phone=claims.phone, role=claims.role)


def get_db() -> Generator[Session, None, None]:
    """Provide a session scoped to a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(settings)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    codec: TokenCodec = Depends(get_token_codec),
) -> Identity:
    """Verify the bearer token and attach the caller to ``request.state``.

    Claims are trusted as signed, so no database round-trip happens here.
    """
    if credentials is None or not credentials.credentials:
        raise MissingToken()

    identity = Identity.from_claims(codec.verify(credentials.credentials))
    request.state.identity = identity
    return identity


def require_role(*roles: Role) -> Callable[..., Identity]:
    """Build a dependency admitting callers holding one of ``roles``.

    Admins pass every role gate.
    """
    if not roles or not all(isinstance(role, Role) for role in roles):
        raise TypeError("require_role expects one or more Role members")
    allowed = frozenset(roles) | {Role.ADMIN}

    def _check(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise Forbidden()
        return identity

    return _check
