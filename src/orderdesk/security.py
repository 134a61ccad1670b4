"""Password hashing and signed identity tokens."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
import jwt

from .config import Settings
from .errors import ExpiredToken, InvalidToken
from .models.user import Role

# bcrypt ignores (newer releases reject) anything past this many bytes
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted bcrypt hashing with a fixed work factor."""

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(plaintext.encode(), salt).decode()

    def verify(self, plaintext: str, digest: str) -> bool:
        """Constant-time check of ``plaintext`` against a bcrypt digest.

        Malformed digests count as a mismatch.
        """
        try:
            return bcrypt.checkpw(plaintext.encode(), digest.encode())
        except (ValueError, TypeError, AttributeError):
            return False


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried inside a session token."""

    user_id: int
    phone: str
    role: Role


class TokenCodec:
    """Issue and verify HMAC-signed, time-limited JWTs.

    The secret is fixed at construction; rotating it means building a new
    codec, which invalidates every token issued by the old one.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(hours=24),
    ) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            ttl=timedelta(hours=settings.token_ttl_hours),
        )

    def issue(self, claims: TokenClaims, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": str(claims.user_id),
            "phone": claims.phone,
            "role": claims.role.value,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except jwt.PyJWTError as exc:
            raise InvalidToken() from exc

        try:
            return TokenClaims(
                user_id=int(payload["sub"]),
                phone=str(payload["phone"]),
                role=Role(payload["role"]),
            )
        except (KeyError, ValueError, TypeError) as exc:
            raise InvalidToken() from exc
