"""
Password hashing and bearer token handling.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from mutual_aid.config.settings import settings
from mutual_aid.core.errors import UnauthorizedError
from mutual_aid.models.enums import UserRole

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a validated bearer token."""
    user_id: int
    role: UserRole
    username: str


class TokenService:
    """Issues and validates HS256 bearer tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_hours: int = 24,
        audience: str = "mutual-aid-app",
        issuer: str = "mutual-aid-auth",
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_hours = expires_hours
        self.audience = audience
        self.issuer = issuer

    def issue(self, user_id: int, role: UserRole, username: str, now: Optional[datetime] = None) -> str:
        """
        Create a signed token for an authenticated user.

        Args:
            user_id: Subject id
            role: The user's role at issuance
            username: Included for logging on the receiving side
            now: Issuance time, defaults to the current UTC time

        Returns:
            The encoded token
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "id": user_id,
            "role": UserRole(role).value,
            "username": username,
            "iat": issued_at,
            "exp": issued_at + timedelta(hours=self.expires_hours),
            "aud": self.audience,
            "iss": self.issuer,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenClaims:
        """
        Validate signature, expiry, audience and issuer.

        Raises:
            UnauthorizedError: If the token is expired, tampered with or malformed.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "sub", "aud", "iss"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token has expired") from None
        except jwt.InvalidTokenError:
            raise UnauthorizedError("Invalid token") from None

        try:
            return TokenClaims(
                user_id=int(payload["id"]),
                role=UserRole(payload["role"]),
                username=str(payload.get("username", "")),
            )
        except (KeyError, TypeError, ValueError):
            raise UnauthorizedError("Invalid token format") from None


def get_token_service() -> TokenService:
    return TokenService(
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        expires_hours=settings.JWT_EXPIRES_HOURS,
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
    )
