# app/core/security.py - Access tokens (PyJWT) and password hashing (passlib bcrypt)
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import secrets

import jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.errors import UnauthorizedError

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
    bcrypt__ident="2b",
)

ACCESS = "access"


class SecurityError(Exception):
    """Raised when a token cannot be built"""
    pass


class TokenManager:
    """
    Issues and checks the bearer tokens used by every authenticated route.

    Tokens carry sub (user id), iat, exp, iss, aud, type and a random jti;
    login adds the email and is_admin claims on top.
    """

    RESERVED_CLAIMS = {"sub", "iat", "exp", "iss", "aud", "type", "jti"}

    def __init__(self, secret: str, algorithm: str, issuer: str, audience: str, ttl_minutes: int):
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.ttl = timedelta(minutes=ttl_minutes)

    def issue(self, user_id: str, claims: Optional[Dict[str, Any]] = None) -> str:
        clash = self.RESERVED_CLAIMS.intersection(claims or {})
        if clash:
            raise SecurityError(f"Cannot override reserved JWT claim: {', '.join(sorted(clash))}")

        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + self.ttl,
            "iss": self.issuer,
            "aud": self.audience,
            "type": ACCESS,
            "jti": secrets.token_hex(16),
            **(claims or {}),
        }
        try:
            return jwt.encode(payload, self.secret, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SecurityError(f"Failed to create access token: {e}")

    def read(self, token: str) -> Dict[str, Any]:
        """Verified payload; any failure is a 401"""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token has expired")
        except jwt.InvalidTokenError:
            raise UnauthorizedError("Invalid token")

        if payload.get("type") != ACCESS:
            raise UnauthorizedError("Invalid token type")
        return payload


tokens = TokenManager(
    secret=settings.JWT_SECRET,
    algorithm=settings.JWT_ALGORITHM,
    issuer=settings.JWT_ISSUER,
    audience=settings.JWT_AUDIENCE,
    ttl_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
)


def create_access_token(subject: str, additional_claims: Optional[Dict[str, Any]] = None) -> str:
    return tokens.issue(subject, additional_claims)


def decode_token(token: str) -> Dict[str, Any]:
    return tokens.read(token)


def hash_password(password: str) -> str:
    if not password:
        raise SecurityError("Password cannot be empty")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


__all__ = [
    "TokenManager", "tokens", "SecurityError",
    "create_access_token", "decode_token", "hash_password", "verify_password",
]
