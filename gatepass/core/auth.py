"""
Admin dashboard authentication.

There is no user table: one admin account comes from configuration and a
successful login yields a short-lived bearer JWT carrying ``role=admin``.
Settings are passed in from the injected ``Services`` container.
"""
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from gatepass.core.config import Settings
from gatepass.schemas.admin import TokenData
from gatepass.services.container import Services, get_services


ADMIN_ROLE = "admin"

bearer_scheme = HTTPBearer()


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthUtils:
    """Password hashing, admin credential checks and token handling"""

    @staticmethod
    def hash_password(password: str, rounds: int = 12) -> str:
        """bcrypt hash suitable for ADMIN_PASSWORD_HASH."""
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            # Malformed hash in configuration
            return False

    @staticmethod
    def verify_admin_credentials(settings: Settings, username: str, password: str) -> bool:
        """
        Check a login attempt against the single configured admin account.

        ADMIN_PASSWORD_HASH (bcrypt) wins over the plain ADMIN_PASSWORD when both are set.
        """
        if not hmac.compare_digest(username.encode("utf-8"), settings.admin_username.encode("utf-8")):
            return False
        if settings.admin_password_hash:
            return AuthUtils.verify_password(password, settings.admin_password_hash)
        return hmac.compare_digest(password.encode("utf-8"), settings.admin_password.encode("utf-8"))

    @staticmethod
    def create_access_token(settings: Settings, claims: dict, expires_delta: Optional[timedelta] = None) -> str:
        """
        Sign ``claims`` into a JWT.

        Args:
            settings: Source of the signing secret and algorithm
            claims: Payload, at least ``sub`` and ``role``
            expires_delta: Lifetime, JWT_EXPIRATION_HOURS when omitted
        """
        lifetime = expires_delta or timedelta(hours=settings.JWT_EXPIRATION_HOURS)
        payload = dict(claims, exp=datetime.now(timezone.utc) + lifetime)
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def decode_token(settings: Settings, token: str) -> TokenData:
        """
        Raises:
            HTTPException: 401 if the token is malformed, expired or lacks claims
        """
        try:
            payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        except JWTError:
            raise _unauthorized()

        username = payload.get("sub")
        role = payload.get("role")
        if username is None or role is None:
            raise _unauthorized()
        return TokenData(username=username, role=role)


def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    services: Services = Depends(get_services)
) -> TokenData:
    """
    Dependency guarding the admin-only dashboard endpoints.

    Raises:
        HTTPException: 401 for a bad token, 403 for a valid token that is not the admin's
    """
    settings = services.settings
    token_data = AuthUtils.decode_token(settings, credentials.credentials)

    if token_data.role != ADMIN_ROLE or token_data.username != settings.admin_username:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return token_data
