import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status

from gatepass.core.auth import ADMIN_ROLE, AuthUtils
from gatepass.schemas.admin import AdminLogin, AdminLoginResponse, Token
from gatepass.services.container import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/login", response_model=AdminLoginResponse, status_code=status.HTTP_200_OK)
def login(
    login_data: AdminLogin,
    services: Services = Depends(get_services)
):
    """
    Log in to the admin dashboard.

    There is a single admin account configured through ADMIN_USERNAME and
    ADMIN_PASSWORD (or ADMIN_PASSWORD_HASH). The returned bearer token is
    required by the stats, export and pass retry endpoints.

    Raises:
        HTTPException: If credentials are invalid
    """
    settings = services.settings
    if not AuthUtils.verify_admin_credentials(settings, login_data.username, login_data.password):
        logger.warning(f"Failed admin login for '{login_data.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expires = timedelta(hours=settings.JWT_EXPIRATION_HOURS)
    access_token = AuthUtils.create_access_token(
        settings,
        {"sub": login_data.username, "role": ADMIN_ROLE},
        expires_delta=expires
    )
    logger.info(f"Admin '{login_data.username}' logged in")

    return AdminLoginResponse(
        token=Token(access_token=access_token, expires_in=int(expires.total_seconds())),
        username=login_data.username
    )
