from gatepass.schemas.admin import (
    AdminLogin,
    AdminLoginResponse,
    Token,
    TokenData,
)
from gatepass.schemas.visitor import (
    VisitorRegister,
    VisitorResponse,
    VisitorRegistered,
    VisitorStatusData,
    VisitorRegisterResponse,
    VisitorDetailResponse,
    VisitorListResponse,
    VisitorStatusResponse,
    VisitorStatsResponse,
    MessageResponse,
)

__all__ = [
    "AdminLogin",
    "AdminLoginResponse",
    "Token",
    "TokenData",
    "VisitorRegister",
    "VisitorResponse",
    "VisitorRegistered",
    "VisitorStatusData",
    "VisitorRegisterResponse",
    "VisitorDetailResponse",
    "VisitorListResponse",
    "VisitorStatusResponse",
    "VisitorStatsResponse",
    "MessageResponse",
]
