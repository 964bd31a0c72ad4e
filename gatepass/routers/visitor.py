from datetime import date
from html import escape
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import HTMLResponse, StreamingResponse
from sqlalchemy.orm import Session

from gatepass.core.auth import get_current_admin
from gatepass.core.database import get_db
from gatepass.models.visitor import VisitorStatus
from gatepass.schemas.admin import TokenData
from gatepass.schemas.visitor import (
    VisitorRegister,
    VisitorRegistered,
    VisitorResponse,
    VisitorStatusData,
    VisitorRegisterResponse,
    VisitorDetailResponse,
    VisitorListResponse,
    VisitorStatusResponse,
    VisitorStatsResponse,
    MessageResponse,
)
from gatepass.services import visitor_service
from gatepass.services.container import Services, get_services
from gatepass.services.export_service import build_visitors_xlsx, export_file_name
from gatepass.services.s3_service import StorageError
from gatepass.services.visitor_service import DecisionOutcome, PhotoDecodeError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/visitors", tags=["Visitors"])


def _decision_page(message: str, color: Optional[str] = None) -> str:
    if color is None:
        return f"<h2>{escape(message)}</h2>"
    return (
        '<div style="font-family: Arial, sans-serif; padding: 30px; text-align: center;">'
        f'<h2>Visitor request <span style="color: {color}">{escape(message)}</span></h2>'
        "<p>You can now close this window.</p>"
        "</div>"
    )


def _get_visitor_or_404(db: Session, visitor_id: int):
    visitor = visitor_service.get_visitor(db, visitor_id)
    if visitor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Visitor not found"
        )
    return visitor


@router.post("/register", response_model=VisitorRegisterResponse, status_code=status.HTTP_201_CREATED)
def register_visitor(
    visitor_data: VisitorRegister,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services)
):
    """
    Register a visitor from the public form. No authentication required.

    The photo is uploaded first; if that fails nothing is stored. The host is
    then emailed approve/reject links. A failed host email is logged and does
    not fail the registration.

    Returns:
        The created visitor, including its approval token
    """
    try:
        result = visitor_service.register_visitor(db, services, visitor_data)
    except PhotoDecodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Photo upload failed"
        )

    if not result.notification.ok:
        logger.warning(
            f"Visitor {result.visitor.id} registered but host was not notified: {result.notification.error}"
        )

    return VisitorRegisterResponse(data=VisitorRegistered.model_validate(result.visitor))


@router.get("/decision/{token}", response_class=HTMLResponse)
def visitor_decision(
    token: str,
    decision: Optional[str] = Query(None, alias="status", description="approved or rejected"),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services)
):
    """
    Approve or reject a visitor from the link in the host's email.

    Possession of the token is the only authorization. Only the first valid
    click changes anything; later clicks report the existing status.
    """
    try:
        result = visitor_service.decide_visitor(db, services, token, decision)
    except Exception as e:
        logger.error(f"[Decision] Error processing decision: {e}", exc_info=True)
        db.rollback()
        return HTMLResponse(_decision_page("Server error"), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if result.outcome == DecisionOutcome.INVALID_ACTION:
        return HTMLResponse(_decision_page("Invalid action"), status_code=status.HTTP_400_BAD_REQUEST)
    if result.outcome == DecisionOutcome.NOT_FOUND:
        return HTMLResponse(_decision_page("Visitor not found"), status_code=status.HTTP_404_NOT_FOUND)
    if result.outcome == DecisionOutcome.EXPIRED:
        return HTMLResponse(_decision_page("Token Expired"))
    if result.outcome == DecisionOutcome.ALREADY_DECIDED:
        return HTMLResponse(_decision_page(f"Already {result.status.value}"))

    for notification in result.notifications:
        if not notification.ok:
            logger.warning(f"[Decision] Visitor {result.visitor.id}: {notification.name} failed: {notification.error}")

    color = "#28a745" if result.status == VisitorStatus.APPROVED else "#dc3545"
    return HTMLResponse(_decision_page(result.status.value.upper(), color))


@router.get("/status/{visitor_id}", response_model=VisitorStatusResponse, status_code=status.HTTP_200_OK)
def get_visitor_status(
    visitor_id: int,
    db: Session = Depends(get_db)
):
    """Current status of a visitor, polled by the waiting page."""
    visitor = _get_visitor_or_404(db, visitor_id)
    return VisitorStatusResponse(data=VisitorStatusData.model_validate(visitor))


@router.get("/stats", response_model=VisitorStatsResponse, status_code=status.HTTP_200_OK)
def get_visitor_stats(
    db: Session = Depends(get_db),
    current_admin: TokenData = Depends(get_current_admin)
):
    """Visitor counts per status. Requires admin authentication."""
    return VisitorStatsResponse(**visitor_service.visitor_stats(db))


@router.get("/export", status_code=status.HTTP_200_OK)
def export_visitors(
    search: Optional[str] = Query(None, description="Search name, email, mobile, code, purpose or host"),
    from_date: Optional[date] = Query(None, description="Created on or after (YYYY-MM-DD)"),
    to_date: Optional[date] = Query(None, description="Created on or before (YYYY-MM-DD)"),
    visitor_status: Optional[VisitorStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_admin: TokenData = Depends(get_current_admin)
):
    """Download the filtered visitor list as an Excel workbook. Requires admin authentication."""
    visitors = visitor_service.filter_visitors(db, search, from_date, to_date, visitor_status).all()
    if not visitors:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No visitors found to export"
        )

    file_name = export_file_name(from_date, to_date)
    logger.info(f"Exporting {len(visitors)} visitors to {file_name}")
    return StreamingResponse(
        build_visitors_xlsx(visitors),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'}
    )


@router.get("/", response_model=VisitorListResponse, status_code=status.HTTP_200_OK)
def get_all_visitors(
    search: Optional[str] = Query(None, description="Search name, email, mobile, code, purpose or host"),
    from_date: Optional[date] = Query(None, description="Created on or after (YYYY-MM-DD)"),
    to_date: Optional[date] = Query(None, description="Created on or before (YYYY-MM-DD)"),
    visitor_status: Optional[VisitorStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db)
):
    """
    List visitors, newest first.

    Args:
        search: Optional case-insensitive search term
        from_date: Optional inclusive lower bound on registration date
        to_date: Optional inclusive upper bound on registration date
        visitor_status: Optional status filter
    """
    visitors = visitor_service.filter_visitors(db, search, from_date, to_date, visitor_status).all()
    return VisitorListResponse(
        total=len(visitors),
        data=[VisitorResponse.model_validate(v) for v in visitors]
    )


@router.put("/{visitor_id}/expire", response_model=MessageResponse, status_code=status.HTTP_200_OK)
def expire_visitor(
    visitor_id: int,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services)
):
    """
    Expire a visitor when the waiting page's countdown runs out.

    Unless EXPIRE_PENDING_ONLY is set this overwrites any status, approved included.
    """
    visitor, changed = visitor_service.expire_visitor(
        db, visitor_id, pending_only=services.settings.expire_pending_only
    )
    if visitor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Visitor not found"
        )
    if not changed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Already {visitor.status.value}"
        )
    return MessageResponse(message="Visitor expired")


@router.post("/{visitor_id}/pass", response_model=VisitorDetailResponse, status_code=status.HTTP_200_OK)
def regenerate_pass(
    visitor_id: int,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_admin: TokenData = Depends(get_current_admin)
):
    """
    Retry pass generation, upload and the approval email for an approved visitor.
    Requires admin authentication.
    """
    visitor = _get_visitor_or_404(db, visitor_id)
    if visitor.status != VisitorStatus.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Pass is only issued to approved visitors (visitor is {visitor.status.value})"
        )

    results = visitor_service.deliver_pass(db, services, visitor)
    failed = [r for r in results if not r.ok and r.name != "visitor approval email"]
    if failed:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{failed[0].name} failed"
        )
    return VisitorDetailResponse(data=VisitorResponse.model_validate(visitor))


@router.get("/{visitor_id}", response_model=VisitorDetailResponse, status_code=status.HTTP_200_OK)
def get_visitor_by_id(
    visitor_id: int,
    db: Session = Depends(get_db)
):
    """Full visitor record. The approval token is never included."""
    visitor = _get_visitor_or_404(db, visitor_id)
    return VisitorDetailResponse(data=VisitorResponse.model_validate(visitor))
