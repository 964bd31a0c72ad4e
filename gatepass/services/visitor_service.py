"""
Visitor lifecycle: registration, host decision, pass delivery and expiry.

Status only ever leaves ``pending``. The decision transition is a conditional
UPDATE so that of two concurrent clicks on the same link exactly one wins.
"""
import base64
import binascii
import enum
import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gatepass.models.visitor import Visitor, VisitorStatus, utcnow
from gatepass.schemas.visitor import VisitorRegister
from gatepass.services.container import Services
from gatepass.services.notifications import NotificationResult, run_best_effort
from gatepass.services.pass_generator import PassGenerationError
from gatepass.services.s3_service import StorageError

logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 5
SAVE_ATTEMPTS = 3

_DATA_URL = re.compile(r"^data:image/(?P<ext>[A-Za-z0-9.+-]+);base64,")


class PhotoDecodeError(ValueError):
    """The submitted photo is not usable base64 image data."""


class DecisionOutcome(str, enum.Enum):
    INVALID_ACTION = "invalid_action"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_DECIDED = "already_decided"
    DECIDED = "decided"


@dataclass
class DecisionResult:
    outcome: DecisionOutcome
    status: Optional[VisitorStatus] = None
    visitor: Optional[Visitor] = None
    notifications: List[NotificationResult] = field(default_factory=list)


@dataclass
class RegistrationResult:
    visitor: Visitor
    notification: NotificationResult


def decode_photo(photo: str, max_bytes: Optional[int] = None) -> Tuple[bytes, str]:
    """
    Decode a base64 photo, with or without a ``data:image/...;base64,`` prefix.

    Returns:
        (image bytes, file extension)
    """
    ext = "png"
    payload = photo.strip()
    match = _DATA_URL.match(payload)
    if match:
        ext = match.group("ext").lower().split("+")[0]
        if ext == "jpeg":
            ext = "jpg"
        payload = payload[match.end():]

    try:
        data = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise PhotoDecodeError("Photo is not valid base64 data") from e

    if not data:
        raise PhotoDecodeError("Photo is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise PhotoDecodeError(f"Photo exceeds {max_bytes // (1024 * 1024)}MB limit")
    return data, ext


def generate_visitor_code(db: Session, prefix: str, now: Optional[datetime] = None) -> str:
    """
    ``PREFIX-<year>-<4 digits>``; after repeated collisions ``PREFIX-<epoch ms>-<3 digits>``.
    """
    now = now or utcnow()
    for _ in range(CODE_ATTEMPTS):
        code = f"{prefix}-{now.year}-{1000 + secrets.randbelow(9000)}"
        if not db.query(Visitor.id).filter(Visitor.visitor_code == code).first():
            return code
    logger.warning(f"[Register] {CODE_ATTEMPTS} visitor code collisions in {now.year}, using timestamp code")
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(1000):03d}"


def generate_approval_token() -> str:
    return secrets.token_hex(16)


def register_visitor(
    db: Session,
    services: Services,
    data: VisitorRegister,
    now: Optional[datetime] = None
) -> RegistrationResult:
    """
    Create a pending visitor and ask the host to decide.

    Raises:
        PhotoDecodeError: photo could not be decoded (nothing stored)
        StorageError: photo upload failed (nothing persisted)
        SQLAlchemyError: the record could not be saved; the uploaded photo URL is logged
    """
    settings = services.settings
    now = now or utcnow()

    photo_bytes, ext = decode_photo(data.photo, settings.max_photo_bytes)
    photo_url = services.storage.upload_file(
        photo_bytes,
        f"{data.name}.{ext}",
        settings.photo_folder
    )

    visitor = None
    for attempt in range(1, SAVE_ATTEMPTS + 1):
        visitor = Visitor(
            visitor_code=generate_visitor_code(db, settings.visitor_code_prefix, now),
            name=data.name,
            email=str(data.email),
            mobile=data.mobile,
            aadhar=data.aadhar,
            purpose=data.purpose,
            to_meet=data.to_meet,
            other_person=data.other_person,
            person_type=data.person_type,
            company_name=data.company_name,
            gate_number=data.gate_number,
            laptop=data.laptop,
            vehicle_number=data.vehicle_number or "",
            host_email=str(data.host_email),
            host_phone=data.host_phone,
            photo_url=photo_url,
            status=VisitorStatus.PENDING,
            approval_token=generate_approval_token(),
            token_expires_at=now + timedelta(hours=settings.approval_token_ttl_hours),
            created_at=now,
            updated_at=now,
        )
        db.add(visitor)
        try:
            db.commit()
            break
        except IntegrityError:
            # Lost a race for the visitor code
            db.rollback()
            logger.warning(f"[Register] Duplicate visitor code {visitor.visitor_code}, attempt {attempt}")
            if attempt == SAVE_ATTEMPTS:
                logger.error(f"[Register] Visitor not saved, orphaned photo left at {photo_url}")
                raise
        except SQLAlchemyError:
            db.rollback()
            logger.error(f"[Register] Visitor not saved, orphaned photo left at {photo_url}", exc_info=True)
            raise
    db.refresh(visitor)
    logger.info(f"[Register] Visitor {visitor.id} ({visitor.visitor_code}) created, pending approval by {visitor.host_email}")

    notification = run_best_effort(
        "host approval request",
        services.mailer.send_approval_request_to_host,
        visitor.host_email,
        visitor,
    )
    return RegistrationResult(visitor=visitor, notification=notification)


def deliver_pass(db: Session, services: Services, visitor: Visitor) -> List[NotificationResult]:
    """
    Generate, upload and email the gate pass of an approved visitor.

    Failures are logged and reported in the returned results; the approval itself
    stands and the visitor is still emailed.
    """
    results = []
    pdf_bytes = None
    try:
        pdf_bytes = services.pass_generator.generate(visitor)
        results.append(NotificationResult(name="pass generation", ok=True))
    except PassGenerationError as e:
        logger.error(f"[Decision] Pass generation failed for visitor {visitor.id}: {e}")
        results.append(NotificationResult(name="pass generation", ok=False, error=str(e)))
    except Exception as e:
        logger.error(f"[Decision] Unexpected pass generation error for visitor {visitor.id}: {e}", exc_info=True)
        results.append(NotificationResult(name="pass generation", ok=False, error=str(e)))

    if pdf_bytes:
        try:
            pdf_url = services.storage.upload_file(
                pdf_bytes,
                f"{visitor.name}.pdf",
                services.settings.pass_folder,
                content_type="application/pdf",
            )
            visitor.pdf_url = pdf_url
            db.commit()
            results.append(NotificationResult(name="pass upload", ok=True))
            logger.info(f"[Decision] Pass for visitor {visitor.id} stored at {visitor.pdf_url}")
        except StorageError as e:
            logger.error(f"[Decision] Pass upload failed for visitor {visitor.id}: {e}")
            results.append(NotificationResult(name="pass upload", ok=False, error=str(e)))
        except Exception as e:
            logger.error(f"[Decision] Could not store pass for visitor {visitor.id}: {e}", exc_info=True)
            # Drops the unsaved pdf_url; status was committed by the decision
            db.rollback()
            results.append(NotificationResult(name="pass upload", ok=False, error=str(e)))

    if visitor.email:
        results.append(run_best_effort(
            "visitor approval email",
            services.mailer.send_approval_to_visitor,
            visitor,
            pdf_bytes,
        ))
    return results


def decide_visitor(
    db: Session,
    services: Services,
    token: str,
    requested_status: Optional[str],
    now: Optional[datetime] = None
) -> DecisionResult:
    """Apply a host's approve/reject click."""
    now = now or utcnow()

    try:
        target = VisitorStatus(requested_status)
    except ValueError:
        target = None
    if target not in (VisitorStatus.APPROVED, VisitorStatus.REJECTED):
        logger.info(f"[Decision] Invalid action requested: {requested_status!r}")
        return DecisionResult(outcome=DecisionOutcome.INVALID_ACTION)

    visitor = db.query(Visitor).filter(Visitor.approval_token == token).first()
    if visitor is None:
        logger.info("[Decision] No visitor found for token")
        return DecisionResult(outcome=DecisionOutcome.NOT_FOUND)

    if visitor.is_token_expired(now):
        logger.info(f"[Decision] Token expired for visitor {visitor.id}")
        return DecisionResult(outcome=DecisionOutcome.EXPIRED, status=visitor.status, visitor=visitor)

    if visitor.status != VisitorStatus.PENDING:
        logger.info(f"[Decision] Visitor {visitor.id} already {visitor.status.value}")
        return DecisionResult(outcome=DecisionOutcome.ALREADY_DECIDED, status=visitor.status, visitor=visitor)

    updated = (
        db.query(Visitor)
        .filter(Visitor.id == visitor.id, Visitor.status == VisitorStatus.PENDING)
        .update(
            {Visitor.status: target, Visitor.decision_at: now, Visitor.updated_at: now},
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(visitor)

    if updated == 0:
        logger.info(f"[Decision] Concurrent decision for visitor {visitor.id}, now {visitor.status.value}")
        return DecisionResult(outcome=DecisionOutcome.ALREADY_DECIDED, status=visitor.status, visitor=visitor)

    logger.info(f"[Decision] Visitor {visitor.id} {target.value}")

    if target == VisitorStatus.APPROVED:
        notifications = deliver_pass(db, services, visitor)
    elif visitor.email:
        notifications = [run_best_effort(
            "visitor rejection email",
            services.mailer.send_rejection_to_visitor,
            visitor,
        )]
    else:
        notifications = []

    return DecisionResult(
        outcome=DecisionOutcome.DECIDED,
        status=target,
        visitor=visitor,
        notifications=notifications,
    )


def get_visitor(db: Session, visitor_id: int) -> Optional[Visitor]:
    return db.query(Visitor).filter(Visitor.id == visitor_id).first()


def expire_visitor(
    db: Session,
    visitor_id: int,
    pending_only: bool = False,
    now: Optional[datetime] = None
) -> Tuple[Optional[Visitor], bool]:
    """
    Mark a visitor expired when the waiting page's countdown runs out.

    Without ``pending_only`` the write is unconditional and overwrites an
    approved or rejected status as well.

    Returns:
        (visitor or None if unknown, whether the status was changed)
    """
    now = now or utcnow()
    visitor = get_visitor(db, visitor_id)
    if visitor is None:
        return None, False

    query = db.query(Visitor).filter(Visitor.id == visitor_id)
    if pending_only:
        query = query.filter(Visitor.status == VisitorStatus.PENDING)
    updated = query.update(
        {Visitor.status: VisitorStatus.EXPIRED, Visitor.updated_at: now},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(visitor)

    if updated:
        logger.info(f"[Expire] Visitor {visitor_id} expired")
    else:
        logger.info(f"[Expire] Visitor {visitor_id} left as {visitor.status.value}")
    return visitor, bool(updated)


def filter_visitors(
    db: Session,
    search: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    status: Optional[VisitorStatus] = None,
):
    """Query of visitors matching the dashboard filters, newest first."""
    query = db.query(Visitor)

    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Visitor.name.ilike(term),
            Visitor.email.ilike(term),
            Visitor.mobile.ilike(term),
            Visitor.visitor_code.ilike(term),
            Visitor.purpose.ilike(term),
            Visitor.to_meet.ilike(term),
        ))
    if from_date:
        query = query.filter(Visitor.created_at >= datetime.combine(from_date, dt_time.min))
    if to_date:
        query = query.filter(Visitor.created_at < datetime.combine(to_date + timedelta(days=1), dt_time.min))
    if status:
        query = query.filter(Visitor.status == status)

    return query.order_by(Visitor.created_at.desc(), Visitor.id.desc())


def visitor_stats(db: Session) -> dict:
    counts = dict(
        db.query(Visitor.status, func.count(Visitor.id)).group_by(Visitor.status).all()
    )
    stats = {s.value: counts.get(s, 0) for s in VisitorStatus}
    stats["total_visitors"] = sum(counts.values())
    return stats
