from datetime import datetime, timezone
import enum

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Enum as SQLEnum

from gatepass.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class VisitorStatus(str, enum.Enum):
    """Lifecycle of a visitor request"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class PersonType(str, enum.Enum):
    VENDOR = "Vendor"
    CONTRACTOR = "Contractor"
    GUEST = "Guest"


class Visitor(Base):
    """
    Visitor model for self-registration and host approval.
    Stores the submitted details, the photo/pass URLs and the approval token.
    """
    __tablename__ = "vis_visitors"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    visitor_code = Column(String(40), unique=True, nullable=False, index=True)

    # Submitted details
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    mobile = Column(String(15), nullable=False)
    aadhar = Column(String(20), nullable=False)
    purpose = Column(String(500), nullable=False)
    to_meet = Column(String(255), nullable=True)
    other_person = Column(String(255), nullable=True)
    person_type = Column(SQLEnum(PersonType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    company_name = Column(String(255), nullable=False)
    gate_number = Column(Integer, nullable=False)
    laptop = Column(String(3), default="No", nullable=False)
    vehicle_number = Column(String(50), default="", nullable=False)
    host_email = Column(String(255), nullable=False)
    host_phone = Column(String(20), nullable=True)
    photo_url = Column(String(1000), nullable=False)

    # Approval lifecycle
    status = Column(
        SQLEnum(VisitorStatus, values_callable=lambda e: [m.value for m in e]),
        default=VisitorStatus.PENDING,
        nullable=False,
        index=True
    )
    approval_token = Column(String(64), unique=True, nullable=False, index=True)
    token_expires_at = Column(DateTime, nullable=False)
    decision_at = Column(DateTime, nullable=True)
    pdf_url = Column(String(1000), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def is_token_expired(self, now: datetime) -> bool:
        return self.token_expires_at is not None and now > self.token_expires_at

    def __repr__(self):
        return f"<Visitor(id={self.id}, code='{self.visitor_code}', name='{self.name}', status='{self.status}')>"
