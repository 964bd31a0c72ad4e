from pydantic import AliasGenerator, BaseModel, EmailStr, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Union
from datetime import datetime
from gatepass.models.visitor import VisitorStatus, PersonType


# Requests arrive from the React form in camelCase; snake_case names are also accepted.
_request_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

# Responses keep the camelCase field names the front end already reads.
_response_config = ConfigDict(
    from_attributes=True,
    alias_generator=AliasGenerator(serialization_alias=to_camel),
)


class VisitorRegister(BaseModel):
    """Schema for the public self-registration form"""
    model_config = _request_config

    name: str = Field(..., min_length=1, max_length=255, description="Name of the visitor")
    email: EmailStr = Field(..., description="Email address of the visitor")
    mobile: str = Field(..., min_length=10, max_length=15, description="Mobile number of the visitor")
    aadhar: str = Field(..., min_length=1, max_length=20, description="National ID (Aadhaar) number")
    purpose: str = Field(..., min_length=1, max_length=500, description="Purpose of the visit")
    person_type: PersonType = Field(..., description="Vendor, Contractor or Guest")
    company_name: str = Field(..., min_length=1, max_length=255, description="Company of the visitor")
    gate_number: int = Field(..., description="Entry gate (1 or 2)")
    photo: str = Field(..., min_length=1, description="Base64 encoded photo, data URL prefix allowed")
    host_email: EmailStr = Field(..., description="Email of the person to meet")

    to_meet: Optional[str] = Field(None, max_length=255, description="Person the visitor wants to meet")
    other_person: Optional[str] = Field(None, max_length=255)
    host_phone: Optional[str] = Field(None, max_length=20)
    laptop: Union[bool, str] = Field("No", description="Carrying a laptop (Yes/No)")
    vehicle_number: Optional[str] = Field("", max_length=50)

    @field_validator("gate_number")
    @classmethod
    def validate_gate_number(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError("gateNumber must be 1 or 2")
        return v

    @field_validator("laptop")
    @classmethod
    def normalize_laptop(cls, v) -> str:
        if isinstance(v, bool):
            return "Yes" if v else "No"
        if v is None or v == "":
            return "No"
        value = v.strip().capitalize()
        if value not in ("Yes", "No"):
            raise ValueError("laptop must be Yes or No")
        return value


class VisitorResponse(BaseModel):
    """Full visitor record as shown to the admin dashboard"""
    model_config = _response_config

    id: int = Field(..., serialization_alias="_id")
    visitor_code: str
    name: str
    email: str
    mobile: str
    aadhar: str
    purpose: str
    to_meet: Optional[str] = None
    other_person: Optional[str] = None
    person_type: PersonType
    company_name: str
    gate_number: int
    laptop: str
    vehicle_number: Optional[str] = ""
    host_email: str
    host_phone: Optional[str] = None
    photo_url: str
    status: VisitorStatus
    token_expires_at: datetime
    decision_at: Optional[datetime] = None
    pdf_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class VisitorRegistered(VisitorResponse):
    """Record returned right after registration, including its approval token"""
    approval_token: str


class VisitorStatusData(BaseModel):
    """Minimal projection polled by the waiting page"""
    model_config = _response_config

    id: int = Field(..., serialization_alias="_id")
    status: VisitorStatus
    name: str
    visitor_code: str


class VisitorRegisterResponse(BaseModel):
    success: bool = True
    data: VisitorRegistered


class VisitorDetailResponse(BaseModel):
    success: bool = True
    data: VisitorResponse


class VisitorListResponse(BaseModel):
    success: bool = True
    total: int
    data: list[VisitorResponse]


class VisitorStatusResponse(BaseModel):
    success: bool = True
    data: VisitorStatusData


class VisitorStatsResponse(BaseModel):
    """Schema for visitor statistics"""
    success: bool = True
    total_visitors: int
    pending: int
    approved: int
    rejected: int
    expired: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str
