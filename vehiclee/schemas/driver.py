import uuid
from datetime import datetime, date
from typing import Optional

from pydantic import BaseModel

from .enums import ApprovalStatus


class DriverProfileResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    license_number: Optional[str] = None
    license_expiry: Optional[date] = None
    document_status: ApprovalStatus
    document_reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VehicleResponse(BaseModel):
    id: uuid.UUID
    driver_id: uuid.UUID
    license_plate: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    approval_status: ApprovalStatus
    approved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayoutResponse(BaseModel):
    id: uuid.UUID
    driver_id: uuid.UUID
    campaign_allocation_id: uuid.UUID
    earning_amount: int
    formula: Optional[str] = None
    active_days: Optional[int] = None
    average_uptime: Optional[float] = None
    status: str
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SupportTicketResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    ticket_type: str
    subject: str
    description: str
    status: str
    priority: str
    assigned_to: Optional[uuid.UUID] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
