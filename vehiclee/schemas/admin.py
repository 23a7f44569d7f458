import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .enums import ComplianceEntityType, ComplianceStatus


class ComplianceQueueEntryResponse(BaseModel):
    id: uuid.UUID
    entity_type: ComplianceEntityType
    entity_id: uuid.UUID
    status: ComplianceStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    restricted_categories: Optional[List[str]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ComplianceStatsResponse(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class ReviewCreativeRequest(BaseModel):
    creative_id: uuid.UUID
    approved: bool
    rejection_reason: Optional[str] = None


class RejectCampaignRequest(BaseModel):
    reason: str = Field(min_length=1)


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    actor_role: Optional[str] = None
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    changes: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    created_at: datetime
    integrity_hash: Optional[str] = None

    class Config:
        from_attributes = True
