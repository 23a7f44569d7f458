"""
Admin endpoints: compliance review, campaign decisions, tickets and the audit trail.
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_role
from ..models.models import User, SupportTicket
from ..schemas.admin import (
    ComplianceQueueEntryResponse,
    ComplianceStatsResponse,
    ReviewCreativeRequest,
    RejectCampaignRequest,
    AuditLogResponse,
)
from ..schemas.common import SuccessResponse
from ..schemas.driver import SupportTicketResponse
from ..schemas.enums import ComplianceStatus
from ..services import campaigns as campaign_service
from ..services import compliance as compliance_service
from ..services.audit import get_audit_logs
from ..services.reads import read_or_default

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_role("admin")


# ---------- COMPLIANCE ----------
@router.get("/compliance-queue", response_model=List[ComplianceQueueEntryResponse])
def get_compliance_queue(
    status: Optional[ComplianceStatus] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    return read_or_default(lambda: compliance_service.list_queue(db, status), [], "compliance_queue")


@router.get("/compliance-stats", response_model=ComplianceStatsResponse)
def get_compliance_stats(db: Session = Depends(get_db), _=Depends(require_admin)):
    stats = read_or_default(lambda: compliance_service.compliance_stats(db), {}, "compliance_stats")
    return ComplianceStatsResponse(**stats)


@router.post("/compliance/{compliance_id}/review-creative", response_model=SuccessResponse)
def review_creative(
    compliance_id: uuid.UUID,
    payload: ReviewCreativeRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    compliance_service.review_creative(
        db,
        user,
        compliance_id=compliance_id,
        creative_id=payload.creative_id,
        approved=payload.approved,
        rejection_reason=payload.rejection_reason,
    )
    return SuccessResponse()


# ---------- CAMPAIGNS ----------
@router.post("/campaigns/{campaign_id}/approve", response_model=SuccessResponse)
def approve_campaign(campaign_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    campaign_service.approve_campaign(db, user, campaign_id)
    return SuccessResponse()


@router.post("/campaigns/{campaign_id}/reject", response_model=SuccessResponse)
def reject_campaign(
    campaign_id: uuid.UUID,
    payload: RejectCampaignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    campaign_service.reject_campaign(db, user, campaign_id, payload.reason)
    return SuccessResponse()


# ---------- SUPPORT / AUDIT ----------
@router.get("/tickets", response_model=List[SupportTicketResponse])
def get_tickets(db: Session = Depends(get_db), _=Depends(require_admin)):
    def _read():
        return db.query(SupportTicket).order_by(SupportTicket.created_at.desc()).all()

    return read_or_default(_read, [], "admin_tickets")


@router.get("/audit-logs", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    return get_audit_logs(db, entity_type=entity_type, entity_id=entity_id, limit=limit, offset=offset)
