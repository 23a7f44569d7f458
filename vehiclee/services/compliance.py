"""
Creative review and the shared compliance queue.
"""
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import User, Creative, ComplianceQueueEntry
from ..schemas.enums import ApprovalStatus, ComplianceEntityType, ComplianceStatus
from .audit import record_audit


logger = structlog.get_logger(__name__)

STATS_KEYS = (ComplianceStatus.pending, ComplianceStatus.approved, ComplianceStatus.rejected)


def list_queue(db: Session, status: Optional[ComplianceStatus] = None) -> List[ComplianceQueueEntry]:
    query = db.query(ComplianceQueueEntry)
    if status:
        query = query.filter(ComplianceQueueEntry.status == status.value)
    return query.order_by(ComplianceQueueEntry.created_at.asc()).all()


def compliance_stats(db: Session) -> Dict[str, int]:
    rows = (
        db.query(ComplianceQueueEntry.status, func.count(ComplianceQueueEntry.id))
        .group_by(ComplianceQueueEntry.status)
        .all()
    )
    counts = {status: count for status, count in rows}
    return {key.value: counts.get(key.value, 0) for key in STATS_KEYS}


def pending_entry(
    db: Session, entity_type: ComplianceEntityType, entity_id: uuid.UUID
) -> Optional[ComplianceQueueEntry]:
    return (
        db.query(ComplianceQueueEntry)
        .filter(
            ComplianceQueueEntry.entity_type == entity_type.value,
            ComplianceQueueEntry.entity_id == entity_id,
            ComplianceQueueEntry.status == ComplianceStatus.pending.value,
        )
        .first()
    )


def enqueue(db: Session, entity_type: ComplianceEntityType, entity_id: uuid.UUID) -> ComplianceQueueEntry:
    """Open a pending review ticket for a creative, campaign or driver; the caller commits.

    At most one ticket per entity is pending at a time (409 otherwise).
    """
    if pending_entry(db, entity_type, entity_id):
        raise HTTPException(
            status_code=409,
            detail=f"A review for this {entity_type.value} is already pending",
        )
    entry = ComplianceQueueEntry(
        entity_type=entity_type.value,
        entity_id=entity_id,
        status=ComplianceStatus.pending.value,
    )
    db.add(entry)
    db.flush()
    return entry


def review_creative(
    db: Session,
    actor: User,
    compliance_id: uuid.UUID,
    creative_id: uuid.UUID,
    approved: bool,
    rejection_reason: Optional[str] = None,
) -> Creative:
    creative = db.query(Creative).filter(Creative.id == creative_id).first()
    if not creative:
        raise HTTPException(status_code=404, detail="Creative not found")
    entry = db.query(ComplianceQueueEntry).filter(ComplianceQueueEntry.id == compliance_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Compliance queue entry not found")
    if entry.entity_type != ComplianceEntityType.creative.value or entry.entity_id != creative.id:
        raise HTTPException(status_code=400, detail="Compliance queue entry does not reference this creative")
    if entry.status != ComplianceStatus.pending.value:
        raise HTTPException(status_code=409, detail=f"Compliance queue entry is already {entry.status}")

    now = datetime.now(timezone.utc)
    previous = creative.approval_status
    if approved:
        creative.approval_status = ApprovalStatus.approved.value
        creative.compliance_approved_at = now
        creative.compliance_approved_by = actor.id
        creative.rejection_reason = None
        entry.status = ComplianceStatus.approved.value
        entry.rejection_reason = None
    else:
        creative.approval_status = ApprovalStatus.rejected.value
        creative.compliance_approved_at = None
        creative.compliance_approved_by = None
        creative.rejection_reason = rejection_reason
        entry.status = ComplianceStatus.rejected.value
        entry.rejection_reason = rejection_reason
    entry.reviewed_by = actor.id
    entry.reviewed_at = now

    record_audit(
        db,
        actor,
        "creative_approved_by_admin" if approved else "creative_rejected_by_admin",
        "creative",
        creative.id,
        changes={
            "approval_status": {"before": previous, "after": creative.approval_status},
            "compliance_id": str(entry.id),
            "reason": rejection_reason,
        },
        reason=None if approved else rejection_reason,
    )
    # Creative, queue entry and audit row commit together
    db.commit()
    db.refresh(creative)
    logger.info(
        "creative_reviewed",
        creative_id=str(creative.id),
        compliance_id=str(entry.id),
        approved=approved,
        admin_id=str(actor.id),
    )
    return creative
