"""
Campaign workflow.

Owns the campaign status machine and the client-side creative steps
(upload, self-approval, submission to the compliance queue).
"""
import base64
import binascii
import os
import uuid
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

import structlog
from fastapi import HTTPException
from slugify import slugify
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import User, ClientProfile, Campaign, Creative, Zone, ComplianceQueueEntry
from ..schemas.client import CampaignCreate, AssetUpload
from ..schemas.enums import CampaignStatus, ApprovalStatus, ComplianceEntityType, ComplianceStatus
from ..storage.provider import StorageProvider
from . import compliance
from .audit import record_audit
from .permissions import load_owned_campaign, load_owned_creative


logger = structlog.get_logger(__name__)


CAMPAIGN_TRANSITIONS: Dict[CampaignStatus, FrozenSet[CampaignStatus]] = {
    CampaignStatus.draft: frozenset({CampaignStatus.awaiting_creative, CampaignStatus.cancelled}),
    CampaignStatus.awaiting_creative: frozenset({CampaignStatus.awaiting_approval, CampaignStatus.cancelled}),
    CampaignStatus.awaiting_approval: frozenset({CampaignStatus.approved, CampaignStatus.cancelled}),
    CampaignStatus.approved: frozenset({CampaignStatus.active, CampaignStatus.cancelled}),
    CampaignStatus.active: frozenset({CampaignStatus.completed, CampaignStatus.cancelled}),
    CampaignStatus.completed: frozenset(),
    CampaignStatus.cancelled: frozenset(),
}

# Statuses in which the client may still add creatives
UPLOAD_OPEN = frozenset({CampaignStatus.draft, CampaignStatus.awaiting_creative, CampaignStatus.awaiting_approval})
# Statuses from which a creative may be (re)submitted for review
SUBMIT_OPEN = frozenset({CampaignStatus.awaiting_creative, CampaignStatus.awaiting_approval})


def can_transition(current: CampaignStatus, target: CampaignStatus) -> bool:
    return target in CAMPAIGN_TRANSITIONS[current]


def transition_campaign(campaign: Campaign, target: CampaignStatus) -> CampaignStatus:
    """Move campaign to target or raise 409; returns the previous status."""
    current = CampaignStatus(campaign.status)
    if not can_transition(current, target):
        raise HTTPException(
            status_code=409,
            detail=f"Campaign cannot move from {current.value} to {target.value}",
        )
    campaign.status = target.value
    return current


def create_campaign(db: Session, actor: User, profile: ClientProfile, payload: CampaignCreate) -> Campaign:
    if payload.zone_id and not db.query(Zone).filter(Zone.id == payload.zone_id).first():
        raise HTTPException(status_code=404, detail="Zone not found")

    campaign = Campaign(
        client_id=profile.id,
        campaign_name=payload.campaign_name,
        description=payload.description,
        city=payload.city,
        zone_id=payload.zone_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        number_of_cars=payload.number_of_cars,
        daily_budget=payload.daily_budget,
        total_budget=payload.total_budget,
        status=CampaignStatus.draft.value,
    )
    db.add(campaign)
    db.flush()
    record_audit(
        db, actor, "campaign_created", "campaign", campaign.id,
        changes={"after": payload.model_dump(mode="json")},
    )
    db.commit()
    db.refresh(campaign)
    logger.info("campaign_created", campaign_id=str(campaign.id), client_id=str(profile.id))
    return campaign


def _decode_asset(upload: AssetUpload) -> bytes:
    data = upload.file_data
    # Accept data URLs as produced by FileReader.readAsDataURL
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="file_data is not valid base64")
    if not raw:
        raise HTTPException(status_code=400, detail="file_data is empty")
    if len(raw) > settings.max_creative_bytes:
        raise HTTPException(status_code=413, detail="Creative exceeds maximum upload size")
    return raw


def _asset_key(campaign_id: uuid.UUID, file_name: str) -> str:
    stem, ext = os.path.splitext(file_name)
    safe_stem = slugify(stem) or "creative"
    safe_ext = slugify(ext.lstrip("."))
    name = f"{safe_stem}.{safe_ext}" if safe_ext else safe_stem
    return f"campaigns/{campaign_id}/creatives/{uuid.uuid4().hex}-{name}"


def upload_creative(
    db: Session,
    actor: User,
    profile: ClientProfile,
    campaign_id: uuid.UUID,
    upload: AssetUpload,
    storage: StorageProvider,
) -> Creative:
    campaign = load_owned_campaign(db, profile, campaign_id)
    current = CampaignStatus(campaign.status)
    if current not in UPLOAD_OPEN:
        raise HTTPException(status_code=409, detail=f"Campaign in status {current.value} does not accept creatives")
    if upload.mime_type not in settings.allowed_creative_types:
        raise HTTPException(status_code=400, detail=f"Unsupported creative type {upload.mime_type}")

    raw = _decode_asset(upload)
    key = _asset_key(campaign.id, upload.file_name)
    # The object store call completes before anything is recorded
    asset_url = storage.put(key, raw, upload.mime_type)

    try:
        creative = Creative(
            campaign_id=campaign.id,
            asset_url=asset_url,
            asset_key=key,
            mime_type=upload.mime_type,
            creative_type="custom",
            approval_status=ApprovalStatus.pending.value,
        )
        db.add(creative)
        if current == CampaignStatus.draft:
            transition_campaign(campaign, CampaignStatus.awaiting_creative)
        db.flush()
        record_audit(
            db, actor, "creative_uploaded", "creative", creative.id,
            changes={
                "campaign_id": str(campaign.id),
                "asset_key": key,
                "campaign_status": {"before": current.value, "after": campaign.status},
            },
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # No Creative row points at the stored object; remove it
        storage.delete(key)
        logger.warning("creative_upload_rolled_back", campaign_id=str(campaign_id), asset_key=key)
        raise
    db.refresh(creative)
    logger.info("creative_uploaded", creative_id=str(creative.id), campaign_id=str(campaign.id), size=len(raw))
    return creative


def client_approve_creative(db: Session, actor: User, profile: ClientProfile, creative_id: uuid.UUID) -> Creative:
    creative = load_owned_creative(db, profile, creative_id)
    # Re-approval overwrites the timestamp
    creative.client_approved_at = datetime.now(timezone.utc)
    record_audit(db, actor, "creative_client_approved", "creative", creative.id)
    db.commit()
    db.refresh(creative)
    logger.info("creative_client_approved", creative_id=str(creative.id))
    return creative


def submit_creative(
    db: Session,
    actor: User,
    profile: ClientProfile,
    campaign_id: uuid.UUID,
    creative_id: uuid.UUID,
) -> ComplianceQueueEntry:
    campaign = load_owned_campaign(db, profile, campaign_id)
    creative = db.query(Creative).filter(Creative.id == creative_id).first()
    if not creative or creative.campaign_id != campaign.id:
        raise HTTPException(status_code=404, detail="Creative not found")
    if creative.client_approved_at is None:
        raise HTTPException(status_code=400, detail="Creative must be approved by the client before submission")
    # Compliance approval is final
    if creative.approval_status == ApprovalStatus.approved.value:
        raise HTTPException(status_code=409, detail="Creative is already approved")

    current = CampaignStatus(campaign.status)
    if current not in SUBMIT_OPEN:
        raise HTTPException(status_code=409, detail=f"Campaign in status {current.value} cannot submit creatives")

    entry = compliance.enqueue(db, ComplianceEntityType.creative, creative.id)
    if current == CampaignStatus.awaiting_creative:
        transition_campaign(campaign, CampaignStatus.awaiting_approval)
    record_audit(
        db, actor, "creative_submitted", "creative", creative.id,
        changes={"campaign_id": str(campaign.id), "compliance_id": str(entry.id)},
    )
    # Status update, queue insert and audit entry commit together
    db.commit()
    db.refresh(entry)
    logger.info("creative_submitted", creative_id=str(creative.id), compliance_id=str(entry.id))
    return entry


def _resolve_campaign_queue(
    db: Session, campaign: Campaign, status: ComplianceStatus, reviewer: User, reason: Optional[str] = None
) -> None:
    now = datetime.now(timezone.utc)
    entries = db.query(ComplianceQueueEntry).filter(
        ComplianceQueueEntry.entity_type == ComplianceEntityType.campaign.value,
        ComplianceQueueEntry.entity_id == campaign.id,
        ComplianceQueueEntry.status == ComplianceStatus.pending.value,
    ).all()
    for entry in entries:
        entry.status = status.value
        entry.reviewed_by = reviewer.id
        entry.reviewed_at = now
        entry.rejection_reason = reason


def _get_campaign_or_404(db: Session, campaign_id: uuid.UUID) -> Campaign:
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


def approve_campaign(db: Session, actor: User, campaign_id: uuid.UUID) -> Campaign:
    campaign = _get_campaign_or_404(db, campaign_id)
    previous = transition_campaign(campaign, CampaignStatus.approved)
    campaign.compliance_approved_at = datetime.now(timezone.utc)
    campaign.compliance_approved_by = actor.id
    _resolve_campaign_queue(db, campaign, ComplianceStatus.approved, actor)
    record_audit(
        db, actor, "campaign_approved_by_admin", "campaign", campaign.id,
        changes={"status": {"before": previous.value, "after": campaign.status}},
    )
    db.commit()
    db.refresh(campaign)
    logger.info("campaign_approved", campaign_id=str(campaign.id), admin_id=str(actor.id))
    return campaign


def reject_campaign(db: Session, actor: User, campaign_id: uuid.UUID, reason: str) -> Campaign:
    campaign = _get_campaign_or_404(db, campaign_id)
    previous = transition_campaign(campaign, CampaignStatus.cancelled)
    _resolve_campaign_queue(db, campaign, ComplianceStatus.rejected, actor, reason)
    record_audit(
        db, actor, "campaign_rejected_by_admin", "campaign", campaign.id,
        changes={"status": {"before": previous.value, "after": campaign.status}, "reason": reason},
        reason=reason,
    )
    db.commit()
    db.refresh(campaign)
    logger.info("campaign_rejected", campaign_id=str(campaign.id), admin_id=str(actor.id))
    return campaign
