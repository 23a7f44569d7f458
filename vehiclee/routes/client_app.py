"""
Advertiser endpoints: profile, wallet, campaigns and creatives.
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_role
from ..models.models import User, Campaign, WalletLedgerEntry, Invoice
from ..schemas.client import (
    ClientProfileResponse,
    CampaignCreate,
    CampaignCreateResponse,
    CampaignResponse,
    CampaignDetailResponse,
    AssetUpload,
    AssetUploadResponse,
    SubmitCreativeRequest,
    WalletLedgerEntryResponse,
    InvoiceResponse,
)
from ..schemas.common import SuccessResponse
from ..services import campaigns as campaign_service
from ..services.permissions import get_client_profile, get_client_profile_or_404, load_owned_campaign
from ..services.reads import read_or_default
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider

router = APIRouter(prefix="/client", tags=["client"])

require_client = require_role("client")


# ---------- PROFILE / WALLET ----------
@router.get("/profile", response_model=ClientProfileResponse)
def get_profile(db: Session = Depends(get_db), user: User = Depends(require_client)):
    return get_client_profile_or_404(db, user)


@router.get("/wallet/balance", response_model=int)
def get_wallet_balance(db: Session = Depends(get_db), user: User = Depends(require_client)):
    """Wallet balance in cents; 0 without a profile."""
    def _read():
        profile = get_client_profile(db, user)
        return int(profile.wallet_balance or 0) if profile else 0

    return read_or_default(_read, 0, "wallet_balance")


@router.get("/wallet/ledger", response_model=List[WalletLedgerEntryResponse])
def get_wallet_ledger(db: Session = Depends(get_db), user: User = Depends(require_client)):
    def _read():
        profile = get_client_profile(db, user)
        if not profile:
            return []
        return (
            db.query(WalletLedgerEntry)
            .filter(WalletLedgerEntry.client_id == profile.id)
            .order_by(WalletLedgerEntry.created_at.desc())
            .all()
        )

    return read_or_default(_read, [], "wallet_ledger")


@router.get("/invoices", response_model=List[InvoiceResponse])
def get_invoices(db: Session = Depends(get_db), user: User = Depends(require_client)):
    def _read():
        profile = get_client_profile(db, user)
        if not profile:
            return []
        return (
            db.query(Invoice)
            .filter(Invoice.client_id == profile.id)
            .order_by(Invoice.invoice_date.desc())
            .all()
        )

    return read_or_default(_read, [], "client_invoices")


# ---------- CAMPAIGNS ----------
@router.get("/campaigns", response_model=List[CampaignResponse])
def get_campaigns(db: Session = Depends(get_db), user: User = Depends(require_client)):
    def _read():
        profile = get_client_profile(db, user)
        if not profile:
            return []
        return (
            db.query(Campaign)
            .filter(Campaign.client_id == profile.id)
            .order_by(Campaign.created_at.desc())
            .all()
        )

    return read_or_default(_read, [], "client_campaigns")


@router.get("/campaigns/{campaign_id}", response_model=CampaignDetailResponse)
def get_campaign_detail(campaign_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_client)):
    profile = get_client_profile_or_404(db, user)
    return load_owned_campaign(db, profile, campaign_id)


@router.post("/campaigns", response_model=CampaignCreateResponse, status_code=201)
def create_campaign(payload: CampaignCreate, db: Session = Depends(get_db), user: User = Depends(require_client)):
    profile = get_client_profile_or_404(db, user)
    campaign = campaign_service.create_campaign(db, user, profile, payload)
    return CampaignCreateResponse(campaign_id=campaign.id)


@router.post("/campaigns/{campaign_id}/assets", response_model=AssetUploadResponse, status_code=201)
def upload_asset(
    campaign_id: uuid.UUID,
    payload: AssetUpload,
    db: Session = Depends(get_db),
    user: User = Depends(require_client),
    storage: StorageProvider = Depends(get_storage),
):
    profile = get_client_profile_or_404(db, user)
    creative = campaign_service.upload_creative(db, user, profile, campaign_id, payload, storage)
    return AssetUploadResponse(creative_id=creative.id, asset_url=creative.asset_url)


@router.post("/campaigns/{campaign_id}/submit", response_model=SuccessResponse)
def submit_creative(
    campaign_id: uuid.UUID,
    payload: SubmitCreativeRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_client),
):
    profile = get_client_profile_or_404(db, user)
    campaign_service.submit_creative(db, user, profile, campaign_id, payload.creative_id)
    return SuccessResponse()


# ---------- CREATIVES ----------
@router.post("/creatives/{creative_id}/approve", response_model=SuccessResponse)
def approve_creative(creative_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_client)):
    profile = get_client_profile_or_404(db, user)
    campaign_service.client_approve_creative(db, user, profile, creative_id)
    return SuccessResponse()
