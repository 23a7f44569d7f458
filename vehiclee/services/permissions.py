"""
Ownership checks shared by the client and driver endpoints.

A missing entity is a 404; an entity owned by someone else is a 403.
"""
import uuid

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models.models import User, ClientProfile, DriverProfile, Campaign, Creative


def get_client_profile(db: Session, user: User):
    return db.query(ClientProfile).filter(ClientProfile.user_id == user.id).first()


def get_driver_profile(db: Session, user: User):
    return db.query(DriverProfile).filter(DriverProfile.user_id == user.id).first()


def get_client_profile_or_404(db: Session, user: User) -> ClientProfile:
    profile = get_client_profile(db, user)
    if not profile:
        raise HTTPException(status_code=404, detail="Client profile not found")
    return profile


def get_driver_profile_or_404(db: Session, user: User) -> DriverProfile:
    profile = get_driver_profile(db, user)
    if not profile:
        raise HTTPException(status_code=404, detail="Driver profile not found")
    return profile


def owns_campaign(profile: ClientProfile, campaign: Campaign) -> bool:
    return campaign.client_id == profile.id


def load_owned_campaign(db: Session, profile: ClientProfile, campaign_id: uuid.UUID) -> Campaign:
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    if not owns_campaign(profile, campaign):
        raise HTTPException(status_code=403, detail="You do not own this campaign")
    return campaign


def load_owned_creative(db: Session, profile: ClientProfile, creative_id: uuid.UUID) -> Creative:
    creative = db.query(Creative).filter(Creative.id == creative_id).first()
    if not creative:
        raise HTTPException(status_code=404, detail="Creative not found")
    campaign = db.query(Campaign).filter(Campaign.id == creative.campaign_id).first()
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    if not owns_campaign(profile, campaign):
        raise HTTPException(status_code=403, detail="You do not own this creative")
    return creative
