from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_role
from ..models.models import User, Vehicle, Payout, SupportTicket
from ..schemas.driver import DriverProfileResponse, VehicleResponse, PayoutResponse, SupportTicketResponse
from ..services.permissions import get_driver_profile, get_driver_profile_or_404
from ..services.reads import read_or_default

router = APIRouter(prefix="/driver", tags=["driver"])

require_driver = require_role("driver")


@router.get("/profile", response_model=DriverProfileResponse)
def get_profile(db: Session = Depends(get_db), user: User = Depends(require_driver)):
    return get_driver_profile_or_404(db, user)


@router.get("/vehicles", response_model=List[VehicleResponse])
def get_vehicles(db: Session = Depends(get_db), user: User = Depends(require_driver)):
    def _read():
        profile = get_driver_profile(db, user)
        if not profile:
            return []
        return db.query(Vehicle).filter(Vehicle.driver_id == profile.id).order_by(Vehicle.created_at.asc()).all()

    return read_or_default(_read, [], "driver_vehicles")


@router.get("/earnings", response_model=List[PayoutResponse])
def get_earnings(db: Session = Depends(get_db), user: User = Depends(require_driver)):
    def _read():
        profile = get_driver_profile(db, user)
        if not profile:
            return []
        return db.query(Payout).filter(Payout.driver_id == profile.id).order_by(Payout.created_at.desc()).all()

    return read_or_default(_read, [], "driver_earnings")


@router.get("/tickets", response_model=List[SupportTicketResponse])
def get_tickets(db: Session = Depends(get_db), user: User = Depends(require_driver)):
    def _read():
        return (
            db.query(SupportTicket)
            .filter(SupportTicket.user_id == user.id)
            .order_by(SupportTicket.created_at.desc())
            .all()
        )

    return read_or_default(_read, [], "driver_tickets")
