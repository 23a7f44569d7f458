"""
Telemetry ingest for e-paper devices, authenticated by device id + secret headers.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Device
from ..schemas.fleet import HeartbeatRequest, HeartbeatResponse
from ..services import fleet as fleet_service

router = APIRouter(prefix="/devices", tags=["devices"])


def get_current_device(
    x_device_id: Optional[str] = Header(None),
    x_device_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Device:
    return fleet_service.authenticate_device(db, x_device_id, x_device_secret)


@router.post("/heartbeat", response_model=HeartbeatResponse)
def heartbeat(payload: HeartbeatRequest, db: Session = Depends(get_db), device: Device = Depends(get_current_device)):
    telemetry = fleet_service.record_heartbeat(db, device, payload)
    return HeartbeatResponse(success=True, telemetry_id=telemetry.id)
