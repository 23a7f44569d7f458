"""
Fleet monitoring and allocation endpoints (admin only).
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_role
from ..models.models import User
from ..schemas.driver import DriverProfileResponse, VehicleResponse
from ..schemas.enums import ConnectivityFilter
from ..schemas.fleet import (
    FleetOverviewResponse,
    DeviceListItem,
    DeviceListResponse,
    DeviceDetailResponse,
    DeviceResponse,
    TelemetryResponse,
    AllocateCampaignRequest,
    AllocateCampaignResponse,
    DeviceProvisionRequest,
    DeviceProvisionResponse,
)
from ..schemas.common import SuccessResponse
from ..services import fleet as fleet_service
from ..services.reads import read_or_default

router = APIRouter(prefix="/fleet", tags=["fleet"])

require_admin = require_role("admin")


def _device_item(row: dict) -> DeviceListItem:
    device = DeviceResponse.model_validate(row["device"])
    return DeviceListItem(
        **device.model_dump(),
        online=row["online"],
        vehicle=VehicleResponse.model_validate(row["vehicle"]) if row["vehicle"] else None,
        driver=DriverProfileResponse.model_validate(row["driver"]) if row["driver"] else None,
        telemetry=TelemetryResponse.model_validate(row["telemetry"]) if row["telemetry"] else None,
    )


# ---------- DASHBOARD ----------
@router.get("/overview", response_model=FleetOverviewResponse)
def get_fleet_overview(db: Session = Depends(get_db), _=Depends(require_admin)):
    stats = read_or_default(lambda: fleet_service.fleet_overview(db), {}, "fleet_overview")
    return FleetOverviewResponse(**stats)


# ---------- DEVICES ----------
@router.get("/devices", response_model=DeviceListResponse)
def get_devices(
    status: ConnectivityFilter = Query(ConnectivityFilter.all),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    rows, total = read_or_default(
        lambda: fleet_service.list_devices(db, status=status, limit=limit, offset=offset),
        ([], 0),
        "fleet_devices",
    )
    return DeviceListResponse(devices=[_device_item(r) for r in rows], total=total)


@router.post("/devices", response_model=DeviceProvisionResponse, status_code=201)
def provision_device(payload: DeviceProvisionRequest, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    device, secret = fleet_service.provision_device(db, user, payload)
    return DeviceProvisionResponse(device=DeviceResponse.model_validate(device), device_secret=secret)


@router.get("/devices/{device_id}", response_model=DeviceDetailResponse)
def get_device_detail(device_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    detail = fleet_service.device_detail(db, device_id)
    return DeviceDetailResponse.model_validate(detail, from_attributes=True)


@router.get("/devices/{device_id}/telemetry", response_model=List[TelemetryResponse])
def get_device_telemetry(device_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    """Last 100 heartbeats, newest first."""
    return read_or_default(lambda: fleet_service.device_telemetry(db, device_id), [], "device_telemetry")


# ---------- ALLOCATION ----------
@router.post("/devices/{device_id}/allocate", response_model=AllocateCampaignResponse)
def allocate_campaign(
    device_id: uuid.UUID,
    payload: AllocateCampaignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    allocation = fleet_service.allocate_campaign(db, user, device_id, payload.campaign_id)
    return AllocateCampaignResponse(success=True, allocation_id=allocation.id)


@router.post("/devices/{device_id}/deallocate", response_model=SuccessResponse)
def deallocate_campaign(device_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    fleet_service.deallocate_campaign(db, user, device_id)
    return SuccessResponse()
