"""
Fleet monitoring and campaign allocation.

A device is online iff its most recent telemetry row has a heartbeat within
ONLINE_WINDOW of now. At most one allocation per device is active.
"""
import secrets
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from fastapi import HTTPException
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from ..auth.security import hash_secret, verify_secret
from ..models.models import (
    User,
    Device,
    DeviceTelemetry,
    Vehicle,
    DriverProfile,
    Campaign,
    CampaignAllocation,
)
from ..schemas.enums import AllocationStatus, ConnectivityFilter, DeviceStatus
from ..schemas.fleet import DeviceProvisionRequest, HeartbeatRequest
from .audit import compute_diff, record_audit


logger = structlog.get_logger(__name__)

ONLINE_WINDOW = timedelta(minutes=5)
LOW_BATTERY_THRESHOLD = 20
ALLOCATION_DAYS = 30
TELEMETRY_HISTORY_LIMIT = 100


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _heartbeat_key(telemetry: DeviceTelemetry) -> datetime:
    return as_utc(telemetry.heartbeat_at) or datetime.min.replace(tzinfo=timezone.utc)


def is_online(telemetry: Optional[DeviceTelemetry], now: Optional[datetime] = None) -> bool:
    if telemetry is None or telemetry.heartbeat_at is None:
        return False
    now = as_utc(now) if now else datetime.now(timezone.utc)
    return now - as_utc(telemetry.heartbeat_at) < ONLINE_WINDOW


def latest_telemetry_by_device(
    db: Session, device_ids: Optional[Iterable[uuid.UUID]] = None
) -> Dict[uuid.UUID, DeviceTelemetry]:
    """Most recent telemetry row (by created_at) for each device."""
    latest = db.query(
        DeviceTelemetry.device_id.label("device_id"),
        func.max(DeviceTelemetry.created_at).label("max_created"),
    )
    if device_ids is not None:
        device_ids = list(device_ids)
        if not device_ids:
            return {}
        latest = latest.filter(DeviceTelemetry.device_id.in_(device_ids))
    latest = latest.group_by(DeviceTelemetry.device_id).subquery()

    rows = (
        db.query(DeviceTelemetry)
        .join(
            latest,
            and_(
                DeviceTelemetry.device_id == latest.c.device_id,
                DeviceTelemetry.created_at == latest.c.max_created,
            ),
        )
        .all()
    )
    result: Dict[uuid.UUID, DeviceTelemetry] = {}
    for row in rows:
        # Equal created_at: keep the latest heartbeat
        current = result.get(row.device_id)
        if current is None or _heartbeat_key(row) > _heartbeat_key(current):
            result[row.device_id] = row
    return result


def fleet_overview(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    total_devices = db.query(func.count(Device.id)).scalar() or 0
    latest = latest_telemetry_by_device(db)
    online_devices = sum(1 for t in latest.values() if is_online(t, now))
    low_battery = sum(
        1 for t in latest.values() if t.battery_level is not None and t.battery_level < LOW_BATTERY_THRESHOLD
    )
    active_campaigns = (
        db.query(func.count(CampaignAllocation.id))
        .filter(CampaignAllocation.status == AllocationStatus.active.value)
        .scalar()
        or 0
    )
    return {
        "total_devices": total_devices,
        "online_devices": online_devices,
        "active_campaigns": active_campaigns,
        "low_battery": low_battery,
    }


def list_devices(
    db: Session,
    status: ConnectivityFilter = ConnectivityFilter.all,
    limit: int = 20,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> Tuple[List[dict], int]:
    """Page of devices with vehicle, driver and latest telemetry; total is the filtered count."""
    query = (
        db.query(Device, Vehicle, DriverProfile)
        .outerjoin(Vehicle, Device.vehicle_id == Vehicle.id)
        .outerjoin(DriverProfile, Vehicle.driver_id == DriverProfile.id)
    )
    if status != ConnectivityFilter.all:
        latest_all = latest_telemetry_by_device(db)
        online_ids = [device_id for device_id, t in latest_all.items() if is_online(t, now)]
        if status == ConnectivityFilter.online:
            query = query.filter(Device.id.in_(online_ids))
        elif online_ids:
            query = query.filter(Device.id.notin_(online_ids))

    total = query.count()
    rows = query.order_by(Device.created_at.asc(), Device.id.asc()).limit(limit).offset(offset).all()
    telemetry = latest_telemetry_by_device(db, [device.id for device, _, _ in rows])

    items = []
    for device, vehicle, driver in rows:
        latest = telemetry.get(device.id)
        items.append({
            "device": device,
            "vehicle": vehicle,
            "driver": driver,
            "telemetry": latest,
            "online": is_online(latest, now),
        })
    return items, total


def device_telemetry(db: Session, device_id: uuid.UUID, limit: int = TELEMETRY_HISTORY_LIMIT) -> List[DeviceTelemetry]:
    return (
        db.query(DeviceTelemetry)
        .filter(DeviceTelemetry.device_id == device_id)
        .order_by(DeviceTelemetry.created_at.desc())
        .limit(limit)
        .all()
    )


def get_active_allocation(db: Session, device_id: uuid.UUID) -> Optional[CampaignAllocation]:
    return (
        db.query(CampaignAllocation)
        .filter(
            CampaignAllocation.device_id == device_id,
            CampaignAllocation.status == AllocationStatus.active.value,
        )
        .order_by(CampaignAllocation.created_at.desc())
        .first()
    )


def _get_device_or_404(db: Session, device_id: uuid.UUID, lock: bool = False) -> Device:
    query = db.query(Device).filter(Device.id == device_id)
    if lock:
        # Serialises concurrent allocation changes for one device where the backend supports it
        query = query.with_for_update()
    device = query.first()
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


def device_detail(db: Session, device_id: uuid.UUID, now: Optional[datetime] = None) -> dict:
    device = _get_device_or_404(db, device_id)
    vehicle = db.query(Vehicle).filter(Vehicle.id == device.vehicle_id).first()
    driver = None
    if vehicle:
        driver = db.query(DriverProfile).filter(DriverProfile.id == vehicle.driver_id).first()
    telemetry = latest_telemetry_by_device(db, [device.id]).get(device.id)
    allocation = get_active_allocation(db, device.id)
    campaign = None
    if allocation:
        campaign = db.query(Campaign).filter(Campaign.id == allocation.campaign_id).first()
    return {
        "device": device,
        "online": is_online(telemetry, now),
        "vehicle": vehicle,
        "driver": driver,
        "telemetry": telemetry,
        "current_allocation": allocation,
        "current_campaign": campaign,
    }


def allocate_campaign(
    db: Session,
    actor: User,
    device_id: uuid.UUID,
    campaign_id: uuid.UUID,
    today: Optional[date] = None,
) -> CampaignAllocation:
    device = _get_device_or_404(db, device_id, lock=True)
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")

    existing = (
        db.query(CampaignAllocation)
        .filter(
            CampaignAllocation.device_id == device.id,
            CampaignAllocation.status == AllocationStatus.active.value,
        )
        .all()
    )
    for allocation in existing:
        allocation.status = AllocationStatus.completed.value

    start = today or datetime.now(timezone.utc).date()
    allocation = CampaignAllocation(
        device_id=device.id,
        campaign_id=campaign.id,
        status=AllocationStatus.active.value,
        allocation_start_date=start,
        allocation_end_date=start + timedelta(days=ALLOCATION_DAYS),
    )
    db.add(allocation)
    db.flush()
    record_audit(
        db, actor, "campaign_allocated_to_device", "device", device.id,
        changes={
            "campaign_id": str(campaign.id),
            "allocation_id": str(allocation.id),
            "completed_allocation_ids": [str(a.id) for a in existing],
        },
    )
    # Completing the old allocation and activating the new one is one transaction
    db.commit()
    db.refresh(allocation)
    logger.info(
        "campaign_allocated",
        device_id=str(device.id),
        campaign_id=str(campaign.id),
        allocation_id=str(allocation.id),
        replaced=len(existing),
    )
    return allocation


def deallocate_campaign(db: Session, actor: User, device_id: uuid.UUID) -> CampaignAllocation:
    _get_device_or_404(db, device_id, lock=True)
    allocation = get_active_allocation(db, device_id)
    if not allocation:
        raise HTTPException(status_code=404, detail="No active allocation found for this device")

    allocation.status = AllocationStatus.completed.value
    record_audit(
        db, actor, "campaign_deallocated_from_device", "device", device_id,
        changes={"allocation_id": str(allocation.id), "campaign_id": str(allocation.campaign_id)},
    )
    db.commit()
    db.refresh(allocation)
    logger.info("campaign_deallocated", device_id=str(device_id), allocation_id=str(allocation.id))
    return allocation


def provision_device(db: Session, actor: User, payload: DeviceProvisionRequest) -> Tuple[Device, str]:
    """Register a device on a vehicle; returns the device and its plaintext secret."""
    vehicle = db.query(Vehicle).filter(Vehicle.id == payload.vehicle_id).first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    if db.query(Device).filter(Device.vehicle_id == vehicle.id).first():
        raise HTTPException(status_code=409, detail="Vehicle already has a device")
    if db.query(Device).filter(Device.device_id == payload.device_id).first():
        raise HTTPException(status_code=409, detail="Device identifier already registered")

    secret = secrets.token_urlsafe(32)
    device = Device(
        vehicle_id=vehicle.id,
        device_id=payload.device_id,
        device_secret=hash_secret(secret),
        model=payload.model,
        resolution=payload.resolution,
        color_mode=payload.color_mode,
        firmware_version=payload.firmware_version,
        status=DeviceStatus.provisioning.value,
    )
    db.add(device)
    db.flush()
    record_audit(
        db, actor, "device_provisioned", "device", device.id,
        changes={"vehicle_id": str(vehicle.id), "device_id": payload.device_id},
    )
    db.commit()
    db.refresh(device)
    logger.info("device_provisioned", device_id=str(device.id), vehicle_id=str(vehicle.id))
    return device, secret


def authenticate_device(db: Session, device_ident: Optional[str], secret: Optional[str]) -> Device:
    if not device_ident or not secret:
        raise HTTPException(status_code=401, detail="Device credentials required")
    device = db.query(Device).filter(Device.device_id == device_ident).first()
    if not device or not verify_secret(secret, device.device_secret):
        raise HTTPException(status_code=401, detail="Invalid device credentials")
    return device


def record_heartbeat(
    db: Session, device: Device, payload: HeartbeatRequest, now: Optional[datetime] = None
) -> DeviceTelemetry:
    now = now or datetime.now(timezone.utc)
    telemetry = DeviceTelemetry(
        device_id=device.id,
        heartbeat_at=now,
        content_hash=payload.content_hash,
        uptime=payload.uptime,
        battery_level=payload.battery_level,
        signal_strength=payload.signal_strength,
        error_code=payload.error_code,
        created_at=now,
    )
    db.add(telemetry)

    before = {"status": device.status, "last_content_hash": device.last_content_hash}
    device.status = DeviceStatus.error.value if payload.error_code else DeviceStatus.active.value
    device.last_heartbeat = now
    if payload.content_hash:
        device.last_content_hash = payload.content_hash
    db.flush()
    diff = compute_diff(before, {"status": device.status, "last_content_hash": device.last_content_hash})
    if "status" in diff:
        record_audit(
            db, None, "device_status_changed", "device", device.id,
            changes={**diff, "error_code": payload.error_code},
        )
    db.commit()
    db.refresh(telemetry)
    if payload.error_code:
        logger.warning("device_error_reported", device_id=str(device.id), error_code=payload.error_code)
    return telemetry
