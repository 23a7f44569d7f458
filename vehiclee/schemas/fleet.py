import uuid
from datetime import datetime, date
from typing import List, Optional

from pydantic import BaseModel, Field

from .enums import DeviceStatus, AllocationStatus
from .client import CampaignResponse
from .driver import DriverProfileResponse, VehicleResponse


class DeviceResponse(BaseModel):
    id: uuid.UUID
    vehicle_id: uuid.UUID
    device_id: str
    model: Optional[str] = None
    resolution: Optional[str] = None
    color_mode: Optional[str] = None
    status: DeviceStatus
    last_heartbeat: Optional[datetime] = None
    last_content_hash: Optional[str] = None
    current_image_url: Optional[str] = None
    firmware_version: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TelemetryResponse(BaseModel):
    id: uuid.UUID
    device_id: uuid.UUID
    heartbeat_at: Optional[datetime] = None
    content_hash: Optional[str] = None
    uptime: Optional[int] = None
    battery_level: Optional[int] = None
    signal_strength: Optional[int] = None
    error_code: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AllocationResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    device_id: uuid.UUID
    allocation_start_date: date
    allocation_end_date: date
    status: AllocationStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FleetOverviewResponse(BaseModel):
    total_devices: int = 0
    online_devices: int = 0
    active_campaigns: int = 0
    low_battery: int = 0


class DeviceListItem(DeviceResponse):
    online: bool = False
    vehicle: Optional[VehicleResponse] = None
    driver: Optional[DriverProfileResponse] = None
    telemetry: Optional[TelemetryResponse] = None


class DeviceListResponse(BaseModel):
    devices: List[DeviceListItem] = []
    total: int = 0


class DeviceDetailResponse(BaseModel):
    device: DeviceResponse
    online: bool
    vehicle: Optional[VehicleResponse] = None
    driver: Optional[DriverProfileResponse] = None
    telemetry: Optional[TelemetryResponse] = None
    current_allocation: Optional[AllocationResponse] = None
    current_campaign: Optional[CampaignResponse] = None


class AllocateCampaignRequest(BaseModel):
    campaign_id: uuid.UUID


class AllocateCampaignResponse(BaseModel):
    success: bool = True
    allocation_id: uuid.UUID


class DeviceProvisionRequest(BaseModel):
    vehicle_id: uuid.UUID
    device_id: str = Field(min_length=1, max_length=64)
    model: Optional[str] = None
    resolution: Optional[str] = None
    color_mode: Optional[str] = None
    firmware_version: Optional[str] = None


class DeviceProvisionResponse(BaseModel):
    device: DeviceResponse
    device_secret: str  # shown once


class HeartbeatRequest(BaseModel):
    battery_level: Optional[int] = Field(default=None, ge=0, le=100)
    signal_strength: Optional[int] = None
    uptime: Optional[int] = Field(default=None, ge=0)
    error_code: Optional[str] = Field(default=None, max_length=32)
    content_hash: Optional[str] = Field(default=None, max_length=64)


class HeartbeatResponse(BaseModel):
    success: bool = True
    telemetry_id: uuid.UUID
