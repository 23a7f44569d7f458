import uuid
from datetime import datetime, date, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    BigInteger,
    Numeric,
    JSON,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    open_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    login_method: Mapped[Optional[str]] = mapped_column(String(64))
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)  # user|admin|client|driver
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    last_signed_in: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)


class ClientProfile(Base):
    """Advertiser account; one per client user"""
    __tablename__ = "client_profiles"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_vat_id: Mapped[Optional[str]] = mapped_column(String(32))
    company_country: Mapped[str] = mapped_column(String(8), default="OTHER")  # NL|LV|OTHER
    contact_person: Mapped[Optional[str]] = mapped_column(String(255))
    kyc_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending|approved|rejected
    wallet_balance: Mapped[int] = mapped_column(BigInteger, default=0)  # cents
    total_spent: Mapped[int] = mapped_column(BigInteger, default=0)  # cents
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    campaigns = relationship("Campaign", back_populates="client", order_by="Campaign.created_at.desc()")


class DriverProfile(Base):
    __tablename__ = "driver_profiles"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    license_number: Mapped[Optional[str]] = mapped_column(String(32))
    license_expiry: Mapped[Optional[date]] = mapped_column(Date)
    document_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending|approved|rejected
    document_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    document_reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    vehicles = relationship("Vehicle", back_populates="driver")


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    driver_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("driver_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    license_plate: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    make: Mapped[Optional[str]] = mapped_column(String(64))
    model: Mapped[Optional[str]] = mapped_column(String(64))
    year: Mapped[Optional[int]] = mapped_column(Integer)
    color: Mapped[Optional[str]] = mapped_column(String(32))
    approval_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending|approved|rejected
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    driver = relationship("DriverProfile", back_populates="vehicles")
    device = relationship("Device", back_populates="vehicle", uselist=False)


class Device(Base):
    """E-paper display mounted on a vehicle"""
    __tablename__ = "devices"

    id: Mapped[uuid.UUID] = uuid_pk()
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), unique=True, nullable=False)
    device_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)  # hardware identity
    device_secret: Mapped[str] = mapped_column(String(255), nullable=False)  # pbkdf2 hash
    model: Mapped[Optional[str]] = mapped_column(String(64))
    resolution: Mapped[Optional[str]] = mapped_column(String(32))
    color_mode: Mapped[Optional[str]] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(20), default="provisioning")  # provisioning|active|offline|error
    last_heartbeat: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_content_hash: Mapped[Optional[str]] = mapped_column(String(64))
    current_image_url: Mapped[Optional[str]] = mapped_column(Text)
    firmware_version: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    vehicle = relationship("Vehicle", back_populates="device")

    __table_args__ = (
        Index('idx_device_status_heartbeat', 'status', 'last_heartbeat'),
    )


class DeviceTelemetry(Base):
    """Append-only heartbeat series"""
    __tablename__ = "device_telemetry"

    id: Mapped[uuid.UUID] = uuid_pk()
    device_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    heartbeat_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    content_hash: Mapped[Optional[str]] = mapped_column(String(64))
    uptime: Mapped[Optional[int]] = mapped_column(Integer)  # seconds
    battery_level: Mapped[Optional[int]] = mapped_column(Integer)  # percent
    signal_strength: Mapped[Optional[int]] = mapped_column(Integer)  # dBm
    error_code: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_telemetry_device_heartbeat', 'device_id', 'heartbeat_at'),
    )


class Zone(Base):
    """Geographic pricing region within a city"""
    __tablename__ = "zones"

    id: Mapped[uuid.UUID] = uuid_pk()
    city: Mapped[str] = mapped_column(String(64), nullable=False)
    zone_name: Mapped[Optional[str]] = mapped_column(String(128))
    polygon_geojson: Mapped[Optional[dict]] = mapped_column(JSON)
    price_modifier: Mapped[Optional[float]] = mapped_column(Numeric(3, 2), default=1.0)
    exclusivity_flag: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[uuid.UUID] = uuid_pk()
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("client_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    campaign_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[str] = mapped_column(String(64), nullable=False)
    zone_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("zones.id", ondelete="SET NULL"))
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    number_of_cars: Mapped[int] = mapped_column(Integer, nullable=False)
    daily_budget: Mapped[int] = mapped_column(BigInteger, nullable=False)  # cents
    total_budget: Mapped[int] = mapped_column(BigInteger, nullable=False)  # cents
    status: Mapped[str] = mapped_column(String(30), default="draft", nullable=False)
    compliance_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    compliance_approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    client = relationship("ClientProfile", back_populates="campaigns")
    creatives = relationship("Creative", back_populates="campaign", order_by="Creative.created_at")

    __table_args__ = (
        Index('idx_campaign_status_start', 'status', 'start_date'),
    )


class Creative(Base):
    """Ad image attached to a campaign"""
    __tablename__ = "creatives"

    id: Mapped[uuid.UUID] = uuid_pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_url: Mapped[str] = mapped_column(Text, nullable=False)
    asset_key: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100))
    creative_type: Mapped[str] = mapped_column(String(20), default="custom")  # template|custom|ai_generated
    template_id: Mapped[Optional[str]] = mapped_column(String(64))
    approval_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # pending|approved|rejected
    client_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    compliance_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    compliance_approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    campaign = relationship("Campaign", back_populates="creatives")


class CampaignAllocation(Base):
    """Campaign shown on one device for a date range"""
    __tablename__ = "campaign_allocations"

    id: Mapped[uuid.UUID] = uuid_pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    device_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    allocation_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    allocation_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="scheduled", nullable=False)  # scheduled|active|completed|cancelled
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_allocation_campaign_status', 'campaign_id', 'status'),
        Index('idx_allocation_device_status', 'device_id', 'status'),
    )


class WalletLedgerEntry(Base):
    """Append-only wallet movements (not written by any API operation yet)"""
    __tablename__ = "wallet_ledger"

    id: Mapped[uuid.UUID] = uuid_pk()
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("client_profiles.id", ondelete="CASCADE"), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)  # topup|spend|refund|adjustment
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_ledger_client_created', 'client_id', 'created_at'),
    )


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = uuid_pk()
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("client_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    campaign_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="SET NULL"))
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    subtotal: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vat_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vat_rate: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft")  # draft|sent|paid|overdue|cancelled
    pdf_url: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_invoice_status_due', 'status', 'due_date'),
    )


class Payout(Base):
    """Driver earnings for one allocation"""
    __tablename__ = "payouts"

    id: Mapped[uuid.UUID] = uuid_pk()
    driver_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("driver_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    campaign_allocation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaign_allocations.id", ondelete="CASCADE"), nullable=False)
    earning_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    formula: Mapped[Optional[str]] = mapped_column(String(255))
    active_days: Mapped[Optional[int]] = mapped_column(Integer)
    average_uptime: Mapped[Optional[float]] = mapped_column(Numeric(5, 2))
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending|approved|paid|disputed
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_payout_status_created', 'status', 'created_at'),
    )


class ComplianceQueueEntry(Base):
    """Review ticket for a creative, campaign or driver"""
    __tablename__ = "compliance_queue"

    id: Mapped[uuid.UUID] = uuid_pk()
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)  # creative|campaign|driver
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # pending|approved|rejected|escalated
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    restricted_categories: Mapped[Optional[list]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_compliance_status_created', 'status', 'created_at'),
    )


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ticket_type: Mapped[str] = mapped_column(String(30), nullable=False)  # driver_issue|campaign_issue|payment_issue|device_issue|other
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="open")  # open|in_progress|resolved|closed
    priority: Mapped[str] = mapped_column(String(20), default="medium")  # low|medium|high|urgent
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    resolution: Mapped[Optional[str]] = mapped_column(Text)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_ticket_status_priority', 'status', 'priority', 'created_at'),
    )


class AuditLog(Base):
    """Append-only audit log for every state-changing action"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(20))
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(64))
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    changes: Mapped[Optional[dict]] = mapped_column(JSON)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 over canonical entry

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id', 'created_at'),
    )
