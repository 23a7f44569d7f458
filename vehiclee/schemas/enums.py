from enum import Enum


class UserRole(str, Enum):
    user = "user"
    admin = "admin"
    client = "client"
    driver = "driver"


class CampaignStatus(str, Enum):
    draft = "draft"
    awaiting_creative = "awaiting_creative"
    awaiting_approval = "awaiting_approval"
    approved = "approved"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class DeviceStatus(str, Enum):
    provisioning = "provisioning"
    active = "active"
    offline = "offline"
    error = "error"


class AllocationStatus(str, Enum):
    scheduled = "scheduled"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class ComplianceEntityType(str, Enum):
    creative = "creative"
    campaign = "campaign"
    driver = "driver"


class ComplianceStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    escalated = "escalated"


class ConnectivityFilter(str, Enum):
    online = "online"
    offline = "offline"
    all = "all"


class TransactionType(str, Enum):
    topup = "topup"
    spend = "spend"
    refund = "refund"
    adjustment = "adjustment"
