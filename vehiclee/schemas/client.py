import uuid
from datetime import datetime, date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import CampaignStatus, ApprovalStatus, TransactionType


# Profile / wallet
class ClientProfileResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    company_name: str
    company_vat_id: Optional[str] = None
    company_country: Optional[str] = None
    contact_person: Optional[str] = None
    kyc_status: Optional[str] = None
    wallet_balance: int = 0
    total_spent: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletLedgerEntryResponse(BaseModel):
    id: uuid.UUID
    transaction_type: TransactionType
    amount: int
    balance_before: int
    balance_after: int
    reference: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: uuid.UUID
    invoice_number: str
    campaign_id: Optional[uuid.UUID] = None
    invoice_date: date
    due_date: date
    subtotal: int
    vat_amount: int
    total: int
    vat_rate: float
    status: str
    pdf_url: Optional[str] = None

    class Config:
        from_attributes = True


# Campaigns
class CampaignCreate(BaseModel):
    campaign_name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    city: str = Field(min_length=1, max_length=64)
    zone_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: date
    number_of_cars: int = Field(gt=0)
    daily_budget: int = Field(gt=0)  # cents
    total_budget: int = Field(gt=0)  # cents

    @field_validator("campaign_name", "city")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def check_schedule(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CampaignCreateResponse(BaseModel):
    campaign_id: uuid.UUID


class CampaignResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    campaign_name: str
    description: Optional[str] = None
    city: str
    zone_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: date
    number_of_cars: int
    daily_budget: int
    total_budget: int
    status: CampaignStatus
    compliance_approved_at: Optional[datetime] = None
    compliance_approved_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreativeResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    asset_url: str
    asset_key: str
    mime_type: Optional[str] = None
    creative_type: Optional[str] = None
    approval_status: ApprovalStatus
    client_approved_at: Optional[datetime] = None
    compliance_approved_at: Optional[datetime] = None
    compliance_approved_by: Optional[uuid.UUID] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CampaignDetailResponse(CampaignResponse):
    creatives: List[CreativeResponse] = []


# Creatives
class AssetUpload(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    file_data: str = Field(min_length=1)  # base64
    mime_type: str = Field(min_length=1)


class AssetUploadResponse(BaseModel):
    creative_id: uuid.UUID
    asset_url: str


class SubmitCreativeRequest(BaseModel):
    creative_id: uuid.UUID
