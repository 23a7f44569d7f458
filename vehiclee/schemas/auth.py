import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .enums import UserRole


class MeResponse(BaseModel):
    id: uuid.UUID
    open_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    login_method: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None
    last_signed_in: Optional[datetime] = None

    class Config:
        from_attributes = True


class LogoutResponse(BaseModel):
    success: bool = True
