from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class GiftCardCheckRequest(BaseModel):
    code: str = Field(min_length=1)


class GiftCardCheckResponse(BaseModel):
    code: str
    valid: bool
    status: Optional[str] = None
    balance: float = 0.0
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class GiftCardCreate(BaseModel):
    initial_amount: float = Field(gt=0)
    expires_at: Optional[datetime] = None
    recipient_email: Optional[str] = None
    sender_name: Optional[str] = None
    message: Optional[str] = None


class GiftCardStatusUpdate(BaseModel):
    status: str  # ACTIVE|REDEEMED|EXPIRED|CANCELLED


class GiftCardOut(BaseModel):
    id: int
    code: str
    initial_amount: float
    balance: float
    status: str
    expires_at: Optional[datetime] = None
    recipient_email: Optional[str] = None
    sender_name: Optional[str] = None
    message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
