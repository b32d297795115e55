from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class SponsorStatus(str, Enum):
    """Sponsor pipeline, in order"""
    CONTACTED = "contacted"
    AGREED = "agreed"
    SIGNED = "signed"
    DELIVERED = "delivered"
    INVOICED = "invoiced"


SPONSOR_PIPELINE = [
    SponsorStatus.CONTACTED,
    SponsorStatus.AGREED,
    SponsorStatus.SIGNED,
    SponsorStatus.DELIVERED,
    SponsorStatus.INVOICED,
]


def pipeline_position(status: SponsorStatus) -> int:
    """Zero-based index of a status in the sponsor pipeline"""
    return SPONSOR_PIPELINE.index(SponsorStatus(status))


def is_committed(status: SponsorStatus) -> bool:
    """True once the agreement is signed (signed, delivered or invoiced)"""
    return pipeline_position(status) >= pipeline_position(SponsorStatus.SIGNED)


class SponsorLevel(str, Enum):
    """Sponsor tier"""
    MAIN = "hovedsponsor"
    GOLD = "gull"
    SILVER = "sølv"
    BRONZE = "bronse"
    PARTNER = "partner"


class Sponsor(BaseModel):
    """Sponsor record"""
    id: str
    festival_id: str
    name: str
    level: Optional[SponsorLevel] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    invoice_address: Optional[str] = None
    logo_url: Optional[str] = None
    agreement_amount: Optional[Decimal] = None
    status: SponsorStatus = SponsorStatus.CONTACTED
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SponsorDeliverable(BaseModel):
    """Checklist item owned by exactly one sponsor"""
    id: str
    sponsor_id: str
    festival_id: str
    description: str
    delivered: bool = False
    delivered_at: Optional[datetime] = None
    documentation_url: Optional[str] = None

    class Config:
        from_attributes = True


class SponsorCreate(BaseModel):
    """Schema to register a sponsor; new sponsors enter the pipeline as contacted"""
    name: str = Field(..., min_length=1)
    level: Optional[SponsorLevel] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    invoice_address: Optional[str] = None
    agreement_amount: Optional[Decimal] = None
    notes: Optional[str] = None


class SponsorStatusUpdate(BaseModel):
    status: SponsorStatus


class DeliverableCreate(BaseModel):
    description: str = Field(..., min_length=1)


class DeliverableUpdate(BaseModel):
    delivered: bool
