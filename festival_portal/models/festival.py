from pydantic import BaseModel
from typing import Optional
from datetime import datetime, date
from enum import Enum


class UserRole(str, Enum):
    """Fixed set of roles a festival member can hold"""
    ADMIN = "admin"
    BOARD = "board"
    CREW = "crew"
    SPONSOR = "sponsor"
    ACCOUNTANT = "accountant"


class Festival(BaseModel):
    """A festival organization, the unit of data isolation"""
    id: str
    name: str
    slug: str
    logo_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None
    capacity: Optional[int] = None
    website: Optional[str] = None
    default_locale: str = "nb"
    currency: str = "NOK"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserProfile(BaseModel):
    """A user profile; belongs to exactly one festival"""
    id: str
    festival_id: str
    role: UserRole = UserRole.CREW
    full_name: Optional[str] = None
    email: Optional[str] = None
    locale: Optional[str] = None
    has_password: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FestivalIntegration(BaseModel):
    """Per-festival credentials for the external ticketing provider"""
    festival_id: str
    ticketco_api_key: Optional[str] = None
    ticketco_event_id: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.ticketco_api_key)
