from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class SyncStatus(str, Enum):
    """Outcome of one sync run for one festival"""
    SUCCESS = "success"
    ERROR = "error"


class SyncLog(BaseModel):
    """Append-only audit row; the latest success is the next run's watermark"""
    id: Optional[str] = None
    festival_id: str
    synced_at: datetime
    records_synced: int = 0
    status: SyncStatus
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class SyncResult(BaseModel):
    """Per-festival result returned by a sync trigger"""
    festival_id: str
    status: SyncStatus
    records_synced: int = 0
    pages_fetched: int = 0
    error: Optional[str] = None


class SyncRunResponse(BaseModel):
    results: list[SyncResult]
