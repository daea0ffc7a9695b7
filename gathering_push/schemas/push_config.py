"""Pydantic schemas for the IRL gathering push config endpoints."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PushConfigCreate(BaseModel):
    enabled: bool = True
    min_attendees_per_event: int = Field(5, ge=0)
    upcoming_window_days: int = Field(7, ge=0)
    reminder_days_before: int = Field(1, ge=0)
    total_events_threshold: int = Field(5, ge=0)
    qualified_events_threshold: int = Field(2, ge=0)

    model_config = {
        "json_schema_extra": {
            "example": {
                "enabled": True,
                "min_attendees_per_event": 5,
                "upcoming_window_days": 7,
                "reminder_days_before": 1,
                "total_events_threshold": 5,
                "qualified_events_threshold": 2,
            }
        }
    }


class PushConfigUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    enabled: Optional[bool] = None
    min_attendees_per_event: Optional[int] = Field(None, ge=0)
    upcoming_window_days: Optional[int] = Field(None, ge=0)
    reminder_days_before: Optional[int] = Field(None, ge=0)
    total_events_threshold: Optional[int] = Field(None, ge=0)
    qualified_events_threshold: Optional[int] = Field(None, ge=0)


class PushConfigOut(BaseModel):
    id: str
    enabled: bool
    min_attendees_per_event: int
    upcoming_window_days: int
    reminder_days_before: int
    total_events_threshold: int
    qualified_events_threshold: int
    is_active: bool
    updated_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {
        'from_attributes': True
    }
