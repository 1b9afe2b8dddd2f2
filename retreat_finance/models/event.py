"""
Event Models

An event ("retreat") is a time-boxed occasion whose finances are tracked
as one unit. It exclusively owns its transactions: deleting the event
deletes them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from retreat_finance.models.timestamps import as_utc


class EventState(str, Enum):
    """
    Lifecycle state of an event.

    Transitions are explicit writes and unguarded: any state can be
    reached from any other state (Finished -> Planning included).
    """
    PLANNING = "planning"
    ACTIVE = "active"
    FINISHED = "finished"


class EventDraft(BaseModel):
    """Fields a user supplies to create (or fully describe) an event."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Event name"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Free text description"
    )
    starts_at: datetime = Field(
        ...,
        description="Start of the event (UTC)"
    )
    ends_at: datetime = Field(
        ...,
        description="End of the event (UTC), strictly after the start"
    )
    location: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Where the event takes place"
    )
    participant_count: int = Field(
        ...,
        ge=1,
        description="Number of participants"
    )

    @field_validator('starts_at', 'ends_at')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode='after')
    def validate_dates(self) -> 'EventDraft':
        """End must be strictly after start."""
        if self.ends_at <= self.starts_at:
            raise ValueError("End date must be after start date")
        return self


class EventUpdate(BaseModel):
    """
    Partial update for an event.

    Only fields explicitly set are applied; the merged result is validated
    again as an EventDraft so the date ordering still holds.
    Unknown fields (state included; see update_event_state) are rejected.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    location: Optional[str] = Field(default=None, max_length=200)
    participant_count: Optional[int] = Field(default=None, ge=1)


class Event(BaseModel):
    """A persisted event."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    starts_at: datetime
    ends_at: datetime
    location: Optional[str] = None
    participant_count: int
    state: EventState = EventState.PLANNING
    created_at: datetime
    updated_at: datetime
