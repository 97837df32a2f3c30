"""Campus event models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventUpdate(BaseModel):
    """Fields an event write may carry.

    ``organizer_id`` and ``attendees`` are not accepted here; the service
    assigns the organizer and the backend counts registrations.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    date: str | None = None
    time: str | None = None
    location: str | None = None
    address: str | None = None
    tags: list[str] | None = None
    highlights: list[str] | None = None
    max_attendees: int | None = Field(default=None, ge=1)
    organizer_name: str | None = None
    organizer_image: str | None = None
    image: str | None = None
    is_past: bool | None = None

    @field_validator("highlights")
    @classmethod
    def drop_blank_highlights(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [h.strip() for h in v if h.strip()]


class Event(BaseModel):
    """An event as stored remotely."""

    model_config = ConfigDict(extra="allow")

    id: str
    organizer_id: str | None = None
    title: str | None = None
    attendees: int = 0
    max_attendees: int | None = None
    is_past: bool = False

    @field_validator("attendees", mode="before")
    @classmethod
    def null_attendees_as_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @property
    def is_full(self) -> bool:
        return bool(self.max_attendees) and self.attendees >= self.max_attendees
