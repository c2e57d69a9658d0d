"""
Input validation — Pydantic v2 models.

Used to validate caller-supplied identifiers and tournament settings before
they reach the database. Keeps validation logic out of the service code and
makes it trivially testable.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, PositiveInt, field_validator, model_validator

from enrollment.models.models import TournamentStatus


class AdmissionRequest(BaseModel):
    """
    Identifiers of an admission call.

    Attributes
    ----------
    entity_id              : player id (singles) or pair id (doubles)
    tournament_id          : target tournament
    demote_registration_id : REGISTERED entry to bump to the waitlist when full (organizer only)
    """

    entity_id: PositiveInt
    tournament_id: PositiveInt
    demote_registration_id: Optional[PositiveInt] = None


class TournamentData(BaseModel):
    """
    Tournament settings validated before the row is written.

    Attributes
    ----------
    name                    : 2–255 chars, surrounding whitespace stripped
    category_id             : owning category
    capacity                : ≥ 1, or None for unlimited
    status                  : one of TournamentStatus.*
    registration_open_date  : optional lower bound of the registration window
    registration_close_date : optional upper bound, not before the lower one
    """

    name: str
    category_id: PositiveInt
    capacity: Optional[int] = None
    status: str = TournamentStatus.SCHEDULED
    registration_open_date: Optional[datetime] = None
    registration_close_date: Optional[datetime] = None
    start_date: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2 or len(v) > 255:
            raise ValueError("Tournament name must be between 2 and 255 characters")
        return v

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Capacity must be at least 1 (or empty for unlimited)")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in TournamentStatus.ALL:
            raise ValueError(f"Unknown tournament status: {v}")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "TournamentData":
        opens, closes = self.registration_open_date, self.registration_close_date
        if opens is not None and closes is not None and closes < opens:
            raise ValueError("Registration close date must not be before the open date")
        return self
