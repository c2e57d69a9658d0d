"""
Caller-facing errors raised by the registration services.

Every error carries a stable ``code`` string so callers can branch without
matching on messages, plus a ``details`` dict with the data that explains it.
None of these are retried internally.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    # Tournament
    TOURNAMENT_NOT_FOUND      = "TOURNAMENT_NOT_FOUND"
    INVALID_TOURNAMENT_STATUS = "INVALID_TOURNAMENT_STATUS"
    REGISTRATION_NOT_OPEN     = "REGISTRATION_NOT_OPEN"
    REGISTRATION_CLOSED       = "REGISTRATION_CLOSED"

    # Registration rows
    ALREADY_REGISTERED        = "ALREADY_REGISTERED"
    REGISTRATION_NOT_FOUND    = "REGISTRATION_NOT_FOUND"
    ALREADY_WITHDRAWN         = "ALREADY_WITHDRAWN"
    INVALID_STATUS            = "INVALID_STATUS"
    NOT_WITHDRAWN             = "NOT_WITHDRAWN"

    # Category membership
    CATEGORY_NOT_FOUND             = "CATEGORY_NOT_FOUND"
    CATEGORY_REGISTRATION_REQUIRED = "CATEGORY_REGISTRATION_REQUIRED"

    # Entrants
    PLAYER_NOT_FOUND    = "PLAYER_NOT_FOUND"
    PAIR_NOT_FOUND      = "PAIR_NOT_FOUND"
    INVALID_CATEGORY    = "INVALID_CATEGORY"
    WRONG_CATEGORY_TYPE = "WRONG_CATEGORY_TYPE"
    INVALID_PAIR        = "INVALID_PAIR"
    PARTNER_CONFLICT    = "PARTNER_CONFLICT"

    # Eligibility
    INELIGIBLE_AGE     = "INELIGIBLE_AGE"
    INELIGIBLE_GENDER  = "INELIGIBLE_GENDER"
    INCOMPLETE_PROFILE = "INCOMPLETE_PROFILE"


class RegistrationError(Exception):
    """Base class for all registration-domain failures."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotFound(RegistrationError):
    """Tournament, registration, player, pair or category is absent."""


class Conflict(RegistrationError):
    """Duplicate registration."""


class InvalidState(RegistrationError):
    """
    The target exists but is in the wrong state: tournament not SCHEDULED,
    registration window closed / not yet open, demotion target not REGISTERED,
    missing category membership for a waitlist entry.
    """


class EligibilityFailure(RegistrationError):
    """Player fails the category's age / gender / profile rules."""


class AlreadyWithdrawn(RegistrationError):
    """Withdrawal requested for a registration that is no longer active."""
