"""
Result objects returned by the registration services.

Plain dataclasses: they hold ORM rows plus the decision data the caller needs
to display or notify, and carry no behaviour beyond a few convenience properties.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from enrollment.models.models import CategoryRegistration, RegistrationStatus


@dataclass
class CapacityInfo:
    """Snapshot of a tournament's admitted count, the basis of an admission decision."""
    status:        str            # RegistrationStatus a new entrant would get
    capacity:      Optional[int]  # None = unlimited
    current_count: int
    is_full:       bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "capacity": self.capacity,
            "current_count": self.current_count,
            "is_full": self.is_full,
        }


@dataclass
class CategoryMembership:
    membership: Optional[CategoryRegistration]
    is_new:     bool = False


@dataclass
class CleanupDecision:
    should_unregister:  bool
    reason:             str
    active_tournaments: Optional[int] = None


@dataclass
class EligibilityReport:
    eligible:    bool
    player_age:  Optional[int]
    validations: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AdmissionResult:
    registration:           Any                       # TournamentRegistration | PairRegistration
    capacity_info:          CapacityInfo
    message:                str
    category_registrations: List[CategoryMembership] = field(default_factory=list)
    demoted_registration:   Any = None

    @property
    def category_registration(self) -> Optional[CategoryMembership]:
        """The (first) category enrollment touched; singles entrants have at most one."""
        return self.category_registrations[0] if self.category_registrations else None

    @property
    def is_waitlisted(self) -> bool:
        return self.registration.status == RegistrationStatus.WAITLISTED


@dataclass
class PromotedEntrant:
    """Who got the freed slot, with enough identity to notify them."""
    registration_id: int
    entity_id:       int
    display_name:    str
    status:          str
    promoted_at:     Optional[datetime]
    promoted_by:     Optional[str]


@dataclass
class CategoryCleanup:
    player_id:    int
    category_id:  int
    unregistered: bool
    reason:       str


@dataclass
class WithdrawalResult:
    registration:     Any
    promoted:         Optional[PromotedEntrant]
    message:          str
    category_cleanup: List[CategoryCleanup] = field(default_factory=list)

    @property
    def category_unregistered(self) -> bool:
        return any(c.unregistered for c in self.category_cleanup)
