from enrollment.models.base import Base, engine, AsyncSessionFactory, atomic, build_engine, build_session_factory
from enrollment.models.models import (
    Category,
    PlayerProfile,
    DoublesPair,
    Tournament,
    TournamentRegistration,
    PairRegistration,
    CategoryRegistration,
    TournamentStatus,
    RegistrationStatus,
    PromotedBy,
    CategoryRegistrationStatus,
    CategoryType,
    Gender,
    AgeGroup,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionFactory",
    "atomic",
    "build_engine",
    "build_session_factory",
    "Category",
    "PlayerProfile",
    "DoublesPair",
    "Tournament",
    "TournamentRegistration",
    "PairRegistration",
    "CategoryRegistration",
    "TournamentStatus",
    "RegistrationStatus",
    "PromotedBy",
    "CategoryRegistrationStatus",
    "CategoryType",
    "Gender",
    "AgeGroup",
]
