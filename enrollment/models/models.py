"""
ORM models for the tournament registration core.

Domain overview
---------------
Category              — a competitive division (e.g. "Men 35+ Singles")
  ├─ CategoryRegistration — a player's standing in the category
  ├─ DoublesPair          — two players entered together (doubles categories)
  └─ Tournament           — a capacity-bounded event in the category
       ├─ TournamentRegistration — a player's entry (singles)
       └─ PairRegistration       — a pair's entry (doubles)
"""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from enrollment.models.base import Base

# ─────────────────────────── Constants ────────────────────────────────────────

class TournamentStatus:
    SCHEDULED   = "SCHEDULED"    # Accepting registrations
    IN_PROGRESS = "IN_PROGRESS"  # Matches being played
    COMPLETED   = "COMPLETED"    # Results are final
    CANCELLED   = "CANCELLED"

    ALL = (SCHEDULED, IN_PROGRESS, COMPLETED, CANCELLED)


class RegistrationStatus:
    REGISTERED = "REGISTERED"
    WAITLISTED = "WAITLISTED"
    WITHDRAWN  = "WITHDRAWN"
    CANCELLED  = "CANCELLED"

    ACTIVE   = (REGISTERED, WAITLISTED)
    INACTIVE = (WITHDRAWN, CANCELLED)


class PromotedBy:
    SYSTEM    = "SYSTEM"     # automatic backfill after a withdrawal
    ORGANIZER = "ORGANIZER"  # organizer-directed demotion swap


class CategoryRegistrationStatus:
    ACTIVE    = "ACTIVE"
    WITHDRAWN = "WITHDRAWN"
    SUSPENDED = "SUSPENDED"

    # Rows that block a second enrollment in the same category
    BLOCKING = (ACTIVE, SUSPENDED)


class CategoryType:
    SINGLES = "SINGLES"
    DOUBLES = "DOUBLES"


class Gender:
    MEN   = "MEN"
    WOMEN = "WOMEN"
    MIXED = "MIXED"   # category-only value

    PLAYER = (MEN, WOMEN)


class AgeGroup:
    ALL_AGES = "ALL_AGES"
    AGE_20   = "AGE_20"
    AGE_35   = "AGE_35"
    AGE_40   = "AGE_40"
    AGE_45   = "AGE_45"
    AGE_50   = "AGE_50"
    AGE_55   = "AGE_55"
    AGE_60   = "AGE_60"
    AGE_65   = "AGE_65"
    AGE_70   = "AGE_70"
    AGE_75   = "AGE_75"
    AGE_80   = "AGE_80"

    @staticmethod
    def minimum_age(age_group: str) -> Optional[int]:
        """"AGE_35" → 35; ALL_AGES (or anything unparseable) → None."""
        if not age_group or not age_group.startswith("AGE_"):
            return None
        suffix = age_group[len("AGE_"):]
        return int(suffix) if suffix.isdigit() else None


# ─────────────────────────── Models ───────────────────────────────────────────

class Category(Base):
    """Age/gender division that owns tournaments and category enrollments."""
    __tablename__ = "categories"

    id:         Mapped[int]      = mapped_column(Integer, primary_key=True, autoincrement=True)
    name:       Mapped[str]      = mapped_column(String(255))
    type:       Mapped[str]      = mapped_column(String(20), default=CategoryType.SINGLES)
    age_group:  Mapped[str]      = mapped_column(String(20), default=AgeGroup.ALL_AGES)
    gender:     Mapped[str]      = mapped_column(String(10), default=Gender.MIXED)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    tournaments: Mapped[List["Tournament"]] = relationship(back_populates="category")
    registrations: Mapped[List["CategoryRegistration"]] = relationship(
        back_populates="category", cascade="all, delete-orphan"
    )


class PlayerProfile(Base):
    __tablename__ = "player_profiles"

    id:         Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    name:       Mapped[str]                = mapped_column(String(255))
    email:      Mapped[Optional[str]]      = mapped_column(String(255), nullable=True, unique=True)
    birth_date: Mapped[Optional[date]]     = mapped_column(Date, nullable=True)
    gender:     Mapped[Optional[str]]      = mapped_column(String(10), nullable=True)
    created_at: Mapped[datetime]           = mapped_column(DateTime, default=func.now())

    tournament_registrations: Mapped[List["TournamentRegistration"]] = relationship(
        back_populates="player"
    )
    category_registrations: Mapped[List["CategoryRegistration"]] = relationship(
        back_populates="player"
    )

    @property
    def missing_profile_fields(self) -> list[str]:
        missing = []
        if self.birth_date is None:
            missing.append("birth_date")
        if not self.gender:
            missing.append("gender")
        return missing


class DoublesPair(Base):
    """Two players entered together in a doubles category."""
    __tablename__ = "doubles_pairs"
    __table_args__ = (
        UniqueConstraint("player1_id", "player2_id", "category_id", name="uq_pair_players_category"),
    )

    id:          Mapped[int]      = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int]      = mapped_column(ForeignKey("categories.id"))
    player1_id:  Mapped[int]      = mapped_column(ForeignKey("player_profiles.id"))
    player2_id:  Mapped[int]      = mapped_column(ForeignKey("player_profiles.id"))
    created_at:  Mapped[datetime] = mapped_column(DateTime, default=func.now())

    category: Mapped["Category"]      = relationship()
    player1:  Mapped["PlayerProfile"] = relationship(foreign_keys=[player1_id], lazy="selectin")
    player2:  Mapped["PlayerProfile"] = relationship(foreign_keys=[player2_id], lazy="selectin")

    @property
    def player_ids(self) -> list[int]:
        return [self.player1_id, self.player2_id]

    @property
    def display_name(self) -> str:
        return f"{self.player1.name} & {self.player2.name}"


class Tournament(Base):
    """A capacity-bounded event inside a category."""
    __tablename__ = "tournaments"

    id:                      Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    name:                    Mapped[str]                = mapped_column(String(255))
    category_id:             Mapped[int]                = mapped_column(ForeignKey("categories.id"))
    capacity:                Mapped[Optional[int]]      = mapped_column(Integer, nullable=True)  # None = unlimited
    status:                  Mapped[str]                = mapped_column(String(20), default=TournamentStatus.SCHEDULED)
    registration_open_date:  Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    registration_close_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    start_date:              Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at:              Mapped[datetime]           = mapped_column(DateTime, default=func.now())

    category: Mapped["Category"] = relationship(back_populates="tournaments")
    registrations: Mapped[List["TournamentRegistration"]] = relationship(
        back_populates="tournament", cascade="all, delete-orphan"
    )
    pair_registrations: Mapped[List["PairRegistration"]] = relationship(
        back_populates="tournament", cascade="all, delete-orphan"
    )

    @validates("category_id")
    def _category_is_immutable(self, key: str, value: int) -> int:
        current = self.__dict__.get("category_id")
        if current is not None and current != value:
            raise ValueError("Tournament category cannot be changed once set")
        return value

    @property
    def is_unlimited(self) -> bool:
        return self.capacity is None


class TournamentRegistration(Base):
    """A single player's entry in a tournament."""
    __tablename__ = "tournament_registrations"
    __table_args__ = (
        UniqueConstraint("player_id", "tournament_id", name="uq_registration_player_tournament"),
        Index("ix_registration_queue", "tournament_id", "status", "registration_timestamp"),
    )

    id:                     Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id:              Mapped[int]                = mapped_column(ForeignKey("player_profiles.id"))
    tournament_id:          Mapped[int]                = mapped_column(ForeignKey("tournaments.id"))
    status:                 Mapped[str]                = mapped_column(String(20), default=RegistrationStatus.REGISTERED)
    registration_timestamp: Mapped[datetime]           = mapped_column(DateTime, default=func.now())
    withdrawn_at:           Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    promoted_by:            Mapped[Optional[str]]      = mapped_column(String(20), nullable=True)
    promoted_at:            Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    player:     Mapped["PlayerProfile"] = relationship(back_populates="tournament_registrations")
    tournament: Mapped["Tournament"]    = relationship(back_populates="registrations")

    @property
    def is_active(self) -> bool:
        return self.status in RegistrationStatus.ACTIVE


class PairRegistration(Base):
    """A doubles pair's entry in a tournament. Same lifecycle as TournamentRegistration."""
    __tablename__ = "pair_registrations"
    __table_args__ = (
        UniqueConstraint("pair_id", "tournament_id", name="uq_registration_pair_tournament"),
        Index("ix_pair_registration_queue", "tournament_id", "status", "registration_timestamp"),
    )

    id:                     Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    pair_id:                Mapped[int]                = mapped_column(ForeignKey("doubles_pairs.id"))
    tournament_id:          Mapped[int]                = mapped_column(ForeignKey("tournaments.id"))
    status:                 Mapped[str]                = mapped_column(String(20), default=RegistrationStatus.REGISTERED)
    registration_timestamp: Mapped[datetime]           = mapped_column(DateTime, default=func.now())
    withdrawn_at:           Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    promoted_by:            Mapped[Optional[str]]      = mapped_column(String(20), nullable=True)
    promoted_at:            Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    pair:       Mapped["DoublesPair"] = relationship()
    tournament: Mapped["Tournament"]  = relationship(back_populates="pair_registrations")

    @property
    def is_active(self) -> bool:
        return self.status in RegistrationStatus.ACTIVE


class CategoryRegistration(Base):
    """A player's enrollment in a category, independent of any single tournament."""
    __tablename__ = "category_registrations"
    __table_args__ = (
        UniqueConstraint("player_id", "category_id", name="uq_category_registration_player"),
    )

    id:               Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id:        Mapped[int]                = mapped_column(ForeignKey("player_profiles.id"))
    category_id:      Mapped[int]                = mapped_column(ForeignKey("categories.id"))
    status:           Mapped[str]                = mapped_column(String(20), default=CategoryRegistrationStatus.ACTIVE)
    registered_at:    Mapped[datetime]           = mapped_column(DateTime, default=func.now())
    withdrawn_at:     Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    has_participated: Mapped[bool]               = mapped_column(Boolean, default=False)

    player:   Mapped["PlayerProfile"] = relationship(back_populates="category_registrations")
    category: Mapped["Category"]      = relationship(back_populates="registrations")
