"""
Tournament service — directory operations for categories, players, pairs,
tournaments and registration listings.

All functions receive an AsyncSession parameter and only flush: the caller
owns the transaction (wrap calls in ``atomic`` or commit explicitly).
Admission and withdrawal live in their own engines.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.errors import ErrorCode, InvalidState, NotFound
from enrollment.models.models import (
    AgeGroup,
    Category,
    CategoryRegistration,
    CategoryType,
    DoublesPair,
    Gender,
    PairRegistration,
    PlayerProfile,
    RegistrationStatus,
    Tournament,
    TournamentRegistration,
    TournamentStatus,
)
from enrollment.services.entities import SINGLES, EntityKind
from enrollment.validators import TournamentData


# ── Categories / players / pairs ──────────────────────────────────────────────

async def create_category(
    session: AsyncSession,
    name: str,
    type: str = CategoryType.SINGLES,
    age_group: str = AgeGroup.ALL_AGES,
    gender: str = Gender.MIXED,
) -> Category:
    category = Category(name=name, type=type, age_group=age_group, gender=gender)
    session.add(category)
    await session.flush()
    return category


async def create_player(
    session: AsyncSession,
    name: str,
    birth_date: Optional[date] = None,
    gender: Optional[str] = None,
    email: Optional[str] = None,
) -> PlayerProfile:
    player = PlayerProfile(name=name, birth_date=birth_date, gender=gender, email=email)
    session.add(player)
    await session.flush()
    return player


async def create_pair(
    session: AsyncSession,
    category_id: int,
    player1_id: int,
    player2_id: int,
) -> DoublesPair:
    if player1_id == player2_id:
        raise InvalidState(
            ErrorCode.INVALID_PAIR,
            "A pair needs two different players",
            {"player_id": player1_id},
        )
    category = await session.get(Category, category_id)
    if category is None:
        raise NotFound(ErrorCode.CATEGORY_NOT_FOUND, "Category not found", {"category_id": category_id})
    if category.type != CategoryType.DOUBLES:
        raise InvalidState(
            ErrorCode.WRONG_CATEGORY_TYPE,
            "Pairs can only be formed in doubles categories",
            {"category_id": category_id, "category_type": category.type},
        )
    pair = DoublesPair(category_id=category_id, player1_id=player1_id, player2_id=player2_id)
    session.add(pair)
    await session.flush()
    # reload so both players are available for display names
    result = await session.execute(
        select(DoublesPair)
        .where(DoublesPair.id == pair.id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ── Tournament ────────────────────────────────────────────────────────────────

async def create_tournament(
    session: AsyncSession,
    name: str,
    category_id: int,
    capacity: Optional[int] = None,
    status: str = TournamentStatus.SCHEDULED,
    registration_open_date: Optional[datetime] = None,
    registration_close_date: Optional[datetime] = None,
    start_date: Optional[datetime] = None,
) -> Tournament:
    """Validated through ``TournamentData`` (raises pydantic.ValidationError)."""
    data = TournamentData(
        name=name,
        category_id=category_id,
        capacity=capacity,
        status=status,
        registration_open_date=registration_open_date,
        registration_close_date=registration_close_date,
        start_date=start_date,
    )
    if await session.get(Category, data.category_id) is None:
        raise NotFound(ErrorCode.CATEGORY_NOT_FOUND, "Category not found", {"category_id": data.category_id})

    t = Tournament(**data.model_dump())
    session.add(t)
    await session.flush()
    return t


async def get_tournament(session: AsyncSession, tournament_id: int) -> Optional[Tournament]:
    result = await session.execute(select(Tournament).where(Tournament.id == tournament_id))
    return result.scalar_one_or_none()


async def list_tournaments(
    session: AsyncSession,
    status: Optional[str] = None,
    category_id: Optional[int] = None,
) -> List[Tournament]:
    q = select(Tournament).order_by(Tournament.created_at.desc(), Tournament.id.desc())
    if status:
        q = q.where(Tournament.status == status)
    if category_id is not None:
        q = q.where(Tournament.category_id == category_id)
    result = await session.execute(q)
    return list(result.scalars().all())


async def _mark_participation(session: AsyncSession, tournament: Tournament) -> None:
    singles = select(TournamentRegistration.player_id).where(
        TournamentRegistration.tournament_id == tournament.id,
        TournamentRegistration.status == RegistrationStatus.REGISTERED,
    )
    pairs = (
        await session.execute(
            select(DoublesPair.player1_id, DoublesPair.player2_id)
            .join(PairRegistration, PairRegistration.pair_id == DoublesPair.id)
            .where(
                PairRegistration.tournament_id == tournament.id,
                PairRegistration.status == RegistrationStatus.REGISTERED,
            )
        )
    ).all()

    player_ids = set((await session.execute(singles)).scalars().all())
    for p1, p2 in pairs:
        player_ids.update((p1, p2))
    if not player_ids:
        return

    await session.execute(
        update(CategoryRegistration)
        .where(
            CategoryRegistration.category_id == tournament.category_id,
            CategoryRegistration.player_id.in_(sorted(player_ids)),
        )
        .values(has_participated=True)
    )


async def set_tournament_status(
    session: AsyncSession,
    tournament_id: int,
    status: str,
) -> Tournament:
    """
    Move a tournament to another status. Completing it records participation
    on the category enrollments of every REGISTERED player, which keeps those
    enrollments from being cleaned up later.
    """
    if status not in TournamentStatus.ALL:
        raise InvalidState(
            ErrorCode.INVALID_TOURNAMENT_STATUS,
            f"Unknown tournament status: {status}",
            {"status": status},
        )
    tournament = await get_tournament(session, tournament_id)
    if tournament is None:
        raise NotFound(ErrorCode.TOURNAMENT_NOT_FOUND, "Tournament not found", {"tournament_id": tournament_id})

    tournament.status = status
    if status == TournamentStatus.COMPLETED:
        await _mark_participation(session, tournament)
    await session.flush()
    return tournament


# ── Registrations ─────────────────────────────────────────────────────────────

async def get_registration(session: AsyncSession, registration_id: int, kind: EntityKind = SINGLES):
    return await session.get(kind.model, registration_id, populate_existing=True)


async def list_tournament_registrations(
    session: AsyncSession,
    tournament_id: int,
    kind: EntityKind = SINGLES,
    status: Optional[str] = None,
) -> list:
    """Registrations in queue order (oldest first)."""
    model = kind.model
    q = (
        select(model)
        .where(model.tournament_id == tournament_id)
        .order_by(model.registration_timestamp.asc(), model.id.asc())
        .execution_options(populate_existing=True)
    )
    if status:
        q = q.where(model.status == status)
    result = await session.execute(q)
    return list(result.scalars().all())


async def get_entrant_registrations(
    session: AsyncSession,
    entity_id: int,
    kind: EntityKind = SINGLES,
) -> list:
    """All registrations of a player (or pair), newest first."""
    model = kind.model
    result = await session.execute(
        select(model)
        .where(kind.owner_column == entity_id)
        .order_by(model.registration_timestamp.desc(), model.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
