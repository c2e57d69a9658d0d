"""
Capacity oracle and waitlist selector.

Both are pure reads and work for either entity kind. Neither guarantees that
what it saw still holds at the caller's next write: the admission and
withdrawal engines call them after locking the tournament row inside their
own transaction.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.errors import ErrorCode, NotFound
from enrollment.models.models import RegistrationStatus, Tournament
from enrollment.services.entities import SINGLES, EntityKind
from enrollment.services.results import CapacityInfo


def _tournament_not_found(tournament_id: int) -> NotFound:
    return NotFound(
        ErrorCode.TOURNAMENT_NOT_FOUND,
        "Tournament not found",
        {"tournament_id": tournament_id},
    )


async def lock_tournament(session: AsyncSession, tournament_id: int) -> Tournament:
    """
    Load a tournament with a row lock (SELECT ... FOR UPDATE).

    Admissions and withdrawals on the same tournament serialize behind this
    lock for the rest of the transaction. SQLite ignores FOR UPDATE; engines
    from ``build_engine`` take the database write lock at BEGIN instead.
    """
    result = await session.execute(
        select(Tournament)
        .where(Tournament.id == tournament_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    tournament = result.scalar_one_or_none()
    if tournament is None:
        raise _tournament_not_found(tournament_id)
    return tournament


async def count_registered(
    session: AsyncSession,
    tournament_id: int,
    kind: EntityKind = SINGLES,
) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(kind.model)
        .where(
            kind.model.tournament_id == tournament_id,
            kind.model.status == RegistrationStatus.REGISTERED,
        )
    )
    return int(result.scalar_one())


def capacity_info_for(tournament: Tournament, current_count: int) -> CapacityInfo:
    """Turn an admitted count into a capacity decision. Unlimited tournaments never waitlist."""
    if tournament.capacity is None:
        return CapacityInfo(
            status=RegistrationStatus.REGISTERED,
            capacity=None,
            current_count=0,
            is_full=False,
        )
    is_full = current_count >= tournament.capacity
    return CapacityInfo(
        status=RegistrationStatus.WAITLISTED if is_full else RegistrationStatus.REGISTERED,
        capacity=tournament.capacity,
        current_count=current_count,
        is_full=is_full,
    )


async def check_capacity(
    session: AsyncSession,
    tournament_id: int,
    kind: EntityKind = SINGLES,
) -> CapacityInfo:
    """
    Current admitted count of a tournament and whether it is full.

    Raises NotFound(TOURNAMENT_NOT_FOUND) for an unknown tournament.
    """
    tournament = await session.get(Tournament, tournament_id)
    if tournament is None:
        raise _tournament_not_found(tournament_id)
    if tournament.capacity is None:
        return capacity_info_for(tournament, 0)
    current_count = await count_registered(session, tournament_id, kind)
    return capacity_info_for(tournament, current_count)


async def get_next_waitlist_candidate(
    session: AsyncSession,
    tournament_id: int,
    kind: EntityKind = SINGLES,
):
    """Oldest WAITLISTED registration of the tournament (FIFO, row id breaks ties), or None."""
    model = kind.model
    result = await session.execute(
        select(model)
        .where(
            model.tournament_id == tournament_id,
            model.status == RegistrationStatus.WAITLISTED,
        )
        .order_by(model.registration_timestamp.asc(), model.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def waitlist_position(
    session: AsyncSession,
    registration,
    kind: EntityKind = SINGLES,
) -> Optional[int]:
    """1-based queue position of a WAITLISTED registration; None for any other status."""
    if registration.status != RegistrationStatus.WAITLISTED:
        return None
    model = kind.model
    result = await session.execute(
        select(model.id)
        .where(
            model.tournament_id == registration.tournament_id,
            model.status == RegistrationStatus.WAITLISTED,
        )
        .order_by(model.registration_timestamp.asc(), model.id.asc())
    )
    ids = list(result.scalars().all())
    return ids.index(registration.id) + 1 if registration.id in ids else None
