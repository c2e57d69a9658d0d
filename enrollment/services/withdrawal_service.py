"""
Withdrawal / promotion engine.

Withdraws an active (REGISTERED or WAITLISTED) entry and, when the departing
entry held a slot, hands that slot to the oldest waitlisted entry of the same
tournament, all in one transaction. Two concurrent withdrawals serialize on
the tournament row lock, so a waitlisted entry is never promoted twice and a
freed slot is never skipped.

Category cleanup runs afterwards in its own short transaction per player: it
may fail without undoing the withdrawal, and is reported in the result.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.errors import AlreadyWithdrawn, ErrorCode, InvalidState, NotFound
from enrollment.models.base import atomic
from enrollment.models.models import PromotedBy, RegistrationStatus, TournamentStatus
from enrollment.services.admission_service import find_registration
from enrollment.services.capacity_service import get_next_waitlist_candidate, lock_tournament
from enrollment.services.category_service import delete_membership, should_unregister_from_category
from enrollment.services.entities import DOUBLES, SINGLES, EntityKind
from enrollment.services.results import CategoryCleanup, CleanupDecision, PromotedEntrant, WithdrawalResult

logger = logging.getLogger(__name__)

CleanupCheck = Callable[[AsyncSession, int, int], Awaitable[CleanupDecision]]


def _registration_not_found(**details) -> NotFound:
    return NotFound(ErrorCode.REGISTRATION_NOT_FOUND, "Registration not found", details)


async def _load_by_id(session: AsyncSession, kind: EntityKind, registration_id: int):
    result = await session.execute(
        select(kind.model)
        .where(kind.model.id == registration_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _promote_next(
    session: AsyncSession,
    kind: EntityKind,
    tournament_id: int,
    now: datetime,
) -> Optional[PromotedEntrant]:
    candidate = await get_next_waitlist_candidate(session, tournament_id, kind)
    if candidate is None:
        return None

    candidate.status = RegistrationStatus.REGISTERED
    candidate.promoted_by = PromotedBy.SYSTEM
    candidate.promoted_at = now
    await session.flush()

    entrant = await kind.load_entrant(session, kind.owner_of(candidate))
    return PromotedEntrant(
        registration_id=candidate.id,
        entity_id=entrant.entity_id,
        display_name=entrant.display_name,
        status=candidate.status,
        promoted_at=candidate.promoted_at,
        promoted_by=candidate.promoted_by,
    )


async def _cleanup_categories(
    session: AsyncSession,
    player_ids: List[int],
    category_id: int,
    should_unregister: CleanupCheck,
    log: logging.Logger,
) -> List[CategoryCleanup]:
    cleanups = []
    for player_id in player_ids:
        try:
            async with atomic(session):
                decision = await should_unregister(session, player_id, category_id)
                removed = False
                if decision.should_unregister:
                    removed = await delete_membership(session, player_id, category_id)
        except Exception:
            # the withdrawal is already committed; cleanup is best effort
            log.warning(
                "Category cleanup failed for player %d in category %d",
                player_id, category_id, exc_info=True,
            )
            cleanups.append(CategoryCleanup(player_id, category_id, False, "Category cleanup failed"))
            continue

        if removed:
            log.info("Removed stale category registration: player %d, category %d", player_id, category_id)
        cleanups.append(CategoryCleanup(player_id, category_id, removed, decision.reason))
    return cleanups


async def _withdraw(
    session: AsyncSession,
    kind: EntityKind,
    locate: Callable[[], Awaitable[Any]],
    not_found: Dict[str, Any],
    should_unregister: CleanupCheck,
    now: Optional[datetime],
    log: Optional[logging.Logger],
) -> WithdrawalResult:
    log = log or logger
    now = now or datetime.utcnow()

    async with atomic(session):
        registration = await locate()
        if registration is None:
            raise _registration_not_found(**not_found)
        registration_id = registration.id

        tournament = await lock_tournament(session, registration.tournament_id)
        # Re-read under the lock: another writer may have changed it meanwhile
        registration = await _load_by_id(session, kind, registration_id)
        if registration is None:
            raise _registration_not_found(registration_id=registration_id)

        if registration.status in RegistrationStatus.INACTIVE:
            raise AlreadyWithdrawn(
                ErrorCode.ALREADY_WITHDRAWN,
                "Registration already withdrawn or cancelled",
                {"registration_id": registration_id, "current_status": registration.status},
            )
        if tournament.status != TournamentStatus.SCHEDULED:
            raise InvalidState(
                ErrorCode.INVALID_TOURNAMENT_STATUS,
                "Can only withdraw from scheduled tournaments",
                {
                    "current_status": tournament.status,
                    "allowed_status": TournamentStatus.SCHEDULED,
                },
            )

        was_registered = registration.status == RegistrationStatus.REGISTERED
        registration.status = RegistrationStatus.WITHDRAWN
        registration.withdrawn_at = now
        await session.flush()

        promoted = None
        if was_registered:
            promoted = await _promote_next(session, kind, tournament.id, now)

        entrant = await kind.load_entrant(session, kind.owner_of(registration))
        category_id = tournament.category_id

    log.info(
        "%s %d withdrew from tournament %d (registration %d, was %s)",
        kind.name.capitalize(), entrant.entity_id, tournament.id, registration_id,
        "registered" if was_registered else "waitlisted",
    )
    if promoted is not None:
        log.info(
            "Auto-promoted registration %d (%s) in tournament %d",
            promoted.registration_id, promoted.display_name, tournament.id,
        )

    cleanup = await _cleanup_categories(session, entrant.player_ids, category_id, should_unregister, log)
    if inspect(registration).expired:
        # a failed cleanup rolled back and expired the committed row
        await session.refresh(registration)

    if promoted is not None:
        message = f"Successfully unregistered from tournament. {promoted.display_name} has been promoted from the waitlist."
    elif was_registered:
        message = "Successfully unregistered from tournament"
    else:
        message = "Successfully removed from waitlist"

    return WithdrawalResult(
        registration=registration,
        promoted=promoted,
        message=message,
        category_cleanup=cleanup,
    )


async def withdraw(
    session: AsyncSession,
    kind: EntityKind,
    registration_id: int,
    *,
    should_unregister: CleanupCheck = should_unregister_from_category,
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> WithdrawalResult:
    """
    Withdraw a registration by id (organizer/admin path).

    Raises NotFound(REGISTRATION_NOT_FOUND), AlreadyWithdrawn or
    InvalidState(INVALID_TOURNAMENT_STATUS); nothing is written when it does.
    """
    return await _withdraw(
        session, kind,
        lambda: _load_by_id(session, kind, registration_id),
        {"registration_id": registration_id},
        should_unregister, now, log,
    )


async def unregister(
    session: AsyncSession,
    kind: EntityKind,
    entity_id: int,
    tournament_id: int,
    *,
    should_unregister: CleanupCheck = should_unregister_from_category,
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> WithdrawalResult:
    """Withdraw the entrant's own registration, looked up by entrant + tournament."""
    return await _withdraw(
        session, kind,
        lambda: find_registration(session, kind, entity_id, tournament_id),
        {kind.owner_attr: entity_id, "tournament_id": tournament_id},
        should_unregister, now, log,
    )


async def unregister_player(session: AsyncSession, player_id: int, tournament_id: int, **kwargs) -> WithdrawalResult:
    return await unregister(session, SINGLES, player_id, tournament_id, **kwargs)


async def withdraw_player_by_registration_id(session: AsyncSession, registration_id: int, **kwargs) -> WithdrawalResult:
    return await withdraw(session, SINGLES, registration_id, **kwargs)


async def unregister_pair(session: AsyncSession, pair_id: int, tournament_id: int, **kwargs) -> WithdrawalResult:
    return await unregister(session, DOUBLES, pair_id, tournament_id, **kwargs)


async def withdraw_pair_registration(session: AsyncSession, registration_id: int, **kwargs) -> WithdrawalResult:
    return await withdraw(session, DOUBLES, registration_id, **kwargs)
