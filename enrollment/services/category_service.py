"""
Category membership coordinator.

Owns the ``category_registrations`` table. The admission engine only asks it
to ensure or require a membership inside the admission transaction; the
withdrawal engine asks it whether a player's membership should be cleaned up
once their last active tournament entry in the category is gone.

Top-level operations (register / withdraw / reactivate) commit their own unit
of work. ``ensure_membership`` and ``require_membership`` never commit: they
run inside the caller's transaction.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.errors import AlreadyWithdrawn, ErrorCode, InvalidState, NotFound
from enrollment.models.base import atomic
from enrollment.models.models import (
    Category,
    CategoryRegistration,
    CategoryRegistrationStatus,
    DoublesPair,
    PairRegistration,
    RegistrationStatus,
    Tournament,
    TournamentRegistration,
)
from enrollment.services.eligibility_service import check_eligibility
from enrollment.services.results import CategoryMembership, CleanupDecision, EligibilityReport

logger = logging.getLogger(__name__)

EligibilityGate = Callable[..., Awaitable[EligibilityReport]]


async def get_category(session: AsyncSession, category_id: int) -> Category:
    category = await session.get(Category, category_id)
    if category is None:
        raise NotFound(ErrorCode.CATEGORY_NOT_FOUND, "Category not found", {"category_id": category_id})
    return category


async def get_membership(
    session: AsyncSession,
    player_id: int,
    category_id: int,
) -> Optional[CategoryRegistration]:
    result = await session.execute(
        select(CategoryRegistration).where(
            CategoryRegistration.player_id == player_id,
            CategoryRegistration.category_id == category_id,
        )
    )
    return result.scalar_one_or_none()


async def _reactivate(
    session: AsyncSession,
    membership: CategoryRegistration,
    eligibility_gate: EligibilityGate,
) -> CategoryRegistration:
    # The row stays WITHDRAWN while the gate runs; the gate is told to skip it
    # in its duplicate check, so no intermediate status is ever written.
    await eligibility_gate(
        session,
        membership.player_id,
        membership.category_id,
        ignore_registration_id=membership.id,
    )
    membership.status = CategoryRegistrationStatus.ACTIVE
    membership.withdrawn_at = None
    await session.flush()
    return membership


# ── Admission-side hooks ──────────────────────────────────────────────────────

async def ensure_membership(
    session: AsyncSession,
    player_id: int,
    category_id: int,
    admission_status: str,
    *,
    eligibility_gate: EligibilityGate = check_eligibility,
    now: Optional[datetime] = None,
) -> CategoryMembership:
    """
    Make sure an admitted player is enrolled in the tournament's category.

    Only acts for ``admission_status == REGISTERED``. A missing row is created
    ACTIVE after the eligibility gate passes; a WITHDRAWN row is re-validated
    and reactivated. ACTIVE and SUSPENDED rows are returned untouched.
    Eligibility failures propagate so the whole admission rolls back.
    """
    if admission_status != RegistrationStatus.REGISTERED:
        return CategoryMembership(membership=None, is_new=False)

    existing = await get_membership(session, player_id, category_id)
    if existing is not None:
        if existing.status == CategoryRegistrationStatus.WITHDRAWN:
            await _reactivate(session, existing, eligibility_gate)
            logger.info(
                "Reactivated category registration %d (player=%d category=%d)",
                existing.id, player_id, category_id,
            )
        return CategoryMembership(membership=existing, is_new=False)

    await eligibility_gate(session, player_id, category_id)

    membership = CategoryRegistration(
        player_id=player_id,
        category_id=category_id,
        status=CategoryRegistrationStatus.ACTIVE,
        registered_at=now or datetime.utcnow(),
        has_participated=False,
    )
    session.add(membership)
    await session.flush()
    logger.info("Auto-enrolled player %d in category %d", player_id, category_id)
    return CategoryMembership(membership=membership, is_new=True)


async def require_membership(
    session: AsyncSession,
    player_id: int,
    category_id: int,
    admission_status: str,
) -> None:
    """
    A player may only sit on a tournament waitlist if they are already an
    ACTIVE member of the category. Not applicable to REGISTERED admissions.
    """
    if admission_status != RegistrationStatus.WAITLISTED:
        return

    membership = await get_membership(session, player_id, category_id)
    if membership is None or membership.status != CategoryRegistrationStatus.ACTIVE:
        raise InvalidState(
            ErrorCode.CATEGORY_REGISTRATION_REQUIRED,
            "Must be registered in category before joining waitlist",
            {
                "category_id": category_id,
                "player_id": player_id,
                "membership_status": membership.status if membership else None,
            },
        )


# ── Withdrawal-side cleanup ───────────────────────────────────────────────────

async def count_active_entries_in_category(
    session: AsyncSession,
    player_id: int,
    category_id: int,
) -> int:
    """REGISTERED / WAITLISTED entries of a player in the category's tournaments, singles and doubles."""
    singles = await session.execute(
        select(func.count())
        .select_from(TournamentRegistration)
        .join(Tournament, Tournament.id == TournamentRegistration.tournament_id)
        .where(
            TournamentRegistration.player_id == player_id,
            TournamentRegistration.status.in_(RegistrationStatus.ACTIVE),
            Tournament.category_id == category_id,
        )
    )
    doubles = await session.execute(
        select(func.count())
        .select_from(PairRegistration)
        .join(Tournament, Tournament.id == PairRegistration.tournament_id)
        .join(DoublesPair, DoublesPair.id == PairRegistration.pair_id)
        .where(
            or_(DoublesPair.player1_id == player_id, DoublesPair.player2_id == player_id),
            PairRegistration.status.in_(RegistrationStatus.ACTIVE),
            Tournament.category_id == category_id,
        )
    )
    return int(singles.scalar_one()) + int(doubles.scalar_one())


async def should_unregister_from_category(
    session: AsyncSession,
    player_id: int,
    category_id: int,
) -> CleanupDecision:
    """
    Decide whether a player's category enrollment is stale.

    Kept when the player has played in the category before, or still has an
    active tournament entry in it.
    """
    membership = await get_membership(session, player_id, category_id)
    if membership is None:
        return CleanupDecision(False, "No category registration found", 0)

    if membership.has_participated:
        return CleanupDecision(False, "Player has participated in tournaments in this category")

    active = await count_active_entries_in_category(session, player_id, category_id)
    if active == 0:
        return CleanupDecision(True, "No active tournaments and no participation history", 0)
    return CleanupDecision(
        False,
        f"Player has {active} active tournament(s) in this category",
        active,
    )


async def delete_membership(session: AsyncSession, player_id: int, category_id: int) -> bool:
    result = await session.execute(
        delete(CategoryRegistration).where(
            CategoryRegistration.player_id == player_id,
            CategoryRegistration.category_id == category_id,
        )
    )
    return result.rowcount > 0


# ── Category-side operations ──────────────────────────────────────────────────

async def register_for_category(
    session: AsyncSession,
    player_id: int,
    category_id: int,
    *,
    eligibility_gate: EligibilityGate = check_eligibility,
    now: Optional[datetime] = None,
) -> CategoryMembership:
    """
    Enroll a player in a category explicitly (e.g. before joining a full
    tournament's waitlist). A previously WITHDRAWN row is reused.
    """
    async with atomic(session):
        existing = await get_membership(session, player_id, category_id)
        if existing is not None and existing.status == CategoryRegistrationStatus.WITHDRAWN:
            await _reactivate(session, existing, eligibility_gate)
            return CategoryMembership(membership=existing, is_new=False)

        # ACTIVE / SUSPENDED rows are rejected by the gate's duplicate check
        await eligibility_gate(session, player_id, category_id)
        membership = CategoryRegistration(
            player_id=player_id,
            category_id=category_id,
            status=CategoryRegistrationStatus.ACTIVE,
            registered_at=now or datetime.utcnow(),
            has_participated=False,
        )
        session.add(membership)
        await session.flush()

    logger.info("Player %d registered in category %d", player_id, category_id)
    return CategoryMembership(membership=membership, is_new=True)


async def _get_category_registration(session: AsyncSession, registration_id: int) -> CategoryRegistration:
    membership = await session.get(CategoryRegistration, registration_id)
    if membership is None:
        raise NotFound(
            ErrorCode.REGISTRATION_NOT_FOUND,
            "Registration not found",
            {"registration_id": registration_id},
        )
    return membership


async def withdraw_category_registration(
    session: AsyncSession,
    registration_id: int,
    now: Optional[datetime] = None,
) -> CategoryRegistration:
    """Soft-withdraw a category enrollment (status WITHDRAWN, row kept)."""
    async with atomic(session):
        membership = await _get_category_registration(session, registration_id)
        if membership.status == CategoryRegistrationStatus.WITHDRAWN:
            raise AlreadyWithdrawn(
                ErrorCode.ALREADY_WITHDRAWN,
                "Registration is already withdrawn",
                {"registration_id": registration_id},
            )
        membership.status = CategoryRegistrationStatus.WITHDRAWN
        membership.withdrawn_at = now or datetime.utcnow()
    return membership


async def reactivate_category_registration(
    session: AsyncSession,
    registration_id: int,
    *,
    eligibility_gate: EligibilityGate = check_eligibility,
) -> CategoryRegistration:
    """Re-validate eligibility (the player may have aged or changed) and reactivate."""
    async with atomic(session):
        membership = await _get_category_registration(session, registration_id)
        if membership.status != CategoryRegistrationStatus.WITHDRAWN:
            raise InvalidState(
                ErrorCode.NOT_WITHDRAWN,
                "Only withdrawn registrations can be reactivated",
                {"current_status": membership.status},
            )
        await _reactivate(session, membership, eligibility_gate)
    return membership


async def get_category_registrations(
    session: AsyncSession,
    category_id: int,
    status: Optional[str] = None,
) -> List[CategoryRegistration]:
    q = (
        select(CategoryRegistration)
        .where(CategoryRegistration.category_id == category_id)
        .order_by(CategoryRegistration.registered_at.desc(), CategoryRegistration.id.desc())
    )
    if status:
        q = q.where(CategoryRegistration.status == status)
    result = await session.execute(q)
    return list(result.scalars().all())
