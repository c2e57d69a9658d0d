"""
Admission transaction engine.

Decides whether a new entrant (player or pair) is REGISTERED, WAITLISTED or
rejected, and writes the outcome in one transaction together with the
category-membership decision.

Algorithm
---------
1. Lock the tournament row (first statement of the transaction).
2. Preconditions, in order: tournament SCHEDULED → registration window →
   entrant exists (and, for pairs, fits the tournament) → no active
   registration for the entrant.
3. Recount REGISTERED rows under the lock:
     unlimited or count < capacity   → REGISTERED
     full, demote_registration_id    → swap: target → WAITLISTED, entrant → REGISTERED
                                       (promoted_by / promoted_at stay empty on both)
     full                            → WAITLISTED
4. Category coordination:
     REGISTERED → ensure an ACTIVE membership (eligibility gate on creation)
     WAITLISTED → require an existing ACTIVE membership, unless the entrant
                  is returning after a withdrawal
5. Commit. Any failure above rolls back every write, including the demotion
   and the removal of a previous WITHDRAWN row.

A WITHDRAWN registration of the same entrant is deleted and replaced by a
fresh row, so a returning entrant always queues behind everyone already
waiting.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.errors import Conflict, ErrorCode, InvalidState, NotFound
from enrollment.models.base import atomic
from enrollment.models.models import RegistrationStatus, Tournament, TournamentStatus
from enrollment.services.capacity_service import capacity_info_for, count_registered, lock_tournament
from enrollment.services.category_service import EligibilityGate, ensure_membership, require_membership
from enrollment.services.eligibility_service import check_eligibility
from enrollment.services.entities import DOUBLES, SINGLES, EntityKind
from enrollment.services.results import AdmissionResult
from enrollment.validators import AdmissionRequest

logger = logging.getLogger(__name__)

MSG_REGISTERED = "Successfully registered for tournament"
MSG_WAITLISTED = "Added to waitlist - tournament is at capacity"


# ── Preconditions ─────────────────────────────────────────────────────────────

def validate_tournament_status(tournament: Tournament) -> None:
    if tournament.status != TournamentStatus.SCHEDULED:
        raise InvalidState(
            ErrorCode.INVALID_TOURNAMENT_STATUS,
            "Can only register for scheduled tournaments",
            {
                "current_status": tournament.status,
                "allowed_status": TournamentStatus.SCHEDULED,
            },
        )


def validate_registration_window(tournament: Tournament, now: datetime) -> None:
    """Each bound is only checked when it is set."""
    opens_at = tournament.registration_open_date
    if opens_at is not None and now < opens_at:
        raise InvalidState(
            ErrorCode.REGISTRATION_NOT_OPEN,
            "Registration has not opened yet",
            {"opens_at": opens_at, "current_time": now},
        )

    closes_at = tournament.registration_close_date
    if closes_at is not None and now > closes_at:
        raise InvalidState(
            ErrorCode.REGISTRATION_CLOSED,
            "Registration has closed",
            {"closed_at": closes_at, "current_time": now},
        )


async def find_registration(
    session: AsyncSession,
    kind: EntityKind,
    entity_id: int,
    tournament_id: int,
):
    result = await session.execute(
        select(kind.model)
        .where(
            kind.owner_column == entity_id,
            kind.model.tournament_id == tournament_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def check_duplicate_registration(
    session: AsyncSession,
    kind: EntityKind,
    entity_id: int,
    tournament_id: int,
):
    """
    Return a previous WITHDRAWN registration (to be replaced) or None.
    Any other existing row is a conflict.
    """
    existing = await find_registration(session, kind, entity_id, tournament_id)
    if existing is None:
        return None
    if existing.status == RegistrationStatus.WITHDRAWN:
        return existing
    raise Conflict(
        ErrorCode.ALREADY_REGISTERED,
        "Already registered for this tournament",
        {
            "existing_registration_id": existing.id,
            "status": existing.status,
            "registered_at": existing.registration_timestamp,
        },
    )


async def load_demotion_target(
    session: AsyncSession,
    kind: EntityKind,
    registration_id: int,
    tournament_id: int,
):
    result = await session.execute(
        select(kind.model)
        .where(kind.model.id == registration_id)
        .execution_options(populate_existing=True)
    )
    target = result.scalar_one_or_none()
    if target is None or target.tournament_id != tournament_id:
        raise NotFound(
            ErrorCode.REGISTRATION_NOT_FOUND,
            "Registration to demote not found",
            {"registration_id": registration_id, "tournament_id": tournament_id},
        )
    if target.status != RegistrationStatus.REGISTERED:
        raise InvalidState(
            ErrorCode.INVALID_STATUS,
            f"Cannot demote registration with status {target.status}",
            {"registration_id": registration_id, "current_status": target.status},
        )
    return target


# ── Engine ────────────────────────────────────────────────────────────────────

async def admit(
    session: AsyncSession,
    kind: EntityKind,
    entity_id: int,
    tournament_id: int,
    demote_registration_id: Optional[int] = None,
    *,
    eligibility_gate: EligibilityGate = check_eligibility,
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> AdmissionResult:
    """
    Admit a player or pair into a tournament.

    ``demote_registration_id`` is the organizer-only swap: when the
    tournament is full, that REGISTERED entry moves to the waitlist and the
    new entrant takes its slot in the same transaction. It is ignored when a
    slot is free.

    Raises NotFound, InvalidState, Conflict or EligibilityFailure; nothing is
    written when it does.
    """
    request = AdmissionRequest(
        entity_id=entity_id,
        tournament_id=tournament_id,
        demote_registration_id=demote_registration_id,
    )
    log = log or logger
    now = now or datetime.utcnow()

    log.debug(
        "Admission requested: %s=%d tournament=%d demote=%s",
        kind.name, request.entity_id, request.tournament_id, request.demote_registration_id,
    )

    async with atomic(session):
        tournament = await lock_tournament(session, request.tournament_id)
        validate_tournament_status(tournament)
        validate_registration_window(tournament, now)

        entrant = await kind.load_entrant(session, request.entity_id)
        await kind.validate_for_tournament(session, entrant, tournament)
        previous = await check_duplicate_registration(
            session, kind, request.entity_id, tournament.id
        )

        current_count = 0
        if tournament.capacity is not None:
            current_count = await count_registered(session, tournament.id, kind)
        capacity_info = capacity_info_for(tournament, current_count)
        status = capacity_info.status

        demoted = None
        if capacity_info.is_full and request.demote_registration_id is not None:
            demoted = await load_demotion_target(
                session, kind, request.demote_registration_id, tournament.id
            )
            status = RegistrationStatus.REGISTERED
        elif request.demote_registration_id is not None:
            log.debug(
                "Demotion of registration %d ignored: tournament %d has free slots (%d/%s)",
                request.demote_registration_id, tournament.id, current_count, tournament.capacity,
            )

        # Anti-spam: the waitlist is only open to existing category members.
        # A returning entrant already passed it, and withdrawal cleanup may
        # have removed the membership since.
        if previous is None:
            for player_id in entrant.player_ids:
                await require_membership(session, player_id, tournament.category_id, status)

        if previous is not None:
            log.info(
                "Replacing withdrawn registration %d of %s %d in tournament %d",
                previous.id, kind.name, request.entity_id, tournament.id,
            )
            await session.delete(previous)
            await session.flush()

        if demoted is not None:
            demoted.status = RegistrationStatus.WAITLISTED

        registration = kind.new_registration(
            request.entity_id,
            tournament.id,
            status=status,
            registration_timestamp=now,
        )
        session.add(registration)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise Conflict(
                ErrorCode.ALREADY_REGISTERED,
                "Already registered for this tournament",
                {"tournament_id": tournament.id, kind.owner_attr: request.entity_id},
            ) from exc

        memberships = []
        for player_id in entrant.player_ids:
            membership = await ensure_membership(
                session,
                player_id,
                tournament.category_id,
                status,
                eligibility_gate=eligibility_gate,
                now=now,
            )
            if membership.membership is not None:
                memberships.append(membership)

    if demoted is not None:
        log.info(
            "Tournament %d full (%d/%d): registration %d demoted to waitlist for %s %d",
            tournament.id, current_count, tournament.capacity, demoted.id, kind.name, request.entity_id,
        )
    log.info(
        "%s %d %s in tournament %d (registration %d, %d/%s)",
        kind.name.capitalize(), request.entity_id, status.lower(), tournament.id,
        registration.id, current_count, tournament.capacity if tournament.capacity is not None else "∞",
    )

    return AdmissionResult(
        registration=registration,
        capacity_info=dataclasses.replace(capacity_info, status=status),
        message=MSG_WAITLISTED if status == RegistrationStatus.WAITLISTED else MSG_REGISTERED,
        category_registrations=memberships,
        demoted_registration=demoted,
    )


async def register_player(
    session: AsyncSession,
    player_id: int,
    tournament_id: int,
    demote_registration_id: Optional[int] = None,
    **kwargs,
) -> AdmissionResult:
    return await admit(session, SINGLES, player_id, tournament_id, demote_registration_id, **kwargs)


async def register_pair(
    session: AsyncSession,
    pair_id: int,
    tournament_id: int,
    demote_registration_id: Optional[int] = None,
    **kwargs,
) -> AdmissionResult:
    return await admit(session, DOUBLES, pair_id, tournament_id, demote_registration_id, **kwargs)
