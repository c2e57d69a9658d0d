"""
Unit tests — capacity oracle and waitlist selector (enrollment/services/capacity_service.py).

Coverage:
  - capacity_info_for: unlimited, below capacity, exactly full
  - check_capacity: counts only REGISTERED rows, unknown tournament
  - get_next_waitlist_candidate: FIFO by registration time, id tie-break, empty queue
  - waitlist_position
"""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from enrollment.errors import ErrorCode, NotFound
from enrollment.models.models import RegistrationStatus, Tournament, TournamentRegistration
from enrollment.services.capacity_service import (
    capacity_info_for,
    check_capacity,
    get_next_waitlist_candidate,
    waitlist_position,
)

T0 = datetime(2026, 3, 1, 9, 0, 0)


async def _add_registration(session, player, tournament, status, ts) -> TournamentRegistration:
    reg = TournamentRegistration(
        player_id=player.id,
        tournament_id=tournament.id,
        status=status,
        registration_timestamp=ts,
    )
    session.add(reg)
    await session.commit()
    return reg


# ─────────────────────────── capacity_info_for ────────────────────────────────

class TestCapacityInfo:
    def test_unlimited_never_full(self) -> None:
        info = capacity_info_for(Tournament(name="Open", capacity=None), 500)
        assert info.status == RegistrationStatus.REGISTERED
        assert info.capacity is None
        assert info.is_full is False

    def test_below_capacity_registers(self) -> None:
        info = capacity_info_for(Tournament(name="Cup", capacity=8), 7)
        assert info.status == RegistrationStatus.REGISTERED
        assert info.current_count == 7
        assert info.is_full is False

    def test_at_capacity_waitlists(self) -> None:
        info = capacity_info_for(Tournament(name="Cup", capacity=8), 8)
        assert info.status == RegistrationStatus.WAITLISTED
        assert info.is_full is True

    def test_as_dict(self) -> None:
        info = capacity_info_for(Tournament(name="Cup", capacity=2), 1)
        assert info.as_dict() == {
            "status": RegistrationStatus.REGISTERED,
            "capacity": 2,
            "current_count": 1,
            "is_full": False,
        }


# ─────────────────────────── check_capacity ───────────────────────────────────

class TestCheckCapacity:
    async def test_counts_only_registered(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=2)
        p1, p2, p3 = await seed.players(3)
        await _add_registration(async_session, p1, t, RegistrationStatus.REGISTERED, T0)
        await _add_registration(async_session, p2, t, RegistrationStatus.WAITLISTED, T0)
        await _add_registration(async_session, p3, t, RegistrationStatus.WITHDRAWN, T0)

        info = await check_capacity(async_session, t.id)
        assert info.current_count == 1
        assert info.is_full is False
        assert info.status == RegistrationStatus.REGISTERED

    async def test_full_tournament(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=1)
        p1 = await seed.player()
        await _add_registration(async_session, p1, t, RegistrationStatus.REGISTERED, T0)

        info = await check_capacity(async_session, t.id)
        assert info.is_full is True
        assert info.status == RegistrationStatus.WAITLISTED

    async def test_unlimited_tournament(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=None)
        info = await check_capacity(async_session, t.id)
        assert info.capacity is None
        assert info.is_full is False

    async def test_unknown_tournament(self, async_session) -> None:
        with pytest.raises(NotFound) as exc:
            await check_capacity(async_session, 999)
        assert exc.value.code == ErrorCode.TOURNAMENT_NOT_FOUND


# ─────────────────────────── Waitlist selector ────────────────────────────────

class TestWaitlistCandidate:
    async def test_empty_queue(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=1)
        assert await get_next_waitlist_candidate(async_session, t.id) is None

    async def test_oldest_waitlisted_first(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=1)
        p1, p2, p3 = await seed.players(3)
        await _add_registration(async_session, p1, t, RegistrationStatus.WAITLISTED, T0 + timedelta(minutes=5))
        oldest = await _add_registration(async_session, p2, t, RegistrationStatus.WAITLISTED, T0)
        await _add_registration(async_session, p3, t, RegistrationStatus.REGISTERED, T0 - timedelta(days=1))

        candidate = await get_next_waitlist_candidate(async_session, t.id)
        assert candidate.id == oldest.id

    async def test_equal_timestamps_break_on_id(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=1)
        p1, p2 = await seed.players(2)
        first = await _add_registration(async_session, p1, t, RegistrationStatus.WAITLISTED, T0)
        await _add_registration(async_session, p2, t, RegistrationStatus.WAITLISTED, T0)

        candidate = await get_next_waitlist_candidate(async_session, t.id)
        assert candidate.id == first.id

    async def test_other_tournaments_ignored(self, async_session, seed) -> None:
        category = await seed.category()
        t1 = await seed.tournament(category, capacity=1, name="Spring Cup")
        t2 = await seed.tournament(category, capacity=1, name="Autumn Cup")
        p1 = await seed.player()
        await _add_registration(async_session, p1, t2, RegistrationStatus.WAITLISTED, T0)
        assert await get_next_waitlist_candidate(async_session, t1.id) is None

    async def test_waitlist_position(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=1)
        p1, p2, p3 = await seed.players(3)
        reg = await _add_registration(async_session, p1, t, RegistrationStatus.REGISTERED, T0)
        w1 = await _add_registration(async_session, p2, t, RegistrationStatus.WAITLISTED, T0 + timedelta(seconds=1))
        w2 = await _add_registration(async_session, p3, t, RegistrationStatus.WAITLISTED, T0 + timedelta(seconds=2))

        assert await waitlist_position(async_session, reg) is None
        assert await waitlist_position(async_session, w1) == 1
        assert await waitlist_position(async_session, w2) == 2
