"""
Integration tests — category membership coordinator (enrollment/services/category_service.py).

Coverage:
  - ensure_membership / require_membership hooks
  - should_unregister_from_category decisions (singles and doubles entries)
  - register / withdraw / reactivate category enrollments
  - listing enrollments by category and status
"""
from __future__ import annotations

from datetime import date, datetime

import pytest

from enrollment.errors import AlreadyWithdrawn, Conflict, EligibilityFailure, ErrorCode, InvalidState, NotFound
from enrollment.models.models import (
    AgeGroup,
    CategoryRegistrationStatus,
    CategoryType,
    Gender,
    RegistrationStatus,
)
from enrollment.services.admission_service import register_pair, register_player
from enrollment.services.category_service import (
    count_active_entries_in_category,
    ensure_membership,
    get_category_registrations,
    get_membership,
    reactivate_category_registration,
    register_for_category,
    require_membership,
    should_unregister_from_category,
    withdraw_category_registration,
)

T0 = datetime(2026, 3, 1, 9, 0, 0)


# ─────────────────────────── Admission hooks ──────────────────────────────────

class TestEnsureMembership:
    async def test_waitlisted_status_is_noop(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()

        result = await ensure_membership(async_session, p.id, category.id, RegistrationStatus.WAITLISTED)

        assert result.membership is None
        assert await get_membership(async_session, p.id, category.id) is None

    async def test_creates_active_membership(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()

        result = await ensure_membership(async_session, p.id, category.id, RegistrationStatus.REGISTERED, now=T0)

        assert result.is_new is True
        assert result.membership.status == CategoryRegistrationStatus.ACTIVE
        assert result.membership.registered_at == T0

    async def test_ineligible_player_not_created(self, async_session, seed) -> None:
        category = await seed.category(name="Women Open", gender=Gender.WOMEN)
        p = await seed.player(gender=Gender.MEN)

        with pytest.raises(EligibilityFailure):
            await ensure_membership(async_session, p.id, category.id, RegistrationStatus.REGISTERED)


class TestRequireMembership:
    async def test_registered_status_skips_check(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        await require_membership(async_session, p.id, category.id, RegistrationStatus.REGISTERED)

    async def test_active_membership_passes(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        await register_for_category(async_session, p.id, category.id)
        await require_membership(async_session, p.id, category.id, RegistrationStatus.WAITLISTED)

    async def test_missing_membership_fails(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        with pytest.raises(InvalidState) as exc:
            await require_membership(async_session, p.id, category.id, RegistrationStatus.WAITLISTED)
        assert exc.value.code == ErrorCode.CATEGORY_REGISTRATION_REQUIRED
        assert exc.value.details["membership_status"] is None

    async def test_suspended_membership_fails(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)
        joined.membership.status = CategoryRegistrationStatus.SUSPENDED
        await async_session.commit()

        with pytest.raises(InvalidState):
            await require_membership(async_session, p.id, category.id, RegistrationStatus.WAITLISTED)


# ─────────────────────────── Cleanup decision ─────────────────────────────────

class TestShouldUnregister:
    async def test_no_membership(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        decision = await should_unregister_from_category(async_session, p.id, category.id)
        assert decision.should_unregister is False
        assert decision.reason == "No category registration found"

    async def test_unused_membership(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        await register_for_category(async_session, p.id, category.id)

        decision = await should_unregister_from_category(async_session, p.id, category.id)
        assert decision.should_unregister is True
        assert decision.active_tournaments == 0

    async def test_participation_keeps_membership(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)
        joined.membership.has_participated = True
        await async_session.commit()

        decision = await should_unregister_from_category(async_session, p.id, category.id)
        assert decision.should_unregister is False
        assert decision.reason == "Player has participated in tournaments in this category"

    async def test_active_singles_entry_keeps_membership(self, async_session, seed) -> None:
        category = await seed.category()
        t = await seed.tournament(category, capacity=4)
        p = await seed.player()
        await register_player(async_session, p.id, t.id)

        decision = await should_unregister_from_category(async_session, p.id, category.id)
        assert decision.should_unregister is False
        assert decision.active_tournaments == 1

    async def test_doubles_entries_counted_for_both_players(self, async_session, seed) -> None:
        category = await seed.category(name="Open Doubles", type=CategoryType.DOUBLES)
        t = await seed.tournament(category, capacity=4, name="Doubles Cup")
        a, b = await seed.players(2)
        pair = await seed.pair(category, a, b)
        await register_pair(async_session, pair.id, t.id)

        assert await count_active_entries_in_category(async_session, a.id, category.id) == 1
        assert await count_active_entries_in_category(async_session, b.id, category.id) == 1

    async def test_other_category_entries_ignored(self, async_session, seed) -> None:
        category = await seed.category(name="Open Singles")
        other = await seed.category(name="Men 35+", age_group=AgeGroup.AGE_35, gender=Gender.MEN)
        t = await seed.tournament(other, capacity=4)
        p = await seed.player(birth_date=date(1980, 1, 1))
        await register_for_category(async_session, p.id, category.id)
        await register_player(async_session, p.id, t.id)

        decision = await should_unregister_from_category(async_session, p.id, category.id)
        assert decision.should_unregister is True


# ─────────────────────────── Category-side operations ─────────────────────────

class TestCategoryEnrollment:
    async def test_register(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()

        result = await register_for_category(async_session, p.id, category.id, now=T0)

        assert result.is_new is True
        assert result.membership.registered_at == T0
        assert result.membership.has_participated is False

    async def test_register_twice_conflicts(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        await register_for_category(async_session, p.id, category.id)
        pid, category_id = p.id, category.id

        with pytest.raises(Conflict):
            await register_for_category(async_session, pid, category_id)

    async def test_register_reuses_withdrawn_row(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)
        await withdraw_category_registration(async_session, joined.membership.id, now=T0)

        again = await register_for_category(async_session, p.id, category.id)

        assert again.is_new is False
        assert again.membership.id == joined.membership.id
        assert again.membership.status == CategoryRegistrationStatus.ACTIVE
        assert again.membership.withdrawn_at is None

    async def test_withdraw(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)

        withdrawn = await withdraw_category_registration(async_session, joined.membership.id, now=T0)

        assert withdrawn.status == CategoryRegistrationStatus.WITHDRAWN
        assert withdrawn.withdrawn_at == T0

    async def test_withdraw_twice(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)
        membership_id = joined.membership.id
        await withdraw_category_registration(async_session, membership_id)

        with pytest.raises(AlreadyWithdrawn):
            await withdraw_category_registration(async_session, membership_id)

    async def test_withdraw_unknown(self, async_session) -> None:
        with pytest.raises(NotFound):
            await withdraw_category_registration(async_session, 999)

    async def test_reactivate(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)
        await withdraw_category_registration(async_session, joined.membership.id)

        membership = await reactivate_category_registration(async_session, joined.membership.id)

        assert membership.status == CategoryRegistrationStatus.ACTIVE
        assert membership.withdrawn_at is None

    async def test_reactivate_active_rejected(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)
        membership_id = joined.membership.id

        with pytest.raises(InvalidState) as exc:
            await reactivate_category_registration(async_session, membership_id)
        assert exc.value.code == ErrorCode.NOT_WITHDRAWN

    async def test_reactivate_revalidates(self, async_session, seed) -> None:
        category = await seed.category()
        p = await seed.player()
        joined = await register_for_category(async_session, p.id, category.id)
        membership_id, category_id = joined.membership.id, category.id
        await withdraw_category_registration(async_session, membership_id)

        async def refuse(session, player_id, category_id, **kwargs):
            raise EligibilityFailure(ErrorCode.INELIGIBLE_GENDER, "Player gender does not match category requirements")

        with pytest.raises(EligibilityFailure):
            await reactivate_category_registration(async_session, membership_id, eligibility_gate=refuse)

        memberships = await get_category_registrations(async_session, category_id)
        assert memberships[0].status == CategoryRegistrationStatus.WITHDRAWN

    async def test_list_by_status(self, async_session, seed) -> None:
        category = await seed.category()
        p1, p2 = await seed.players(2)
        first = await register_for_category(async_session, p1.id, category.id)
        await register_for_category(async_session, p2.id, category.id)
        await withdraw_category_registration(async_session, first.membership.id)

        active = await get_category_registrations(async_session, category.id, CategoryRegistrationStatus.ACTIVE)
        everyone = await get_category_registrations(async_session, category.id)

        assert [m.player_id for m in active] == [p2.id]
        assert len(everyone) == 2
