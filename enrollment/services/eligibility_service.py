"""
Eligibility gate — validates a player against a category's rules.

Checks run in a fixed order and the first failure wins:
  1. player and category exist
  2. profile completeness (birth date and gender are set)
  3. no blocking (ACTIVE / SUSPENDED) enrollment in the category already
  4. age: calendar-year age ≥ the category minimum (ALL_AGES bypasses)
  5. gender: must match the category (MIXED bypasses)

Age is counted by calendar year only: a player born on 31 December 1988 is
37 for the whole of 2025.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.errors import Conflict, EligibilityFailure, ErrorCode, NotFound
from enrollment.models.models import (
    AgeGroup,
    Category,
    CategoryRegistration,
    CategoryRegistrationStatus,
    Gender,
    PlayerProfile,
)
from enrollment.services.results import EligibilityReport


def calculate_age(birth_date: Optional[date], today: Optional[date] = None) -> Optional[int]:
    if birth_date is None:
        return None
    today = today or date.today()
    return today.year - birth_date.year


def check_profile_completeness(player: PlayerProfile) -> None:
    missing = player.missing_profile_fields
    if missing:
        raise EligibilityFailure(
            ErrorCode.INCOMPLETE_PROFILE,
            "Player profile is missing required information",
            {"missing_fields": missing, "player_id": player.id},
        )


def validate_age(player: PlayerProfile, category: Category, today: Optional[date] = None) -> dict:
    if category.age_group == AgeGroup.ALL_AGES:
        return {"valid": True}

    player_age = calculate_age(player.birth_date, today)
    min_age = AgeGroup.minimum_age(category.age_group)
    if min_age is None or player_age < min_age:
        raise EligibilityFailure(
            ErrorCode.INELIGIBLE_AGE,
            "Player does not meet age requirements",
            {
                "player_age": player_age,
                "required_minimum_age": min_age,
                "category_name": category.name,
                "category_age_group": category.age_group,
            },
        )
    return {"valid": True, "player_age": player_age, "min_age": min_age}


def validate_gender(player: PlayerProfile, category: Category) -> dict:
    if category.gender == Gender.MIXED:
        return {"valid": True}
    if player.gender != category.gender:
        raise EligibilityFailure(
            ErrorCode.INELIGIBLE_GENDER,
            "Player gender does not match category requirements",
            {
                "player_gender": player.gender,
                "required_gender": category.gender,
                "category_name": category.name,
            },
        )
    return {"valid": True}


async def _check_duplicate_enrollment(
    session: AsyncSession,
    player_id: int,
    category_id: int,
    ignore_registration_id: Optional[int],
) -> None:
    q = select(CategoryRegistration).where(
        CategoryRegistration.player_id == player_id,
        CategoryRegistration.category_id == category_id,
        CategoryRegistration.status.in_(CategoryRegistrationStatus.BLOCKING),
    )
    if ignore_registration_id is not None:
        q = q.where(CategoryRegistration.id != ignore_registration_id)
    existing = (await session.execute(q)).scalar_one_or_none()
    if existing is not None:
        raise Conflict(
            ErrorCode.ALREADY_REGISTERED,
            "Player is already registered for this category",
            {
                "existing_registration_id": existing.id,
                "registered_at": existing.registered_at,
                "status": existing.status,
            },
        )


async def check_eligibility(
    session: AsyncSession,
    player_id: int,
    category_id: int,
    *,
    ignore_registration_id: Optional[int] = None,
    today: Optional[date] = None,
) -> EligibilityReport:
    """
    Validate a player against a category without writing anything.

    ``ignore_registration_id`` excludes one category row from the duplicate
    check, so a WITHDRAWN row can be re-validated before it is reactivated.
    Raises NotFound, Conflict or EligibilityFailure.
    """
    player = await session.get(PlayerProfile, player_id)
    if player is None:
        raise NotFound(ErrorCode.PLAYER_NOT_FOUND, "Player profile not found", {"player_id": player_id})

    category = await session.get(Category, category_id)
    if category is None:
        raise NotFound(ErrorCode.CATEGORY_NOT_FOUND, "Category not found", {"category_id": category_id})

    check_profile_completeness(player)
    await _check_duplicate_enrollment(session, player_id, category_id, ignore_registration_id)
    age = validate_age(player, category, today)
    gender = validate_gender(player, category)

    return EligibilityReport(
        eligible=True,
        player_age=calculate_age(player.birth_date, today),
        validations={"age": age, "gender": gender},
    )
