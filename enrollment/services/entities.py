"""
Entity kinds — what a registration row is keyed on.

The admission and withdrawal engines are written once and parameterized by an
EntityKind: SINGLES registers players through ``tournament_registrations``,
DOUBLES registers pairs through ``pair_registrations``. A kind knows its
table, its owner column, how to load and describe an entrant, and which
players stand behind it (for category membership).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.errors import EligibilityFailure, ErrorCode, InvalidState, NotFound
from enrollment.models.models import (
    Category,
    CategoryType,
    DoublesPair,
    PairRegistration,
    PlayerProfile,
    RegistrationStatus,
    Tournament,
    TournamentRegistration,
)


@dataclass
class Entrant:
    """A loaded player or pair, reduced to what the engines need."""
    entity_id:    int
    player_ids:   List[int]
    display_name: str


class EntityKind:
    name: str = ""
    model: Any = None
    owner_attr: str = ""

    @property
    def owner_column(self):
        return getattr(self.model, self.owner_attr)

    def owner_of(self, registration) -> int:
        return getattr(registration, self.owner_attr)

    def new_registration(self, entity_id: int, tournament_id: int, **values):
        return self.model(**{self.owner_attr: entity_id}, tournament_id=tournament_id, **values)

    async def load_entrant(self, session: AsyncSession, entity_id: int) -> Entrant:
        raise NotImplementedError

    async def validate_for_tournament(
        self,
        session: AsyncSession,
        entrant: Entrant,
        tournament: Tournament,
    ) -> None:
        """Kind-specific admission checks. Nothing to check by default."""

    def __repr__(self) -> str:
        return f"<EntityKind {self.name}>"


class PlayerKind(EntityKind):
    name = "player"
    model = TournamentRegistration
    owner_attr = "player_id"

    async def load_entrant(self, session: AsyncSession, entity_id: int) -> Entrant:
        player = await session.get(PlayerProfile, entity_id)
        if player is None:
            raise NotFound(
                ErrorCode.PLAYER_NOT_FOUND,
                "Player profile not found",
                {"player_id": entity_id},
            )
        return Entrant(entity_id=player.id, player_ids=[player.id], display_name=player.name)


class PairKind(EntityKind):
    name = "pair"
    model = PairRegistration
    owner_attr = "pair_id"

    async def _get_pair(self, session: AsyncSession, pair_id: int) -> Optional[DoublesPair]:
        result = await session.execute(select(DoublesPair).where(DoublesPair.id == pair_id))
        return result.scalar_one_or_none()

    async def load_entrant(self, session: AsyncSession, entity_id: int) -> Entrant:
        pair = await self._get_pair(session, entity_id)
        if pair is None:
            raise NotFound(
                ErrorCode.PAIR_NOT_FOUND,
                "Pair not found",
                {"pair_id": entity_id},
            )
        return Entrant(entity_id=pair.id, player_ids=pair.player_ids, display_name=pair.display_name)

    async def validate_for_tournament(
        self,
        session: AsyncSession,
        entrant: Entrant,
        tournament: Tournament,
    ) -> None:
        """
        The tournament must be a doubles event, the pair must belong to its
        category, and neither player may already hold an active entry in the
        tournament with another partner.
        """
        category = await session.get(Category, tournament.category_id)
        if category.type != CategoryType.DOUBLES:
            raise InvalidState(
                ErrorCode.WRONG_CATEGORY_TYPE,
                "Pairs can only register for doubles tournaments",
                {"category_id": category.id, "category_type": category.type},
            )

        pair = await self._get_pair(session, entrant.entity_id)
        if pair.category_id != tournament.category_id:
            raise InvalidState(
                ErrorCode.INVALID_CATEGORY,
                "Pair category does not match tournament category",
                {"pair_category_id": pair.category_id, "tournament_category_id": tournament.category_id},
            )

        result = await session.execute(
            select(PairRegistration)
            .join(DoublesPair, DoublesPair.id == PairRegistration.pair_id)
            .where(
                PairRegistration.tournament_id == tournament.id,
                PairRegistration.status.in_(RegistrationStatus.ACTIVE),
                PairRegistration.pair_id != pair.id,
                or_(
                    DoublesPair.player1_id.in_(pair.player_ids),
                    DoublesPair.player2_id.in_(pair.player_ids),
                ),
            )
        )
        others = list(result.scalars().all())
        if not others:
            return

        taken: set[int] = set()
        for reg in others:
            other_pair = await self._get_pair(session, reg.pair_id)
            taken.update(other_pair.player_ids)
        violations = [
            f"{player.name} is already registered with a different partner"
            for player in (pair.player1, pair.player2)
            if player.id in taken
        ]
        raise EligibilityFailure(
            ErrorCode.PARTNER_CONFLICT,
            "A player of this pair is already registered with a different partner",
            {"violations": violations},
        )


SINGLES = PlayerKind()
DOUBLES = PairKind()
