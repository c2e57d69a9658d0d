"""Registration core — categories, players, pairs, tournaments and registrations

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Changes:
  - Create categories, player_profiles, doubles_pairs, tournaments
  - Create tournament_registrations / pair_registrations with one row per
    entrant and tournament, plus a queue index (tournament, status, timestamp)
  - Create category_registrations with one row per player and category
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _registration_columns(owner: str, owner_table: str) -> list:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(owner, sa.Integer(), sa.ForeignKey(f"{owner_table}.id"), nullable=False),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="REGISTERED"),
        sa.Column("registration_timestamp", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("withdrawn_at", sa.DateTime(), nullable=True),
        sa.Column("promoted_by", sa.String(20), nullable=True),
        sa.Column("promoted_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    # ── Directory ─────────────────────────────────────────────────────────────
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="SINGLES"),
        sa.Column("age_group", sa.String(20), nullable=False, server_default="ALL_AGES"),
        sa.Column("gender", sa.String(10), nullable=False, server_default="MIXED"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "player_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "doubles_pairs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("player1_id", sa.Integer(), sa.ForeignKey("player_profiles.id"), nullable=False),
        sa.Column("player2_id", sa.Integer(), sa.ForeignKey("player_profiles.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("player1_id", "player2_id", "category_id", name="uq_pair_players_category"),
    )
    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="SCHEDULED"),
        sa.Column("registration_open_date", sa.DateTime(), nullable=True),
        sa.Column("registration_close_date", sa.DateTime(), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # ── Tournament entries ────────────────────────────────────────────────────
    op.create_table(
        "tournament_registrations",
        *_registration_columns("player_id", "player_profiles"),
        sa.UniqueConstraint("player_id", "tournament_id", name="uq_registration_player_tournament"),
    )
    op.create_index(
        "ix_registration_queue",
        "tournament_registrations",
        ["tournament_id", "status", "registration_timestamp"],
    )
    op.create_table(
        "pair_registrations",
        *_registration_columns("pair_id", "doubles_pairs"),
        sa.UniqueConstraint("pair_id", "tournament_id", name="uq_registration_pair_tournament"),
    )
    op.create_index(
        "ix_pair_registration_queue",
        "pair_registrations",
        ["tournament_id", "status", "registration_timestamp"],
    )

    # ── Category enrollments ──────────────────────────────────────────────────
    op.create_table(
        "category_registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("player_profiles.id"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("registered_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("withdrawn_at", sa.DateTime(), nullable=True),
        sa.Column("has_participated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("player_id", "category_id", name="uq_category_registration_player"),
    )


def downgrade() -> None:
    op.drop_table("category_registrations")
    op.drop_index("ix_pair_registration_queue", table_name="pair_registrations")
    op.drop_table("pair_registrations")
    op.drop_index("ix_registration_queue", table_name="tournament_registrations")
    op.drop_table("tournament_registrations")
    op.drop_table("tournaments")
    op.drop_table("doubles_pairs")
    op.drop_table("player_profiles")
    op.drop_table("categories")
