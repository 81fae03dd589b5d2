"""Initial booking schema: infrastructures, managers, questions, slots, answers, tokens, guest intents

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Capacity-holding statuses; at most one such row per physical interval
_HOLDING = "status IN ('available', 'pending', 'approved')"


def upgrade() -> None:
    op.create_table(
        "infrastructures",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("max_booking_minutes", sa.Integer(), nullable=True),
    )

    op.create_table(
        "infrastructure_managers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("infrastructure_id", sa.Integer(), sa.ForeignKey("infrastructures.id"), nullable=False),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("infrastructure_id", "user_email", name="uq_infrastructure_managers_infra_email"),
    )
    op.create_index("ix_infrastructure_managers_infrastructure_id", "infrastructure_managers", ["infrastructure_id"])
    op.create_index("ix_infrastructure_managers_user_email", "infrastructure_managers", ["user_email"])

    op.create_table(
        "infrastructure_questions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("infrastructure_id", sa.Integer(), sa.ForeignKey("infrastructures.id"), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("question_type", sa.String(16), nullable=False, server_default="text"),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_infrastructure_questions_infrastructure_id", "infrastructure_questions", ["infrastructure_id"])

    op.create_table(
        "slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("infrastructure_id", sa.Integer(), sa.ForeignKey("infrastructures.id"), nullable=False),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False, server_default="availability"),
        sa.Column("status", sa.String(16), nullable=False, server_default="available"),
        sa.Column("claimant", sa.String(255), nullable=True),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "(kind = 'availability' AND claimant IS NULL) OR (kind = 'reservation' AND claimant IS NOT NULL)",
            name="ck_slots_kind_claimant",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_slots_interval"),
    )
    op.create_index("ix_slots_infrastructure_id", "slots", ["infrastructure_id"])
    op.create_index("ix_slots_claimant", "slots", ["claimant"])
    op.create_index("ix_slots_infra_date_status", "slots", ["infrastructure_id", "slot_date", "status"])
    op.create_index("ix_slots_status_date", "slots", ["status", "slot_date"])
    op.create_index(
        "uq_slots_holding_interval",
        "slots",
        ["infrastructure_id", "slot_date", "start_time", "end_time"],
        unique=True,
        postgresql_where=sa.text(_HOLDING),
        sqlite_where=sa.text(_HOLDING),
    )

    op.create_table(
        "booking_answers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reservation_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("question_id", sa.Integer(), sa.ForeignKey("infrastructure_questions.id"), nullable=False),
        sa.Column("answer_text", sa.Text(), nullable=True),
        sa.Column("document_handle", sa.String(512), nullable=True),
        sa.UniqueConstraint("reservation_id", "question_id", name="uq_booking_answers_reservation_question"),
    )
    op.create_index("ix_booking_answers_reservation_id", "booking_answers", ["reservation_id"])

    op.create_table(
        "guest_intents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slot_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("infrastructure_id", sa.Integer(), sa.ForeignKey("infrastructures.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_guest_intents_slot_id", "guest_intents", ["slot_id"])
    op.create_index("ix_guest_intents_email", "guest_intents", ["email"])

    op.create_table(
        "capability_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(128), nullable=False),
        sa.Column("reservation_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("guest_intent_id", sa.Integer(), sa.ForeignKey("guest_intents.id"), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_capability_tokens_token", "capability_tokens", ["token"], unique=True)
    op.create_index("ix_capability_tokens_reservation_id", "capability_tokens", ["reservation_id"])


def downgrade() -> None:
    op.drop_table("capability_tokens")
    op.drop_table("guest_intents")
    op.drop_table("booking_answers")
    op.drop_index("uq_slots_holding_interval", table_name="slots")
    op.drop_table("slots")
    op.drop_table("infrastructure_questions")
    op.drop_table("infrastructure_managers")
    op.drop_table("infrastructures")
