"""
Single source of truth for database tables created by the migrations (001).

alembic/env.py asserts the registered models match this list.
"""
ALL_TABLE_NAMES = (
    "infrastructures",
    "infrastructure_managers",
    "infrastructure_questions",
    "slots",
    "booking_answers",
    "capability_tokens",
    "guest_intents",
)
