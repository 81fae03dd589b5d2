"""Request bodies shared by the booking routers."""
from datetime import date, time
from typing import Any

from pydantic import BaseModel, Field


class AnswerBody(BaseModel):
    value: Any = None
    document_handle: str | None = None
    filename: str | None = None


class ClaimBody(BaseModel):
    slot_id: int
    purpose: str = ""
    answers: dict[int, AnswerBody] = Field(default_factory=dict)


class GuestRequestBody(ClaimBody):
    infrastructure_id: int
    email: str
    name: str | None = None


class GenerateBody(BaseModel):
    start_date: date
    end_date: date
    daily_start_time: time
    slot_duration: int = Field(..., description="Minutes per slot")
    slots_per_day: int


class SingleSlotBody(BaseModel):
    slot_date: date
    start_time: time
    end_time: time


class CancelTimeslotsBody(BaseModel):
    ids: list[int] = Field(..., min_length=1)


class DecisionBody(BaseModel):
    action: str = Field(..., description="approve | reject | cancel")


def answers_to_dict(answers: dict[int, AnswerBody]) -> dict[int, dict[str, Any]]:
    return {qid: a.model_dump() for qid, a in answers.items()}
