"""Answer to one question for one reservation. Written once at claim time, never updated."""
from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint

from infrabook.db.base import Base


class Answer(Base):
    __tablename__ = "booking_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(Integer, ForeignKey("slots.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("infrastructure_questions.id"), nullable=False)
    answer_text = Column(Text, nullable=True)  # inline value, or original filename for documents
    document_handle = Column(String(512), nullable=True)

    __table_args__ = (UniqueConstraint("reservation_id", "question_id", name="uq_booking_answers_reservation_question"),)
