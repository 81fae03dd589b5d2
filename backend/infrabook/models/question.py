"""Per-infrastructure dynamic question asked at claim time. Ordered by display_order."""
from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text

from infrabook.db.base import Base


class QuestionDefinition(Base):
    __tablename__ = "infrastructure_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    infrastructure_id = Column(Integer, ForeignKey("infrastructures.id"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(16), nullable=False, default="text")  # text | number | dropdown | document
    is_required = Column(Boolean, nullable=False, default=False)
    options = Column(JSON, nullable=True)  # dropdown choices
    display_order = Column(Integer, nullable=False, default=0)
