"""Manager assignment: which user (by email) manages which infrastructure. Backs the default AccessControl."""
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint

from infrabook.db.base import Base


class InfrastructureManager(Base):
    __tablename__ = "infrastructure_managers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    infrastructure_id = Column(Integer, ForeignKey("infrastructures.id"), nullable=False, index=True)
    user_email = Column(String(255), nullable=False, index=True)
    email_notifications = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("infrastructure_id", "user_email", name="uq_infrastructure_managers_infra_email"),
    )
