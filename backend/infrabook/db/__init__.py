from infrabook.db.base import Base
from infrabook.db.session import get_db, engine, SessionLocal, transaction
from infrabook.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "transaction", "ALL_TABLE_NAMES"]
