from kringle.db.models import Base, Event, GiftTier, Participant, TierAssignment
from kringle.db.session import SessionLocal, get_session, init_engine

__all__ = [
    "Base",
    "Event",
    "GiftTier",
    "Participant",
    "TierAssignment",
    "SessionLocal",
    "get_session",
    "init_engine",
]
