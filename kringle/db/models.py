from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class Event(Base):
    __tablename__ = "events"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    gifts_per_person = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    participants = relationship("Participant", back_populates="event", cascade="all, delete-orphan")
    tiers = relationship(
        "GiftTier",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="GiftTier.sort_order",
    )

    __table_args__ = (
        CheckConstraint("gifts_per_person > 0", name="ck_events_gifts_per_person"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name}, gifts_per_person={self.gifts_per_person})>"


class Participant(Base):
    __tablename__ = "participants"

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    invite_token = Column(String, nullable=False, unique=True, index=True)
    has_drawn = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    event = relationship("Event", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("event_id", "email", name="uq_participants_event_email"),
    )

    def __repr__(self) -> str:
        return (
            "<Participant(id={0}, event_id={1}, name={2}, has_drawn={3})>"
        ).format(self.id, self.event_id, self.name, self.has_drawn)


class GiftTier(Base):
    __tablename__ = "gift_tiers"

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    budget_cents = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    event = relationship("Event", back_populates="tiers")

    __table_args__ = (
        UniqueConstraint("event_id", "sort_order", name="uq_gift_tiers_event_order"),
    )


class TierAssignment(Base):
    __tablename__ = "assignments"

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    tier_id = Column(String, ForeignKey("gift_tiers.id", ondelete="CASCADE"), nullable=False)
    giver_id = Column(String, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(String, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tier = relationship("GiftTier")
    giver = relationship("Participant", foreign_keys=[giver_id])
    recipient = relationship("Participant", foreign_keys=[recipient_id])

    __table_args__ = (
        CheckConstraint("giver_id <> recipient_id", name="ck_assignments_not_self"),
        UniqueConstraint("event_id", "tier_id", "giver_id", name="uq_assignments_tier_giver"),
        UniqueConstraint("event_id", "tier_id", "recipient_id", name="uq_assignments_tier_recipient"),
    )
