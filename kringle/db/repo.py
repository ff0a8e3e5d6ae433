from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import and_, delete, select

from kringle.db.models import Event, GiftTier, Participant, TierAssignment


def create_event(session, name: str, gifts_per_person: int) -> Event:
    event = Event(name=name, gifts_per_person=gifts_per_person)
    session.add(event)
    session.flush()
    return event


def get_event_by_id(session, event_id: str) -> Optional[Event]:
    return session.scalar(select(Event).where(Event.id == event_id))


def get_latest_event(session) -> Optional[Event]:
    return session.scalar(select(Event).order_by(Event.created_at.desc()).limit(1))


def add_participant(
    session,
    event_id: str,
    name: str,
    email: str,
    invite_token: str,
) -> Participant:
    participant = Participant(
        event_id=event_id,
        name=name,
        email=email,
        invite_token=invite_token,
    )
    session.add(participant)
    session.flush()
    return participant


def get_participant_by_token(session, invite_token: str) -> Optional[Participant]:
    return session.scalar(select(Participant).where(Participant.invite_token == invite_token))


def list_participants(session, event_id: str) -> List[Participant]:
    return list(
        session.scalars(
            select(Participant)
            .where(Participant.event_id == event_id)
            .order_by(Participant.created_at, Participant.name)
        ).all()
    )


def mark_participant_drawn(session, participant: Participant) -> None:
    participant.has_drawn = True


def add_tier(session, event_id: str, name: str, budget_cents: int, sort_order: int) -> GiftTier:
    tier = GiftTier(event_id=event_id, name=name, budget_cents=budget_cents, sort_order=sort_order)
    session.add(tier)
    session.flush()
    return tier


def list_tiers(session, event_id: str) -> List[GiftTier]:
    return list(
        session.scalars(
            select(GiftTier).where(GiftTier.event_id == event_id).order_by(GiftTier.sort_order)
        ).all()
    )


def create_assignments(session, event_id: str, assignments: Iterable) -> int:
    rows = [
        TierAssignment(
            event_id=event_id,
            tier_id=item.tier_id,
            giver_id=item.giver_id,
            recipient_id=item.recipient_id,
        )
        for item in assignments
    ]
    session.add_all(rows)
    session.flush()
    return len(rows)


def list_assignments(session, event_id: str) -> List[TierAssignment]:
    return list(
        session.scalars(select(TierAssignment).where(TierAssignment.event_id == event_id)).all()
    )


def list_assignments_for_giver(session, event_id: str, giver_id: str) -> List[TierAssignment]:
    return list(
        session.scalars(
            select(TierAssignment).where(
                and_(TierAssignment.event_id == event_id, TierAssignment.giver_id == giver_id)
            )
        ).all()
    )


def delete_event(session, event_id: str) -> None:
    session.execute(delete(TierAssignment).where(TierAssignment.event_id == event_id))
    session.execute(delete(GiftTier).where(GiftTier.event_id == event_id))
    session.execute(delete(Participant).where(Participant.event_id == event_id))
    session.execute(delete(Event).where(Event.id == event_id))
