from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from kringle.core.config import Settings
from kringle.db import Event, GiftTier, Participant, repo
from kringle.services.assignment import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DERANGEMENT_ATTEMPTS,
    STRATEGY_SAMPLING,
    Assignment,
    GenerationExhausted,
    InvalidInput,
    generate_assignments,
)
from kringle.services.verification import verify_assignments

DEFAULT_BASE_URL = "http://localhost:3000"


@dataclass(frozen=True)
class ParticipantInput:
    name: str
    email: str


@dataclass(frozen=True)
class TierInput:
    name: Optional[str] = None
    budget_cents: int = 0


@dataclass(frozen=True)
class TierDefinition:
    name: str
    budget_cents: int
    sort_order: int


@dataclass(frozen=True)
class Invite:
    name: str
    email: str
    link: str


@dataclass(frozen=True)
class SeedResult:
    event: Event
    tiers: List[GiftTier]
    participants: List[Participant]
    assignments: List[Assignment]
    invites: List[Invite]
    seed: Optional[int]


@dataclass(frozen=True)
class TierRecipient:
    tier_id: str
    name: str
    budget_cents: int
    recipient: Optional[str]


@dataclass(frozen=True)
class DrawResult:
    participant: Participant
    first_draw: bool
    recipients_by_tier: List[TierRecipient]


@dataclass(frozen=True)
class LookupResult:
    participant: Participant
    event_name: str
    recipients_by_tier: List[TierRecipient]


def format_budget(budget_cents: Optional[int]) -> Optional[str]:
    if not budget_cents or budget_cents <= 0:
        return None
    return f"${budget_cents // 100}"


def build_invite_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/draw?token={token}"


def build_tier_definitions(
    tiers: Optional[Sequence[TierInput]],
    gifts_per_person: Optional[int] = None,
) -> List[TierDefinition]:
    """Explicit tiers win; otherwise ``gifts_per_person`` unnamed tiers without budget."""
    if tiers:
        definitions = []
        for index, tier in enumerate(tiers, start=1):
            budget = int(tier.budget_cents or 0)
            if budget < 0:
                raise InvalidInput(f"Tier {index} budget cannot be negative.")
            definitions.append(
                TierDefinition(
                    name=(tier.name or "").strip() or f"Gift {index}",
                    budget_cents=budget,
                    sort_order=index,
                )
            )
        return definitions

    if isinstance(gifts_per_person, int) and not isinstance(gifts_per_person, bool) and gifts_per_person > 0:
        return [
            TierDefinition(name=f"Gift {index}", budget_cents=0, sort_order=index)
            for index in range(1, gifts_per_person + 1)
        ]

    raise InvalidInput("Provide tiers or gifts_per_person > 0.")


def generate_with_retries(
    participant_ids: Sequence[str],
    tier_ids: Sequence[str],
    retries: int = 3,
    seed: Optional[int] = None,
    strategy: str = STRATEGY_SAMPLING,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    max_derangement_attempts: int = DEFAULT_MAX_DERANGEMENT_ATTEMPTS,
) -> List[Assignment]:
    """Run the generator, retrying the whole call on ``GenerationExhausted`` only.

    With a ``seed`` each retry uses ``seed + attempt`` so runs stay reproducible.
    """
    last_error: Optional[GenerationExhausted] = None
    for attempt in range(max(retries, 1)):
        attempt_seed = None if seed is None else seed + attempt
        try:
            return generate_assignments(
                participant_ids,
                tier_ids,
                seed=attempt_seed,
                max_attempts=max_attempts,
                max_derangement_attempts=max_derangement_attempts,
                strategy=strategy,
            )
        except GenerationExhausted as exc:
            last_error = exc
            logger.bind(attempt=attempt + 1, retries=retries).warning(
                "Generation exhausted, retrying: {error}", error=str(exc)
            )
    raise GenerationExhausted(f"Generation failed after {max(retries, 1)} attempts: {last_error}")


def seed_event(
    session,
    event_name: str,
    participants: Sequence[ParticipantInput],
    tiers: Optional[Sequence[TierInput]] = None,
    gifts_per_person: Optional[int] = None,
    seed: Optional[int] = None,
    base_url: str = DEFAULT_BASE_URL,
    retries: int = 3,
    strategy: str = STRATEGY_SAMPLING,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    max_derangement_attempts: int = DEFAULT_MAX_DERANGEMENT_ATTEMPTS,
    settings: Optional[Settings] = None,
) -> SeedResult:
    """Create an event with its participants and tiers and pre-assign every tier.

    Nothing is flushed before the assignments have been generated and
    verified, so a failing generation leaves the session untouched.

    When ``settings`` is given, its base url, strategy, retries and attempt
    bounds replace the keyword arguments. The sampling strategy rarely
    succeeds once ``tiers == participants - 1`` and there are 7 or more
    participants; use ``strategy="rotation"`` (or
    ``ASSIGNMENT_STRATEGY=rotation``) for such events.
    """
    if settings is not None:
        base_url = settings.base_url
        retries = settings.generation_retries
        strategy = settings.assignment_strategy
        max_attempts = settings.max_attempts
        max_derangement_attempts = settings.max_derangement_attempts

    event_name = (event_name or "").strip()
    if not event_name:
        raise InvalidInput("Missing event name.")
    if len(participants) < 2:
        raise InvalidInput("At least 2 participants are required.")

    emails = [person.email.strip().lower() for person in participants]
    if len(set(emails)) != len(emails):
        raise InvalidInput("Participant emails must be unique within an event.")

    definitions = build_tier_definitions(tiers, gifts_per_person)

    # Generation works on positions; ids are only known after the rows exist.
    positions = [str(index) for index in range(len(participants))]
    tier_keys = [str(definition.sort_order) for definition in definitions]
    planned = generate_with_retries(
        positions,
        tier_keys,
        retries=retries,
        seed=seed,
        strategy=strategy,
        max_attempts=max_attempts,
        max_derangement_attempts=max_derangement_attempts,
    )
    verify_assignments(positions, tier_keys, planned)

    event = repo.create_event(session, event_name, len(definitions))
    participant_rows = [
        repo.add_participant(
            session,
            event.id,
            person.name.strip(),
            person.email.strip(),
            secrets.token_urlsafe(16),
        )
        for person in participants
    ]
    tier_rows = [
        repo.add_tier(session, event.id, definition.name, definition.budget_cents, definition.sort_order)
        for definition in definitions
    ]

    tier_by_key = dict(zip(tier_keys, tier_rows))
    participant_by_position = dict(zip(positions, participant_rows))
    assignments = [
        Assignment(
            tier_by_key[item.tier_id].id,
            participant_by_position[item.giver_id].id,
            participant_by_position[item.recipient_id].id,
        )
        for item in planned
    ]
    repo.create_assignments(session, event.id, assignments)

    logger.bind(event_id=event.id, seed=seed, strategy=strategy, tiers=len(tier_rows)).info(
        "Assignments generated"
    )

    invites = [
        Invite(name=row.name, email=row.email, link=build_invite_link(base_url, row.invite_token))
        for row in participant_rows
    ]
    return SeedResult(
        event=event,
        tiers=tier_rows,
        participants=participant_rows,
        assignments=assignments,
        invites=invites,
        seed=seed,
    )


def recipients_by_tier(session, participant: Participant, reveal: bool = True) -> List[TierRecipient]:
    tiers = repo.list_tiers(session, participant.event_id)
    recipient_names = {}
    if reveal:
        for row in repo.list_assignments_for_giver(session, participant.event_id, participant.id):
            recipient_names[row.tier_id] = row.recipient.name

    return [
        TierRecipient(
            tier_id=tier.id,
            name=tier.name,
            budget_cents=tier.budget_cents,
            recipient=recipient_names.get(tier.id),
        )
        for tier in tiers
    ]


def lookup(session, token: str) -> Optional[LookupResult]:
    """Participant, event name and recipients for ``token``.

    Recipients stay hidden until the participant has drawn.
    """
    participant = repo.get_participant_by_token(session, token)
    if not participant:
        return None
    return LookupResult(
        participant=participant,
        event_name=participant.event.name,
        recipients_by_tier=recipients_by_tier(session, participant, reveal=participant.has_drawn),
    )


def draw(session, token: str) -> Optional[DrawResult]:
    participant = repo.get_participant_by_token(session, token)
    if not participant:
        return None

    first_draw = not participant.has_drawn
    if first_draw:
        repo.mark_participant_drawn(session, participant)
        logger.bind(event_id=participant.event_id, participant_id=participant.id).info(
            "Participant drew recipients"
        )

    return DrawResult(
        participant=participant,
        first_draw=first_draw,
        recipients_by_tier=recipients_by_tier(session, participant, reveal=True),
    )


def verify_event(session, event_id: str) -> None:
    """Re-check the persisted assignments of an event against every invariant."""
    event = repo.get_event_by_id(session, event_id)
    if not event:
        raise InvalidInput(f"Unknown event: {event_id}")

    participant_ids = [participant.id for participant in repo.list_participants(session, event_id)]
    tier_ids = [tier.id for tier in repo.list_tiers(session, event_id)]
    assignments = [
        Assignment(row.tier_id, row.giver_id, row.recipient_id)
        for row in repo.list_assignments(session, event_id)
    ]
    verify_assignments(participant_ids, tier_ids, assignments)
    logger.bind(event_id=event_id, assignments=len(assignments)).info("Event verified")


def reset_event(session, event_id: str) -> bool:
    if not repo.get_event_by_id(session, event_id):
        return False
    repo.delete_event(session, event_id)
    logger.bind(event_id=event_id).info("Event deleted")
    return True
