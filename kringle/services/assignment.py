from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set

from loguru import logger

DEFAULT_MAX_ATTEMPTS = 500
DEFAULT_MAX_DERANGEMENT_ATTEMPTS = 3000

STRATEGY_SAMPLING = "sampling"
STRATEGY_ROTATION = "rotation"
STRATEGIES = (STRATEGY_SAMPLING, STRATEGY_ROTATION)


class AssignmentError(RuntimeError):
    pass


class InvalidInput(AssignmentError, ValueError):
    pass


class InfeasibleConstraints(AssignmentError):
    pass


class GenerationExhausted(AssignmentError):
    pass


class ConstraintViolation(AssignmentError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


@dataclass(frozen=True)
class Assignment:
    tier_id: str
    giver_id: str
    recipient_id: str


def _check_unique(ids: Sequence[str], label: str) -> None:
    seen: Set[str] = set()
    for item in ids:
        if item in seen:
            raise InvalidInput(f"Duplicate {label} id: {item}")
        seen.add(item)


def validate_inputs(participant_ids: Sequence[str], tier_ids: Sequence[str]) -> None:
    if len(participant_ids) < 2:
        raise InvalidInput("At least 2 participants are required.")
    if not tier_ids:
        raise InvalidInput("At least 1 tier is required.")
    _check_unique(participant_ids, "participant")
    _check_unique(tier_ids, "tier")
    # Each giver has only n - 1 possible recipients.
    if len(tier_ids) > len(participant_ids) - 1:
        raise InfeasibleConstraints(
            f"Impossible constraints: tiers ({len(tier_ids)}) must be <= "
            f"participants - 1 ({len(participant_ids) - 1})"
        )


def derange(
    ids: Sequence[str],
    rng: random.Random,
    max_attempts: int = DEFAULT_MAX_DERANGEMENT_ATTEMPTS,
) -> List[str]:
    """Return a random derangement of ``ids``.

    Shuffles a copy until no element stays at its original index. Raises
    ``GenerationExhausted`` after ``max_attempts`` shuffles.
    """
    candidate = list(ids)
    for _ in range(max_attempts):
        rng.shuffle(candidate)
        if all(moved != original for moved, original in zip(candidate, ids)):
            return list(candidate)
    raise GenerationExhausted("Failed to create derangement.")


def _reuses_recipient(
    givers: Sequence[str],
    permutation: Sequence[str],
    history: Dict[str, Set[str]],
) -> bool:
    for giver, recipient in zip(givers, permutation):
        if recipient in history[giver]:
            return True
    return False


def _sample_tiers(
    participants: List[str],
    tier_ids: Sequence[str],
    rng: random.Random,
    max_attempts: int,
    max_derangement_attempts: int,
) -> List[Assignment]:
    history: Dict[str, Set[str]] = {giver: set() for giver in participants}
    assignments: List[Assignment] = []

    for tier_id in tier_ids:
        permutation: Optional[List[str]] = None
        for attempt in range(1, max_attempts + 1):
            candidate = derange(participants, rng, max_derangement_attempts)
            if not _reuses_recipient(participants, candidate, history):
                permutation = candidate
                break
        if permutation is None:
            logger.bind(tier_id=tier_id, attempts=max_attempts).warning(
                "No cross-tier-unique derangement found"
            )
            raise GenerationExhausted(
                f"Failed to find cross-tier-unique derangement for tier {tier_id}."
            )

        logger.bind(tier_id=tier_id, attempts=attempt).debug("Tier assigned")
        for giver, recipient in zip(participants, permutation):
            assignments.append(Assignment(tier_id, giver, recipient))
            history[giver].add(recipient)

    return assignments


def _rotate_tiers(
    participants: List[str],
    tier_ids: Sequence[str],
    rng: random.Random,
) -> List[Assignment]:
    order = list(participants)
    rng.shuffle(order)
    size = len(order)
    offsets = rng.sample(range(1, size), len(tier_ids))

    assignments: List[Assignment] = []
    for tier_id, offset in zip(tier_ids, offsets):
        for index, giver in enumerate(order):
            assignments.append(Assignment(tier_id, giver, order[(index + offset) % size]))
    return assignments


def generate_assignments(
    participant_ids: Sequence[str],
    tier_ids: Sequence[str],
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    max_derangement_attempts: int = DEFAULT_MAX_DERANGEMENT_ATTEMPTS,
    strategy: str = STRATEGY_SAMPLING,
) -> List[Assignment]:
    """Assign one recipient per participant per tier.

    Every tier is a derangement of the participants and no giver gets the
    same recipient twice. Tiers are processed in the given order and the
    result lists assignments tier by tier, givers in participant order
    (rotation strategy: in shuffled order).

    ``rng`` takes precedence over ``seed``. With the sampling strategy the
    search is bounded by ``max_attempts`` permutations per tier, each found
    within ``max_derangement_attempts`` shuffles, and ``GenerationExhausted``
    is raised when a bound is hit. The rotation strategy gives each tier a
    distinct cyclic offset over a shuffled order and never retries.
    """
    validate_inputs(participant_ids, tier_ids)
    if strategy not in STRATEGIES:
        raise InvalidInput(f"Unknown assignment strategy: {strategy}")

    if rng is None:
        rng = random.Random(seed)
    participants = list(participant_ids)

    if strategy == STRATEGY_ROTATION:
        return _rotate_tiers(participants, tier_ids, rng)
    return _sample_tiers(participants, tier_ids, rng, max_attempts, max_derangement_attempts)
