from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Sequence, Tuple

from kringle.services.assignment import Assignment, ConstraintViolation


def _tier_violations(
    tier_id: str,
    participant_ids: Sequence[str],
    tier_assignments: List[Assignment],
) -> List[str]:
    if len(tier_assignments) != len(participant_ids):
        return [
            f"Tier {tier_id}: expected {len(participant_ids)} assignments, "
            f"got {len(tier_assignments)}"
        ]

    violations = [
        f"Tier {tier_id}: self-assignment for {item.giver_id}"
        for item in tier_assignments
        if item.giver_id == item.recipient_id
    ]

    gives = Counter(item.giver_id for item in tier_assignments)
    receives = Counter(item.recipient_id for item in tier_assignments)
    for participant_id in participant_ids:
        if gives[participant_id] != 1:
            violations.append(
                f"Tier {tier_id}: {participant_id} gives {gives[participant_id]} (expected 1)"
            )
        if receives[participant_id] != 1:
            violations.append(
                f"Tier {tier_id}: {participant_id} receives {receives[participant_id]} (expected 1)"
            )
    return violations


def find_violations(
    participant_ids: Sequence[str],
    tier_ids: Sequence[str],
    assignments: Iterable[Assignment],
) -> List[str]:
    """Collect every invariant breach in ``assignments``, in check order."""
    assignments = list(assignments)
    by_tier: Dict[str, List[Assignment]] = {tier_id: [] for tier_id in tier_ids}
    for item in assignments:
        by_tier.setdefault(item.tier_id, []).append(item)

    violations: List[str] = []
    for tier_id in tier_ids:
        violations.extend(_tier_violations(tier_id, participant_ids, by_tier[tier_id]))

    requested = set(tier_ids)
    for tier_id, tier_assignments in by_tier.items():
        if tier_id in requested:
            continue
        violations.append(f"Tier {tier_id}: not a requested tier")
        violations.extend(
            f"Tier {tier_id}: self-assignment for {item.giver_id}"
            for item in tier_assignments
            if item.giver_id == item.recipient_id
        )

    seen: Dict[Tuple[str, str], str] = {}
    for item in assignments:
        pair = (item.giver_id, item.recipient_id)
        if pair in seen:
            violations.append(
                f"Cross-tier duplicate pair detected: {item.giver_id}->{item.recipient_id} "
                f"(tiers {seen[pair]} and {item.tier_id})"
            )
            continue
        seen[pair] = item.tier_id
    return violations


def verify_assignments(
    participant_ids: Sequence[str],
    tier_ids: Sequence[str],
    assignments: Iterable[Assignment],
) -> None:
    violations = find_violations(participant_ids, tier_ids, assignments)
    if violations:
        raise ConstraintViolation(violations[0])
