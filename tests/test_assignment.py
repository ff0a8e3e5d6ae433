import random
from collections import defaultdict

import pytest

from kringle.services.assignment import (
    Assignment,
    GenerationExhausted,
    InfeasibleConstraints,
    InvalidInput,
    derange,
    generate_assignments,
)
from kringle.services.verification import verify_assignments


class NoShuffleRandom(random.Random):
    def shuffle(self, x):
        pass


class RotateOnceRandom(random.Random):
    def shuffle(self, x):
        x[:] = x[1:] + x[:1]


def by_tier(assignments):
    grouped = defaultdict(dict)
    for item in assignments:
        grouped[item.tier_id][item.giver_id] = item.recipient_id
    return grouped


def test_single_tier_of_three_is_a_three_cycle():
    participants = ["P1", "P2", "P3"]
    assignments = generate_assignments(participants, ["T1"], seed=42)

    assert len(assignments) == 3
    mapping = by_tier(assignments)["T1"]
    assert set(mapping) == set(participants)
    assert set(mapping.values()) == set(participants)
    assert mapping[mapping[mapping["P1"]]] == "P1"
    assert mapping["P1"] != "P1" and mapping[mapping["P1"]] != "P1"
    verify_assignments(participants, ["T1"], assignments)


def test_two_tiers_use_distinct_recipients():
    participants = ["P1", "P2", "P3", "P4"]
    tiers = ["T1", "T2"]
    assignments = generate_assignments(participants, tiers, seed=7)

    assert len(assignments) == 8
    grouped = by_tier(assignments)
    for giver in participants:
        assert grouped["T1"][giver] != grouped["T2"][giver]
    verify_assignments(participants, tiers, assignments)


def test_two_participants_cannot_have_two_tiers():
    with pytest.raises(InfeasibleConstraints):
        generate_assignments(["P1", "P2"], ["T1", "T2"])


def test_two_participants_swap():
    assignments = generate_assignments(["P1", "P2"], ["T1"], seed=1)
    assert by_tier(assignments)["T1"] == {"P1": "P2", "P2": "P1"}


@pytest.mark.parametrize(
    "participants, tiers",
    [
        ([], ["T1"]),
        (["P1"], ["T1"]),
        (["P1", "P2", "P3"], []),
        (["P1", "P1", "P2"], ["T1"]),
        (["P1", "P2", "P3"], ["T1", "T1"]),
    ],
)
def test_invalid_input(participants, tiers):
    with pytest.raises(InvalidInput):
        generate_assignments(participants, tiers)


def test_invalid_input_is_a_value_error():
    with pytest.raises(ValueError):
        generate_assignments(["P1"], ["T1"])


def test_unknown_strategy_is_rejected():
    with pytest.raises(InvalidInput):
        generate_assignments(["P1", "P2"], ["T1"], strategy="magic")


@pytest.mark.parametrize(
    "size, strategy",
    [(3, "sampling"), (4, "sampling"), (5, "sampling"), (8, "rotation"), (20, "rotation")],
)
def test_feasibility_boundary(size, strategy):
    participants = [f"P{i}" for i in range(size)]
    tiers = [f"T{i}" for i in range(size - 1)]
    assignments = generate_assignments(participants, tiers, seed=size, strategy=strategy)

    assert len(assignments) == size * (size - 1)
    verify_assignments(participants, tiers, assignments)
    pairs = {(item.giver_id, item.recipient_id) for item in assignments}
    assert len(pairs) == len(assignments)


def test_output_order_follows_tiers_and_participants():
    participants = ["a", "b", "c", "d", "e"]
    tiers = ["gold", "silver", "bronze"]
    assignments = generate_assignments(participants, tiers, seed=3)

    assert [item.tier_id for item in assignments] == [t for t in tiers for _ in participants]
    assert [item.giver_id for item in assignments] == participants * len(tiers)


def test_deterministic_seed():
    participants = [f"P{i}" for i in range(6)]
    tiers = ["T1", "T2", "T3"]
    first = generate_assignments(participants, tiers, seed=123)
    second = generate_assignments(participants, tiers, seed=123)
    assert first == second


def test_injected_rng_takes_precedence_over_seed():
    participants = [f"P{i}" for i in range(6)]
    first = generate_assignments(participants, ["T1"], seed=1, rng=random.Random(99))
    second = generate_assignments(participants, ["T1"], seed=2, rng=random.Random(99))
    assert first == second


def test_repeated_calls_vary():
    participants = [f"P{i}" for i in range(10)]
    tiers = ["T1", "T2"]
    outputs = {tuple(generate_assignments(participants, tiers)) for _ in range(20)}
    assert len(outputs) > 1
    for output in outputs:
        verify_assignments(participants, tiers, list(output))


def test_derangement_has_no_fixed_points():
    ids = [f"P{i}" for i in range(7)]
    result = derange(ids, random.Random(5))
    assert sorted(result) == sorted(ids)
    assert all(a != b for a, b in zip(result, ids))


def test_derange_does_not_modify_input():
    ids = ["P1", "P2", "P3", "P4"]
    derange(ids, random.Random(0))
    assert ids == ["P1", "P2", "P3", "P4"]


def test_derange_gives_up_after_bound():
    with pytest.raises(GenerationExhausted):
        derange(["P1", "P2", "P3"], NoShuffleRandom(), max_attempts=10)


def test_generation_exhausted_when_no_derangement():
    with pytest.raises(GenerationExhausted):
        generate_assignments(["P1", "P2", "P3"], ["T1"], rng=NoShuffleRandom())


def test_generation_exhausted_when_history_blocks_every_candidate():
    participants = ["P1", "P2", "P3", "P4"]
    with pytest.raises(GenerationExhausted):
        generate_assignments(participants, ["T1", "T2"], rng=RotateOnceRandom(), max_attempts=5)


def test_rotation_strategy_satisfies_invariants():
    participants = [f"P{i}" for i in range(9)]
    tiers = [f"T{i}" for i in range(8)]
    assignments = generate_assignments(participants, tiers, seed=11, strategy="rotation")

    assert len(assignments) == 72
    verify_assignments(participants, tiers, assignments)


def test_rotation_strategy_never_consults_retry_bounds():
    participants = ["P1", "P2", "P3"]
    assignments = generate_assignments(
        participants, ["T1", "T2"], seed=4, strategy="rotation", max_attempts=0
    )
    verify_assignments(participants, ["T1", "T2"], assignments)


def test_assignment_is_immutable():
    item = Assignment("T1", "P1", "P2")
    with pytest.raises(AttributeError):
        item.giver_id = "P3"
