from __future__ import annotations

import argparse
import random
import sys
import uuid
from typing import List, Optional

from loguru import logger

from kringle.core.config import Settings, load_settings
from kringle.core.logging import setup_logging
from kringle.db import get_session, init_engine, repo
from kringle.services import AssignmentError, verify_assignments
from kringle.services import seeding


def run_trial(settings: Settings, rng: random.Random, participants: int, tiers: int) -> None:
    participant_ids = [
        f"P{index}-{uuid.UUID(int=rng.getrandbits(128))}" for index in range(1, participants + 1)
    ]
    tier_ids = [f"T{index}-{uuid.UUID(int=rng.getrandbits(128))}" for index in range(1, tiers + 1)]
    assignments = seeding.generate_with_retries(
        participant_ids,
        tier_ids,
        retries=settings.generation_retries,
        seed=rng.getrandbits(32),
        max_attempts=settings.max_attempts,
        max_derangement_attempts=settings.max_derangement_attempts,
        strategy=settings.assignment_strategy,
    )
    verify_assignments(participant_ids, tier_ids, assignments)


def run_checks(settings: Settings, trials: int, seed: Optional[int] = None) -> int:
    """Randomised generate+verify trials; returns the number of failures."""
    rng = random.Random(seed)
    failures: List[str] = []

    for trial in range(1, trials + 1):
        participants = rng.randint(3, 12)
        tiers = rng.randint(1, min(4, participants - 1))
        try:
            run_trial(settings, rng, participants, tiers)
        except AssignmentError as exc:
            failures.append(f"trial {trial}: {exc}")
            logger.bind(trial=trial, participants=participants, tiers=tiers).error(
                "Trial failed: {error}", error=str(exc)
            )
            continue
        if trial % 10 == 0:
            logger.info("Trial {trial} OK (P={p}, T={t})", trial=trial, p=participants, t=tiers)

    logger.info(
        "Total: {total}, Passed: {passed}, Failed: {failed}",
        total=trials,
        passed=trials - len(failures),
        failed=len(failures),
    )
    return len(failures)


def verify_stored_event(settings: Settings, event_id: Optional[str]) -> None:
    init_engine(settings.database_url)
    with get_session() as session:
        if event_id is None:
            latest = repo.get_latest_event(session)
            if latest is None:
                raise AssignmentError("No event found.")
            event_id = latest.id
        seeding.verify_event(session, event_id)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kris Kringle assignment checks.")
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser("check", help="run randomised generate+verify trials")
    check.add_argument("--trials", type=int, default=100)
    check.add_argument("--seed", type=int, default=None)

    verify = commands.add_parser("verify-event", help="verify a stored event")
    verify.add_argument("event_id", nargs="?", default=None, help="defaults to the latest event")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_path)

    try:
        if args.command == "check":
            return 1 if run_checks(settings, args.trials, args.seed) else 0
        verify_stored_event(settings, args.event_id)
        return 0
    except AssignmentError as exc:
        logger.error("{name}: {error}", name=type(exc).__name__, error=str(exc))
        return 1
    except Exception:
        logger.exception("Unexpected error")
        raise


if __name__ == "__main__":
    sys.exit(main())
