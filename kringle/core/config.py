import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from kringle.services.assignment import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DERANGEMENT_ATTEMPTS,
    STRATEGIES,
    STRATEGY_SAMPLING,
)

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str
    log_path: Optional[str]
    base_url: str
    assignment_strategy: str = STRATEGY_SAMPLING
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    max_derangement_attempts: int = DEFAULT_MAX_DERANGEMENT_ATTEMPTS
    generation_retries: int = 3


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from None
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}.")
    return value


def load_settings() -> Settings:
    database_url = os.getenv("DATABASE_URL") or "sqlite+pysqlite:///db.sqlite"
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/kringle.log") or None
    base_url = (os.getenv("BASE_URL") or "http://localhost:3000").rstrip("/")
    strategy = os.getenv("ASSIGNMENT_STRATEGY", STRATEGY_SAMPLING).strip().lower()

    if strategy not in STRATEGIES:
        raise ValueError(
            f"ASSIGNMENT_STRATEGY must be one of {', '.join(STRATEGIES)}, got {strategy!r}."
        )

    return Settings(
        database_url=database_url,
        log_level=log_level,
        log_path=log_path,
        base_url=base_url,
        assignment_strategy=strategy,
        max_attempts=_positive_int("ASSIGNMENT_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
        max_derangement_attempts=_positive_int(
            "DERANGEMENT_MAX_ATTEMPTS", DEFAULT_MAX_DERANGEMENT_ATTEMPTS
        ),
        generation_retries=_positive_int("GENERATION_RETRIES", 3),
    )
