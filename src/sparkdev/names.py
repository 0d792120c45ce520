"""Human-readable spark names (``adjective-noun``)."""

from __future__ import annotations

import random
from collections.abc import Collection

ADJECTIVES: tuple[str, ...] = (
    "brave", "clever", "gentle", "happy", "kind",
    "lively", "nice", "proud", "calm", "eager",
    "bright", "swift", "bold", "wise", "fair",
    "jolly", "keen", "wild", "quiet", "grand",
    "mighty", "noble", "quick", "sharp", "warm",
)  # fmt: skip

NOUNS: tuple[str, ...] = (
    "dolphin", "eagle", "fox", "hawk", "lion",
    "otter", "panda", "raven", "tiger", "wolf",
    "bear", "deer", "falcon", "moose", "owl",
    "rabbit", "salmon", "sparrow", "whale", "zebra",
    "badger", "coyote", "ferret", "lynx", "orca",
)  # fmt: skip


class NameExhaustedError(Exception):
    """Raised when no unused name was drawn within the attempt budget."""

    pass


def generate_name(rng: random.Random | None = None) -> str:
    """Return a random ``adjective-noun`` name.

    Args:
        rng: Random source (default: module-level ``random``)
    """
    r = rng or random
    return f"{r.choice(ADJECTIVES)}-{r.choice(NOUNS)}"


def generate_unique_name(
    existing: Collection[str],
    attempts: int = 10,
    rng: random.Random | None = None,
) -> str:
    """Draw names until one is not in ``existing``.

    Args:
        existing: Names already in use
        attempts: Maximum number of draws
        rng: Random source

    Raises:
        NameExhaustedError: If every draw collided
    """
    for _ in range(attempts):
        name = generate_name(rng)
        if name not in existing:
            return name
    raise NameExhaustedError(
        f"Could not find an unused spark name after {attempts} attempts "
        f"({len(existing)} sparks exist)"
    )


def is_spark_name(name: str) -> bool:
    """Whether ``name`` could have been produced by :func:`generate_name`."""
    adjective, sep, noun = name.partition("-")
    return bool(sep) and adjective in ADJECTIVES and noun in NOUNS
