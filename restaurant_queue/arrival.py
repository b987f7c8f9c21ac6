"""Arrival and party-size models for the load generator.

Parties arrive as a Poisson process with rate λ (parties/second), so the
inter-arrival times are i.i.d. Exponential(λ). Party sizes follow a small
fixed distribution skewed towards tables of two.
"""

from __future__ import annotations

import random

# Relative weights for party sizes 1..6.
PARTY_SIZE_WEIGHTS = (15, 40, 15, 20, 5, 5)


def sample_exponential_interarrival(*, rate_per_sec: float, rng: random.Random | None = None) -> float:
    """Sample seconds until the next arrival.

    Args:
        rate_per_sec: λ, the arrival rate in parties/second. Must be > 0.
        rng: optional RNG (useful for deterministic tests).
    """
    if rate_per_sec <= 0:
        raise ValueError("rate_per_sec must be > 0")

    r = rng or random
    return float(r.expovariate(rate_per_sec))


def sample_party_size(*, rng: random.Random | None = None) -> int:
    r = rng or random
    sizes = range(1, len(PARTY_SIZE_WEIGHTS) + 1)
    return int(r.choices(sizes, weights=PARTY_SIZE_WEIGHTS, k=1)[0])
