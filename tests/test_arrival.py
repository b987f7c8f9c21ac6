import random

import pytest

from restaurant_queue.arrival import PARTY_SIZE_WEIGHTS, sample_exponential_interarrival, sample_party_size


def test_exponential_interarrival_requires_positive_rate():
    with pytest.raises(ValueError):
        sample_exponential_interarrival(rate_per_sec=0)


def test_exponential_interarrival_deterministic_with_rng():
    rng = random.Random(123)
    a = sample_exponential_interarrival(rate_per_sec=2.0, rng=rng)
    rng = random.Random(123)
    b = sample_exponential_interarrival(rate_per_sec=2.0, rng=rng)
    assert a == b
    assert a > 0


def test_party_size_in_range():
    rng = random.Random(9)
    sizes = {sample_party_size(rng=rng) for _ in range(500)}
    assert sizes <= set(range(1, len(PARTY_SIZE_WEIGHTS) + 1))
    assert 2 in sizes
