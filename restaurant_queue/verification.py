"""Verification codes.

A short code is handed to the customer when they join and checked by the host
when the party is seated. The alphabet leaves out characters that are easy to
misread on a phone screen (0/O, 1/I).
"""

from __future__ import annotations

import random
import secrets

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 4


def generate_verification_code(*, length: int = CODE_LENGTH, rng: random.Random | None = None) -> str:
    """Return a fresh code.

    Args:
        length: number of characters (> 0).
        rng: optional RNG (useful for deterministic tests). Defaults to the
            `secrets` module.
    """
    if length <= 0:
        raise ValueError("length must be > 0")

    if rng is None:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(length))


def codes_match(expected: str, supplied: str | None) -> bool:
    """Case-insensitive comparison, ignoring surrounding whitespace."""
    if supplied is None:
        return False
    return secrets.compare_digest(
        expected.strip().upper().encode("utf-8"),
        supplied.strip().upper().encode("utf-8"),
    )
