import random

import pytest

from restaurant_queue import verification
from restaurant_queue.verification import CODE_ALPHABET, codes_match, generate_verification_code


def test_generated_code_uses_unambiguous_alphabet():
    code = generate_verification_code()
    assert len(code) == 4
    assert all(ch in CODE_ALPHABET for ch in code)
    assert not set("01IO") & set(CODE_ALPHABET)


def test_generated_code_deterministic_with_rng():
    assert generate_verification_code(rng=random.Random(5)) == generate_verification_code(rng=random.Random(5))


def test_generated_code_rejects_bad_length():
    with pytest.raises(ValueError):
        generate_verification_code(length=0)


def test_codes_match_is_case_insensitive():
    assert codes_match("AB3K", "ab3k")
    assert codes_match("AB3K", " Ab3K ")
    assert not codes_match("AB3K", "AB3X")
    assert not codes_match("AB3K", None)
    assert not codes_match("AB3K", "ä")


def test_module_docstring_is_set():
    assert verification.__doc__ is not None
    assert verification.__doc__.startswith("Verification codes")
