from __future__ import annotations

import pytest

from app.services.redemption_codes import (
    ALPHABET,
    DISCOUNT_CODE_LENGTH,
    PURCHASE_CODE_LENGTH,
    generate_code,
    sanitize_code,
)


def test_alphabet_excludes_ambiguous_characters() -> None:
    for ambiguous in "O0I1L":
        assert ambiguous not in ALPHABET


def test_generate_code_uses_alphabet_and_requested_length() -> None:
    purchase_code = generate_code()
    discount_code = generate_code(DISCOUNT_CODE_LENGTH)

    assert len(purchase_code) == PURCHASE_CODE_LENGTH
    assert len(discount_code) == DISCOUNT_CODE_LENGTH
    assert set(purchase_code + discount_code) <= set(ALPHABET)


def test_generate_code_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        generate_code(0)


def test_generate_code_is_not_constant() -> None:
    assert len({generate_code() for _ in range(50)}) > 1


def test_sanitize_code_uppercases_and_strips_separators() -> None:
    assert sanitize_code("  ab-c d_e9 ") == "ABCDE9"


def test_sanitize_code_drops_ambiguous_characters() -> None:
    assert sanitize_code("o0i1lK") == "K"
    assert sanitize_code("---") == ""
