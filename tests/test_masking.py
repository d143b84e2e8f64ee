from __future__ import annotations

import re

import pytest

from propmarket.domain.masking import mask_phone_e164


def test_indian_mobile_is_masked_in_the_middle():
    out = mask_phone_e164("+919876543210")
    assert out == "+91********10"
    assert len(out) == len("+919876543210")


@pytest.mark.parametrize(
    "phone",
    ["+919876543210", "+14155550123", "+447911123456", "+12", "+123", "+12345", "919876543210"],
)
def test_never_exposes_more_than_four_digits(phone):
    out = mask_phone_e164(phone)
    assert len(out) == len(phone)
    assert len(re.findall(r"\d", out)) <= 4
    assert out.startswith("+") == phone.startswith("+")


def test_short_numbers_are_fully_masked():
    assert mask_phone_e164("+1234") == "+****"
    assert mask_phone_e164("12") == "**"


def test_five_digits_keeps_two_and_two():
    assert mask_phone_e164("12345") == "12*45"


def test_blank_phone_masks_to_empty():
    assert mask_phone_e164(None) == ""
    assert mask_phone_e164("   ") == ""
