from __future__ import annotations


def mask_phone_e164(phone_e164: str | None) -> str:
    """
    Mask a phone number for anonymous / not-yet-unlocked viewers.

    Keeps the leading '+', up to two leading digits and the last two digits:
        +919876543210 -> +91********10
    Numbers of four digits or fewer are masked entirely.
    """
    trimmed = (phone_e164 or "").strip()
    if not trimmed:
        return ""

    plus = trimmed.startswith("+")
    digits = trimmed[1:] if plus else trimmed

    if len(digits) <= 4:
        masked = "*" * len(digits)
    else:
        prefix_len = min(2, len(digits) - 2)
        suffix_len = 2
        middle = len(digits) - prefix_len - suffix_len
        masked = f"{digits[:prefix_len]}{'*' * max(0, middle)}{digits[-suffix_len:]}"

    return f"+{masked}" if plus else masked
