"""Order number format: ASCII digits with a Luhn mod-10 check digit."""

import re

DIGITS_RE = re.compile(r"[0-9]+")


def luhn_checksum(digits: str) -> int:
    """Luhn sum mod 10 over all digits; the rightmost digit is the check digit."""
    total = 0
    for i, ch in enumerate(reversed(digits)):
        d = ord(ch) - ord("0")
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10


def is_valid_order_number(number: str) -> bool:
    if not isinstance(number, str) or not DIGITS_RE.fullmatch(number):
        return False
    return luhn_checksum(number) == 0
