import pytest

from app.core.order_number import is_valid_order_number, luhn_checksum


@pytest.mark.parametrize(
    "number",
    ["12345678903", "79927398713", "2377225624", "0", "00", "18", "4561261212345467"],
)
def test_valid_numbers(number):
    assert is_valid_order_number(number)


@pytest.mark.parametrize(
    "number",
    [
        "",
        "12345678904",
        "79927398710",
        "1",
        "abc",
        "1234-5678-903",
        " 12345678903",
        "12345678903\n",
        "１８",  # fullwidth digits
        "+18",
    ],
)
def test_invalid_numbers(number):
    assert not is_valid_order_number(number)


def test_non_string_rejected():
    assert not is_valid_order_number(None)
    assert not is_valid_order_number(12345678903)


def test_exactly_one_check_digit_per_prefix():
    for prefix in ("7992739871", "1234567890", "5", "000000"):
        valid = [d for d in "0123456789" if is_valid_order_number(prefix + d)]
        assert len(valid) == 1


def test_accepted_iff_checksum_zero():
    for n in range(2000):
        s = str(n)
        assert is_valid_order_number(s) == (luhn_checksum(s) == 0)
