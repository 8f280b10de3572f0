"""
Fixed-point money helpers and generated identifiers.
"""

import secrets
import string
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def to_money(value: Union[Decimal, int, str, float, None]) -> Decimal:
    """
    Coerce a value to a 2-place Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid monetary amount: {value!r}") from e


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def generate_account_number(account_type: str) -> str:
    return f"{account_type[:2].upper()}{_epoch_ms()}{secrets.randbelow(10000):04d}"


def generate_reference_number() -> str:
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(9))
    return f"TXN{_epoch_ms()}{suffix}"


def generate_loan_number() -> str:
    return f"LN{_epoch_ms()}{secrets.randbelow(1000):03d}"


def generate_card_number() -> str:
    return "4" + "".join(secrets.choice(string.digits) for _ in range(15))


def generate_cvv() -> str:
    return f"{secrets.randbelow(1000):03d}"
