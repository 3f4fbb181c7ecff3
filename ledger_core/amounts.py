"""
Fixed-Point Amount Module

Decimal helpers for monetary amounts. NEVER uses float for monetary values:
every amount entering the ledger is quantized to the configured number of
decimal places with ROUND_HALF_UP.
"""

from decimal import Decimal, ROUND_HALF_UP, Inexact, InvalidOperation, getcontext, localcontext
from typing import Optional, Union
import re

from .config import get_config

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')

AmountLike = Union[Decimal, int, str, float]


def quantum(precision: Optional[int] = None) -> Decimal:
    """Smallest representable unit for the given precision"""
    if precision is None:
        precision = get_config().amount_precision
    return Decimal('0.1') ** precision


def to_amount(value: AmountLike, precision: Optional[int] = None) -> Decimal:
    """
    Convert a value to a quantized Decimal amount

    Args:
        value: Decimal, int, numeric string or float
        precision: Decimal places to keep (defaults to config)

    Returns:
        Decimal rounded half-up to the precision

    Raises:
        ValueError: If the value is not a finite number or is too large to
            quantize at the context precision
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid amount")

    if not isinstance(value, Decimal):
        try:
            # str() first so floats keep their shortest repr
            value = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert {value!r} to Decimal") from None

    if not value.is_finite():
        raise ValueError(f"Amount must be finite, got {value}")

    try:
        return value.quantize(quantum(precision), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the context precision can hold
        raise ValueError(f"Amount {value} is out of range") from None


def checked_sum(left: Decimal, right: Decimal) -> Decimal:
    """
    Exact left + right

    Raises:
        ValueError: If the result needs more digits than the context precision
    """
    with localcontext() as ctx:
        ctx.traps[Inexact] = True
        try:
            return left + right
        except Inexact:
            raise ValueError(f"Balance {left} + {right} is out of range") from None


def parse_amount(value: str, precision: Optional[int] = None) -> Decimal:
    """
    Safely convert user-entered text to an amount, handling common formats

    Args:
        value: String representation such as "$1,200.50" or "1200,50"
        precision: Decimal places to keep (defaults to config)

    Returns:
        Quantized Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:
            clean_value = clean_value.replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')

    if not clean_value:
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    try:
        return to_amount(Decimal(clean_value), precision)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal") from None


def is_positive(value: Decimal) -> bool:
    """Check if amount is strictly positive"""
    return value > ZERO


def format_amount(value: Decimal, precision: Optional[int] = None) -> str:
    """Format for display, e.g. 1,200.50"""
    if precision is None:
        precision = get_config().amount_precision
    return f"{value:,.{precision}f}"
