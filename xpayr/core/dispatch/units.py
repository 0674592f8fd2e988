"""USDC human-unit conversions for the CLI and HTTP layers."""

from decimal import Decimal, InvalidOperation
from typing import Union

from ..recovery import ValidationError

USDC_DECIMALS = 6
_SCALE = Decimal(10) ** USDC_DECIMALS


def parse_usdc_amount(value: Union[str, int, Decimal]) -> int:
    """``"100.5"`` -> ``100_500_000`` base units."""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid USDC amount: {value!r}", field_name="amount") from exc

    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"Invalid USDC amount: {value!r}", field_name="amount")

    scaled = amount * _SCALE
    if scaled != scaled.to_integral_value():
        raise ValidationError(
            f"USDC supports at most {USDC_DECIMALS} decimals: {value!r}",
            field_name="amount",
        )
    return int(scaled)


def format_usdc_amount(base_units: int) -> str:
    """``100_500_000`` -> ``"100.5"``."""
    whole, frac = divmod(abs(base_units), 10**USDC_DECIMALS)
    sign = "-" if base_units < 0 else ""
    if not frac:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac:0{USDC_DECIMALS}d}".rstrip("0")
