from decimal import Decimal, InvalidOperation
from typing import Union

AmountInput = Union[str, int, float, Decimal]

_CENT = Decimal("0.01")


def parse_amount(value: AmountInput, *, allow_zero: bool = False) -> Decimal:
    """Parse a fixed-point amount with at most two decimal places.

    Strings may carry a currency sign, spaces, or a decimal comma. Floats are
    read through their ``repr`` so ``12.5`` stays ``12.50``.
    """
    if isinstance(value, bool):
        raise ValueError("Invalid amount")
    if isinstance(value, Decimal):
        amount = value
    else:
        clean = str(value).strip().replace("€", "").replace("$", "").replace(" ", "")
        clean = clean.replace(",", ".")
        if clean.count(".") > 1:
            parts = clean.split(".")
            clean = "".join(parts[:-1]) + "." + parts[-1]
        try:
            amount = Decimal(clean)
        except InvalidOperation as exc:
            raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    try:
        quantized = amount.quantize(_CENT)
    except InvalidOperation as exc:
        raise ValueError("Amount is too large") from exc
    if amount != quantized:
        raise ValueError("Amount must have at most 2 decimal places")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValueError("Amount must be positive")
    return quantized


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


def format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def cents_to_number(cents: int) -> float:
    return cents / 100
