"""
Customs duty and VAT for El Salvador personal imports.

Pure functions only. All amounts are Decimal and rounded half-up to cents.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from importflow.models.order import DutyBreakdown, OrderItem

VAT_RATE = Decimal("0.13")
# Declared values at or below this amount pay VAT only
DUTY_FREE_THRESHOLD = Decimal("300")
DEFAULT_DUTY_RATE = Decimal("0.15")

# Duty rate by the first four digits of the HS code
HS_CODE_DUTY_RATES: dict[str, Decimal] = {
    "8517": Decimal("0.05"),  # Phones and telecom equipment
    "8471": Decimal("0.05"),  # Computers
    "8518": Decimal("0.10"),  # Audio equipment
    "6403": Decimal("0.15"),  # Footwear
    "6204": Decimal("0.15"),  # Women's clothing
    "9503": Decimal("0.20"),  # Toys
    "3304": Decimal("0.10"),  # Cosmetics
}

# HS code assumed for an item when only its category is known
CATEGORY_HS_CODES: dict[str, str] = {
    "footwear": "6403",
    "shoes": "6403",
    "clothing": "6204",
    "electronics": "8517",
    "phones": "8517",
    "computers": "8471",
    "audio": "8518",
    "toys": "9503",
    "cosmetics": "3304",
}

_CENT = Decimal("0.01")


def _to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def resolve_hs_code(item: OrderItem) -> str | None:
    """HS code of the item, falling back to its category mapping."""
    if item.hs_code:
        return item.hs_code
    return CATEGORY_HS_CODES.get((item.category or "").strip().lower())


def duty_rate_for(hs_code: str | None) -> Decimal:
    """Rate for an HS code, matched on its 4-digit prefix."""
    if not hs_code:
        return DEFAULT_DUTY_RATE
    digits = "".join(ch for ch in hs_code if ch.isdigit())
    return HS_CODE_DUTY_RATES.get(digits[:4], DEFAULT_DUTY_RATE)


def calculate_duty(declared_value: Decimal, items: Iterable[OrderItem]) -> DutyBreakdown:
    """
    Calculate customs duty, VAT and total fees for a package.

    Args:
        declared_value: Total declared value of the package in USD
        items: Line items; each item's total value is taxed at its HS rate

    Returns:
        DutyBreakdown with duty, vat and total_fees
    """
    value = Decimal(declared_value)

    if value <= DUTY_FREE_THRESHOLD:
        vat = _to_cents(value * VAT_RATE)
        return DutyBreakdown(duty=Decimal("0.00"), vat=vat, total_fees=vat)

    duty = Decimal("0")
    for item in items:
        duty += item.total_value * duty_rate_for(resolve_hs_code(item))

    vat = (value + duty) * VAT_RATE
    return DutyBreakdown(
        duty=_to_cents(duty),
        vat=_to_cents(vat),
        total_fees=_to_cents(duty + vat),
    )
