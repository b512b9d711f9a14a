"""Money helpers and deal economics shared across the services.


- to_money normalises user input to a quantized Decimal.
- deal_amounts derives commission / advance / remaining / platform fee from the prices.

Rates are read from settings on every call so deployments (and tests) can tune them.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings

from .errors import ValidationError

ZERO = Decimal("0.00")
MAX_MONEY = Decimal("1e16")


def money_quantum() -> Decimal:
    return Decimal(str(getattr(settings, "MONEY_QUANTUM", "0.01")))


def commission_rate() -> Decimal:
    return Decimal(str(getattr(settings, "DEAL_COMMISSION_RATE", "0.70")))


def advance_rate() -> Decimal:
    return Decimal(str(getattr(settings, "DEAL_ADVANCE_RATE", "0.25")))


def round_money(amount: Decimal) -> Decimal:
    """
    Round half-up to the configured currency quantum (paise by default).
    """
    return amount.quantize(money_quantum(), rounding=ROUND_HALF_UP).quantize(Decimal("0.01"))


def to_money(value, field: str = "amount") -> Decimal:
    """
    Convert str / int / Decimal input into a 2-decimal amount; floats go through str
    so 0.1 stays 0.1. Rejects NaN, infinities and sub-paise precision.
    """
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    if abs(amount) >= MAX_MONEY:
        raise ValidationError(f"{field} is out of range", field=field)
    if amount != amount.quantize(Decimal("0.01")):
        raise ValidationError(f"{field} supports at most 2 decimal places", field=field)
    return amount.quantize(Decimal("0.01"))


@dataclass(frozen=True)
class DealAmounts:
    commission_amount: Decimal
    advance_amount: Decimal
    remaining_amount: Decimal
    platform_fee: Decimal


def deal_amounts(card_offer_price: Decimal, expected_buy_price: Decimal) -> DealAmounts:
    """
    commission = round(COMMISSION_RATE * max(0, expected_buy - card_offer))
    advance    = round(ADVANCE_RATE * expected_buy)
    remaining  = expected_buy - advance
    platform   = expected_buy - card_offer - commission (the merchant pays expected_buy in total)
    round      = half-up to settings.MONEY_QUANTUM (0.01 by default, "1" for whole rupees)
    """
    spread = max(ZERO, expected_buy_price - card_offer_price)
    commission = min(round_money(commission_rate() * spread), spread)
    advance = round_money(advance_rate() * expected_buy_price)
    remaining = expected_buy_price - advance
    platform_fee = spread - commission
    return DealAmounts(
        commission_amount=commission,
        advance_amount=advance,
        remaining_amount=remaining,
        platform_fee=platform_fee,
    )
