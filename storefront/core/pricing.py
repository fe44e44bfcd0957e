from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

from storefront.core.config import settings

Amount = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def _group_indian(digits: str) -> str:
    # Last three digits form one group, the rest are grouped in pairs (1,23,45,678).
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_price(value: Amount, symbol: str = None) -> str:
    """Format an amount the way the storefront displays prices, e.g. ``₹1,23,456.50``."""
    symbol = settings.CURRENCY_SYMBOL if symbol is None else symbol
    amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.2f}".partition(".")
    return f"{sign}{symbol}{_group_indian(whole)}.{fraction}"


def to_minor_units(value: Amount) -> int:
    """Amount in paise (minor units), rounded half-up to the nearest integer."""
    return int((Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def line_total(price: Amount, quantity: int) -> Decimal:
    return Decimal(str(price)) * quantity


def cart_total(lines: Iterable) -> Decimal:
    """Sum of price x quantity over anything exposing ``price`` and ``quantity``."""
    return sum((line_total(line.price, line.quantity) for line in lines), Decimal("0"))
