"""Price arithmetic shared by product cards, the cart and checkout.

A discount price only counts when it is positive and strictly below the
base price. Anything else is displayed and charged at the base price.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional

from .config import settings

class OrderTotals(NamedTuple):
    """Subtotal, shipping and grand total for a cart."""

    subtotal: float
    shipping_fee: float
    total: float

def has_discount(price: float, discount_price: Optional[float]) -> bool:
    return discount_price is not None and 0 < discount_price < price

def effective_price(price: float, discount_price: Optional[float]) -> float:
    return discount_price if has_discount(price, discount_price) else price

def discount_percent(price: float, discount_price: Optional[float]) -> int:
    """Whole percent saved, rounded half up; 0 when there is no genuine discount."""
    if not has_discount(price, discount_price):
        return 0
    pct = (Decimal(str(price)) - Decimal(str(discount_price))) * 100 / Decimal(str(price))
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def discount_badge(price: float, discount_price: Optional[float]) -> Optional[str]:
    pct = discount_percent(price, discount_price)
    return f"{pct}% OFF" if pct > 0 else None

def shipping_fee(
    subtotal: float,
    threshold: Optional[float] = None,
    flat_fee: Optional[float] = None,
) -> float:
    threshold = settings.FREE_SHIPPING_THRESHOLD if threshold is None else threshold
    flat_fee = settings.SHIPPING_FEE if flat_fee is None else flat_fee
    return 0 if subtotal >= threshold else flat_fee

def order_totals(
    subtotal: float,
    threshold: Optional[float] = None,
    flat_fee: Optional[float] = None,
) -> OrderTotals:
    fee = shipping_fee(subtotal, threshold, flat_fee)
    return OrderTotals(
        subtotal=round(subtotal, 2),
        shipping_fee=fee,
        total=round(subtotal + fee, 2),
    )
