"""
==============================================================================
Order Pricing Module
==============================================================================

Money arithmetic for checkout.

    subtotal = Σ price × quantity
    tax      = round((subtotal - discount) × tax_rate, 2)
    total    = subtotal - discount + tax + shipping

Every amount is rounded half-up to cents, so 0.125 becomes 0.13 rather
than the banker's 0.12 that round() would give.

==============================================================================
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Optional

from storefront.core import exceptions


CENTS = Decimal("0.01")


def round_money(amount: Any) -> float:
    """Round an amount half-up to 2 decimal places."""
    return float(Decimal(str(amount or 0)).quantize(CENTS, rounding=ROUND_HALF_UP))


def calculate_line_total(price: float, quantity: int) -> float:
    return round_money(Decimal(str(price)) * quantity)


def calculate_tax(subtotal: float, discount: float, rate: float) -> float:
    """Tax on the discounted subtotal."""
    taxable = Decimal(str(subtotal)) - Decimal(str(discount))
    return round_money(taxable * Decimal(str(rate)))


def validate_shipping_cost(shipping_cost: Optional[float]) -> float:
    """
    Validate a shipping cost.

    Raises:
        AppException: VALIDATION_ERROR for a negative cost
    """
    if shipping_cost is None:
        return 0.0
    if shipping_cost < 0:
        raise exceptions.validation_error("Shipping cost cannot be negative")
    return round_money(shipping_cost)


def calculate_order_pricing(
    line_totals: Iterable[float],
    rate: float,
    discount: float = 0.0,
    shipping_cost: float = 0.0,
) -> Dict[str, float]:
    """
    Compute the pricing breakdown of an order.

    Args:
        line_totals: Already rounded price × quantity per line
        rate: Tax rate, e.g. 0.18
        discount: Discount amount
        shipping_cost: Shipping charge

    Returns:
        Dict with subtotal, discount, tax, shipping_cost and total
    """
    subtotal = round_money(sum(Decimal(str(value)) for value in line_totals))
    discount = round_money(discount)
    shipping_cost = validate_shipping_cost(shipping_cost)
    tax = calculate_tax(subtotal, discount, rate)

    total = round_money(
        Decimal(str(subtotal))
        - Decimal(str(discount))
        + Decimal(str(tax))
        + Decimal(str(shipping_cost))
    )

    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax": tax,
        "shipping_cost": shipping_cost,
        "total": total,
    }


def format_price(amount: float, currency: str = "PKR") -> str:
    """
    Format an amount for display.

    Example:
        >>> format_price(1250, "PKR")
        'PKR 1,250'
        >>> format_price(1250.5, "PKR")
        'PKR 1,250.5'
    """
    formatted = f"{round_money(amount):,.2f}".rstrip("0").rstrip(".")
    return f"{currency} {formatted}"
