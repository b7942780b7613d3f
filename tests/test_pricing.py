"""
==============================================================================
Pricing and Validator Unit Tests
==============================================================================

Tests for order money arithmetic, stock helpers and input validators.

==============================================================================
"""

import pytest

from storefront.core.exceptions import AppException
from storefront.db.models import InventoryStatus, ProductAvailability, Section
from storefront.services.customer_service import favorite_section, loyalty_tier
from storefront.services.product_service import (
    calculate_availability,
    inventory_status,
    validate_section_data,
)
from storefront.utils.pricing import (
    calculate_line_total,
    calculate_order_pricing,
    calculate_tax,
    format_price,
    round_money,
    validate_shipping_cost,
)
from storefront.utils.validators import PasswordStrengthValidator, SkuValidator


class TestMoneyArithmetic:
    """Tests for rounding and order totals."""

    def test_round_half_up(self):
        assert round_money(0.125) == 0.13
        assert round_money(2.675) == 2.68
        assert round_money(None) == 0.0

    def test_line_total(self):
        assert calculate_line_total(19.99, 3) == 59.97

    def test_tax_on_discounted_subtotal(self):
        assert calculate_tax(1000, 100, 0.18) == 162.0

    def test_order_pricing_breakdown(self):
        pricing = calculate_order_pricing([900.0, 1200.0], 0.18)

        assert pricing["subtotal"] == 2100.0
        assert pricing["tax"] == 378.0
        assert pricing["discount"] == 0.0
        assert pricing["shipping_cost"] == 0.0
        assert pricing["total"] == 2478.0

    def test_order_pricing_with_shipping_and_discount(self):
        pricing = calculate_order_pricing([100.0], 0.1, discount=10, shipping_cost=5.5)

        assert pricing["tax"] == 9.0
        assert pricing["total"] == 104.5

    def test_negative_shipping_rejected(self):
        with pytest.raises(AppException) as exc:
            validate_shipping_cost(-1)
        assert exc.value.message == "Shipping cost cannot be negative"

    def test_format_price(self):
        assert format_price(1250, "PKR") == "PKR 1,250"
        assert format_price(1250.5, "PKR") == "PKR 1,250.5"
        assert format_price(99.99, "USD") == "USD 99.99"


class TestStockHelpers:
    """Tests for availability and inventory status."""

    def test_availability(self):
        assert calculate_availability(3, False) == ProductAvailability.AVAILABLE
        assert calculate_availability(0, False) == ProductAvailability.OUT_OF_STOCK
        assert calculate_availability(0, True) == ProductAvailability.AVAILABLE

    def test_inventory_status_thresholds(self):
        assert inventory_status(0, 10) == InventoryStatus.OUT_OF_STOCK
        assert inventory_status(10, 10) == InventoryStatus.LOW_STOCK
        assert inventory_status(11, 10) == InventoryStatus.IN_STOCK

    def test_books_need_title(self):
        with pytest.raises(AppException) as exc:
            validate_section_data(Section.BOOKS, "Dune", None, {"author": "Frank Herbert"})
        assert exc.value.message == "Title is required for book products"

    def test_cafe_needs_attributes(self):
        with pytest.raises(AppException) as exc:
            validate_section_data(Section.CAFE, "Latte", None, None)
        assert exc.value.message == "Cafe attributes are required for cafe products"


class TestCustomerMetrics:

    def test_loyalty_tiers(self):
        assert loyalty_tier(0) == "bronze"
        assert loyalty_tier(10000) == "silver"
        assert loyalty_tier(25000) == "gold"
        assert loyalty_tier(75000) == "platinum"

    def test_favorite_section(self):
        assert favorite_section([]) == Section.CAFE
        assert favorite_section([Section.BOOKS, Section.BOOKS, Section.FLOWERS]) == Section.BOOKS
        assert favorite_section([Section.FLOWERS, Section.BOOKS]) == Section.FLOWERS


class TestValidators:
    """Tests for password and SKU validation."""

    def test_strong_password(self):
        assert PasswordStrengthValidator().is_valid("Secret@123")

    def test_weak_password_lists_every_rule(self):
        is_valid, errors = PasswordStrengthValidator().validate("abc")
        assert not is_valid
        assert len(errors) == 4

    def test_sku_normalized(self):
        assert SkuValidator().validate(" cafe-latte-01 ") == (True, "CAFE-LATTE-01", None)

    def test_sku_rejects_symbols(self):
        is_valid, _, error = SkuValidator().validate("CAFE_01")
        assert not is_valid
        assert error == "SKU can only contain letters, numbers, and hyphens"
