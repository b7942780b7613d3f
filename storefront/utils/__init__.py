"""
==============================================================================
Utilities Package
==============================================================================

Modules:
--------
- clock: naive-UTC timestamps
- pricing: order money arithmetic and price formatting
- validators: password strength and SKU validation

==============================================================================
"""

from .clock import utc_now
from .validators import PasswordStrengthValidator, SkuValidator

__all__ = [
    "utc_now",
    "PasswordStrengthValidator",
    "SkuValidator",
]
