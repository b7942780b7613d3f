"""
==============================================================================
Validation Utilities Module
==============================================================================

Validation classes for input data that needs more than a field constraint.

This module implements:
- PasswordStrengthValidator: Customer password rules
- SkuValidator: Product SKU format

Password Rules:
--------------
- At least 8 characters
- At least one uppercase letter
- At least one lowercase letter
- At least one digit
- At least one special character from !@#$%^&*(),.?":{}|<>

==============================================================================
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple


class PasswordStrengthValidator:
    """
    Validator for customer passwords.

    Unlike the other validators it reports every failed rule, so the client
    can render the full checklist at once.

    Example:
        >>> validator = PasswordStrengthValidator()
        >>> validator.validate("weak")
        (False, ['Password must be at least 8 characters long', ...])
    """

    MIN_LENGTH = 8
    SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

    UPPERCASE = re.compile(r"[A-Z]")
    LOWERCASE = re.compile(r"[a-z]")
    DIGIT = re.compile(r"\d")
    SPECIAL = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")

    def validate(self, password: str) -> Tuple[bool, List[str]]:
        """
        Check a password against every rule.

        Returns:
            Tuple of (is_valid, failed_requirements)
        """
        password = password or ""
        errors: List[str] = []

        if len(password) < self.MIN_LENGTH:
            errors.append(f"Password must be at least {self.MIN_LENGTH} characters long")
        if not self.UPPERCASE.search(password):
            errors.append("Password must contain at least one uppercase letter")
        if not self.LOWERCASE.search(password):
            errors.append("Password must contain at least one lowercase letter")
        if not self.DIGIT.search(password):
            errors.append("Password must contain at least one number")
        if not self.SPECIAL.search(password):
            errors.append("Password must contain at least one special character")

        return not errors, errors

    def is_valid(self, password: str) -> bool:
        """Quick validation check."""
        is_valid, _ = self.validate(password)
        return is_valid


class SkuValidator:
    """
    Validator for product SKUs.

    SKUs are letters, digits and hyphens; they are stored upper-cased.

    Example:
        >>> SkuValidator().validate(" cafe-latte-01 ")
        (True, 'CAFE-LATTE-01', None)
    """

    PATTERN = re.compile(r"^[A-Z0-9-]+$", re.IGNORECASE)

    MAX_LENGTH = 64

    def validate(self, sku: str) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Validate and normalize a SKU.

        Returns:
            Tuple of (is_valid, normalized_sku, error_message)
        """
        if not sku:
            return False, None, "SKU is required"

        sku = sku.strip()

        if len(sku) > self.MAX_LENGTH:
            return False, None, f"SKU must be at most {self.MAX_LENGTH} characters"

        if not self.PATTERN.match(sku):
            return False, None, "SKU can only contain letters, numbers, and hyphens"

        return True, sku.upper(), None

    def is_valid(self, sku: str) -> bool:
        """Quick validation check."""
        is_valid, _, _ = self.validate(sku)
        return is_valid
