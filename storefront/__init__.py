"""
Storefront API - backend for a multi-section (cafe, flowers, books) shop.
"""

__version__ = "1.0.0"
