"""Payload and image builders shared by the API tests."""

import io

from PIL import Image


def make_image_bytes(width: int = 1000, height: int = 1000, fmt: str = "PNG") -> bytes:
    """Solid-colour image encoded in memory."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


def order_payload(*items, email: str = "guest@example.com", name: str = "Guest Shopper") -> dict:
    """Checkout body for (product_id, quantity) pairs."""
    return {
        "customer": {"name": name, "email": email, "phone": "+92 300 1234567"},
        "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
        "shipping_address": {
            "full_name": name,
            "address": "12 Mall Road",
            "city": "Lahore",
        },
    }


def address_payload(**overrides) -> dict:
    payload = {
        "first_name": "Jane",
        "last_name": "Doe",
        "address_line1": "12 Mall Road",
        "city": "Lahore",
        "country": "Pakistan",
    }
    payload.update(overrides)
    return payload
