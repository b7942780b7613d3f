"""
==============================================================================
Product Image Upload Tests
==============================================================================

Tests for image validation, WEBP variant generation, reordering and
deletion against an in-memory S3 client.

==============================================================================
"""

import io

from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.orm import Session

from storefront.db.models import Product, ProductImage
from helpers import make_image_bytes


def _images_url(product: Product) -> str:
    return f"/api/v1/products/{product.id}/images"


def _upload(client: TestClient, headers: dict, product: Product, *files):
    return client.post(
        _images_url(product),
        headers=headers,
        files=[("files", (name, data, "application/octet-stream")) for name, data in files]
    )


class TestImageUpload:
    """Tests for POST /products/{id}/images."""

    def test_upload_creates_three_webp_variants(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes,
        s3_client
    ):
        response = _upload(client, admin_headers, cafe_product, ("front.png", image_bytes))
        assert response.status_code == 201
        images = response.json()["images"]
        assert len(images) == 1
        assert images[0]["position"] == 0
        assert images[0]["original_url"].startswith(
            f"https://cdn.example.com/app/uploads/products/{cafe_product.id}/original-"
        )

        assert len(s3_client.objects) == 3
        kinds = sorted(key.rsplit("/", 1)[-1].split("-", 1)[0] for key in s3_client.objects)
        assert kinds == ["medium", "original", "thumb"]

        sizes = {}
        for key, body in s3_client.objects.items():
            decoded = Image.open(io.BytesIO(body))
            assert decoded.format == "WEBP"
            sizes[key.rsplit("/", 1)[-1].split("-", 1)[0]] = decoded.size
        assert sizes == {"original": (1000, 1000), "medium": (600, 600), "thumb": (200, 200)}

    def test_large_images_are_shrunk(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        s3_client
    ):
        data = make_image_bytes(2400, 1600, "JPEG")
        response = _upload(client, admin_headers, cafe_product, ("wide.jpg", data))
        assert response.status_code == 201

        original = next(body for key, body in s3_client.objects.items() if "/original-" in key)
        assert Image.open(io.BytesIO(original)).size == (1200, 800)

    def test_positions_continue_after_existing_images(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes
    ):
        _upload(client, admin_headers, cafe_product, ("a.png", image_bytes))
        response = _upload(
            client, admin_headers, cafe_product,
            ("b.png", image_bytes), ("c.png", image_bytes)
        )
        assert [image["position"] for image in response.json()["images"]] == [1, 2]

    def test_too_small(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        response = _upload(
            client, admin_headers, cafe_product,
            ("small.png", make_image_bytes(799, 1000))
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Image dimensions must be at least 800x800px"

    def test_bad_extension(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes
    ):
        response = _upload(client, admin_headers, cafe_product, ("photo.gif", image_bytes))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == (
            "Invalid file format. Allowed: jpg, jpeg, png, webp"
        )

    def test_not_an_image(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        response = _upload(client, admin_headers, cafe_product, ("fake.png", b"not really a png"))
        assert response.status_code == 400

    def test_file_too_large(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        data = b"\0" * (5 * 1024 * 1024 + 1)
        response = _upload(client, admin_headers, cafe_product, ("huge.png", data))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "File size exceeds 5MB limit"

    def test_one_bad_file_rejects_batch(
        self,
        client: TestClient,
        db: Session,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes,
        s3_client
    ):
        response = _upload(
            client, admin_headers, cafe_product,
            ("good.png", image_bytes),
            ("tiny.png", make_image_bytes(100, 100))
        )
        assert response.status_code == 400
        assert s3_client.objects == {}
        assert db.query(ProductImage).count() == 0

    def test_storage_failure_removes_partial_batch(
        self,
        client: TestClient,
        db: Session,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes,
        s3_client
    ):
        s3_client.fail_after = 4

        response = _upload(
            client, admin_headers, cafe_product,
            ("a.png", image_bytes), ("b.png", image_bytes)
        )
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"

        assert s3_client.objects == {}
        assert len(s3_client.deleted) == 4
        assert db.query(ProductImage).count() == 0

    def test_image_limit(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product
    ):
        small_valid = make_image_bytes(800, 800, "JPEG")
        files = [(f"{i}.jpg", small_valid) for i in range(11)]

        response = _upload(client, admin_headers, cafe_product, *files)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Maximum 10 images allowed per product"

    def test_manager_other_section(
        self,
        client: TestClient,
        manager_headers: dict,
        book_product: Product,
        image_bytes: bytes
    ):
        response = _upload(client, manager_headers, book_product, ("a.png", image_bytes))
        assert response.status_code == 403

    def test_unknown_product(self, client: TestClient, admin_headers: dict, image_bytes: bytes):
        response = client.post(
            "/api/v1/products/missing/images",
            headers=admin_headers,
            files=[("files", ("a.png", image_bytes, "image/png"))]
        )
        assert response.status_code == 404


class TestImageManagement:

    def _three_images(self, client: TestClient, headers: dict, product: Product, data: bytes):
        response = _upload(
            client, headers, product,
            ("a.png", data), ("b.png", data), ("c.png", data)
        )
        return [image["id"] for image in response.json()["images"]]

    def test_reorder(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes
    ):
        a, b, c = self._three_images(client, admin_headers, cafe_product, image_bytes)

        response = client.put(
            f"{_images_url(cafe_product)}/reorder",
            headers=admin_headers,
            json={"image_ids": [c, a, b]}
        )
        assert response.status_code == 200
        assert [image["id"] for image in response.json()["images"]] == [c, a, b]

        product = client.get(f"/api/v1/products/{cafe_product.id}", headers=admin_headers).json()
        assert [image["id"] for image in product["product"]["images"]] == [c, a, b]

    def test_reorder_requires_exact_set(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes
    ):
        a, b, _ = self._three_images(client, admin_headers, cafe_product, image_bytes)

        response = client.put(
            f"{_images_url(cafe_product)}/reorder",
            headers=admin_headers,
            json={"image_ids": [a, b]}
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Image IDs do not match product images"

    def test_delete_renumbers_and_removes_objects(
        self,
        client: TestClient,
        db: Session,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes,
        s3_client
    ):
        a, b, c = self._three_images(client, admin_headers, cafe_product, image_bytes)

        response = client.delete(f"{_images_url(cafe_product)}/{a}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Image deleted successfully"

        assert len(s3_client.deleted) == 3
        assert len(s3_client.objects) == 6

        remaining = db.query(ProductImage).order_by(ProductImage.position).all()
        assert [(image.id, image.position) for image in remaining] == [(b, 0), (c, 1)]

    def test_delete_unknown_image(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product
    ):
        response = client.delete(f"{_images_url(cafe_product)}/missing", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "IMAGE_NOT_FOUND"

    def test_list_shows_first_image_only(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        image_bytes: bytes
    ):
        self._three_images(client, admin_headers, cafe_product, image_bytes)

        listing = client.get("/api/v1/products", headers=admin_headers).json()
        assert len(listing["products"][0]["images"]) == 1
