# tests/test_main.py

"""
Integration tests for the Catalog Service API.
These tests exercise the HTTP endpoints through FastAPI's TestClient against
a per-test SQLite database and media root.
"""

import os
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from catalog_service.db import StorageGateway, get_gateway
from catalog_service.exceptions import StorageFailure
from catalog_service.schemas import CATEGORIES, MAX_PRICE

from .conftest import ADMIN_AUTH, png_bytes


def product_form(**overrides):
    form = {
        "name": "Travel Pillow",
        "price": "2500",
        "description": "Neck support",
        "category": "Travel Comfort",
    }
    form.update(overrides)
    return form


def image_files(count: int, size: int = 2048):
    return [("images", (f"photo{i}.png", png_bytes(size), "image/png")) for i in range(count)]


def create_product(client: TestClient, images: int = 1, **overrides):
    return client.post(
        "/api/products",
        data=product_form(**overrides),
        files=image_files(images) or None,
        auth=ADMIN_AUTH,
    )


class BrokenGateway(StorageGateway):
    """A gateway whose every storage call fails."""

    def __init__(self):
        super().__init__("sqlite://")

    def _fail(self, *args, **kwargs):
        raise StorageFailure("Database operation failed.")

    list_all = find_by_id = insert = delete_by_id = _fail

    def ping(self):
        return False


@pytest.fixture
def broken_storage(app):
    app.dependency_overrides[get_gateway] = lambda: BrokenGateway()
    yield
    app.dependency_overrides.pop(get_gateway, None)


def test_health_check(client: TestClient):
    """Test the health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "catalog-service", "database": "up"}


def test_views_are_served(client: TestClient):
    storefront = client.get("/")
    admin = client.get("/admin")
    assert storefront.status_code == 200
    assert "text/html" in storefront.headers["content-type"]
    assert "/api/products" in storefront.text
    assert admin.status_code == 200
    assert "Admin Login" in admin.text


def test_create_product_success(client: TestClient):
    """
    POST with the storefront's example product and one 2 KB image returns 201
    with a generated id, a creation timestamp and one image reference.
    """
    response = create_product(client)

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Travel Pillow"
    assert data["price"] == 2500
    assert data["description"] == "Neck support"
    assert data["category"] == "Travel Comfort"
    assert isinstance(data["id"], str) and data["id"]
    assert data["createdAt"]
    assert len(data["images"]) == 1
    assert data["images"][0].startswith("product-")
    assert data["images"][0].endswith(".png")
    assert data["imageUrls"] == [f"/uploads/{data['images'][0]}"]


def test_created_image_is_served(client: TestClient):
    data = create_product(client).json()

    response = client.get(data["imageUrls"][0])
    assert response.status_code == 200
    assert response.content == png_bytes(2048)


def test_get_after_create_returns_same_product(client: TestClient):
    created = create_product(client, images=2).json()

    response = client.get(f"/api/products/{created['id']}")
    assert response.status_code == 200
    assert response.json() == created


def test_create_product_without_images(client: TestClient):
    response = create_product(client, images=0)
    assert response.status_code == 201
    assert response.json()["images"] == []


def test_create_product_truncates_fractional_price(client: TestClient):
    response = create_product(client, price="1999.99")
    assert response.status_code == 201
    assert response.json()["price"] == 1999


@pytest.mark.parametrize("price", ["abc", "", "nan", "inf", "-5", "1e30", "99999999999999999999999"])
def test_create_product_rejects_bad_price(client: TestClient, price):
    response = create_product(client, price=price)
    assert response.status_code == 400
    assert "price" in response.json()["fields"]


def test_create_product_missing_required_field(client: TestClient):
    """Missing text fields are rejected with 400 and a per-field message."""
    form = product_form()
    del form["name"]
    response = client.post("/api/products", data=form, auth=ADMIN_AUTH)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid product data."
    assert body["fields"]["name"] == "Field required"


def test_create_product_rejects_unknown_category(client: TestClient):
    response = create_product(client, category="Garden")
    assert response.status_code == 400
    assert "category" in response.json()["fields"]


@pytest.mark.parametrize("category", CATEGORIES)
def test_create_product_accepts_every_category(client: TestClient, category):
    response = create_product(client, images=0, category=category)
    assert response.status_code == 201
    assert response.json()["category"] == category


def test_create_product_rejects_five_images(client: TestClient, app):
    response = create_product(client, images=5)
    assert response.status_code == 400
    assert "images" in response.json()["fields"]
    assert client.get("/api/products").json() == []
    assert os.listdir(app.state.media.root) == []


def test_create_product_rejects_oversized_image(client: TestClient, app):
    """A file over 5 MiB is rejected and nothing is persisted."""
    files = image_files(1) + [("images", ("huge.png", png_bytes(5 * 1024 * 1024 + 1), "image/png"))]
    response = client.post("/api/products", data=product_form(), files=files, auth=ADMIN_AUTH)

    assert response.status_code == 413
    assert "error" in response.json()
    assert client.get("/api/products").json() == []
    assert os.listdir(app.state.media.root) == []
    assert os.listdir(app.state.media.staging_dir) == []


def test_create_product_rejects_non_image(client: TestClient):
    files = [("images", ("notes.png", b"just some text", "image/png"))]
    response = client.post("/api/products", data=product_form(), files=files, auth=ADMIN_AUTH)
    assert response.status_code == 415


def test_create_product_requires_admin(client: TestClient):
    response = client.post("/api/products", data=product_form(), files=image_files(1))
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Basic"
    assert client.get("/api/products").json() == []


def test_create_product_rejects_wrong_password(client: TestClient):
    response = client.post(
        "/api/products", data=product_form(), files=image_files(1), auth=("admin", "guess")
    )
    assert response.status_code == 401


def test_admin_session(client: TestClient):
    assert client.get("/api/admin/session", auth=ADMIN_AUTH).json() == {"username": "admin"}
    assert client.get("/api/admin/session").status_code == 401


def test_list_products_empty(client: TestClient):
    response = client.get("/api/products")
    assert response.status_code == 200
    assert response.json() == []


def test_list_products_newest_first(client: TestClient):
    for i in range(3):
        create_product(client, name=f"Product {i}")

    response = client.get("/api/products")
    assert response.status_code == 200
    products = response.json()
    assert [p["name"] for p in products] == ["Product 2", "Product 1", "Product 0"]
    timestamps = [datetime.fromisoformat(p["createdAt"].replace("Z", "+00:00")) for p in products]
    assert timestamps == sorted(timestamps, reverse=True)


def test_get_product_not_found(client: TestClient):
    response = client.get("/api/products/doesnotexist")
    assert response.status_code == 404
    assert response.json() == {"error": "Product not found"}


def test_delete_product_twice(client: TestClient):
    """The first delete succeeds; the second finds nothing."""
    product_id = create_product(client).json()["id"]

    first = client.delete(f"/api/products/{product_id}", auth=ADMIN_AUTH)
    assert first.status_code == 200
    assert first.json() == {"message": "Product deleted successfully"}

    second = client.delete(f"/api/products/{product_id}", auth=ADMIN_AUTH)
    assert second.status_code == 404
    assert client.get(f"/api/products/{product_id}").status_code == 404


def test_delete_keeps_image_files_by_default(client: TestClient, app):
    created = create_product(client).json()
    client.delete(f"/api/products/{created['id']}", auth=ADMIN_AUTH)

    assert os.path.exists(os.path.join(app.state.media.root, created["images"][0]))


def test_delete_product_requires_admin(client: TestClient):
    product_id = create_product(client).json()["id"]
    response = client.delete(f"/api/products/{product_id}")
    assert response.status_code == 401
    assert client.get(f"/api/products/{product_id}").status_code == 200


def test_storage_failure_maps_to_500(client: TestClient, broken_storage):
    assert client.get("/api/products").status_code == 500
    assert client.get("/api/products/anything").status_code == 500
    assert client.delete("/api/products/anything", auth=ADMIN_AUTH).status_code == 500

    response = create_product(client)
    assert response.status_code == 500
    assert response.json() == {"error": "Database operation failed."}
    assert client.get("/health").json()["database"] == "down"


def test_create_product_accepts_largest_price(client: TestClient):
    response = create_product(client, price=str(MAX_PRICE))
    assert response.status_code == 201
    assert response.json()["price"] == MAX_PRICE


class ExplodingGateway(BrokenGateway):
    """A gateway that fails with an error outside the catalog hierarchy."""

    def list_all(self, *args, **kwargs):
        raise RuntimeError("driver crashed")


def test_unexpected_error_maps_to_json_500(app):
    app.dependency_overrides[get_gateway] = lambda: ExplodingGateway()
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/api/products")
    app.dependency_overrides.pop(get_gateway, None)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error."}


@pytest.mark.parametrize("path", ["/", "/admin"])
def test_views_escape_attribute_quotes(client: TestClient, path):
    """Product text is interpolated into HTML attributes, so quotes must be escaped."""
    page = client.get(path).text
    assert "&quot;" in page
    assert "&#39;" in page
    assert "div.innerHTML" not in page
