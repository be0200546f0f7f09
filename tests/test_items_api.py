import json
from pathlib import Path

from fastapi.testclient import TestClient
import pytest

from tests.util_constant import DEFAULT_PHONE, SELLER_EMAIL
from tests.utils import create_item, item_payload


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def property_payload(**overrides) -> dict:
    payload = item_payload(
        title="3 bedroom house in Musanze",
        description="Quiet neighbourhood close to the volcanoes park.",
        category="PROPERTY",
        subcategory="Houses",
        price=250000000,
        location={"district": "Musanze", "city": "Musanze"},
        features={"bedrooms": 3, "bathrooms": 2, "area": 420, "areaUnit": "sqm"},
    )
    payload.update(overrides)
    return payload


def electronics_payload(**overrides) -> dict:
    payload = item_payload(
        title="Samsung Galaxy S23",
        description="Barely used phone with original box.",
        category="ELECTRONICS",
        subcategory="Phones",
        price=850000,
        location={"district": "Nyarugenge", "city": "Kigali"},
        features={"brand": "Samsung", "condition": "Used", "warranty": False},
    )
    payload.update(overrides)
    return payload


class TestCreateItem:
    def test_create_item(self, marketplace_client: TestClient, seller, email_service):
        response = marketplace_client.post("/api/items", json=item_payload(), headers=seller["headers"])

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Item created successfully"
        assert data["imagesUploaded"] == 0
        item = data["item"]
        assert item["title"] == "Toyota RAV4 2018"
        assert item["status"] == "ACTIVE"
        assert item["currency"] == "Frw"
        assert item["features"]["brand"] == "Toyota"
        assert item["seller"]["id"] == seller["id"]
        assert item["seller"]["email"] == SELLER_EMAIL
        assert item["contactInfo"] == {"phone": DEFAULT_PHONE, "email": SELLER_EMAIL}

        assert email_service.sent_emails[-1]["to"] == SELLER_EMAIL
        assert email_service.sent_emails[-1]["subject"] == "Your item has been posted successfully!"

    def test_strings_are_trimmed(self, marketplace_client: TestClient, seller):
        item = create_item(marketplace_client, seller["headers"], title="  Padded title  ")

        assert item["title"] == "Padded title"

    def test_requires_authentication(self, marketplace_client: TestClient):
        response = marketplace_client.post("/api/items", json=item_payload())

        assert response.status_code == 401

    def test_missing_price_is_named(self, marketplace_client: TestClient, seller):
        payload = item_payload()
        del payload["price"]

        response = marketplace_client.post("/api/items", json=payload, headers=seller["headers"])

        assert response.status_code == 400
        assert "price: Field required" in response.json()["errors"]

    @pytest.mark.parametrize("price", [0, -5, 1e15])
    def test_price_out_of_range(self, marketplace_client: TestClient, seller, price):
        response = marketplace_client.post("/api/items", json=item_payload(price=price), headers=seller["headers"])

        assert response.status_code == 400
        assert "price: Valid price is required (must be positive number)" in response.json()["errors"]

    def test_unknown_category(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post("/api/items", json=item_payload(category="BOATS"), headers=seller["headers"])

        assert response.status_code == 400

    def test_features_must_match_category(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post(
            "/api/items", json=item_payload(features={"bedrooms": 3}), headers=seller["headers"]
        )

        assert response.status_code == 400
        assert any(error.startswith("features") for error in response.json()["errors"])


class TestListItems:
    @pytest.fixture
    def catalogue(self, marketplace_client: TestClient, seller):
        return {
            "car": create_item(marketplace_client, seller["headers"]),
            "house": create_item(marketplace_client, seller["headers"], **property_payload()),
            "phone": create_item(marketplace_client, seller["headers"], **electronics_payload()),
            "sold": create_item(marketplace_client, seller["headers"], title="Sold Corolla", status="SOLD"),
        }

    def _titles(self, response) -> set:
        assert response.status_code == 200
        return {item["title"] for item in response.json()["items"]}

    def test_lists_only_active_items(self, marketplace_client: TestClient, catalogue):
        response = marketplace_client.get("/api/items")

        assert self._titles(response) == {
            "Toyota RAV4 2018",
            "3 bedroom house in Musanze",
            "Samsung Galaxy S23",
        }
        assert response.json()["pagination"]["totalItems"] == 3

    def test_filter_by_category(self, marketplace_client: TestClient, catalogue):
        assert self._titles(marketplace_client.get("/api/items?category=PROPERTY")) == {"3 bedroom house in Musanze"}

    def test_filter_by_price_range(self, marketplace_client: TestClient, catalogue):
        response = marketplace_client.get("/api/items?minPrice=1000000&maxPrice=20000000")

        assert self._titles(response) == {"Toyota RAV4 2018"}

    def test_filter_by_location_is_case_insensitive(self, marketplace_client: TestClient, catalogue):
        response = marketplace_client.get("/api/items?location=kigali")

        assert self._titles(response) == {"Toyota RAV4 2018", "Samsung Galaxy S23"}

    def test_search_title_and_description(self, marketplace_client: TestClient, catalogue):
        assert self._titles(marketplace_client.get("/api/items?search=rav4")) == {"Toyota RAV4 2018"}
        assert self._titles(marketplace_client.get("/api/items?search=volcanoes")) == {"3 bedroom house in Musanze"}

    def test_search_treats_regex_characters_literally(self, marketplace_client: TestClient, catalogue):
        assert self._titles(marketplace_client.get("/api/items?search=.*")) == set()

    def test_pagination(self, marketplace_client: TestClient, catalogue):
        response = marketplace_client.get("/api/items?page=2&limit=2")

        assert response.status_code == 200
        data = response.json()
        assert len(data["items"]) == 1
        assert data["pagination"] == {
            "currentPage": 2,
            "totalPages": 2,
            "totalItems": 3,
            "itemsPerPage": 2,
        }

    def test_invalid_page(self, marketplace_client: TestClient):
        response = marketplace_client.get("/api/items?page=0")

        assert response.status_code == 400

    def test_popular_items_limited_to_four(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post(
            "/api/items/bulk",
            json={"items": [item_payload(title=f"Car {n}") for n in range(5)]},
            headers=seller["headers"],
        )
        assert response.status_code == 201

        response = marketplace_client.get("/api/items/popular/motors")

        assert response.status_code == 200
        assert len(response.json()["items"]) == 4

    def test_my_items(self, marketplace_client: TestClient, catalogue, seller, buyer):
        mine = marketplace_client.get("/api/items/seller/my-items", headers=seller["headers"])
        theirs = marketplace_client.get("/api/items/seller/my-items", headers=buyer["headers"])

        # includes listings that are no longer active
        assert len(mine.json()["items"]) == 4
        assert theirs.json()["items"] == []


class TestItemDetail:
    def test_get_item(self, marketplace_client: TestClient, seller):
        item = create_item(marketplace_client, seller["headers"])

        response = marketplace_client.get(f"/api/items/{item['id']}")

        assert response.status_code == 200
        assert response.json()["item"]["seller"]["firstName"] == "Seller"

    def test_invalid_id(self, marketplace_client: TestClient):
        response = marketplace_client.get("/api/items/not-an-id")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid ID format"

    def test_unknown_id(self, marketplace_client: TestClient):
        response = marketplace_client.get("/api/items/64b7f0c2a1b2c3d4e5f60718")

        assert response.status_code == 404
        assert response.json()["detail"] == "Item not found"


class TestUpdateAndDelete:
    def test_owner_updates_item(self, marketplace_client: TestClient, seller):
        item = create_item(marketplace_client, seller["headers"])

        response = marketplace_client.put(
            f"/api/items/{item['id']}", json={"price": 17000000, "title": "Toyota RAV4 (reduced)"}, headers=seller["headers"]
        )

        assert response.status_code == 200
        updated = response.json()["item"]
        assert updated["price"] == 17000000
        assert updated["title"] == "Toyota RAV4 (reduced)"
        assert updated["description"] == item["description"]

    def test_seller_field_is_ignored(self, marketplace_client: TestClient, seller, buyer):
        item = create_item(marketplace_client, seller["headers"])

        response = marketplace_client.put(
            f"/api/items/{item['id']}", json={"seller": buyer["id"], "title": "Renamed"}, headers=seller["headers"]
        )

        assert response.status_code == 200
        assert response.json()["item"]["seller"]["id"] == seller["id"]

    def test_other_user_cannot_update(self, marketplace_client: TestClient, seller, buyer):
        item = create_item(marketplace_client, seller["headers"])

        response = marketplace_client.put(f"/api/items/{item['id']}", json={"price": 1}, headers=buyer["headers"])

        assert response.status_code == 404
        assert response.json()["detail"] == "Item not found or unauthorized"

    def test_empty_update(self, marketplace_client: TestClient, seller):
        item = create_item(marketplace_client, seller["headers"])

        response = marketplace_client.put(f"/api/items/{item['id']}", json={}, headers=seller["headers"])

        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"

    def test_category_change_drops_old_features(self, marketplace_client: TestClient, seller):
        item = create_item(marketplace_client, seller["headers"])

        response = marketplace_client.put(
            f"/api/items/{item['id']}", json={"category": "ELECTRONICS"}, headers=seller["headers"]
        )

        assert response.status_code == 200
        assert "features" not in response.json()["item"]

    def test_update_features_validated_against_category(self, marketplace_client: TestClient, seller):
        item = create_item(marketplace_client, seller["headers"])

        response = marketplace_client.put(
            f"/api/items/{item['id']}", json={"features": {"bedrooms": 2}}, headers=seller["headers"]
        )

        assert response.status_code == 400

    def test_delete(self, marketplace_client: TestClient, seller, buyer):
        item = create_item(marketplace_client, seller["headers"])

        forbidden = marketplace_client.delete(f"/api/items/{item['id']}", headers=buyer["headers"])
        deleted = marketplace_client.delete(f"/api/items/{item['id']}", headers=seller["headers"])

        assert forbidden.status_code == 404
        assert deleted.status_code == 200
        assert marketplace_client.get(f"/api/items/{item['id']}").status_code == 404


class TestBulkCreate:
    def test_reports_per_index_errors(self, marketplace_client: TestClient, seller):
        invalid = item_payload()
        del invalid["title"]

        response = marketplace_client.post(
            "/api/items/bulk",
            json={"items": [item_payload(), invalid, electronics_payload()]},
            headers=seller["headers"],
        )

        assert response.status_code == 201
        data = response.json()
        assert data["summary"] == {"total": 3, "created": 2, "failed": 1}
        assert len(data["createdItems"]) == 2
        assert data["errors"][0]["index"] == 1
        assert "title" in data["errors"][0]["error"]

    def test_errors_null_when_all_valid(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post("/api/items/bulk", json={"items": [item_payload()]}, headers=seller["headers"])

        assert response.status_code == 201
        assert response.json()["errors"] is None

    def test_empty_batch(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post("/api/items/bulk", json={"items": []}, headers=seller["headers"])

        assert response.status_code == 400


class TestUpload:
    def test_upload_stores_and_serves_image(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post(
            "/api/items/upload",
            data={"data": json.dumps(item_payload())},
            files=[("images", ("car.png", PNG_BYTES, "image/png"))],
            headers=seller["headers"],
        )

        assert response.status_code == 201
        data = response.json()
        assert data["imagesUploaded"] == 1
        url = data["item"]["images"][0]
        assert url.startswith("http://testserver/uploads/")
        assert url.endswith(".png")

        served = marketplace_client.get(url.replace("http://testserver", ""))
        assert served.status_code == 200
        assert served.content == PNG_BYTES

    def test_inline_storage(self, marketplace_client: TestClient, seller, settings):
        settings.UPLOAD_STORAGE = "inline"

        response = marketplace_client.post(
            "/api/items/upload",
            data={"data": json.dumps(item_payload())},
            files=[("images", ("car.png", PNG_BYTES, "image/png"))],
            headers=seller["headers"],
        )

        assert response.status_code == 201
        assert response.json()["item"]["images"][0].startswith("data:image/png;base64,")

    def test_rejects_non_image(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post(
            "/api/items/upload",
            data={"data": json.dumps(item_payload())},
            files=[("images", ("notes.txt", b"hello", "text/plain"))],
            headers=seller["headers"],
        )

        assert response.status_code == 400
        assert "Only image files are allowed" in response.json()["detail"]

    def test_valid_image_is_not_kept_when_another_is_rejected(self, marketplace_client: TestClient, seller, settings, db):
        response = marketplace_client.post(
            "/api/items/upload",
            data={"data": json.dumps(item_payload())},
            files=[
                ("images", ("car.png", PNG_BYTES, "image/png")),
                ("images", ("notes.txt", b"hello", "text/plain")),
            ],
            headers=seller["headers"],
        )

        assert response.status_code == 400
        upload_dir = Path(settings.UPLOAD_DIR)
        assert not upload_dir.exists() or list(upload_dir.iterdir()) == []
        assert db["items"].count_documents({}) == 0

    def test_partial_write_is_cleaned_up(self, marketplace_client: TestClient, seller, settings, monkeypatch):
        real_write_bytes = Path.write_bytes
        calls = []

        def write_bytes(path, content):
            calls.append(path)
            if len(calls) > 1:
                raise OSError("disk full")
            return real_write_bytes(path, content)

        monkeypatch.setattr(Path, "write_bytes", write_bytes)

        with pytest.raises(OSError):
            marketplace_client.post(
                "/api/items/upload",
                data={"data": json.dumps(item_payload())},
                files=[
                    ("images", ("a.png", PNG_BYTES, "image/png")),
                    ("images", ("b.png", PNG_BYTES, "image/png")),
                ],
                headers=seller["headers"],
            )

        assert len(calls) == 2
        assert list(Path(settings.UPLOAD_DIR).iterdir()) == []

    def test_rejects_malformed_data(self, marketplace_client: TestClient, seller):
        response = marketplace_client.post(
            "/api/items/upload", data={"data": "{not json"}, headers=seller["headers"]
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "data must be a JSON object"

    def test_validates_data_fields(self, marketplace_client: TestClient, seller):
        payload = item_payload()
        del payload["location"]

        response = marketplace_client.post(
            "/api/items/upload", data={"data": json.dumps(payload)}, headers=seller["headers"]
        )

        assert response.status_code == 400
        assert "location: Field required" in response.json()["errors"]
