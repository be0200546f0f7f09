from fastapi.testclient import TestClient

from tests.util_constant import DEFAULT_PASSWORD, DEFAULT_PHONE


def user_payload(email: str, first_name: str = "Test", role: str = "buyer", **overrides) -> dict:
    payload = {
        "firstName": first_name,
        "lastName": "User",
        "email": email,
        "phoneNumber": DEFAULT_PHONE,
        "password": DEFAULT_PASSWORD,
        "role": role,
    }
    payload.update(overrides)
    return payload


def register_and_login(client: TestClient, email: str, first_name: str = "Test", role: str = "buyer") -> dict:
    response = client.post("/api/auth/register", json=user_payload(email, first_name, role))
    assert response.status_code == 201, response.text
    response = client.post("/api/auth/login", json={"email": email, "password": DEFAULT_PASSWORD})
    assert response.status_code == 200, response.text
    data = response.json()
    return {
        "id": data["user"]["id"],
        "token": data["token"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


def item_payload(**overrides) -> dict:
    payload = {
        "title": "Toyota RAV4 2018",
        "description": "Well maintained family SUV, single owner.",
        "category": "MOTORS",
        "subcategory": "Cars",
        "price": 18500000,
        "location": {"district": "Gasabo", "city": "Kigali", "address": "KG 11 Ave"},
        "features": {"brand": "Toyota", "model": "RAV4", "year": 2018, "fuelType": "Petrol"},
    }
    payload.update(overrides)
    return payload


def create_item(client: TestClient, headers: dict, **overrides) -> dict:
    response = client.post("/api/items", json=item_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["item"]


def ticketing_user(client: TestClient, email: str, first_name: str = "Viewer") -> dict:
    response = client.post("/user/register", json=user_payload(email, first_name))
    assert response.status_code == 201, response.text
    user_id = response.json()["user"]["id"]
    return {"id": user_id, "headers": {"userid": user_id}}


def add_to_cart(client: TestClient, user: dict, movie: dict, seats, show_index: int = 0):
    show_id = movie["availableSeat"][show_index]["_id"]
    return client.post(
        f"/cart/add/{movie['id']}",
        json={"showId": show_id, "seats": list(seats)},
        headers=user["headers"],
    )


def seat_map(show: dict) -> dict:
    return {seat["seatNo"]: seat["isBooked"] for seat in show["seat"]}


class ProxyDatabase:
    """Hands out wrapped collections for selected names."""

    def __init__(self, db, **collections):
        self.db = db
        self.collections = collections

    def __getitem__(self, name):
        if name in self.collections:
            return self.collections[name]
        return self.db[name]
