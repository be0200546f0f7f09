"""
Test configuration and fixtures.

Both apps are built against an in-memory mongomock client and a
MockEmailService that records what would have been sent.
"""

from fastapi.testclient import TestClient
import mongomock
import pytest

from config import Settings
from email_service import MockEmailService
import main
import marketplace
from tests.util_constant import (
    ADMIN_EMAIL,
    BUYER_EMAIL,
    BUYER_FIRST_NAME,
    SELLER_EMAIL,
    SELLER_FIRST_NAME,
)
from tests.utils import register_and_login, ticketing_user


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        SECRET_KEY="test-secret-key-with-enough-entropy",
        DATABASE_NAME="sokogo_test",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        BASE_URL="http://testserver",
        EMAIL_BACKEND="console",
        ADMIN_EMAIL="support@sokogo.test",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def db(mongo_client, settings):
    return mongo_client[settings.DATABASE_NAME]


@pytest.fixture
def email_service(settings):
    return MockEmailService(settings)


@pytest.fixture
def marketplace_client(settings, mongo_client, email_service):
    app = marketplace.create_app(settings, mongo_client=mongo_client, email_service=email_service)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def ticketing_client(settings, mongo_client, email_service):
    app = main.create_app(settings, mongo_client=mongo_client, email_service=email_service)
    with TestClient(app) as client:
        yield client


# Marketplace users

@pytest.fixture
def seller(marketplace_client):
    return register_and_login(marketplace_client, SELLER_EMAIL, SELLER_FIRST_NAME, "seller")


@pytest.fixture
def buyer(marketplace_client):
    return register_and_login(marketplace_client, BUYER_EMAIL, BUYER_FIRST_NAME, "buyer")


@pytest.fixture
def admin(marketplace_client, db):
    user = register_and_login(marketplace_client, ADMIN_EMAIL, "Admin")
    db["users"].update_one({"email": ADMIN_EMAIL}, {"$set": {"role": "admin"}})
    return user


# Ticketing users and catalogue

@pytest.fixture
def viewer(ticketing_client):
    return ticketing_user(ticketing_client, BUYER_EMAIL, BUYER_FIRST_NAME)


@pytest.fixture
def other_viewer(ticketing_client):
    return ticketing_user(ticketing_client, "another.viewer@example.com", "Another")


@pytest.fixture
def theater(ticketing_client, viewer):
    response = ticketing_client.post(
        "/theaters/add",
        json={"theaterName": "Nutan", "location": "Sitamarhi", "totalSeats": 10},
        headers=viewer["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["theater"]


@pytest.fixture
def movie(ticketing_client, viewer, theater):
    response = ticketing_client.post(
        f"/movie/add/{theater['id']}",
        json={
            "url": "https://img.example.com/gadar2.jpg",
            "movieName": "Gadar 2",
            "price": 200,
            "rating": 4,
            "showTimes": ["2 to 4", "6 to 8"],
        },
        headers=viewer["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["movie"]
