import os
from typing import Optional

from fastapi import FastAPI
from pymongo import MongoClient

import cart
import movies
import seat_reservation
import theaters
import users
from config import Settings, get_settings
from email_service import EmailService
from server import build_app


def create_app(
    settings: Optional[Settings] = None,
    mongo_client: Optional[MongoClient] = None,
    email_service: Optional[EmailService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = build_app(
        "Movie Ticketing API",
        settings,
        [users.ticketing_router, theaters.router, movies.router, cart.router, seat_reservation.router],
        mongo_client=mongo_client,
        email_service=email_service,
    )

    @app.get("/")
    def read_root():
        return {"message": "Movie Booking Backend Ready"}

    return app


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
