import os
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from pymongo import MongoClient

import bookings
import contact
import items
import users
from config import Settings, get_settings
from email_service import EmailService
from server import build_app


def api_info(settings: Settings) -> dict:
    return {
        "name": "Sokogo Classifieds API",
        "version": settings.VERSION,
        "description": "Backend API for SOKOGO Classifieds Platform",
        "features": [
            "User Authentication with JWT",
            "Item/Product Management",
            "Image Upload (Local & Inline)",
            "Email Notifications",
            "Contact/Inquiry System",
            "Advanced Search & Filtering",
            "Bookings & Payments",
        ],
        "endpoints": {
            "auth": {
                "register": "POST /api/auth/register",
                "login": "POST /api/auth/login",
                "getAllUsers": "GET /api/auth/users",
                "me": "GET /api/auth/me",
            },
            "items": {
                "getAll": "GET /api/items",
                "create": "POST /api/items",
                "createWithImages": "POST /api/items/upload",
                "createBulk": "POST /api/items/bulk",
                "getById": "GET /api/items/:id",
                "getMyItems": "GET /api/items/seller/my-items",
                "getPopular": "GET /api/items/popular/:category",
                "update": "PUT /api/items/:id",
                "delete": "DELETE /api/items/:id",
            },
            "bookings": {
                "create": "POST /api/bookings",
                "getMine": "GET /api/bookings",
                "getById": "GET /api/bookings/:id",
                "updateStatus": "PATCH /api/bookings/:id/status",
                "cancel": "POST /api/bookings/:id/cancel",
                "pay": "POST /api/bookings/:id/pay",
            },
            "contact": {
                "sendInquiry": "POST /api/contact/inquiry",
                "contactForm": "POST /api/contact/contact",
                "testEmail": "GET /api/contact/test-email",
            },
            "utility": {
                "health": "GET /health",
                "apiInfo": "GET /api",
                "uploads": "GET /uploads/:filename",
            },
        },
        "authentication": {
            "type": "JWT Bearer Token",
            "header": "Authorization: Bearer <token>",
            "alternativeHeader": "userid: <user_id>",
        },
    }


def create_app(
    settings: Optional[Settings] = None,
    mongo_client: Optional[MongoClient] = None,
    email_service: Optional[EmailService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = build_app(
        "Sokogo Classifieds API",
        settings,
        [users.marketplace_router, items.router, bookings.router, contact.router],
        mongo_client=mongo_client,
        email_service=email_service,
    )
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

    @app.get("/")
    def read_root():
        return {"message": "WELCOME TO SOKOGO CLASSIFIEDS BACKEND API"}

    @app.get("/api")
    def read_api_info():
        return api_info(settings)

    return app


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
