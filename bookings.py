"""Marketplace bookings of listings (rentals, stays) and their payments."""

from typing import List
import uuid

from fastapi import APIRouter, Depends, status
from pymongo import ReturnDocument
from pymongo.database import Database as MongoDatabase
from pymongo.errors import PyMongoError

from auth import get_current_user
from database import get_db, get_objectid, str_id, utcnow
from exceptions import BadRequestError, ConflictError, NotFoundError
from logger_config import Logger
from schemas import TERMINAL_BOOKING_STATUSES, BookingCreate, BookingStatusUpdate, PaymentCreate


ITEM_SUMMARY_FIELDS = ("title", "price", "category", "images")


def serialize_booking(db: MongoDatabase, doc: dict) -> dict:
    booking = str_id(doc)
    item = db["items"].find_one({"_id": doc["item"]})
    if item is not None:
        booking["item"] = {"id": str(item["_id"]), **{f: item.get(f) for f in ITEM_SUMMARY_FIELDS}}
    return booking


def _owned_booking(db: MongoDatabase, booking_id: str, user: dict) -> dict:
    doc = db["bookings"].find_one({"_id": get_objectid(booking_id), "user": user["_id"]})
    if doc is None:
        raise NotFoundError("Booking not found")
    return doc


@Logger.io
def create_booking(db: MongoDatabase, body: BookingCreate, user: dict) -> dict:
    item = db["items"].find_one({"_id": get_objectid(body.item_id)})
    if item is None:
        raise NotFoundError("Item not found")
    if item.get("status", "ACTIVE") != "ACTIVE":
        raise BadRequestError("Item is not available for booking")

    now = utcnow()
    doc = {
        "user": user["_id"],
        "item": item["_id"],
        "checkInDate": body.check_in_date,
        "checkOutDate": body.check_out_date,
        "status": "PENDING",
        "totalPrice": body.total_price,
        "additionalRequests": body.additional_requests.strip(),
        "createdAt": now,
        "updatedAt": now,
    }
    doc["_id"] = db["bookings"].insert_one(doc).inserted_id
    return serialize_booking(db, doc)


def get_user_bookings(db: MongoDatabase, user: dict) -> List[dict]:
    docs = db["bookings"].find({"user": user["_id"]}).sort([("createdAt", -1), ("_id", -1)])
    return [serialize_booking(db, doc) for doc in docs]


def get_booking(db: MongoDatabase, booking_id: str, user: dict) -> dict:
    return serialize_booking(db, _owned_booking(db, booking_id, user))


@Logger.io
def update_booking_status(db: MongoDatabase, booking_id: str, new_status: str, user: dict) -> dict:
    doc = _owned_booking(db, booking_id, user)
    if doc["status"] in TERMINAL_BOOKING_STATUSES and doc["status"] != new_status:
        raise BadRequestError(f"Booking is {doc['status'].lower()} and cannot change status")

    # conditional on the status read above
    doc = db["bookings"].find_one_and_update(
        {"_id": doc["_id"], "status": doc["status"]},
        {"$set": {"status": new_status, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise ConflictError("Booking was modified concurrently, please retry")
    return serialize_booking(db, doc)


@Logger.io
def cancel_booking(db: MongoDatabase, booking_id: str, user: dict) -> dict:
    doc = _owned_booking(db, booking_id, user)
    if doc["status"] == "CANCELLED":
        raise BadRequestError("Booking is already cancelled")
    if doc["status"] == "COMPLETED":
        raise BadRequestError("Cannot cancel completed booking")
    return update_booking_status(db, booking_id, "CANCELLED", user)


@Logger.io
def pay_booking(db: MongoDatabase, booking_id: str, body: PaymentCreate, user: dict) -> dict:
    booking = _owned_booking(db, booking_id, user)
    if booking["status"] != "PENDING":
        raise BadRequestError("Only pending bookings can be paid")

    now = utcnow()
    # claim the booking before a payment is written
    confirmed = db["bookings"].find_one_and_update(
        {"_id": booking["_id"], "status": "PENDING"},
        {"$set": {"status": "CONFIRMED", "updatedAt": now}},
        return_document=ReturnDocument.AFTER,
    )
    if confirmed is None:
        raise ConflictError("Booking was modified concurrently, please retry")

    payment = {
        "booking": booking["_id"],
        "amount": booking["totalPrice"],
        "status": "COMPLETED",
        "paymentMethod": body.payment_method,
        "transactionId": f"TXN-{uuid.uuid4().hex.upper()}",
        "paymentDate": now,
        "refundDate": None,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        payment["_id"] = db["payments"].insert_one(payment).inserted_id
    except PyMongoError:
        db["bookings"].update_one(
            {"_id": booking["_id"], "status": "CONFIRMED"},
            {"$set": {"status": "PENDING", "updatedAt": utcnow()}},
        )
        raise
    Logger.base.info(f"Booking {booking['_id']} paid with {payment['transactionId']}")
    return {"payment": str_id(payment), "booking": serialize_booking(db, confirmed)}


router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create(body: BookingCreate, db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_current_user)):
    return {"message": "Booking created successfully", "booking": create_booking(db, body, current_user)}


@router.get("")
def my_bookings(db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_current_user)):
    return {"message": "Bookings retrieved successfully", "bookings": get_user_bookings(db, current_user)}


@router.get("/{booking_id}")
def booking_detail(booking_id: str, db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_current_user)):
    return {"message": "Booking retrieved successfully", "booking": get_booking(db, booking_id, current_user)}


@router.patch("/{booking_id}/status")
def change_status(
    booking_id: str,
    body: BookingStatusUpdate,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    booking = update_booking_status(db, booking_id, body.status, current_user)
    return {"message": "Booking status updated successfully", "booking": booking}


@router.post("/{booking_id}/cancel")
def cancel(booking_id: str, db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_current_user)):
    return {"message": "Booking cancelled successfully", "booking": cancel_booking(db, booking_id, current_user)}


@router.post("/{booking_id}/pay", status_code=status.HTTP_201_CREATED)
def pay(
    booking_id: str,
    body: PaymentCreate,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return {"message": "Payment recorded successfully", **pay_booking(db, booking_id, body, current_user)}
