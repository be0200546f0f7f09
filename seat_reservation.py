"""
Seat reservation: turning a cart entry into a confirmed booking.

Three documents take part in a confirmation:
- the movie, whose ``availableSeat[i].seat`` array is the authority on
  which seats of a showtime are booked;
- the user's cart, from which the confirmed entry is removed;
- the user's ticket history, to which the entry is appended with every
  seat flagged ``isBooked``.

Seats are identified by ``seatNo`` within one showtime. The movie is
written first with a conditional update on its ``version`` counter, so a
seat can only be flipped to booked by one confirmation. If the cart or
ticket write fails afterwards, the reserved seats are released again.
"""

import re
from typing import Iterable, List, Optional, Set

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.database import Database as MongoDatabase
from pymongo.errors import PyMongoError

from auth import get_header_user
from database import get_db, get_objectid, stringify_ids, utcnow
from email_service import EmailService, get_email_service
from exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from logger_config import Logger
from schemas import BookTicket


MAX_RESERVE_ATTEMPTS = 3


def _show_index(movie: dict, show_id: str) -> int:
    for index, show in enumerate(movie.get("availableSeat", [])):
        if str(show.get("_id")) == show_id:
            return index
    raise NotFoundError("Showtime not found")


def _version_filter(movie: dict) -> dict:
    if "version" in movie:
        return {"_id": movie["_id"], "version": movie["version"]}
    return {"_id": movie["_id"], "version": {"$exists": False}}


def _write_seat_flags(db: MongoDatabase, movie: dict, index: int, seats: List[dict]) -> bool:
    result = db["movies"].update_one(
        _version_filter(movie),
        {
            "$set": {f"availableSeat.{index}.seat": seats, "updatedAt": utcnow()},
            "$inc": {"version": 1},
        },
    )
    return result.modified_count == 1


def reserve_seats(db: MongoDatabase, movie_id: ObjectId, show_id: str, seat_numbers: Set[int]) -> None:
    """Flip ``seat_numbers`` to booked, or raise ConflictError if any is taken."""
    for attempt in range(1, MAX_RESERVE_ATTEMPTS + 1):
        movie = db["movies"].find_one({"_id": movie_id})
        if movie is None:
            raise NotFoundError("Movie not found")
        index = _show_index(movie, show_id)
        seats = movie["availableSeat"][index].get("seat", [])

        missing = seat_numbers - {seat["seatNo"] for seat in seats}
        if missing:
            raise BadRequestError(f"Unknown seat numbers for this show: {sorted(missing)}")
        taken = sorted(seat["seatNo"] for seat in seats if seat["seatNo"] in seat_numbers and seat.get("isBooked"))
        if taken:
            raise ConflictError(f"Seats already booked: {taken}")

        updated = [{**seat, "isBooked": True} if seat["seatNo"] in seat_numbers else seat for seat in seats]
        if _write_seat_flags(db, movie, index, updated):
            return
        Logger.base.warning(f"Movie {movie_id} changed during reservation, attempt {attempt}/{MAX_RESERVE_ATTEMPTS}")

    raise ConflictError("Seat availability changed while booking, please retry")


def release_seats(db: MongoDatabase, movie_id: ObjectId, show_id: str, seat_numbers: Set[int]) -> bool:
    """Undo ``reserve_seats``. Returns False when the release could not be written."""
    for _ in range(MAX_RESERVE_ATTEMPTS):
        try:
            movie = db["movies"].find_one({"_id": movie_id})
            if movie is None:
                return False
            index = _show_index(movie, show_id)
            seats = [
                {**seat, "isBooked": False} if seat["seatNo"] in seat_numbers else seat
                for seat in movie["availableSeat"][index].get("seat", [])
            ]
            if _write_seat_flags(db, movie, index, seats):
                Logger.base.info(f"Released seats {sorted(seat_numbers)} of movie {movie_id}")
                return True
        except PyMongoError as e:
            Logger.base.error(f"Releasing seats {sorted(seat_numbers)} of movie {movie_id} failed: {e}")
    Logger.base.error(f"Could not release seats {sorted(seat_numbers)} of movie {movie_id}")
    return False


@Logger.io
def confirm_booking(
    db: MongoDatabase,
    user: dict,
    cart_entry_id: str,
    movie_id: str,
    email_service: Optional[EmailService] = None,
) -> dict:
    cart = db["cart"].find_one({"userId": user["_id"]})
    if cart is None:
        raise NotFoundError("Cart not found")

    entry_oid = get_objectid(cart_entry_id)
    entry = next((e for e in cart.get("cartDetails", []) if e.get("_id") == entry_oid), None)
    if entry is None:
        raise NotFoundError("Cart entry not found")

    movie_oid = get_objectid(movie_id)
    if entry.get("movieId") != str(movie_oid):
        raise BadRequestError("Cart entry does not belong to this movie")

    show_id = entry["showId"]
    seat_numbers = {seat["seatNo"] for seat in entry.get("seat", [])}
    if not seat_numbers:
        raise BadRequestError("Cart entry has no seats")

    reserve_seats(db, movie_oid, show_id, seat_numbers)

    now = utcnow()
    booked_entry = {
        **entry,
        "seat": [{**seat, "isBooked": True} for seat in entry["seat"]],
        "bookedAt": now,
    }
    removed = False
    try:
        result = db["cart"].update_one({"_id": cart["_id"]}, {"$pull": {"cartDetails": {"_id": entry_oid}}})
        removed = result.modified_count == 1
        if not removed:
            raise ConflictError("Cart entry was already booked")
        db["tickets"].update_one(
            {"userId": user["_id"]},
            {
                "$push": {"bookingDetails": booked_entry},
                "$set": {"updatedAt": now},
                "$setOnInsert": {"createdAt": now},
            },
            upsert=True,
        )
    except Exception:
        release_seats(db, movie_oid, show_id, seat_numbers)
        if removed:
            db["cart"].update_one({"_id": cart["_id"]}, {"$push": {"cartDetails": entry}})
        raise

    Logger.base.info(f"User {user['_id']} booked seats {sorted(seat_numbers)} of movie {movie_id}")
    if email_service is not None:
        email_result = email_service.send_booking_confirmation(user, booked_entry)
        if not email_result.success:
            Logger.base.warning(f"Failed to send booking confirmation: {email_result.error}")
    return stringify_ids(booked_entry)


def list_user_bookings(db: MongoDatabase, user: dict) -> List[dict]:
    ticket = db["tickets"].find_one({"userId": user["_id"]})
    if ticket is None:
        return []
    return stringify_ids(ticket.get("bookingDetails", []))


def _contains(value, needle: str) -> bool:
    return value is not None and re.search(re.escape(needle), str(value), re.IGNORECASE) is not None


def filter_bookings(
    bookings: Iterable[dict],
    q: Optional[str] = None,
    name: Optional[str] = None,
    location: Optional[str] = None,
    price: Optional[float] = None,
) -> List[dict]:
    """Filter booking entries; ``price`` is an upper bound on the entry total."""
    out = []
    for booking in bookings:
        if q and not any(_contains(booking.get(key), q) for key in ("movieName", "location", "showTime")):
            continue
        if name and not _contains(booking.get("movieName"), name):
            continue
        if location and not _contains(booking.get("location"), location):
            continue
        if price is not None and booking.get("price", 0) > price:
            continue
        out.append(booking)
    return out


def search_user_bookings(db: MongoDatabase, user: dict, **filters) -> List[dict]:
    return filter_bookings(list_user_bookings(db, user), **filters)


router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/book/{movie_id}")
def book(
    movie_id: str,
    body: BookTicket,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_header_user),
    email_service: EmailService = Depends(get_email_service),
):
    if body.user_id and body.user_id != str(current_user["_id"]):
        raise ForbiddenError("Cannot book on behalf of another user")
    booking = confirm_booking(db, current_user, body.data_id, movie_id, email_service)
    return {"msg": "Booking confirmed", "booking": booking}


@router.get("/get")
def search(
    q: Optional[str] = None,
    name: Optional[str] = None,
    location: Optional[str] = None,
    price: Optional[float] = None,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_header_user),
):
    return search_user_bookings(db, current_user, q=q, name=name, location=location, price=price)


@router.get("/getbooking")
def history(db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_header_user)):
    return list_user_bookings(db, current_user)
