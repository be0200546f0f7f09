"""Pending seat selections.

Adding to a cart copies the selected seats out of the movie; it does not
hold them. The same seat may sit in several carts and the conflict is
settled when one of them is confirmed (see ``seat_reservation``).
"""

from fastapi import APIRouter, Depends, status
from pymongo.database import Database as MongoDatabase

from auth import get_header_user
from database import get_db, get_objectid, str_id, stringify_ids, utcnow
from exceptions import BadRequestError, NotFoundError
from logger_config import Logger
from movies import find_movie, find_showtime
from schemas import CartAdd, CartEntry, Seat


def _theater_location(db: MongoDatabase, movie: dict):
    theater = None
    if movie.get("theaterId"):
        theater = db["theaters"].find_one({"_id": movie["theaterId"]})
    if theater is None:
        theater = db["theaters"].find_one({"movie": movie["_id"]})
    return theater.get("location") if theater else None


@Logger.io
def add_to_cart(db: MongoDatabase, user: dict, movie_id: str, body: CartAdd) -> dict:
    movie = find_movie(db, movie_id)
    show = find_showtime(movie, body.show_id)

    known_seats = {seat["seatNo"] for seat in show.get("seat", [])}
    unknown = sorted(set(body.seats) - known_seats)
    if unknown:
        raise BadRequestError(f"Unknown seat numbers for this show: {unknown}")

    entry = CartEntry(
        movie_id=str(movie["_id"]),
        show_id=str(show["_id"]),
        movie_name=movie["movieName"],
        price=movie["price"] * len(body.seats),
        location=_theater_location(db, movie),
        show_time=show["showTime"],
        seat=[Seat(seat_no=number) for number in sorted(body.seats)],
    ).model_dump(by_alias=True, exclude_none=True)

    now = utcnow()
    db["cart"].update_one(
        {"userId": user["_id"]},
        {
            "$push": {"cartDetails": entry},
            "$set": {"updatedAt": now},
            "$setOnInsert": {"createdAt": now},
        },
        upsert=True,
    )
    return stringify_ids(entry)


def get_cart(db: MongoDatabase, user: dict) -> dict:
    cart = db["cart"].find_one({"userId": user["_id"]})
    if cart is None:
        return {"userId": str(user["_id"]), "cartDetails": []}
    return str_id(cart)


@Logger.io
def remove_from_cart(db: MongoDatabase, user: dict, entry_id: str) -> None:
    result = db["cart"].update_one(
        {"userId": user["_id"]},
        {"$pull": {"cartDetails": {"_id": get_objectid(entry_id)}}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Cart not found")
    if result.modified_count == 0:
        raise NotFoundError("Cart entry not found")


router = APIRouter(prefix="/cart", tags=["cart"])


@router.post("/add/{movie_id}", status_code=status.HTTP_201_CREATED)
def add(
    movie_id: str,
    body: CartAdd,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_header_user),
):
    return {"msg": "Added to cart", "entry": add_to_cart(db, current_user, movie_id, body)}


@router.get("/get")
def get(db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_header_user)):
    return get_cart(db, current_user)


@router.delete("/remove/{cart_id}")
def remove(cart_id: str, db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_header_user)):
    remove_from_cart(db, current_user, cart_id)
    return {"msg": "Removed from cart"}
