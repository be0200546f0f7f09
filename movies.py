from typing import List

from fastapi import APIRouter, Depends, status
from pymongo.database import Database as MongoDatabase

from auth import get_header_user
from database import create_document, get_db, get_objectid, str_id
from exceptions import NotFoundError
from logger_config import Logger
from schemas import Movie, MovieCreate, Seat, Showtime


def build_showtime(show_time: str, total_seats: int) -> Showtime:
    return Showtime(
        show_time=show_time,
        seat=[Seat(seat_no=number) for number in range(1, total_seats + 1)],
    )


@Logger.io
def add_movie(db: MongoDatabase, theater_id: str, body: MovieCreate) -> dict:
    theater = db["theaters"].find_one({"_id": get_objectid(theater_id)})
    if theater is None:
        raise NotFoundError("Theater not found")

    total_seats = int(theater.get("totalSeats", 0))
    movie = Movie(
        url=body.url,
        movie_name=body.movie_name,
        price=body.price,
        rating=body.rating,
        available_seat=[build_showtime(show_time, total_seats) for show_time in body.show_times],
        theater_id=theater["_id"],
    )
    movie_id = create_document(db, "movies", movie)
    db["theaters"].update_one({"_id": theater["_id"]}, {"$push": {"movie": get_objectid(movie_id)}})
    Logger.base.info(f"Movie {movie_id} added to theater {theater_id} with {total_seats} seats per show")
    return get_movie(db, movie_id)


def find_movie(db: MongoDatabase, movie_id: str) -> dict:
    doc = db["movies"].find_one({"_id": get_objectid(movie_id)})
    if doc is None:
        raise NotFoundError("Movie not found")
    return doc


def find_showtime(movie: dict, show_id: str) -> dict:
    for show in movie.get("availableSeat", []):
        if str(show.get("_id")) == show_id:
            return show
    raise NotFoundError("Showtime not found")


def get_movie(db: MongoDatabase, movie_id: str) -> dict:
    return str_id(find_movie(db, movie_id))


def available_seat_details(db: MongoDatabase, movie_id: str) -> List[dict]:
    return str_id(find_movie(db, movie_id))["availableSeat"]


def theater_movies(db: MongoDatabase, theater_id: str) -> List[dict]:
    theater = db["theaters"].find_one({"_id": get_objectid(theater_id)})
    if theater is None:
        raise NotFoundError("Theater not found")
    movie_ids = theater.get("movie", [])
    docs = {doc["_id"]: doc for doc in db["movies"].find({"_id": {"$in": movie_ids}})}
    # keep the theater's ordering
    return [str_id(docs[movie_id]) for movie_id in movie_ids if movie_id in docs]


def get_showtime(db: MongoDatabase, movie_id: str, show_id: str) -> dict:
    return find_showtime(str_id(find_movie(db, movie_id)), show_id)


router = APIRouter(prefix="/movie", tags=["movie"])


@router.post("/add/{theater_id}", status_code=status.HTTP_201_CREATED)
def add(
    theater_id: str,
    body: MovieCreate,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_header_user),
):
    return {"msg": "movie add successfully", "movie": add_movie(db, theater_id, body)}


@router.get("/availableSeatDetails/{movie_id}")
def seat_details(movie_id: str, db: MongoDatabase = Depends(get_db)):
    return available_seat_details(db, movie_id)


@router.get("/AllMovie/{theater_id}")
def all_movies(theater_id: str, db: MongoDatabase = Depends(get_db)):
    return theater_movies(db, theater_id)


@router.get("/OneMovie/{movie_id}/{show_id}")
def one_movie(movie_id: str, show_id: str, db: MongoDatabase = Depends(get_db)):
    return get_showtime(db, movie_id, show_id)
