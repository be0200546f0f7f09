import re
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pymongo.database import Database as MongoDatabase

from auth import get_header_user
from database import create_document, get_db, get_documents, get_objectid, str_id
from exceptions import NotFoundError
from logger_config import Logger
from schemas import Theater


@Logger.io
def add_theater(db: MongoDatabase, theater: Theater) -> dict:
    theater_id = create_document(db, "theaters", theater.model_copy(update={"movie": []}))
    return get_theater(db, theater_id)


def list_theaters(db: MongoDatabase) -> List[dict]:
    return [str_id(doc) for doc in get_documents(db, "theaters")]


def get_theater(db: MongoDatabase, theater_id: str) -> dict:
    doc = db["theaters"].find_one({"_id": get_objectid(theater_id)})
    if doc is None:
        raise NotFoundError("Theater not found")
    return str_id(doc)


def search_theaters(db: MongoDatabase, q: Optional[str]) -> List[dict]:
    filter_dict = {}
    if q and q.strip():
        pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
        filter_dict = {"$or": [{"theaterName": pattern}, {"location": pattern}]}
    return [str_id(doc) for doc in get_documents(db, "theaters", filter_dict)]


router = APIRouter(prefix="/theaters", tags=["theaters"])


@router.post("/add", status_code=status.HTTP_201_CREATED)
def add(theater: Theater, db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_header_user)):
    return {"msg": "Theater added successfully", "theater": add_theater(db, theater)}


@router.get("/allTheater")
def all_theaters(db: MongoDatabase = Depends(get_db)):
    return list_theaters(db)


@router.get("/oneTheater/{theater_id}")
def one_theater(theater_id: str, db: MongoDatabase = Depends(get_db)):
    return get_theater(db, theater_id)


@router.get("/search")
def search(q: Optional[str] = None, db: MongoDatabase = Depends(get_db)):
    return search_theaters(db, q)
