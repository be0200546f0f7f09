import json
import math
import re
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database as MongoDatabase

from auth import get_current_user
from config import Settings, get_app_settings
from database import get_db, get_objectid, str_id, utcnow
from email_service import EmailService, get_email_service
from exceptions import BadRequestError, NotFoundError
from logger_config import Logger
from schemas import BulkItemsCreate, ItemCreate, ItemUpdate, parse_features
from uploads import process_images
from validation import format_validation_errors


POPULAR_ITEMS_LIMIT = 4
SELLER_FIELDS = ("firstName", "lastName", "email", "phoneNumber")
ACTIVE_FILTER = {"$or": [{"status": "ACTIVE"}, {"status": {"$exists": False}}]}


def _regex(text: str) -> dict:
    return {"$regex": re.escape(text.strip()), "$options": "i"}


def serialize_items(db: MongoDatabase, docs: Iterable[dict]) -> List[dict]:
    """Render items with the seller's public fields embedded."""
    docs = list(docs)
    seller_ids = {doc["seller"] for doc in docs if doc.get("seller")}
    sellers = {
        seller["_id"]: seller
        for seller in db["users"].find({"_id": {"$in": list(seller_ids)}})
    }
    out = []
    for doc in docs:
        seller = sellers.get(doc.get("seller"))
        item = str_id(doc)
        if seller is not None:
            item["seller"] = {"id": str(seller["_id"]), **{f: seller.get(f) for f in SELLER_FIELDS}}
        out.append(item)
    return out


def serialize_item(db: MongoDatabase, doc: dict) -> dict:
    return serialize_items(db, [doc])[0]


def build_item_document(body: ItemCreate, seller: dict, images: Optional[List[str]] = None) -> dict:
    doc = body.model_dump(by_alias=True, exclude_none=True, exclude={"contact_info"})
    doc["images"] = list(body.images) + list(images or [])
    doc["seller"] = seller["_id"]
    contact = body.contact_info
    doc["contactInfo"] = {
        "phone": (contact and contact.phone) or seller.get("phoneNumber"),
        "email": (contact and contact.email) or seller.get("email"),
    }
    now = utcnow()
    doc["createdAt"] = now
    doc["updatedAt"] = now
    return doc


@Logger.io
def create_item(
    db: MongoDatabase,
    body: ItemCreate,
    seller: dict,
    email_service: EmailService,
    images: Optional[List[str]] = None,
) -> dict:
    doc = build_item_document(body, seller, images)
    result = db["items"].insert_one(doc)
    doc["_id"] = result.inserted_id

    # listing creation never fails because of the notification
    email_result = email_service.send_item_posted_email(seller, doc)
    if not email_result.success:
        Logger.base.warning(f"Failed to send item posted email: {email_result.error}")
    return serialize_item(db, doc)


@Logger.io
def create_many_items(db: MongoDatabase, raw_items: List[dict], seller: dict) -> dict:
    created, errors = [], []
    for index, raw in enumerate(raw_items):
        try:
            body = ItemCreate.model_validate(raw)
        except ValidationError as e:
            errors.append({"index": index, "error": "; ".join(format_validation_errors(e.errors()))})
            continue
        doc = build_item_document(body, seller)
        doc["_id"] = db["items"].insert_one(doc).inserted_id
        created.append(doc)

    return {
        "message": f"Successfully created {len(created)} items",
        "createdItems": serialize_items(db, created),
        "errors": errors or None,
        "summary": {"total": len(raw_items), "created": len(created), "failed": len(errors)},
    }


def build_search_filter(
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
) -> dict:
    clauses = [ACTIVE_FILTER]
    if category:
        clauses.append({"category": category})
    if subcategory:
        clauses.append({"subcategory": subcategory})
    if location:
        clauses.append({"location.city": _regex(location)})
    if min_price is not None or max_price is not None:
        price = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        clauses.append({"price": price})
    if search:
        clauses.append({"$or": [{"title": _regex(search)}, {"description": _regex(search)}]})
    return {"$and": clauses}


@Logger.io
def search_items(db: MongoDatabase, filter_dict: dict, page: int = 1, limit: int = 10) -> dict:
    total = db["items"].count_documents(filter_dict)
    docs = (
        db["items"]
        .find(filter_dict)
        .sort([("createdAt", -1), ("_id", -1)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return {
        "message": "Items retrieved successfully",
        "items": serialize_items(db, docs),
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
            "totalItems": total,
            "itemsPerPage": limit,
        },
    }


def get_item(db: MongoDatabase, item_id: str) -> dict:
    doc = db["items"].find_one({"_id": get_objectid(item_id)})
    if doc is None:
        raise NotFoundError("Item not found")
    return doc


def get_items_by_seller(db: MongoDatabase, seller: dict) -> List[dict]:
    docs = db["items"].find({"seller": seller["_id"]}).sort([("createdAt", -1), ("_id", -1)])
    return serialize_items(db, docs)


@Logger.io
def update_item(db: MongoDatabase, item_id: str, body: ItemUpdate, seller: dict) -> dict:
    owned = {"_id": get_objectid(item_id), "seller": seller["_id"]}
    existing = db["items"].find_one(owned)
    if existing is None:
        raise NotFoundError("Item not found or unauthorized")

    changes = body.model_dump(by_alias=True, exclude_unset=True, exclude={"features"})
    unset = {}
    category = changes.get("category") or existing.get("category")
    if "features" in body.model_fields_set and body.features is not None:
        try:
            features = parse_features(category, body.features)
        except ValidationError as e:
            raise BadRequestError("Validation failed", errors=format_validation_errors(e.errors()))
        changes["features"] = features.model_dump(by_alias=True, exclude_none=True)
    elif changes.get("category") and changes["category"] != existing.get("category"):
        # old features belong to the previous category
        unset["features"] = ""

    if not changes and not unset:
        raise BadRequestError("No fields to update")

    changes["updatedAt"] = utcnow()
    update = {"$set": changes}
    if unset:
        update["$unset"] = unset
    doc = db["items"].find_one_and_update(owned, update, return_document=ReturnDocument.AFTER)
    if doc is None:
        raise NotFoundError("Item not found or unauthorized")
    return serialize_item(db, doc)


@Logger.io
def delete_item(db: MongoDatabase, item_id: str, seller: dict) -> None:
    doc = db["items"].find_one_and_delete({"_id": get_objectid(item_id), "seller": seller["_id"]})
    if doc is None:
        raise NotFoundError("Item not found or unauthorized")


def get_popular_items(db: MongoDatabase, category: str) -> List[dict]:
    filter_dict = {"$and": [ACTIVE_FILTER, {"category": category.upper()}]}
    docs = (
        db["items"]
        .find(filter_dict)
        .sort([("createdAt", -1), ("_id", -1)])
        .limit(POPULAR_ITEMS_LIMIT)
    )
    return serialize_items(db, docs)


router = APIRouter(prefix="/api/items", tags=["items"])


@router.get("")
def list_items(
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    location: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: MongoDatabase = Depends(get_db),
):
    filter_dict = build_search_filter(category, subcategory, min_price, max_price, location, search)
    return search_items(db, filter_dict, page, limit)


@router.get("/popular/{category}")
def popular_items(category: str, db: MongoDatabase = Depends(get_db)):
    return {"message": "Popular items retrieved successfully", "items": get_popular_items(db, category)}


@router.get("/seller/my-items")
def my_items(db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_current_user)):
    return {"message": "Items retrieved successfully", "items": get_items_by_seller(db, current_user)}


@router.get("/{item_id}")
def item_detail(item_id: str, db: MongoDatabase = Depends(get_db)):
    return {"message": "Item retrieved successfully", "item": serialize_item(db, get_item(db, item_id))}


@router.post("", status_code=status.HTTP_201_CREATED)
def create(
    body: ItemCreate,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    email_service: EmailService = Depends(get_email_service),
):
    item = create_item(db, body, current_user, email_service)
    return {"message": "Item created successfully", "item": item, "imagesUploaded": 0}


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def create_with_upload(
    data: str = Form(...),
    images: List[UploadFile] = File(None),
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    email_service: EmailService = Depends(get_email_service),
    settings: Settings = Depends(get_app_settings),
):
    try:
        body = ItemCreate.model_validate(json.loads(data))
    except json.JSONDecodeError:
        raise BadRequestError("data must be a JSON object")
    except ValidationError as e:
        raise BadRequestError("Validation failed", errors=format_validation_errors(e.errors()))

    image_urls = await process_images(images or [], settings)
    item = create_item(db, body, current_user, email_service, image_urls)
    return {"message": "Item created successfully", "item": item, "imagesUploaded": len(image_urls)}


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def create_bulk(
    body: BulkItemsCreate,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return create_many_items(db, body.items, current_user)


@router.put("/{item_id}")
def update(
    item_id: str,
    body: ItemUpdate,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return {"message": "Item updated successfully", "item": update_item(db, item_id, body, current_user)}


@router.delete("/{item_id}")
def delete(item_id: str, db: MongoDatabase = Depends(get_db), current_user: dict = Depends(get_current_user)):
    delete_item(db, item_id, current_user)
    return {"message": "Item deleted successfully"}
