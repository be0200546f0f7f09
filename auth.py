"""Authentication gate for both APIs.

The marketplace accepts a bearer JWT or a raw ``userid``/``user-id``
header interchangeably; the ticketing API only knows the raw header.
Either way the identity must resolve to an existing user document.
"""

from typing import Optional

from bson import ObjectId
from fastapi import Depends, Header
from pymongo.database import Database as MongoDatabase

from config import Settings, get_app_settings
from database import get_db
from exceptions import ForbiddenError, UnauthorizedError
from security import decode_access_token


def _find_user(db: MongoDatabase, user_id: Optional[str]) -> Optional[dict]:
    if not user_id or not ObjectId.is_valid(user_id):
        return None
    return db["users"].find_one({"_id": ObjectId(user_id)})


def _header_user_id(userid: Optional[str], user_id: Optional[str]) -> Optional[str]:
    return (userid or user_id or "").strip() or None


def get_current_user(
    authorization: Optional[str] = Header(None),
    userid: Optional[str] = Header(None),
    user_id: Optional[str] = Header(None, alias="user-id"),
    db: MongoDatabase = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise UnauthorizedError("Invalid authorization header")
        payload = decode_access_token(token.strip(), settings)
        user = _find_user(db, payload.get("sub"))
        if user is None:
            raise UnauthorizedError("Invalid token")
        return user

    header_id = _header_user_id(userid, user_id)
    if header_id is None:
        raise UnauthorizedError("Authentication required")
    user = _find_user(db, header_id)
    if user is None:
        raise UnauthorizedError("Invalid user ID")
    return user


def get_header_user(
    userid: Optional[str] = Header(None),
    user_id: Optional[str] = Header(None, alias="user-id"),
    db: MongoDatabase = Depends(get_db),
) -> dict:
    header_id = _header_user_id(userid, user_id)
    if header_id is None:
        raise UnauthorizedError("User ID required in headers")
    user = _find_user(db, header_id)
    if user is None:
        raise UnauthorizedError("Invalid user ID")
    return user


def require_role(*roles: str):
    def dependency(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role", "buyer") not in roles:
            raise ForbiddenError("You don't have permission to perform this action")
        return current_user

    return dependency
