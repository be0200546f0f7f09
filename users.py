from typing import List

from fastapi import APIRouter, Depends, status
from pymongo.database import Database as MongoDatabase

from auth import get_current_user, require_role
from config import Settings, get_app_settings
from database import create_document, get_db, get_objectid
from email_service import EmailService, get_email_service
from exceptions import BadRequestError, UnauthorizedError
from logger_config import Logger
from schemas import User, UserLogin, UserRegister
from security import create_access_token, hash_password, verify_password


PUBLIC_USER_FIELDS = ("firstName", "lastName", "email", "phoneNumber", "role")


def public_user(doc: dict) -> dict:
    user = {"id": str(doc["_id"])}
    user.update({field: doc.get(field) for field in PUBLIC_USER_FIELDS})
    return user


@Logger.io
def register_user(db: MongoDatabase, body: UserRegister, email_service: EmailService) -> dict:
    if db["users"].find_one({"email": body.email}):
        raise BadRequestError("User already exists")

    user = User(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        phone_number=body.phone_number,
        password=hash_password(body.password),
        role=body.role,
    )
    user_id = create_document(db, "users", user)
    doc = db["users"].find_one({"_id": get_objectid(user_id)})

    result = email_service.send_welcome_email(doc)
    if not result.success:
        Logger.base.warning(f"Failed to send welcome email: {result.error}")
    Logger.base.info(f"Registered user {user_id}")
    return public_user(doc)


@Logger.io
def authenticate_user(db: MongoDatabase, body: UserLogin) -> dict:
    user = db["users"].find_one({"email": body.email})
    # same error for unknown email and wrong password
    if user is None or not verify_password(body.password, user.get("password", "")):
        raise UnauthorizedError("Invalid email or password")
    return user


def list_users(db: MongoDatabase) -> List[dict]:
    return [public_user(doc) for doc in db["users"].find().sort("createdAt", -1)]


marketplace_router = APIRouter(prefix="/api/auth", tags=["auth"])


@marketplace_router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    body: UserRegister,
    db: MongoDatabase = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    user = register_user(db, body, email_service)
    return {"message": "Account created successfully", "user": user}


@marketplace_router.post("/login")
def login(
    body: UserLogin,
    db: MongoDatabase = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    user = authenticate_user(db, body)
    return {
        "message": "Login successful",
        "token": create_access_token(user, settings),
        "user": public_user(user),
    }


@marketplace_router.get("/users")
def get_all_users(
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(require_role("admin")),
):
    users = list_users(db)
    return {"message": "Users retrieved successfully", "count": len(users), "users": users}


@marketplace_router.get("/me")
def get_me(current_user: dict = Depends(get_current_user)):
    return {"user": public_user(current_user)}


ticketing_router = APIRouter(prefix="/user", tags=["user"])


@ticketing_router.post("/register", status_code=status.HTTP_201_CREATED)
def ticketing_register(
    body: UserRegister,
    db: MongoDatabase = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    user = register_user(db, body, email_service)
    return {"msg": "Account created successfully", "user": user}


@ticketing_router.post("/login")
def ticketing_login(body: UserLogin, db: MongoDatabase = Depends(get_db)):
    user = authenticate_user(db, body)
    # ticketing clients send this id back in the userid header
    return {"msg": "Login successful", "userId": str(user["_id"]), "user": public_user(user)}
