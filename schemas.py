"""
Database Schemas and request bodies for the Sokogo backends

Document models map to MongoDB collections (see ``database``). Field names
are camelCase on the wire and in storage, e.g. ``seatNo`` / ``isBooked``.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from validation import (
    is_valid_email,
    is_valid_password,
    is_valid_phone_number,
    is_valid_price,
    sanitize_input,
)


UserRole = Literal["buyer", "seller", "admin"]
# admins are promoted in the database, never self-registered
RegisterRole = Literal["buyer", "seller"]
ItemCategory = Literal["MOTORS", "PROPERTY", "ELECTRONICS"]
ItemStatus = Literal["ACTIVE", "SOLD", "EXPIRED", "SUSPENDED"]
BookingStatus = Literal["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED"]
PaymentMethod = Literal["CREDIT_CARD", "CASH", "BANK_TRANSFER", "MOBILE_MONEY"]

TERMINAL_BOOKING_STATUSES = ("CANCELLED", "COMPLETED")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentModel(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True
    )


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# Users

class UserRegister(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str
    phone_number: str
    password: str
    role: RegisterRole = "buyer"

    strip_fields = field_validator("first_name", "last_name", "email", "phone_number", mode="before")(_strip)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not is_valid_email(v):
            raise ValueError("Valid email is required")
        return v.lower()

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, v: str) -> str:
        if not v or not is_valid_phone_number(v):
            raise ValueError("Invalid phone number format")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if not is_valid_password(v):
            raise ValueError("Password must be at least 6 characters long")
        return v


class UserLogin(CamelModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class User(DocumentModel):
    first_name: str
    last_name: str
    email: str
    phone_number: str
    password: str = Field(..., description="bcrypt hash")
    role: UserRole = "buyer"


# Listings

class Location(CamelModel):
    district: str = Field(..., min_length=1, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    address: str = ""

    strip_fields = field_validator("district", "city", "address", mode="before")(_strip)


class ContactInfo(CamelModel):
    phone: Optional[str] = None
    email: Optional[str] = None


class MotorsFeatures(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    kind: Literal["MOTORS"] = "MOTORS"
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(None, ge=1886, le=2100)
    mileage: Optional[float] = Field(None, ge=0)
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None


class PropertyFeatures(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    kind: Literal["PROPERTY"] = "PROPERTY"
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    area: Optional[float] = Field(None, gt=0)
    area_unit: Optional[str] = None


class ElectronicsFeatures(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    kind: Literal["ELECTRONICS"] = "ELECTRONICS"
    brand: Optional[str] = None
    model: Optional[str] = None
    condition: Optional[str] = None
    warranty: Optional[bool] = None


ItemFeatures = Annotated[
    Union[MotorsFeatures, PropertyFeatures, ElectronicsFeatures], Field(discriminator="kind")
]

FEATURES_BY_CATEGORY = {
    "MOTORS": MotorsFeatures,
    "PROPERTY": PropertyFeatures,
    "ELECTRONICS": ElectronicsFeatures,
}


def parse_features(category: Optional[str], features):
    """Validate a raw ``features`` mapping against the model for ``category``."""
    if features is None or isinstance(features, BaseModel):
        return features
    model = FEATURES_BY_CATEGORY.get(category)
    if model is None:
        return features
    return model.model_validate({**features, "kind": category})


class ItemCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    category: ItemCategory
    subcategory: str = Field(..., min_length=1, max_length=100)
    price: float
    currency: str = Field("Frw", min_length=1, max_length=10)
    location: Location
    images: List[str] = Field(default_factory=list)
    features: Optional[ItemFeatures] = None
    contact_info: Optional[ContactInfo] = None
    status: ItemStatus = "ACTIVE"

    @model_validator(mode="before")
    @classmethod
    def prepare(cls, data):
        if isinstance(data, dict):
            data = sanitize_input(data)
            if isinstance(data.get("features"), dict):
                # the category is the tag of the features variant
                data["features"] = {**data["features"], "kind": data.get("category")}
        return data

    @field_validator("price")
    @classmethod
    def check_price(cls, v: float) -> float:
        if not is_valid_price(v):
            raise ValueError("Valid price is required (must be positive number)")
        return v


class ItemUpdate(CamelModel):
    """Partial update; ``seller`` and ``createdAt`` are silently ignored."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=5000)
    category: Optional[ItemCategory] = None
    subcategory: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = None
    currency: Optional[str] = Field(None, min_length=1, max_length=10)
    location: Optional[Location] = None
    images: Optional[List[str]] = None
    features: Optional[dict] = None
    contact_info: Optional[ContactInfo] = None
    status: Optional[ItemStatus] = None

    @field_validator("price")
    @classmethod
    def check_price(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not is_valid_price(v):
            raise ValueError("Valid price is required (must be positive number)")
        return v


class BulkItemsCreate(BaseModel):
    items: List[dict] = Field(..., min_length=1)


# Marketplace bookings and payments

class BookingCreate(CamelModel):
    item_id: str
    check_in_date: datetime
    check_out_date: datetime
    total_price: float = Field(..., gt=0)
    additional_requests: str = ""

    @model_validator(mode="after")
    def check_dates(self):
        if self.check_out_date <= self.check_in_date:
            raise ValueError("checkOutDate must be after checkInDate")
        return self


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class PaymentCreate(CamelModel):
    payment_method: PaymentMethod


# Contact

class InquiryCreate(CamelModel):
    item_id: str
    message: str

    @field_validator("message")
    @classmethod
    def check_message(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 10:
            raise ValueError("Message must be at least 10 characters long")
        return v


class ContactMessage(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not is_valid_email(v.strip()):
            raise ValueError("Invalid email format")
        return v.strip()


# Ticketing

class Seat(CamelModel):
    seat_no: int = Field(..., ge=1)
    is_booked: bool = False


class Showtime(DocumentModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    show_time: str
    seat: List[Seat] = Field(default_factory=list)


class Movie(DocumentModel):
    url: str
    movie_name: str
    price: float = Field(..., ge=0)
    rating: float = Field(..., ge=0, le=10)
    available_seat: List[Showtime] = Field(default_factory=list)
    theater_id: Optional[ObjectId] = None
    version: int = 0


class Theater(CamelModel):
    theater_name: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    total_seats: int = Field(..., ge=1, le=10000)
    movie: List[str] = Field(default_factory=list)


class MovieCreate(CamelModel):
    url: str = Field(..., min_length=1)
    movie_name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    rating: float = Field(..., ge=0, le=10)
    show_time: Optional[str] = None
    show_times: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def collect_show_times(self):
        times = [t.strip() for t in self.show_times if t and t.strip()]
        if self.show_time and self.show_time.strip():
            times.insert(0, self.show_time.strip())
        if not times:
            raise ValueError("At least one showTime is required")
        self.show_times = list(dict.fromkeys(times))
        return self


class CartEntry(DocumentModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    movie_id: str
    show_id: str
    movie_name: str
    price: float
    location: Optional[str] = None
    show_time: str
    seat: List[Seat]


class CartAdd(CamelModel):
    show_id: str
    seats: List[int] = Field(..., min_length=1)

    @field_validator("seats")
    @classmethod
    def check_seats(cls, v: List[int]) -> List[int]:
        if any(seat_no < 1 for seat_no in v):
            raise ValueError("Seat numbers start at 1")
        if len(set(v)) != len(v):
            raise ValueError("Seat numbers must be unique")
        return v


class BookTicket(CamelModel):
    user_id: Optional[str] = None
    data_id: str = Field(..., min_length=1)
