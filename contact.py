from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pymongo.database import Database as MongoDatabase

from auth import get_current_user
from database import get_db, get_objectid
from email_service import EmailService, get_email_service
from exceptions import BadRequestError, NotFoundError, ServiceUnavailableError
from logger_config import Logger
from schemas import ContactMessage, InquiryCreate


@Logger.io
def send_item_inquiry(db: MongoDatabase, body: InquiryCreate, buyer: dict, email_service: EmailService) -> dict:
    item = db["items"].find_one({"_id": get_objectid(body.item_id)})
    if item is None:
        raise NotFoundError("Item not found")
    if item.get("seller") == buyer["_id"]:
        raise BadRequestError("You cannot inquire about your own item")
    seller = db["users"].find_one({"_id": item.get("seller")})
    if seller is None:
        raise NotFoundError("Seller not found")

    result = email_service.send_contact_inquiry(buyer, seller, item, body.message)
    if not result.success:
        raise ServiceUnavailableError(f"Failed to send inquiry email: {result.error}", status_code=502)
    return {
        "itemTitle": item.get("title"),
        "sellerName": f"{seller.get('firstName', '')} {seller.get('lastName', '')}".strip(),
        "messageSent": True,
    }


@Logger.io
def send_contact_message(body: ContactMessage, email_service: EmailService) -> None:
    result = email_service.send_contact_message(body.name, body.email, body.subject, body.message)
    if not result.success:
        raise ServiceUnavailableError("Failed to send message. Please try again later.", status_code=502)


router = APIRouter(prefix="/api/contact", tags=["contact"])


@router.post("/inquiry")
def inquiry(
    body: InquiryCreate,
    db: MongoDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    email_service: EmailService = Depends(get_email_service),
):
    data = send_item_inquiry(db, body, current_user, email_service)
    return {"success": True, "message": "Inquiry sent successfully", "data": data}


@router.post("/contact")
def contact(body: ContactMessage, email_service: EmailService = Depends(get_email_service)):
    send_contact_message(body, email_service)
    return {"success": True, "message": "Message sent successfully. We'll get back to you soon!"}


@router.get("/test-email")
def test_email(email_service: EmailService = Depends(get_email_service)):
    result = email_service.test_email_config()
    if result.success:
        return {"success": True, "message": "Email service is working"}
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": "Email service configuration error", "error": result.error},
    )
