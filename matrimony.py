import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pymongo import ASCENDING, DESCENDING

from database import (
    Stores,
    delete_result,
    get_stores,
    insert_result,
    parse_object_id,
    serialize,
    update_result,
)
from exceptions import ConflictError, NotFoundError
from payments import PaymentGateway, get_payment_gateway, to_cents
from schemas import (
    AdminStats,
    ContactRequest,
    Favourite,
    PaymentInfo,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentRecord,
    StatusUpdate,
    SuccessResponse,
    SuccessStory,
)
from security import require_admin, require_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Matrimony"])

# A contact request in this state can no longer be cancelled
STATUS_APPROVED = "Approve"


# Favourites
@router.post("/favourites")
def add_favourite(body: Favourite, stores: Stores = Depends(get_stores)):
    return insert_result(stores.favourites.insert_one(body.to_document()))


@router.get("/favourites/{email}")
def list_favourites(
    email: str,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    return [serialize(d) for d in stores.favourites.find({"email": email})]


@router.delete("/orders/{favourite_id}")
def delete_favourite(
    favourite_id: str,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    result = stores.favourites.delete_one({"_id": parse_object_id(favourite_id)})
    if result.deleted_count == 0:
        raise NotFoundError(resource="favourite", resource_id=favourite_id)
    return delete_result(result)


# Contact requests
@router.post("/data")
def add_contact_request(body: ContactRequest, stores: Stores = Depends(get_stores)):
    return insert_result(stores.contact_requests.insert_one(body.to_document()))


@router.get("/data-info")
def list_contact_requests(stores: Stores = Depends(get_stores)):
    return [serialize(d) for d in stores.contact_requests.find()]


@router.get("/data/{email}")
def list_user_contact_requests(
    email: str,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    return [serialize(d) for d in stores.contact_requests.find({"userEmail": email})]


@router.delete("/data-info/{request_id}")
def cancel_contact_request(
    request_id: str,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    query = {"_id": parse_object_id(request_id)}
    existing = stores.contact_requests.find_one(query, projection={"status": 1})
    if not existing:
        raise NotFoundError(resource="contact request", resource_id=request_id)
    if existing.get("status") == STATUS_APPROVED:
        raise ConflictError("Cannot cancel once the request is approved!")
    # Guard repeated in the delete itself so an approval landing in between wins
    result = stores.contact_requests.delete_one({**query, "status": {"$ne": STATUS_APPROVED}})
    if result.deleted_count == 0:
        raise ConflictError("Cannot cancel once the request is approved!")
    return delete_result(result)


@router.patch("/data-info/{request_id}")
def update_contact_request(
    request_id: str,
    body: StatusUpdate,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    result = stores.contact_requests.update_one(
        {"_id": parse_object_id(request_id)}, {"$set": {"status": body.status}}
    )
    if result.matched_count == 0:
        raise NotFoundError(resource="contact request", resource_id=request_id)
    return update_result(result)


# Success stories
@router.post("/success")
def add_success_story(body: SuccessStory, stores: Stores = Depends(get_stores)):
    return insert_result(stores.success_stories.insert_one(body.to_document()))


@router.get("/success")
def list_success_stories(sortOrder: Optional[str] = None, stores: Stores = Depends(get_stores)):
    direction = DESCENDING if sortOrder == "descending" else ASCENDING
    return [serialize(d) for d in stores.success_stories.find().sort("marriageDate", direction)]


@router.get("/success-stories")
def list_success_stories_admin(
    stores: Stores = Depends(get_stores),
    _admin: str = Depends(require_admin),
):
    return [serialize(d) for d in stores.success_stories.find()]


@router.get("/success-stories/{story_id}")
def get_success_story(story_id: str, stores: Stores = Depends(get_stores)):
    doc = stores.success_stories.find_one({"_id": parse_object_id(story_id)})
    if not doc:
        raise NotFoundError(resource="success story", resource_id=story_id)
    return serialize(doc)


# Payments
@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    body: PaymentIntentRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return PaymentIntentResponse(clientSecret=gateway.create_intent(to_cents(body.price)))


@router.post("/save-payment-info", response_model=SuccessResponse)
def save_payment_info(body: PaymentInfo, stores: Stores = Depends(get_stores)):
    record = PaymentRecord(
        transactionId=body.transactionId,
        amount=body.amount,
        email=body.email,
        date=datetime.now(timezone.utc),
    )
    stores.payments.insert_one(record.model_dump())
    logger.info("Saved payment %s for %s", body.transactionId, body.email)
    return SuccessResponse(message="Payment info saved successfully!")


# Admin
@router.get("/admin-stat", response_model=AdminStats)
def admin_stats(
    stores: Stores = Depends(get_stores),
    _admin: str = Depends(require_admin),
):
    revenue = next(
        stores.payments.aggregate([
            {"$group": {"_id": None, "totalRevenue": {"$sum": "$amount"}}},
            {"$project": {"_id": 0, "totalRevenue": 1}},
        ]),
        None,
    )
    return AdminStats(
        totalBiodata=stores.biodata.estimated_document_count(),
        maleBiodataCount=stores.biodata.count_documents({"gender": "male"}),
        femaleBiodataCount=stores.biodata.count_documents({"gender": "female"}),
        premiumBiodataCount=stores.biodata.count_documents({"type": "premium"}),
        totalRevenue=(revenue or {}).get("totalRevenue", 0),
    )
