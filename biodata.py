import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from config import settings
from database import (
    Stores,
    current_max,
    get_stores,
    insert_result,
    next_sequence,
    parse_object_id,
    serialize,
    update_result,
)
from exceptions import InvalidParameterError, NotFoundError
from query import PROFILE_PAGE_SIZE, PageWindow, build_profile_filter, paginate
from schemas import Biodata, PageResponse
from security import require_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Biodata"])

SEQUENCE_NAME = "biodataId"
SIMILAR_LIMIT = 4


def assign_biodata_id(stores: Stores) -> int:
    """Next profile number: one more than every number handed out so far."""
    return next_sequence(stores.counters, SEQUENCE_NAME, floor=current_max(stores.biodata, "biodataId"))


@router.post("/biodata", status_code=status.HTTP_201_CREATED)
def create_biodata(
    body: Biodata,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    biodata_id = assign_biodata_id(stores)
    doc = body.to_document()
    doc.update(biodataId=biodata_id, createdAt=datetime.now(timezone.utc))
    result = stores.biodata.insert_one(doc)
    logger.info("Created biodata #%d (%s)", biodata_id, result.inserted_id)
    return {**insert_result(result), "biodataId": biodata_id}


@router.get("/premium-biodata")
def list_premium(stores: Stores = Depends(get_stores)):
    return [serialize(d) for d in stores.biodata.find({"type": "premium"})]


@router.get("/similar-biodata/{gender}")
def list_similar(gender: str, stores: Stores = Depends(get_stores)):
    return [serialize(d) for d in stores.biodata.find({"gender": gender}).limit(SIMILAR_LIMIT)]


@router.get("/biodata", response_model=PageResponse)
def list_biodata(
    ageRange: Optional[str] = Query(None, description="Inclusive 'min-max', e.g. 25-30"),
    gender: Optional[str] = None,
    division: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = Query(None, description=f"Page size (default {PROFILE_PAGE_SIZE})"),
    stores: Stores = Depends(get_stores),
):
    query_filter = build_profile_filter(age_range=ageRange, gender=gender, division=division)
    window = PageWindow.from_params(page, limit, PROFILE_PAGE_SIZE, settings.max_page_size)
    return paginate(stores.biodata, query_filter, window).to_dict()


@router.get("/biodata/{biodata_id}")
def get_biodata(biodata_id: str, stores: Stores = Depends(get_stores)):
    doc = stores.biodata.find_one({"_id": parse_object_id(biodata_id)})
    if not doc:
        raise NotFoundError(resource="biodata", resource_id=biodata_id)
    return serialize(doc)


@router.get("/biodata-data/{email}")
def get_own_biodata(
    email: str,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    return serialize(stores.biodata.find_one({"email": email}))


@router.put("/biodata-edit/{biodata_id}")
def edit_biodata(
    biodata_id: str,
    body: Dict[str, Any] = Body(...),
    stores: Stores = Depends(get_stores),
):
    oid = parse_object_id(biodata_id)
    changes = {k: v for k, v in body.items() if k not in ("_id", "biodataId")}
    if not changes:
        raise InvalidParameterError("No fields to update", parameter="body")
    result = stores.biodata.update_one({"_id": oid}, {"$set": changes}, upsert=True)
    return update_result(result)


@router.get("/biodata/view/{email}")
def list_own_biodata(
    email: str,
    stores: Stores = Depends(get_stores),
    _user: str = Depends(require_user),
):
    return [serialize(d) for d in stores.biodata.find({"email": email})]
