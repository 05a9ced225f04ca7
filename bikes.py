import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from config import settings
from database import Stores, get_stores, insert_result, parse_object_id, serialize
from exceptions import NotFoundError
from query import LISTING_PAGE_SIZE, PageWindow, build_listing_query, paginate
from schemas import Bike, PageResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bikes"])


@router.post("/bikes")
def create_bike(body: Bike, stores: Stores = Depends(get_stores)):
    result = stores.bikes.insert_one(body.to_document())
    logger.info("Inserted bike %s", result.inserted_id)
    return insert_result(result)


@router.get("/bike")
def list_all_bikes(stores: Stores = Depends(get_stores)):
    return [serialize(d) for d in stores.bikes.find()]


@router.get("/bikes", response_model=PageResponse)
def list_bikes(
    category: Optional[str] = None,
    minPrice: Optional[str] = Query(None, description="Inclusive lower bound on regularPrice"),
    maxPrice: Optional[str] = Query(None, description="Inclusive upper bound on regularPrice"),
    search: Optional[str] = Query(None, description="Case-insensitive match on name or category"),
    sort: Optional[str] = Query(None, description="price-low, price-high or rating"),
    page: Optional[str] = Query(None, description="1-based page number"),
    limit: Optional[str] = Query(None, description=f"Page size (default {LISTING_PAGE_SIZE})"),
    stores: Stores = Depends(get_stores),
):
    listing = build_listing_query(
        category=category,
        min_price=minPrice,
        max_price=maxPrice,
        search=search,
        sort=sort,
    )
    window = PageWindow.from_params(page, limit, LISTING_PAGE_SIZE, settings.max_page_size)
    return paginate(stores.bikes, listing.filter, window, listing.sort).to_dict()


@router.get("/bikes/{bike_id}")
def get_bike(bike_id: str, stores: Stores = Depends(get_stores)):
    doc = stores.bikes.find_one({"_id": parse_object_id(bike_id)})
    if not doc:
        raise NotFoundError(resource="bike", resource_id=bike_id)
    return serialize(doc)
