"""
MongoDB access for both backends.

A single MongoClient is opened at startup and wrapped in a `Stores` object
holding every collection handle. The object is placed on ``app.state`` once and
handed to route handlers through the `get_stores` dependency.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Request
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.server_api import ServerApi

from config import Settings
from exceptions import InvalidParameterError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> MongoClient:
    """Open a client whose every operation is bounded by db_timeout_ms."""
    timeout = settings.db_timeout_ms
    return MongoClient(
        settings.mongodb_uri,
        server_api=ServerApi("1", strict=True, deprecation_errors=True),
        serverSelectionTimeoutMS=timeout,
        connectTimeoutMS=timeout,
        timeoutMS=timeout,
        appname="hunter-matrimony-api",
    )


@dataclass(frozen=True)
class Stores:
    # HunterDB
    bikes: Collection
    # MatrimonyDB
    users: Collection
    biodata: Collection
    favourites: Collection
    contact_requests: Collection
    success_stories: Collection
    payments: Collection
    counters: Collection

    @classmethod
    def from_client(cls, client: MongoClient, settings: Settings) -> "Stores":
        hunter = client[settings.bikes_db_name]
        matrimony = client[settings.matrimony_db_name]
        return cls(
            bikes=hunter["bikes"],
            users=matrimony["users"],
            biodata=matrimony["biodata"],
            favourites=matrimony["favourites"],
            contact_requests=matrimony["data"],
            success_stories=matrimony["success"],
            payments=matrimony["save-payment-info"],
            counters=matrimony["counters"],
        )

    def ensure_indexes(self) -> None:
        self.users.create_index("email", unique=True)
        # Sparse: upserted profiles may not carry a biodataId yet
        self.biodata.create_index("biodataId", unique=True, sparse=True)
        self.biodata.create_index("email")
        self.bikes.create_index("category")
        logger.info("MongoDB indexes ensured")


def get_stores(request: Request) -> Stores:
    stores = request.app.state.stores
    if stores is None:
        raise UpstreamUnavailableError(
            message="The database is temporarily unavailable. Please try again later.",
            service="mongodb",
        )
    return stores


# Utils
def parse_object_id(value: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise InvalidParameterError(message="Invalid id", parameter="id")
    return ObjectId(value)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def insert_result(result) -> Dict[str, Any]:
    return {"acknowledged": result.acknowledged, "insertedId": str(result.inserted_id)}


def update_result(result) -> Dict[str, Any]:
    upserted = result.upserted_id
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedId": str(upserted) if upserted is not None else None,
    }


def delete_result(result) -> Dict[str, Any]:
    return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}


def current_max(collection: Collection, field: str) -> int:
    """Largest value of `field` in the collection, or 0 when none exist."""
    last = collection.find_one(
        {field: {"$exists": True}},
        projection={field: 1},
        sort=[(field, DESCENDING)],
    )
    if not last or last.get(field) is None:
        return 0
    return int(last[field])


def next_sequence(counters: Collection, name: str, floor: int = 0) -> int:
    """
    Atomically allocate the next value of the counter `name`.

    The counter is first raised to `floor` so values never fall at or below
    ids that already exist, then incremented in one atomic update; concurrent
    callers therefore always receive distinct values.
    """
    counters.update_one({"_id": name}, {"$max": {"seq": floor}}, upsert=True)
    doc = counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(doc["seq"])
