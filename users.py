import logging
import re
import time
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError

from database import Stores, get_stores, insert_result, serialize, update_result
from exceptions import ConflictError, ForbiddenError, NotFoundError
from schemas import AdminCheckResponse, RoleResponse, RoleUpdate, SuccessResponse, TokenRequest, User
from security import (
    ADMIN_ROLE,
    clear_token_cookie,
    issue_token,
    require_admin,
    require_user,
    set_token_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])

DEFAULT_ROLE = "NormalUser"
STATUS_REQUESTED = "Requested"
STATUS_VERIFIED = "Verified"


# Session
@router.post("/jwt", response_model=SuccessResponse)
def create_token(body: TokenRequest, response: Response):
    set_token_cookie(response, issue_token(body.email))
    return SuccessResponse()


@router.get("/logout", response_model=SuccessResponse)
def logout(response: Response):
    clear_token_cookie(response)
    return SuccessResponse()


# Users
@router.post("/users/{email}")
def save_user(email: str, body: User, stores: Stores = Depends(get_stores)):
    existing = stores.users.find_one({"email": email})
    if existing:
        return serialize(existing)

    doc = body.to_document()
    doc.update(email=email, role=DEFAULT_ROLE, timestamp=int(time.time() * 1000))
    try:
        result = stores.users.insert_one(doc)
    except DuplicateKeyError:
        # Lost a race with a concurrent signup for the same email
        return serialize(stores.users.find_one({"email": email}))

    logger.info("Created user %s", email)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=insert_result(result),
    )


@router.patch("/users/{email}")
def request_premium(email: str, stores: Stores = Depends(get_stores)):
    user = stores.users.find_one({"email": email})
    if not user:
        raise NotFoundError(resource="user", resource_id=email)
    if user.get("status") == STATUS_REQUESTED:
        raise ConflictError("You have already requested, wait for some time.")

    result = stores.users.update_one({"email": email}, {"$set": {"status": STATUS_REQUESTED}})
    return update_result(result)


@router.patch("/user/role/{email}")
def update_role(
    email: str,
    body: RoleUpdate,
    stores: Stores = Depends(get_stores),
    admin_email: str = Depends(require_admin),
):
    result = stores.users.update_one(
        {"email": email}, {"$set": {"role": body.role, "status": STATUS_VERIFIED}}
    )
    if result.matched_count == 0:
        raise NotFoundError(resource="user", resource_id=email)
    stores.biodata.update_one({"email": email}, {"$set": {"type": "premium"}})
    logger.info("%s set role of %s to %s", admin_email, email, body.role)
    return update_result(result)


@router.get("/users/role/{email}", response_model=RoleResponse)
def get_role(email: str, stores: Stores = Depends(get_stores)):
    user = stores.users.find_one({"email": email}, projection={"role": 1})
    return RoleResponse(role=user.get("role") if user else None)


@router.get("/all-users/{email}")
def list_other_users(
    email: str,
    search: Optional[str] = None,
    stores: Stores = Depends(get_stores),
    _admin: str = Depends(require_admin),
):
    query = {
        "email": {"$ne": email},
        "name": {"$regex": re.escape(search or ""), "$options": "i"},
    }
    return [serialize(d) for d in stores.users.find(query)]


@router.get("/users-info")
def list_users(stores: Stores = Depends(get_stores)):
    return [serialize(d) for d in stores.users.find()]


@router.get("/users/admin/{email}", response_model=AdminCheckResponse)
def check_admin(
    email: str,
    stores: Stores = Depends(get_stores),
    user_email: str = Depends(require_user),
):
    if email != user_email:
        raise ForbiddenError()
    user = stores.users.find_one({"email": email}, projection={"role": 1})
    return AdminCheckResponse(admin=bool(user) and user.get("role") == ADMIN_ROLE)
