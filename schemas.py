"""
Request and response schemas for the Hunter and Matrimony APIs.

Documents are stored schemaless, so the models for stored records only pin the
fields the API itself filters, sorts or computes on and allow anything else
through (extra="allow").
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Document(BaseModel):
    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    def to_document(self) -> Dict[str, Any]:
        # Declared fields the client left out are skipped; explicit nulls are kept
        absent = {
            name for name in type(self).model_fields
            if name not in self.model_fields_set and getattr(self, name) is None
        }
        doc = self.model_dump(exclude=absent)
        doc.pop("_id", None)
        return doc


# Hunter: bikes for sale
class Bike(Document):
    name: Optional[str] = Field(None, description="Model name")
    category: Optional[str] = Field(None, description="Category, e.g. sports, cruiser")
    regularPrice: Optional[float] = Field(None, ge=0, description="Listed price")
    rating: Optional[float] = Field(None, ge=0, description="Average rating")


# Matrimony: user accounts
class User(Document):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    image: Optional[str] = None


# Matrimony: profile documents
class Biodata(Document):
    email: Optional[EmailStr] = Field(None, description="Owner account")
    name: Optional[str] = None
    age: Optional[int] = Field(None, ge=0)
    gender: Optional[str] = None
    category: Optional[str] = Field(None, description="Gender as used by the profile filters")
    permanentDivision: Optional[str] = None
    type: Optional[str] = Field(None, description="'premium' once upgraded")


class Favourite(Document):
    email: Optional[EmailStr] = None
    biodataId: Optional[int] = None


class ContactRequest(Document):
    userEmail: Optional[EmailStr] = None
    biodataId: Optional[int] = None
    status: Optional[str] = Field("Pending", description="Pending until approved")


class SuccessStory(Document):
    marriageDate: Optional[str] = None
    review: Optional[str] = None


# Bodies
class TokenRequest(BaseModel):
    email: EmailStr


class RoleUpdate(BaseModel):
    role: str = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


class PaymentIntentRequest(BaseModel):
    price: float = Field(..., gt=0, allow_inf_nan=False, description="Amount in major currency units")


class PaymentInfo(BaseModel):
    transactionId: str
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    email: EmailStr


# Responses
class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class RoleResponse(BaseModel):
    role: Optional[str] = None


class AdminCheckResponse(BaseModel):
    admin: bool


class PaymentIntentResponse(BaseModel):
    clientSecret: str


class AdminStats(BaseModel):
    totalBiodata: int
    maleBiodataCount: int
    femaleBiodataCount: int
    premiumBiodataCount: int
    totalRevenue: float = 0


class PageResponse(BaseModel):
    data: List[Dict[str, Any]]
    page: int
    totalPages: int
    totalRecords: int


class PaymentRecord(BaseModel):
    transactionId: str
    amount: float
    email: str
    date: datetime
