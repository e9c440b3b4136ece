"""
Database Schemas

Pydantic models for the request payloads of each MongoDB collection.
Collection names are the lowercase class stem:
- NavbarCategory -> "navbarcategory"
- Category -> "category"
- SubCategory -> "subcategory"
- Product -> "product"
- Enquiry -> "contact"

Fields are snake_case in Python and camelCase on the wire and in the stored
documents. Create payloads keep every field optional so that missing required
fields can be reported with one readable message instead of a list of
pydantic errors; the required set lives with each collection in catalog.py.
"""
import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

ENQUIRY_STATUSES = ("new", "read", "responded", "closed")
ENQUIRY_TYPES = ("general", "product")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class SluggedModel(CamelModel):
    @field_validator("slug", check_fields=False)
    @classmethod
    def normalise_slug(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.lower()
        if v and not SLUG_RE.match(v):
            raise ValueError("Slug may only contain lowercase letters, numbers and hyphens")
        return v


# Catalog hierarchy

class NavbarCategoryCreate(SluggedModel):
    """
    Top level navigation entry
    Collection name: "navbarcategory"
    """
    name: Optional[str] = Field(None, min_length=2, max_length=50, description="Menu label")
    slug: Optional[str] = Field(None, description="URL-friendly unique identifier")
    href: Optional[str] = Field(None, description="Path the menu entry links to")
    order: Optional[int] = Field(None, description="Display position, ascending")
    is_active: Optional[bool] = None


class NavbarCategoryUpdate(NavbarCategoryCreate):
    id: Optional[str] = Field(None, alias="_id")


class CategoryCreate(SluggedModel):
    """
    Product categories under a navbar category
    Collection name: "category"
    """
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    slug: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = Field(None, description="Blob store URL")
    image_public_id: Optional[str] = Field(None, description="Blob store deletion handle")
    navbar_category_id: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryUpdate(CategoryCreate):
    id: Optional[str] = Field(None, alias="_id")


class SubCategoryCreate(SluggedModel):
    """
    Sub-categories; carries both its category and that category's navbar category
    Collection name: "subcategory"
    """
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    slug: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = None
    image_public_id: Optional[str] = None
    category_id: Optional[str] = None
    navbar_category_id: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class SubCategoryUpdate(SubCategoryCreate):
    id: Optional[str] = Field(None, alias="_id")


class ProductImage(CamelModel):
    url: str = Field(..., min_length=1)
    public_id: str = Field(..., min_length=1)


class ProductCreate(SluggedModel):
    """
    Products
    Collection name: "product"
    """
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    key_features: Optional[List[str]] = Field(None, description="Bullet points, in display order")
    images: Optional[List[ProductImage]] = None
    subcategory_id: Optional[str] = None
    category_id: Optional[str] = None
    navbar_category_id: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class ProductUpdate(ProductCreate):
    id: Optional[str] = Field(None, alias="_id")


# Enquiries

class EnquiryCreate(CamelModel):
    """
    Contact and product enquiries
    Collection name: "contact"
    """
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    company_name: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    product_name: Optional[str] = None
    product_slug: Optional[str] = None
    product_id: Optional[str] = None
    enquiry_type: Optional[str] = None

    @field_validator("mobile", mode="before")
    @classmethod
    def mobile_as_text(cls, v):
        # Free-form: forms may post the number as JSON digits.
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class EnquiryStatusUpdate(CamelModel):
    status: Optional[str] = None


# Auth

class LoginRequest(BaseModel):
    """Credentials payload for admin login"""
    email: Optional[str] = None
    password: Optional[str] = None


class AdminIdentity(BaseModel):
    email: str
    id: str


# Read-side shapes

class ParentRef(BaseModel):
    """Shallow projection of a referenced parent embedded in responses."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    slug: Optional[str] = None
    href: Optional[str] = None
    images: Optional[List[ProductImage]] = None


EnquiryKind = Literal["general", "product"]
