"""
Catalog hierarchy: navbar category -> category -> sub-category -> product.

Every collection shares the same list/create/update/delete contract; what
differs (required fields, parent references, defaults, populated projections)
is described by a `CollectionSpec`. Parent references are stored as ObjectIds
and only checked for existence on write, there is no cascade on delete.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from fastapi import HTTPException
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, to_object_id, update_document
from schemas import ParentRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParentSpec:
    field: str
    collection: str
    label: str
    projection: Tuple[str, ...]


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    label: str
    required: Tuple[str, ...]
    required_message: str
    parents: Tuple[ParentSpec, ...] = ()
    defaults: Dict[str, Any] = field(default_factory=dict)

    def parent(self, field_name: str) -> Optional[ParentSpec]:
        for p in self.parents:
            if p.field == field_name:
                return p
        return None


NAVBAR_PARENT = ParentSpec("navbarCategoryId", "navbarcategory", "Navbar category", ("name", "slug", "href"))
CATEGORY_PARENT = ParentSpec("categoryId", "category", "Category", ("name", "slug"))
SUBCATEGORY_PARENT = ParentSpec("subcategoryId", "subcategory", "Sub-category", ("name", "slug"))

NAVBAR_CATEGORIES = CollectionSpec(
    name="navbarcategory",
    label="Navbar category",
    required=("name", "slug", "href"),
    required_message="Name, slug, and href are required fields",
)

CATEGORIES = CollectionSpec(
    name="category",
    label="Category",
    required=("name", "slug", "navbarCategoryId"),
    required_message="Name, slug, and navbar category are required fields",
    parents=(NAVBAR_PARENT,),
    defaults={"description": "", "image": "", "imagePublicId": ""},
)

SUBCATEGORIES = CollectionSpec(
    name="subcategory",
    label="Sub-category",
    required=("name", "slug", "categoryId", "navbarCategoryId"),
    required_message="Name, slug, category, and navbar category are required",
    parents=(CATEGORY_PARENT, NAVBAR_PARENT),
    defaults={"description": "", "image": "", "imagePublicId": ""},
)

PRODUCTS = CollectionSpec(
    name="product",
    label="Product",
    required=("name", "slug", "subcategoryId", "categoryId", "navbarCategoryId"),
    required_message="Name, slug, subcategory, category, and navbar category are required",
    parents=(SUBCATEGORY_PARENT, CATEGORY_PARENT, NAVBAR_PARENT),
    defaults={"description": "", "keyFeatures": [], "images": []},
)

CATALOG = (NAVBAR_CATEGORIES, CATEGORIES, SUBCATEGORIES, PRODUCTS)

LIST_SORT = [("order", ASCENDING), ("createdAt", DESCENDING)]


def serialize_doc(value: Any) -> Any:
    """Make a Mongo document JSON friendly: ObjectIds to str, datetimes to ISO strings."""
    if isinstance(value, dict):
        return {k: serialize_doc(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_doc(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def resolve_ref(db, parent: ParentSpec, ref: Any) -> Optional[Dict[str, Any]]:
    """Shallow projection of a referenced parent, or None when it is gone."""
    oid = to_object_id(ref)
    if oid is None:
        return None
    projection = {k: 1 for k in parent.projection}
    found = db[parent.collection].find_one({"_id": oid}, projection)
    if not found:
        return None
    return ParentRef(_id=str(found["_id"]), **{k: found.get(k) for k in parent.projection}).model_dump(
        by_alias=True, exclude_none=True
    )


def populate(db, spec: CollectionSpec, doc: Dict[str, Any]) -> Dict[str, Any]:
    out = serialize_doc(doc)
    for parent in spec.parents:
        if parent.field in doc:
            out[parent.field] = resolve_ref(db, parent, doc[parent.field])
    return out


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_parents(db, spec: CollectionSpec, data: Dict[str, Any]) -> None:
    """Replace parent id strings with ObjectIds, 404 when a parent does not exist."""
    for parent in spec.parents:
        if parent.field not in data:
            continue
        oid = to_object_id(data[parent.field])
        if oid is None or db[parent.collection].find_one({"_id": oid}, {"_id": 1}) is None:
            raise HTTPException(status_code=404, detail=f"{parent.label} not found")
        data[parent.field] = oid


def _check_slug(db, spec: CollectionSpec, slug: str, exclude_id: Optional[ObjectId] = None) -> None:
    query: Dict[str, Any] = {"slug": slug}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if db[spec.name].find_one(query, {"_id": 1}):
        raise HTTPException(status_code=409, detail=f"A {spec.label.lower()} with this slug already exists")


def hierarchy_mismatches(db, collection: str, doc: Dict[str, Any]) -> List[str]:
    """
    Cross-level consistency of a sub-category or product: its category must
    sit under the stated navbar category, and a product's sub-category must
    sit under the stated category.
    """
    problems: List[str] = []
    navbar_id = doc.get("navbarCategoryId")
    category_id = doc.get("categoryId")

    if collection == "product":
        sub = db["subcategory"].find_one({"_id": to_object_id(doc.get("subcategoryId"))}, {"categoryId": 1})
        if sub is not None and category_id is not None and sub.get("categoryId") != category_id:
            problems.append("Sub-category does not belong to the selected category")

    if collection in ("product", "subcategory"):
        cat = db["category"].find_one({"_id": to_object_id(category_id)}, {"navbarCategoryId": 1})
        if cat is not None and navbar_id is not None and cat.get("navbarCategoryId") != navbar_id:
            problems.append("Category does not belong to the selected navbar category")

    return problems


def _enforce_hierarchy(db, spec: CollectionSpec, doc: Dict[str, Any]) -> None:
    problems = hierarchy_mismatches(db, spec.name, doc)
    if problems:
        raise HTTPException(status_code=400, detail=problems[0])


def list_items(db, spec: CollectionSpec, filters: Dict[str, Optional[str]],
               is_active: Optional[bool] = None, slug: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    for key, value in filters.items():
        if not value:
            continue
        oid = to_object_id(value)
        if oid is None:
            # Malformed id can never match.
            return []
        query[key] = oid
    if is_active is not None:
        query["isActive"] = is_active
    if slug:
        query["slug"] = slug.strip().lower()
    docs = get_documents(db, spec.name, query, sort=LIST_SORT)
    return [populate(db, spec, d) for d in docs]


def create_item(db, spec: CollectionSpec, data: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
    data = {k: v for k, v in data.items() if v is not None}
    if any(_is_blank(data.get(k)) for k in spec.required):
        raise HTTPException(status_code=400, detail=spec.required_message)

    _check_parents(db, spec, data)
    if strict:
        _enforce_hierarchy(db, spec, data)
    _check_slug(db, spec, data["slug"])

    doc: Dict[str, Any] = dict(spec.defaults)
    doc.update({"order": 0, "isActive": True})
    doc.update(data)
    try:
        new_id = create_document(db, spec.name, doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"A {spec.label.lower()} with this slug already exists")
    created = db[spec.name].find_one({"_id": ObjectId(new_id)})
    return populate(db, spec, created)


def update_item(db, spec: CollectionSpec, raw_id: Optional[str], data: Dict[str, Any],
                strict: bool = False) -> Dict[str, Any]:
    if not raw_id:
        raise HTTPException(status_code=400, detail=f"{spec.label} ID is required")
    oid = to_object_id(raw_id)
    existing = db[spec.name].find_one({"_id": oid}) if oid is not None else None
    if existing is None:
        raise HTTPException(status_code=404, detail=f"{spec.label} not found")

    changes = {k: v for k, v in data.items() if v is not None and k not in ("_id", "id")}
    for key in spec.required:
        if key in changes and _is_blank(changes[key]):
            del changes[key]

    if "slug" in changes and changes["slug"] != existing.get("slug"):
        _check_slug(db, spec, changes["slug"], exclude_id=oid)
    _check_parents(db, spec, changes)
    if strict and any(p.field in changes for p in spec.parents):
        merged = dict(existing)
        merged.update(changes)
        _enforce_hierarchy(db, spec, merged)

    try:
        matched = update_document(db, spec.name, oid, changes)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"A {spec.label.lower()} with this slug already exists")
    if not matched:
        raise HTTPException(status_code=404, detail=f"{spec.label} not found")
    updated = db[spec.name].find_one({"_id": oid})
    return populate(db, spec, updated)


def delete_item(db, spec: CollectionSpec, raw_id: Optional[str]) -> Dict[str, Any]:
    """Delete one record and return it. Children and images are left alone."""
    if not raw_id:
        raise HTTPException(status_code=400, detail=f"{spec.label} ID is required")
    oid = to_object_id(raw_id)
    deleted = db[spec.name].find_one_and_delete({"_id": oid}) if oid is not None else None
    if deleted is None:
        raise HTTPException(status_code=404, detail=f"{spec.label} not found")
    return deleted


def image_public_ids(doc: Dict[str, Any]) -> List[str]:
    """Blob store handles owned by a catalog record."""
    ids = []
    if doc.get("imagePublicId"):
        ids.append(doc["imagePublicId"])
    for img in doc.get("images") or []:
        if isinstance(img, dict) and img.get("publicId"):
            ids.append(img["publicId"])
    return ids


def integrity_report(db) -> List[Dict[str, Any]]:
    """Dangling parent references and cross-level mismatches across the catalog."""
    report: List[Dict[str, Any]] = []
    for spec in CATALOG:
        if not spec.parents:
            continue
        for doc in db[spec.name].find({}):
            issues = []
            for parent in spec.parents:
                ref = doc.get(parent.field)
                if ref is None or db[parent.collection].find_one({"_id": ref}, {"_id": 1}) is None:
                    issues.append(f"{parent.label} reference is dangling")
            issues.extend(hierarchy_mismatches(db, spec.name, doc))
            if issues:
                report.append({
                    "collection": spec.name,
                    "_id": str(doc["_id"]),
                    "slug": doc.get("slug"),
                    "issues": issues,
                })
    return report
