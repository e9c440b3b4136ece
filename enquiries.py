"""Contact and product enquiries submitted from the public site."""
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo import DESCENDING

from catalog import ParentSpec, resolve_ref, serialize_doc
from database import create_document, get_documents, to_object_id, update_document
from schemas import ENQUIRY_STATUSES, ENQUIRY_TYPES

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PRODUCT_PARENT = ParentSpec("productId", "product", "Product", ("name", "slug", "images"))


def is_product_enquiry(doc: Dict[str, Any]) -> bool:
    """An enquiry is about a product iff it names one; the stored enquiryType is not consulted."""
    name = doc.get("productName")
    return isinstance(name, str) and bool(name.strip())


def populate_enquiry(db, doc: Dict[str, Any]) -> Dict[str, Any]:
    out = serialize_doc(doc)
    if doc.get("productId") is not None:
        out["productId"] = resolve_ref(db, PRODUCT_PARENT, doc["productId"])
    return out


def create_enquiry(db, data: Dict[str, Any]) -> Dict[str, Any]:
    data = {k: v for k, v in data.items() if v is not None}
    if not data.get("name") or not data.get("email") or not data.get("mobile"):
        raise HTTPException(status_code=400, detail="Name, email, and mobile are required")

    email = data["email"].strip().lower()
    if not EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Invalid email format")
    data["email"] = email

    if data.get("productId"):
        oid = to_object_id(data["productId"])
        if oid is None or db["product"].find_one({"_id": oid}, {"_id": 1}) is None:
            raise HTTPException(status_code=404, detail="Product not found")
        data["productId"] = oid
    else:
        data.pop("productId", None)

    if is_product_enquiry(data) or "productId" in data:
        data["enquiryType"] = "product"
    elif data.get("enquiryType") not in ENQUIRY_TYPES:
        data["enquiryType"] = "general"
    data["status"] = "new"

    new_id = create_document(db, "contact", data)
    return populate_enquiry(db, db["contact"].find_one({"_id": ObjectId(new_id)}))


def list_enquiries(db, status: Optional[str] = None, product_id: Optional[str] = None,
                   kind: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if product_id:
        oid = to_object_id(product_id)
        if oid is None:
            return []
        query["productId"] = oid
    docs = get_documents(db, "contact", query, sort=[("createdAt", DESCENDING)])
    if kind == "product":
        docs = [d for d in docs if is_product_enquiry(d)]
    elif kind == "general":
        docs = [d for d in docs if not is_product_enquiry(d)]
    return [populate_enquiry(db, d) for d in docs]


def update_enquiry_status(db, raw_id: Optional[str], status: Optional[str]) -> Dict[str, Any]:
    if not raw_id:
        raise HTTPException(status_code=400, detail="Enquiry ID is required")
    if status not in ENQUIRY_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status value")
    oid = to_object_id(raw_id)
    if oid is None or not update_document(db, "contact", oid, {"status": status}):
        raise HTTPException(status_code=404, detail="Enquiry not found")
    return populate_enquiry(db, db["contact"].find_one({"_id": oid}))


def delete_enquiry(db, raw_id: Optional[str]) -> None:
    if not raw_id:
        raise HTTPException(status_code=400, detail="Enquiry ID is required")
    oid = to_object_id(raw_id)
    if oid is None or db["contact"].delete_one({"_id": oid}).deleted_count == 0:
        raise HTTPException(status_code=404, detail="Enquiry not found")


def enquiry_counts(db) -> Dict[str, int]:
    docs = list(db["contact"].find({}, {"productName": 1}))
    product = sum(1 for d in docs if is_product_enquiry(d))
    return {
        "productEnquiries": product,
        "contactEnquiries": len(docs) - product,
        "totalEnquiries": len(docs),
    }
