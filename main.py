import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import (
    COOKIE_NAME,
    TOKEN_MAX_AGE,
    CredentialsProvider,
    TokenService,
    current_admin,
    get_credentials_provider,
    get_token_service,
    require_admin,
)
from blobstore import (
    BlobStore,
    delete_images_quietly,
    get_blob_store,
    get_optional_blob_store,
    upload_images,
    validate_image,
)
from catalog import (
    CATEGORIES,
    NAVBAR_CATEGORIES,
    PRODUCTS,
    SUBCATEGORIES,
    CollectionSpec,
    create_item,
    delete_item,
    image_public_ids,
    integrity_report,
    list_items,
    update_item,
)
from config import Settings, get_settings
from database import CATALOG_COLLECTIONS, ensure_indexes, get_db
from enquiries import create_enquiry, delete_enquiry, enquiry_counts, list_enquiries, update_enquiry_status
from schemas import (
    AdminIdentity,
    CategoryCreate,
    CategoryUpdate,
    EnquiryCreate,
    EnquiryKind,
    EnquiryStatusUpdate,
    LoginRequest,
    NavbarCategoryCreate,
    NavbarCategoryUpdate,
    ProductCreate,
    ProductUpdate,
    SubCategoryCreate,
    SubCategoryUpdate,
)

app_settings = get_settings()
logging.basicConfig(level=app_settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    db = get_db()
    if db is None:
        logger.warning("DATABASE_URL not set, running without a database")
    else:
        try:
            ensure_indexes(db)
        except Exception:
            logger.exception("Could not create indexes")
    yield


app = FastAPI(title="Security Catalog API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ENQUIRY_PREFIX = "/api/contact"


# Error envelopes
def _error_body(request: Request, error: str, message: Optional[str] = None) -> Dict[str, Any]:
    # Enquiry endpoints answer {message, error}; everything else {success, error, message}.
    if request.url.path.startswith(ENQUIRY_PREFIX):
        body: Dict[str, Any] = {"message": error}
        if message:
            body["error"] = message
        return body
    body = {"success": False, "error": error}
    if message:
        body["message"] = message
    return body


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict):
        body = _error_body(request, detail.get("error", ""), detail.get("message"))
    else:
        body = _error_body(request, str(detail))
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = None
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{loc}: {first.get('msg')}" if loc else first.get("msg")
    return JSONResponse(_error_body(request, "Validation failed", message), status_code=400)


def server_error(summary: str, exc: Exception) -> HTTPException:
    logger.exception("%s", summary)
    return HTTPException(status_code=500, detail={"error": summary, "message": str(exc)})


def guarded(summary: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a handler body, letting HTTP errors through and turning anything else into a 500."""
    try:
        return fn(*args, **kwargs)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error(summary, e)


def require_db(db=Depends(get_db)):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def dump(payload) -> Dict[str, Any]:
    return payload.model_dump(by_alias=True, exclude_unset=True)


@app.get("/")
def read_root():
    return {"message": "Security Catalog Backend is running"}


@app.get("/test")
def test_database(db=Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
        "catalog": {},
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = getattr(db, "name", None) or ""
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["catalog"] = {name: db[name].count_documents({}) for name in CATALOG_COLLECTIONS}
                response["catalog"]["contact"] = db["contact"].count_documents({})
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


# Auth
@app.post("/api/auth/login")
def login(
    payload: LoginRequest,
    response: Response,
    credentials: CredentialsProvider = Depends(get_credentials_provider),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    admin = credentials.validate(payload.email, payload.password)
    if admin is None:
        logger.warning("Rejected admin login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    response.set_cookie(
        COOKIE_NAME,
        tokens.issue(admin),
        max_age=TOKEN_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return {"success": True, "message": "Login successful", "user": admin.model_dump()}


@app.post("/api/auth/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.set_cookie(
        COOKIE_NAME,
        "",
        max_age=0,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return {"success": True, "message": "Logged out"}


@app.get("/api/auth/verify")
def verify(admin: Optional[AdminIdentity] = Depends(current_admin)):
    if admin is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return {"success": True, "user": admin.model_dump()}


def _delete(db, spec: CollectionSpec, id: Optional[str], purge_images: bool, store: Optional[BlobStore]):
    deleted = delete_item(db, spec, id)
    if purge_images:
        handles = image_public_ids(deleted)
        if handles and store is None:
            logger.warning("Image storage not configured, leaving %d image(s) of %s", len(handles), id)
        elif handles:
            delete_images_quietly(store, handles)
    return {"success": True, "message": f"{spec.label} deleted successfully"}


# Navbar categories CRUD
@app.get("/api/navbar-category")
def list_navbar_categories(isActive: Optional[bool] = None, slug: Optional[str] = None, db=Depends(require_db)):
    data = guarded("Failed to fetch navbar categories", list_items, db, NAVBAR_CATEGORIES, {}, isActive, slug)
    return {"success": True, "data": data}


@app.post("/api/navbar-category", status_code=201)
def create_navbar_category(payload: NavbarCategoryCreate, db=Depends(require_db),
                           _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to create navbar category", create_item, db, NAVBAR_CATEGORIES, dump(payload))
    return {"success": True, "data": data, "message": "Navbar category created successfully"}


@app.put("/api/navbar-category")
def update_navbar_category(payload: NavbarCategoryUpdate, db=Depends(require_db),
                           _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to update navbar category", update_item, db, NAVBAR_CATEGORIES, payload.id, dump(payload))
    return {"success": True, "data": data, "message": "Navbar category updated successfully"}


@app.delete("/api/navbar-category")
def delete_navbar_category(id: Optional[str] = None, db=Depends(require_db),
                           _: AdminIdentity = Depends(require_admin)):
    return guarded("Failed to delete navbar category", _delete, db, NAVBAR_CATEGORIES, id, False, None)


# Categories CRUD
@app.get("/api/category")
def list_categories(navbarCategoryId: Optional[str] = None, isActive: Optional[bool] = None,
                    slug: Optional[str] = None, db=Depends(require_db)):
    filters = {"navbarCategoryId": navbarCategoryId}
    data = guarded("Failed to fetch categories", list_items, db, CATEGORIES, filters, isActive, slug)
    return {"success": True, "data": data}


@app.post("/api/category", status_code=201)
def create_category(payload: CategoryCreate, db=Depends(require_db), settings: Settings = Depends(get_settings),
                    _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to create category", create_item, db, CATEGORIES, dump(payload),
                   strict=settings.strict_hierarchy)
    return {"success": True, "data": data, "message": "Category created successfully"}


@app.put("/api/category")
def update_category(payload: CategoryUpdate, db=Depends(require_db), settings: Settings = Depends(get_settings),
                    _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to update category", update_item, db, CATEGORIES, payload.id, dump(payload),
                   strict=settings.strict_hierarchy)
    return {"success": True, "data": data, "message": "Category updated successfully"}


@app.delete("/api/category")
def delete_category(id: Optional[str] = None, purgeImages: bool = False, db=Depends(require_db),
                    store: Optional[BlobStore] = Depends(get_optional_blob_store),
                    _: AdminIdentity = Depends(require_admin)):
    return guarded("Failed to delete category", _delete, db, CATEGORIES, id, purgeImages, store)


# Sub-categories CRUD
@app.get("/api/sub-category")
def list_sub_categories(categoryId: Optional[str] = None, navbarCategoryId: Optional[str] = None,
                        isActive: Optional[bool] = None, slug: Optional[str] = None, db=Depends(require_db)):
    filters = {"categoryId": categoryId, "navbarCategoryId": navbarCategoryId}
    data = guarded("Failed to fetch sub-categories", list_items, db, SUBCATEGORIES, filters, isActive, slug)
    return {"success": True, "data": data}


@app.post("/api/sub-category", status_code=201)
def create_sub_category(payload: SubCategoryCreate, db=Depends(require_db),
                        settings: Settings = Depends(get_settings), _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to create sub-category", create_item, db, SUBCATEGORIES, dump(payload),
                   strict=settings.strict_hierarchy)
    return {"success": True, "data": data, "message": "Sub-category created successfully"}


@app.put("/api/sub-category")
def update_sub_category(payload: SubCategoryUpdate, db=Depends(require_db),
                        settings: Settings = Depends(get_settings), _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to update sub-category", update_item, db, SUBCATEGORIES, payload.id, dump(payload),
                   strict=settings.strict_hierarchy)
    return {"success": True, "data": data, "message": "Sub-category updated successfully"}


@app.delete("/api/sub-category")
def delete_sub_category(id: Optional[str] = None, purgeImages: bool = False, db=Depends(require_db),
                        store: Optional[BlobStore] = Depends(get_optional_blob_store),
                        _: AdminIdentity = Depends(require_admin)):
    return guarded("Failed to delete sub-category", _delete, db, SUBCATEGORIES, id, purgeImages, store)


# Products CRUD
@app.get("/api/product")
def list_products(subcategoryId: Optional[str] = None, categoryId: Optional[str] = None,
                  navbarCategoryId: Optional[str] = None, isActive: Optional[bool] = None,
                  slug: Optional[str] = None, db=Depends(require_db)):
    filters = {"subcategoryId": subcategoryId, "categoryId": categoryId, "navbarCategoryId": navbarCategoryId}
    data = guarded("Failed to fetch products", list_items, db, PRODUCTS, filters, isActive, slug)
    return {"success": True, "data": data}


@app.post("/api/product", status_code=201)
def create_product(payload: ProductCreate, db=Depends(require_db), settings: Settings = Depends(get_settings),
                   _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to create product", create_item, db, PRODUCTS, dump(payload),
                   strict=settings.strict_hierarchy)
    return {"success": True, "data": data, "message": "Product created successfully"}


@app.put("/api/product")
def update_product(payload: ProductUpdate, db=Depends(require_db), settings: Settings = Depends(get_settings),
                   _: AdminIdentity = Depends(require_admin)):
    data = guarded("Failed to update product", update_item, db, PRODUCTS, payload.id, dump(payload),
                   strict=settings.strict_hierarchy)
    return {"success": True, "data": data, "message": "Product updated successfully"}


@app.delete("/api/product")
def delete_product(id: Optional[str] = None, purgeImages: bool = False, db=Depends(require_db),
                   store: Optional[BlobStore] = Depends(get_optional_blob_store),
                   _: AdminIdentity = Depends(require_admin)):
    return guarded("Failed to delete product", _delete, db, PRODUCTS, id, purgeImages, store)


# Enquiries
@app.get("/api/contact")
def get_enquiries(status: Optional[str] = None, productId: Optional[str] = None,
                  kind: Optional[EnquiryKind] = None, db=Depends(require_db),
                  _: AdminIdentity = Depends(require_admin)):
    return guarded("Failed to fetch enquiries", list_enquiries, db, status, productId, kind)


@app.post("/api/contact", status_code=201)
def submit_enquiry(payload: EnquiryCreate, db=Depends(require_db)):
    enquiry = guarded("Failed to submit enquiry", create_enquiry, db, dump(payload))
    return {"message": "Enquiry submitted successfully", "enquiry": enquiry}


@app.put("/api/contact")
def update_enquiry(payload: EnquiryStatusUpdate, id: Optional[str] = None, db=Depends(require_db),
                   _: AdminIdentity = Depends(require_admin)):
    return guarded("Failed to update enquiry", update_enquiry_status, db, id, payload.status)


@app.delete("/api/contact")
def remove_enquiry(id: Optional[str] = None, db=Depends(require_db), _: AdminIdentity = Depends(require_admin)):
    guarded("Failed to delete enquiry", delete_enquiry, db, id)
    return {"message": "Enquiry deleted successfully"}


# Image uploads
@app.post("/api/upload")
def upload(file: List[UploadFile] = File(...), _: AdminIdentity = Depends(require_admin),
           store: BlobStore = Depends(get_blob_store)):
    files = []
    for f in file:
        data = f.file.read()
        validate_image(f.filename, f.content_type, len(data))
        files.append((f.filename or "upload", f.content_type, data))
    uploaded = guarded("Failed to upload image", upload_images, store, files)
    return {"success": True, "data": uploaded}


@app.delete("/api/upload")
def delete_upload(publicId: Optional[str] = None, _: AdminIdentity = Depends(require_admin),
                  store: BlobStore = Depends(get_blob_store)):
    if not publicId:
        raise HTTPException(status_code=400, detail="publicId is required")
    ok = delete_images_quietly(store, [publicId]) == 1
    return {"success": ok}


# Admin
@app.get("/api/admin/summary")
def admin_summary(db=Depends(require_db), _: AdminIdentity = Depends(require_admin)):
    def summarize():
        counts = {
            "navbarCategories": db["navbarcategory"].count_documents({}),
            "categories": db["category"].count_documents({}),
            "subCategories": db["subcategory"].count_documents({}),
            "products": db["product"].count_documents({}),
        }
        counts.update(enquiry_counts(db))
        return counts
    return {"success": True, "data": guarded("Failed to build summary", summarize)}


@app.get("/api/admin/integrity")
def admin_integrity(db=Depends(require_db), _: AdminIdentity = Depends(require_admin)):
    return {"success": True, "data": guarded("Failed to check catalog integrity", integrity_report, db)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
