import mongomock
import pytest
from fastapi.testclient import TestClient

from blobstore import get_optional_blob_store
from config import Settings, get_settings
from database import ensure_indexes, get_db
from main import app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Secret@123"


class FakeBlobStore:
    """In-memory stand-in for the image host."""

    def __init__(self):
        self.blobs = {}
        self.deleted = []
        self.fail_upload_after = None
        self.fail_delete = False
        self._counter = 0

    def upload(self, data, filename, content_type):
        if self.fail_upload_after is not None and self._counter >= self.fail_upload_after:
            raise RuntimeError("upload refused")
        self._counter += 1
        public_id = f"catalog/{self._counter}-{filename}"
        self.blobs[public_id] = data
        return {"url": f"https://img.example.com/{public_id}", "publicId": public_id}

    def delete(self, public_id):
        if self.fail_delete:
            raise RuntimeError("delete refused")
        self.deleted.append(public_id)
        return self.blobs.pop(public_id, None) is not None


@pytest.fixture
def db():
    database = mongomock.MongoClient().catalog_test
    ensure_indexes(database)
    return database


@pytest.fixture
def settings():
    return Settings(jwt_secret="test-secret", admin_email=ADMIN_EMAIL, admin_password=ADMIN_PASSWORD)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def client(db, settings, blob_store):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_optional_blob_store] = lambda: blob_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    with TestClient(app) as c:
        resp = c.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        yield c


@pytest.fixture
def hierarchy(admin_client):
    """Navbar category -> category -> sub-category, returned as response payloads."""
    navbar = admin_client.post(
        "/api/navbar-category", json={"name": "Security", "slug": "security", "href": "/security"}
    ).json()["data"]
    category = admin_client.post(
        "/api/category", json={"name": "Cameras", "slug": "cameras", "navbarCategoryId": navbar["_id"]}
    ).json()["data"]
    sub = admin_client.post(
        "/api/sub-category",
        json={
            "name": "Dome Cameras",
            "slug": "dome-cameras",
            "categoryId": category["_id"],
            "navbarCategoryId": navbar["_id"],
        },
    ).json()["data"]
    return {"navbar": navbar, "category": category, "sub": sub}


def product_payload(hierarchy, **overrides):
    payload = {
        "name": "4MP Dome",
        "slug": "4mp-dome",
        "description": "Indoor dome camera",
        "keyFeatures": ["4MP sensor", "IR 30m"],
        "images": [{"url": "https://img.example.com/a.png", "publicId": "catalog/a"}],
        "subcategoryId": hierarchy["sub"]["_id"],
        "categoryId": hierarchy["category"]["_id"],
        "navbarCategoryId": hierarchy["navbar"]["_id"],
    }
    payload.update(overrides)
    return payload
