import mongomock
from fastapi.testclient import TestClient

from main import app

from conftest import product_payload


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Security Catalog Backend is running"}
    report = client.get("/test").json()
    assert report["backend"] == "✅ Running"
    assert report["connection_status"] == "Connected"
    assert report["catalog"] == {"navbarcategory": 0, "category": 0, "subcategory": 0, "product": 0, "contact": 0}


def test_startup_creates_unique_slug_indexes(monkeypatch):
    import database

    fresh = mongomock.MongoClient().startup_test
    monkeypatch.setattr(database, "db", fresh)
    with TestClient(app):
        pass
    for name in database.CATALOG_COLLECTIONS:
        slug_indexes = [i for i in fresh[name].index_information().values() if i["key"] == [("slug", 1)]]
        assert slug_indexes and slug_indexes[0].get("unique") is True


def test_summary_counts(admin_client, client, hierarchy):
    admin_client.post("/api/product", json=product_payload(hierarchy))
    enquiry = {"name": "Jane", "email": "jane@example.com", "mobile": "123"}
    client.post("/api/contact", json=enquiry)
    client.post("/api/contact", json={**enquiry, "productName": "4MP Dome"})

    data = admin_client.get("/api/admin/summary").json()["data"]
    assert data == {
        "navbarCategories": 1,
        "categories": 1,
        "subCategories": 1,
        "products": 1,
        "productEnquiries": 1,
        "contactEnquiries": 1,
        "totalEnquiries": 2,
    }


def test_integrity_report(admin_client, hierarchy):
    assert admin_client.get("/api/admin/integrity").json()["data"] == []

    admin_client.post("/api/product", json=product_payload(hierarchy))
    admin_client.delete("/api/category", params={"id": hierarchy["category"]["_id"]})

    report = admin_client.get("/api/admin/integrity").json()["data"]
    by_collection = {r["collection"]: r for r in report}
    assert set(by_collection) == {"subcategory", "product"}
    assert "Category reference is dangling" in by_collection["product"]["issues"]


def test_admin_endpoints_require_login(client):
    assert client.get("/api/admin/summary").status_code == 401
    assert client.get("/api/admin/integrity").status_code == 401
