from bson import ObjectId

from enquiries import is_product_enquiry

from conftest import product_payload

ENQUIRY = {"name": "Jane", "email": "Jane@Example.com", "mobile": "+91 98765 43210", "subject": "Quote"}


def test_is_product_enquiry():
    assert is_product_enquiry({"productName": "4MP Dome"})
    assert not is_product_enquiry({"productName": "   ", "enquiryType": "product"})
    assert not is_product_enquiry({})


def test_create_general_enquiry(client, admin_client):
    resp = client.post("/api/contact", json=ENQUIRY)
    assert resp.status_code == 201
    enquiry = resp.json()["enquiry"]
    assert resp.json()["message"] == "Enquiry submitted successfully"
    assert enquiry["status"] == "new"
    assert enquiry["enquiryType"] == "general"
    assert enquiry["email"] == "jane@example.com"

    listed = admin_client.get("/api/contact", params={"status": "new"}).json()
    assert [e["_id"] for e in listed] == [enquiry["_id"]]


def test_invalid_email_rejected(client, db):
    resp = client.post("/api/contact", json={**ENQUIRY, "email": "jane@example"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid email format"}
    assert db["contact"].count_documents({}) == 0


def test_required_fields(client):
    resp = client.post("/api/contact", json={"name": "Jane", "email": "jane@example.com"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Name, email, and mobile are required"


def test_product_enquiry(client, admin_client, hierarchy):
    product = admin_client.post("/api/product", json=product_payload(hierarchy)).json()["data"]
    resp = client.post(
        "/api/contact",
        json={**ENQUIRY, "productName": product["name"], "productSlug": product["slug"], "productId": product["_id"]},
    )
    assert resp.status_code == 201
    enquiry = resp.json()["enquiry"]
    assert enquiry["enquiryType"] == "product"
    assert enquiry["productId"]["slug"] == "4mp-dome"
    assert enquiry["productId"]["images"][0]["publicId"] == "catalog/a"

    by_product = admin_client.get("/api/contact", params={"productId": product["_id"]}).json()
    assert len(by_product) == 1


def test_unknown_product_is_not_found(client):
    resp = client.post("/api/contact", json={**ENQUIRY, "productId": str(ObjectId())})
    assert resp.status_code == 404
    assert resp.json() == {"message": "Product not found"}


def test_kind_filter_trusts_product_name(client, admin_client):
    client.post("/api/contact", json={**ENQUIRY, "enquiryType": "product"})
    client.post("/api/contact", json={**ENQUIRY, "productName": "Dome"})

    general = admin_client.get("/api/contact", params={"kind": "general"}).json()
    product = admin_client.get("/api/contact", params={"kind": "product"}).json()
    assert len(general) == 1 and general[0]["enquiryType"] == "product"
    assert len(product) == 1 and product[0]["productName"] == "Dome"


def test_status_update(client, admin_client):
    enquiry = client.post("/api/contact", json=ENQUIRY).json()["enquiry"]

    resp = admin_client.put("/api/contact", params={"id": enquiry["_id"]}, json={"status": "responded"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "responded"

    bad = admin_client.put("/api/contact", params={"id": enquiry["_id"]}, json={"status": "archived"})
    assert bad.status_code == 400
    assert bad.json() == {"message": "Invalid status value"}

    missing = admin_client.put("/api/contact", params={"id": str(ObjectId())}, json={"status": "read"})
    assert missing.status_code == 404


def test_delete(client, admin_client, db):
    enquiry = client.post("/api/contact", json=ENQUIRY).json()["enquiry"]
    assert admin_client.delete("/api/contact", params={"id": str(ObjectId())}).status_code == 404
    resp = admin_client.delete("/api/contact", params={"id": enquiry["_id"]})
    assert resp.json() == {"message": "Enquiry deleted successfully"}
    assert db["contact"].count_documents({}) == 0


def test_admin_only_reads(client):
    client.post("/api/contact", json=ENQUIRY)
    assert client.get("/api/contact").status_code == 401


def test_numeric_mobile_is_kept_as_text(client):
    resp = client.post("/api/contact", json={**ENQUIRY, "mobile": 9876543210})
    assert resp.status_code == 201
    assert resp.json()["enquiry"]["mobile"] == "9876543210"
