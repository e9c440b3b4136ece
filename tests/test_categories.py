from bson import ObjectId


def test_create_populates_navbar_category(admin_client):
    navbar = admin_client.post(
        "/api/navbar-category", json={"name": "Security", "slug": "security", "href": "/security"}
    ).json()["data"]
    resp = admin_client.post(
        "/api/category", json={"name": "Cameras", "slug": "cameras", "navbarCategoryId": navbar["_id"]}
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["navbarCategoryId"]["name"] == "Security"
    assert data["navbarCategoryId"]["href"] == "/security"
    assert data["navbarCategoryId"]["_id"] == navbar["_id"]
    assert data["description"] == ""
    assert data["image"] == "" and data["imagePublicId"] == ""

    again = admin_client.post(
        "/api/category", json={"name": "Cameras", "slug": "cameras", "navbarCategoryId": navbar["_id"]}
    )
    assert again.status_code == 409


def test_unknown_parent_is_not_found_and_not_persisted(admin_client, client):
    for parent_id in (str(ObjectId()), "not-an-id"):
        resp = admin_client.post(
            "/api/category", json={"name": "Cameras", "slug": "cameras", "navbarCategoryId": parent_id}
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "Navbar category not found"
    assert client.get("/api/category").json()["data"] == []


def test_required_fields(admin_client):
    resp = admin_client.post("/api/category", json={"name": "Cameras", "slug": "cameras"})
    assert resp.status_code == 400


def test_description_limit(admin_client, hierarchy):
    resp = admin_client.post(
        "/api/category",
        json={
            "name": "Alarms",
            "slug": "alarms",
            "description": "x" * 501,
            "navbarCategoryId": hierarchy["navbar"]["_id"],
        },
    )
    assert resp.status_code == 400


def test_list_filters_by_navbar_category(admin_client, client, hierarchy):
    other = admin_client.post(
        "/api/navbar-category", json={"name": "Networking", "slug": "networking", "href": "/net"}
    ).json()["data"]
    admin_client.post("/api/category", json={"name": "Switches", "slug": "switches", "navbarCategoryId": other["_id"]})

    data = client.get("/api/category", params={"navbarCategoryId": other["_id"]}).json()["data"]
    assert [c["slug"] for c in data] == ["switches"]
    assert client.get("/api/category", params={"navbarCategoryId": "garbage"}).json()["data"] == []
    assert len(client.get("/api/category").json()["data"]) == 2


def test_update_revalidates_parent(admin_client, hierarchy):
    cat = hierarchy["category"]
    resp = admin_client.put("/api/category", json={"_id": cat["_id"], "navbarCategoryId": str(ObjectId())})
    assert resp.status_code == 404

    resp = admin_client.put("/api/category", json={"_id": cat["_id"], "image": "https://img/x.png",
                                                   "imagePublicId": "catalog/x"})
    data = resp.json()["data"]
    assert data["image"] == "https://img/x.png"
    assert data["name"] == "Cameras"
    assert data["navbarCategoryId"]["slug"] == "security"


def test_deleting_parent_leaves_dangling_reference(admin_client, client, hierarchy):
    admin_client.delete("/api/navbar-category", params={"id": hierarchy["navbar"]["_id"]})
    data = client.get("/api/category").json()["data"]
    assert len(data) == 1
    assert data[0]["navbarCategoryId"] is None


def test_delete_with_image_purge(admin_client, blob_store, hierarchy):
    blob = blob_store.upload(b"png", "cat.png", "image/png")
    cat = hierarchy["category"]
    admin_client.put("/api/category", json={"_id": cat["_id"], "image": blob["url"], "imagePublicId": blob["publicId"]})

    resp = admin_client.delete("/api/category", params={"id": cat["_id"], "purgeImages": "true"})
    assert resp.status_code == 200
    assert blob_store.deleted == [blob["publicId"]]


def test_purge_failure_does_not_block_delete(admin_client, blob_store, db, hierarchy):
    cat = hierarchy["category"]
    admin_client.put("/api/category", json={"_id": cat["_id"], "imagePublicId": "catalog/gone"})
    blob_store.fail_delete = True
    resp = admin_client.delete("/api/category", params={"id": cat["_id"], "purgeImages": "true"})
    assert resp.status_code == 200
    assert db["category"].count_documents({}) == 0
