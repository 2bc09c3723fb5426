from security import GUEST, SUPER_ADMIN


def test_pages_slug_order_and_visibility(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    about = client.post("/api/pages", json={"slug": "About Us!", "title": {"en": "About", "ar": "عن"}, "order": 2},
                        headers=admin)
    assert about.status_code == 201
    assert about.json()["slug"] == "about-us"
    terms = client.post("/api/pages", json={"slug": "terms", "title": {"en": "Terms"}, "order": 1}, headers=admin).json()

    duplicate = client.post("/api/pages", json={"slug": "about-us", "title": {"en": "Again"}}, headers=admin)
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Page with this slug already exists"

    assert [p["slug"] for p in client.get("/api/pages").json()] == ["terms", "about-us"]
    reordered = client.patch("/api/pages/order/update", json={"pages": [{"id": terms["id"], "order": 5}]},
                             headers=admin).json()
    assert [p["slug"] for p in reordered] == ["about-us", "terms"]

    client.patch(f"/api/pages/{terms['id']}/toggle", headers=admin)
    hidden = client.get("/api/pages/slug/terms")
    assert hidden.status_code == 404
    assert hidden.json()["detail"] == "Page not found"
    assert client.get("/api/pages/slug/about-us").json()["title"]["ar"] == "عن"


def test_pages_admin_only(client, make_user):
    _, guest = make_user(GUEST)
    res = client.post("/api/pages", json={"slug": "x", "title": {"en": "X"}}, headers=guest)
    assert res.status_code == 403


def test_videos_priority_ordering(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    missing = client.post("/api/videos", json={"title": "Tour"}, headers=admin)
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Video URL or video file is required"

    tour = client.post("/api/videos", json={"title": "Tour", "video_url": "https://v/1", "priority": 1}, headers=admin).json()
    client.post("/api/videos", json={"title": "Intro", "video_url": "https://v/2", "priority": 3}, headers=admin)
    assert [v["title"] for v in client.get("/api/videos").json()] == ["Intro", "Tour"]

    reordered = client.patch("/api/videos/priority/update", json={"videos": [{"id": tour["id"], "priority": 9}]},
                             headers=admin).json()
    assert [v["title"] for v in reordered] == ["Tour", "Intro"]

    client.patch(f"/api/videos/{tour['id']}/toggle", headers=admin)
    assert [v["title"] for v in client.get("/api/videos?is_active=true").json()] == ["Intro"]


def test_active_advertisements(client, make_user, category_id):
    _, admin = make_user(SUPER_ADMIN)
    no_category = client.post("/api/advertisements", json={"image": "ad.png", "side": "left"}, headers=admin)
    assert no_category.status_code == 400
    assert no_category.json()["detail"] == "At least one category is required"
    no_image = client.post("/api/advertisements", json={"category_ids": [category_id], "side": "left"}, headers=admin)
    assert no_image.json()["detail"] == "Image file or image URL is required"

    base = {"image": "ad.png", "category_ids": [category_id]}
    home = client.post("/api/advertisements", json={**base, "side": "left", "show_in_home": True}, headers=admin).json()
    client.post("/api/advertisements", json={**base, "side": "right"}, headers=admin)

    assert len(client.get("/api/advertisements/active").json()) == 2
    assert [a["id"] for a in client.get("/api/advertisements/active?home=true").json()] == [home["id"]]
    assert len(client.get("/api/advertisements/active?side=right").json()) == 1
    assert home["categories"][0]["name"] == "Electronics"

    client.patch(f"/api/advertisements/{home['id']}/toggle-status", headers=admin)
    assert len(client.get("/api/advertisements/active").json()) == 1


def test_requests_validation_and_workflow(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    missing = client.post("/api/requests", json={"type": "new-ideas", "email": "a@example.com"})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Type, full name, and email are required"

    incomplete = client.post("/api/requests", json={"type": "join-our-team", "full_name": "Mona", "email": "m@example.com"})
    assert incomplete.json()["detail"] == (
        "Position of interest and cover letter are required for Join Our Team requests"
    )

    created = client.post("/api/requests", json={
        "type": "hire-expert", "full_name": "Mona", "email": "M@Example.com",
        "service_needed": "Branding", "project_details": "New logo",
    })
    assert created.status_code == 201
    request_id = created.json()["id"]

    listing = client.get("/api/requests?search=brand", headers=admin).json()
    assert listing["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}
    assert listing["requests"][0]["email"] == "m@example.com"

    read = client.patch(f"/api/requests/{request_id}/read", headers=admin).json()
    assert read["request"]["status"] == "read"
    assert read["request"]["read_by_user"]["email"] == "superadmin1@example.com"

    replied = client.patch(f"/api/requests/{request_id}/status", json={"status": "replied", "notes": "Called"},
                           headers=admin).json()
    assert replied["request"]["replied_by_user"]["email"] == "superadmin1@example.com"
    stats = client.get("/api/requests/stats", headers=admin).json()
    assert stats == {"total": 1, "new": 0, "read": 0, "replied": 1, "archived": 0}

    assert client.delete(f"/api/requests/{request_id}", headers=admin).status_code == 200
    assert client.get(f"/api/requests/{request_id}", headers=admin).status_code == 404


def test_contact_requests(client, make_user):
    _, admin = make_user(SUPER_ADMIN)
    incomplete = client.post("/api/contact", json={"name": "Ali", "email": "ali@example.com", "service": " "})
    assert incomplete.status_code == 400
    assert incomplete.json()["detail"] == "All fields are required"

    created = client.post("/api/contact", json={
        "name": "Ali", "email": "ali@example.com", "service": "Ads", "message": "Hello",
    })
    assert created.status_code == 201

    listing = client.get("/api/contact?is_read=false", headers=admin).json()
    assert listing["pagination"]["total"] == 1
    assert listing["contactRequests"][0]["status"] == "new"

    res = client.get("/api/contact/64b7f0000000000000000000", headers=admin)
    assert res.status_code == 404
    assert res.json()["detail"] == "Contact request not found"
