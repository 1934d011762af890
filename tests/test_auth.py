def test_login_returns_token_and_cookie(client, users):
    response = client.post("/login", data={"username": "admin", "password": "secret"})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["role"] == "admin"
    assert "access_token" in response.cookies


def test_login_rejects_bad_password(client, users):
    response = client.post("/login", data={"username": "admin", "password": "wrong"})
    assert response.status_code == 401


def test_inactive_user_cannot_log_in(client, db, users):
    users["worker2"].is_active = False
    db.commit()

    response = client.post("/login", data={"username": "lee", "password": "secret"})
    assert response.status_code == 403


def test_me_with_bearer_token(client, users, sites, auth):
    response = client.get("/me", headers=auth(users["manager"]))

    assert response.status_code == 200
    assert response.json()["site_ids"] == [sites["a"].id]


def test_requests_without_token_are_unauthorized(client, users):
    response = client.get("/payroll/tax-rates")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_garbage_token_is_unauthorized(client, users):
    response = client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_create_user_as_admin(client, users, auth):
    response = client.post("/users/", headers=auth(users["admin"]), json={
        "username": "park", "password": "pw", "full_name": "Park", "employment_type": "freelancer", "daily_wage": 120000
    })

    assert response.status_code == 201
    assert response.json()["user"]["employment_type"] == "freelancer"

    duplicate = client.post("/users/", headers=auth(users["admin"]), json={
        "username": "park", "password": "pw", "full_name": "Park"
    })
    assert duplicate.status_code == 409


def test_workers_cannot_manage_users(client, users, auth):
    assert client.get("/users/", headers=auth(users["worker"])).status_code == 403


def test_user_listing_clamps_page_and_limit(client, users, auth):
    listed = client.get("/users/", params={"page": 0, "limit": -5}, headers=auth(users["admin"])).json()

    assert listed["page"] == 1
    assert listed["total_records"] == 5
    assert listed["total_pages"] == 5
    assert len(listed["users"]) == 1


def test_site_listing_and_assignment(client, users, sites, auth):
    mine = client.get("/sites/", headers=auth(users["manager"])).json()
    assert [s["name"] for s in mine] == ["North Tower"]

    response = client.post(
        f"/sites/{sites['b'].id}/assign",
        headers=auth(users["admin"]),
        json={"user_ids": [users["manager"].id]}
    )
    assert response.status_code == 200

    mine = client.get("/sites/", headers=auth(users["manager"])).json()
    assert [s["name"] for s in mine] == ["North Tower", "South Yard"]


def test_deactivated_user_loses_access(client, users, auth):
    admin = auth(users["admin"])
    worker = auth(users["worker2"])

    assert client.post(f"/users/{users['admin'].id}/deactivate", headers=admin).status_code == 400
    assert client.post(f"/users/{users['worker2'].id}/deactivate", headers=admin).status_code == 200
    assert client.get("/me", headers=worker).status_code == 403
