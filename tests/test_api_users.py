import inspect
from evoting.api.routes import users
from evoting.schemas.user import NonAdminUserCreate
from evoting.services.user_service import UserService


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_login_rejects_wrong_password(client, admin):
    response = client.post("/api/auth/login", data={"username": admin.email, "password": "wrong"})
    assert response.status_code == 401


def test_voter_without_credentials_cannot_login(client, voter):
    response = client.post("/api/auth/login", data={"username": voter.nim, "password": ""})
    assert response.status_code in (401, 422)


def test_me_returns_admin(client, admin_headers, admin):
    body = client.get("/api/auth/me", headers=admin_headers).json()

    assert body["id"] == admin.id
    assert body["is_admin"] is True
    assert "password" not in body


def test_users_routes_require_token(client):
    assert client.get("/api/users/").status_code == 401


def test_users_routes_require_admin(client, mail, db, voter):
    UserService(mail=mail).send_credentials(db, voter.id)
    _, password = mail.sent[0]

    token = client.post(
        "/api/auth/login", data={"username": voter.nim, "password": password}
    ).json()["access_token"]

    response = client.get("/api/users/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_create_voter_and_admin(client, admin_headers):
    voter = client.post("/api/users/", headers=admin_headers, json={
        "nim": "2101001", "email": "ayu@campus.ac.id", "name": "Ayu", "yearClass": 2021,
    })
    assert voter.status_code == 201, voter.text
    assert voter.json()["is_admin"] is False
    assert voter.json()["year_class"] == 2021

    admin = client.post("/api/users/", headers=admin_headers, json={
        "nim": "0000009", "email": "ops@campus.ac.id", "name": "Ops",
        "isAdmin": True, "password": "s3cret-pass",
    })
    assert admin.status_code == 201, admin.text
    assert admin.json()["is_admin"] is True
    assert "password" not in admin.json()


def test_create_duplicate_nim_returns_400(client, admin_headers, voter):
    response = client.post("/api/users/", headers=admin_headers, json={
        "nim": voter.nim, "email": "new@campus.ac.id", "name": "New", "yearClass": 2022,
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "NIM already registered"


def test_create_admin_without_password_is_invalid(client, admin_headers):
    response = client.post("/api/users/", headers=admin_headers, json={
        "nim": "0000010", "email": "x@campus.ac.id", "name": "X", "isAdmin": True,
    })
    assert response.status_code == 422


def test_bulk_upload(client, admin_headers):
    csv = b"nim,email,name,yearClass\n2101001,a@campus.ac.id,Ayu,2021\n2101002,b@campus.ac.id,Budi,2021\n"
    response = client.post(
        "/api/users/bulk",
        headers=admin_headers,
        files={"file": ("voters.csv", csv, "text/csv")},
    )

    assert response.status_code == 201, response.text
    assert [u["nim"] for u in response.json()] == ["2101001", "2101002"]


def test_bulk_upload_duplicate_returns_400(client, admin_headers):
    csv = b"nim,email,name,yearClass\n2101001,a@campus.ac.id,Ayu,2021\n2101001,b@campus.ac.id,Budi,2021\n"
    response = client.post(
        "/api/users/bulk",
        headers=admin_headers,
        files={"file": ("voters.csv", csv, "text/csv")},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Make sure all email and nim values are unique"


def test_bulk_upload_rejects_other_file_types(client, admin_headers):
    response = client.post(
        "/api/users/bulk",
        headers=admin_headers,
        files={"file": ("voters.xlsx", b"not a csv", "application/octet-stream")},
    )
    assert response.status_code == 400


def test_bulk_upload_empty_file_returns_400(client, admin_headers):
    response = client.post(
        "/api/users/bulk",
        headers=admin_headers,
        files={"file": ("voters.csv", b"", "text/csv")},
    )
    assert response.status_code == 400


def test_listings_and_stats(client, admin_headers, db, voter):
    UserService.create_user(db, NonAdminUserCreate(
        nim="2201002", email="budi@campus.ac.id", name="Budi", year_class=2022,
    ))

    voters = client.get("/api/users/", headers=admin_headers, params={"yearClass": 2022}).json()
    assert [v["nim"] for v in voters] == ["2201002"]

    admins = client.get("/api/users/admins", headers=admin_headers).json()
    assert len(admins) == 1
    assert "voted" not in admins[0]
    assert "year_class" not in admins[0]

    stats = client.get("/api/users/stats", headers=admin_headers).json()
    assert stats == {"non_admin": 2, "admin": 1}


def test_listing_bad_sort_returns_400(client, admin_headers):
    response = client.get("/api/users/", headers=admin_headers, params={"sort": "password"})
    assert response.status_code == 400


def test_get_and_delete_user(client, admin_headers, voter):
    assert client.get(f"/api/users/{voter.id}", headers=admin_headers).json()["email"] == voter.email

    deleted = client.delete(f"/api/users/{voter.id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert deleted.json()["id"] == voter.id

    assert client.get(f"/api/users/{voter.id}", headers=admin_headers).status_code == 404
    assert client.delete(f"/api/users/{voter.id}", headers=admin_headers).status_code == 404


def test_send_credentials_route(client, admin_headers, mail, voter):
    response = client.post(f"/api/users/{voter.id}/credentials", headers=admin_headers)

    assert response.status_code == 200
    assert mail.sent[0][0] == voter.email

    _, password = mail.sent[0]
    login = client.post("/api/auth/login", data={"username": voter.nim, "password": password})
    assert login.status_code == 200


def test_send_credentials_route_mail_failure(client, admin_headers, mail, voter):
    mail.fail = True
    response = client.post(f"/api/users/{voter.id}/credentials", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Failed on sending the user credentials"


def test_send_credentials_unknown_user(client, admin_headers):
    assert client.post("/api/users/999/credentials", headers=admin_headers).status_code == 404


def test_update_vote(client, admin_headers, voter):
    response = client.patch(f"/api/users/{voter.id}/vote", headers=admin_headers, json={"voted": True})

    assert response.status_code == 200
    assert response.json()["voted"] is True
    assert client.get(f"/api/users/{voter.id}", headers=admin_headers).json()["voted"] is True
    assert client.patch("/api/users/999/vote", headers=admin_headers, json={"voted": True}).status_code == 404


def test_create_duplicate_inserted_after_checks_returns_400(client, admin_headers, monkeypatch, voter):
    # Another request wins the insert between the uniqueness checks and the commit
    monkeypatch.setattr(UserService, "validate_nim", staticmethod(lambda db, nim: None))
    monkeypatch.setattr(UserService, "validate_email", staticmethod(lambda db, email: None))

    response = client.post("/api/users/", headers=admin_headers, json={
        "nim": voter.nim, "email": voter.email, "name": "Ayu Again", "yearClass": 2021,
    })

    assert response.status_code == 400
    assert response.json()["detail"] == "NIM or email already registered"


def test_send_credentials_route_runs_in_threadpool():
    # SMTP calls block, so the handler must be a plain function
    assert not inspect.iscoroutinefunction(users.send_credentials)
