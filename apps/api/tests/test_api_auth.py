from urllib.parse import parse_qs, urlparse

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, bearer, login, register


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_register(client):
    data = register(client, email="New.User@x.com")
    assert data["message"]
    assert data["token"]
    assert data["user"]["email"] == "new.user@x.com"
    assert data["user"]["role"] == "user"
    assert "passwordHash" not in data["user"]


def test_register_ignores_role_in_body(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Mallory", "email": "m@x.com", "password": "secret1", "role": "admin"},
    )
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "user"


def test_register_validation_errors(client):
    response = client.post("/api/auth/register", json={"name": "Alice", "email": "a@x.com"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = client.post("/api/auth/register", json={"name": "Alice", "email": "bad", "password": "secret1"})
    assert response.status_code == 400


def test_register_duplicate(client):
    register(client)
    response = client.post("/api/auth/register", json={"name": "Alice", "email": "a@x.com", "password": "secret1"})
    assert response.status_code == 400
    assert response.json()["code"] == "DUPLICATE_EMAIL"


def test_malformed_json_is_400(client):
    response = client.post(
        "/api/auth/login", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_login(client):
    register(client)
    response = client.post("/api/auth/login", json={"email": "a@x.com", "password": "secret1"})
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["name"] == "Alice"

    me = client.get("/api/auth/user", headers=bearer(body["token"]))
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "a@x.com"


def test_login_wrong_password(client):
    register(client)
    response = client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope123"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CREDENTIALS"


def test_seeded_admin_can_login(client):
    token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    me = client.get("/api/auth/user", headers=bearer(token))
    assert me.json()["user"]["role"] == "admin"


def test_current_user_requires_token(client):
    response = client.get("/api/auth/user")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"

    response = client.get("/api/auth/user", headers=bearer("garbage"))
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_forgot_password_is_uniform(client, outbox):
    register(client)
    known = client.post("/api/auth/forgot-password", json={"email": "a@x.com"})
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@x.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(outbox) == 1


def test_reset_password(client, outbox):
    register(client)
    client.post("/api/auth/forgot-password", json={"email": "a@x.com"})
    link = next(line for line in outbox[-1].body_text.splitlines() if "reset-password" in line)
    assert link.startswith("http://desk.test.io/reset-password?token=")
    token = parse_qs(urlparse(link).query)["token"][0]

    response = client.post("/api/auth/reset-password", json={"token": token, "password": "brandnew1"})
    assert response.status_code == 200
    login(client, "a@x.com", "brandnew1")

    again = client.post("/api/auth/reset-password", json={"token": token, "password": "other123"})
    assert again.status_code == 400
    assert again.json()["code"] == "INVALID_RESET_TOKEN"


def test_change_password(client, user_token):
    wrong = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "nope123", "newPassword": "changed1"},
        headers=bearer(user_token),
    )
    assert wrong.status_code == 400

    ok = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "secret1", "newPassword": "changed1"},
        headers=bearer(user_token),
    )
    assert ok.status_code == 200
    login(client, "a@x.com", "changed1")
