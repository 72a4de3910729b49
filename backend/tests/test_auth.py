import uuid

from sqlalchemy.orm import Session

from quizhub.core.config import settings


def _register(client, **overrides):
    name = f"user_{uuid.uuid4().hex[:8]}"
    body = {"username": name, "email": f"{name}@Example.com", "password": "S3cret-pass!"}
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


def _login(client, username, password):
    return client.post(
        "/api/auth/token",
        data={"username": username, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def test_register_returns_token_and_plain_user(client):
    r = _register(client)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "User registered successfully"
    assert body["user"]["role"] == "user"
    assert body["user"]["email"].endswith("@example.com")
    assert body["tokenType"] == "bearer"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['accessToken']}"})
    assert me.status_code == 200
    assert me.json()["username"] == body["user"]["username"]


def test_register_ignores_requested_role(client):
    r = _register(client, role="admin")
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "user"


def test_register_rejects_duplicates(client):
    first = _register(client)
    name = first.json()["user"]["username"]
    r = _register(client, username=name)
    assert r.status_code == 409
    assert r.json()["error"] == "conflict"


def test_register_validation(client):
    assert _register(client, password="short").status_code == 400
    assert _register(client, password="alllowercase1!").status_code == 400
    assert _register(client, password="ALLUPPERCASE1!").status_code == 400
    assert _register(client, password="NoDigitsHere!").status_code == 400
    r = _register(client, password="NoSpecial123")
    assert r.status_code == 400
    assert "@$!%*?&" in r.json()["message"]
    assert _register(client, username="a b").status_code == 400
    assert _register(client, email="not-an-email").status_code == 400


def test_register_can_be_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "allow_public_register", False)
    r = _register(client)
    assert r.status_code == 403


def test_login_with_username_or_email(client, user):
    r = _login(client, user.username, user.password)
    assert r.status_code == 200
    token = r.json()["accessToken"]
    assert r.json()["expiresIn"] == settings.jwt_access_token_minutes * 60

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["id"] == str(user.id)

    assert _login(client, f"{user.username}@example.com", user.password).status_code == 200


def test_login_failures(client, user):
    r = _login(client, user.username, "wrong-password")
    assert r.status_code == 401
    assert r.json()["message"] == "invalid username or password"
    assert _login(client, "nobody_here", "whatever1").status_code == 401


def test_bad_tokens_are_rejected(client):
    assert client.get("/api/auth/me").status_code == 401
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 401
    assert r.json()["error"] == "unauthorized"


def test_login_is_rate_limited(client, user):
    codes = [_login(client, user.username, "wrong-password").status_code for _ in range(21)]
    assert codes[-1] == 429
    assert set(codes[:-1]) == {401}


def test_register_race_on_unique_name_is_conflict(client, monkeypatch):
    first = _register(client)
    taken = first.json()["user"]["username"]

    # Both requests pass the existence check; the database constraint decides.
    monkeypatch.setattr(Session, "scalar", lambda self, *args, **kwargs: None)
    r = _register(client, username=taken)
    monkeypatch.undo()

    assert r.status_code == 409
    assert r.json()["error"] == "conflict"
