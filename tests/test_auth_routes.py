import pytest

from app import create_app
from models import db
from models.audit_log import AuditLog
from models.user import User
from services import accounts

from tests.helpers import api, login, register


def test_register_creates_account_and_session(app, client):
    resp = register(client, username="Alice", email="Alice@Example.com")
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["success"] is True
    assert body["message"] == "Account created successfully"
    assert body["user"]["username"] == "Alice"
    assert body["user"]["email"] == "alice@example.com"

    assert api(client, "GET", "/auth/me").status_code == 200

    with app.app_context():
        user = User.query.one()
        assert user.username_lower == "alice"
        assert user.password_hash != "s3cret-pass"
        assert user.password_hash.startswith("$2")


@pytest.mark.parametrize("payload,message", [
    ({"username": "bob", "email": "bob@example.com"}, "All fields are required"),
    ({"username": "  ", "email": "bob@example.com", "password": "pw"}, "All fields are required"),
    ({"username": "bob", "email": "not-an-email", "password": "pw"}, "Invalid email"),
])
def test_register_validation(client, payload, message):
    resp = client.post("/auth/register", json=payload)
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "message": message, "code": "VALIDATION_ERROR"}


def test_register_rejects_long_username(client):
    resp = register(client, username="u" * 51, email="long@example.com")
    assert resp.status_code == 400


def test_register_duplicates_are_case_insensitive(app, client, other_client):
    assert register(client, username="Alice").status_code == 201

    resp = register(other_client, username="ALICE", email="second@example.com")
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Email or username already exists"

    resp = register(other_client, username="alice2", email="ALICE@example.com")
    assert resp.status_code == 409

    with app.app_context():
        assert AuditLog.query.filter_by(action="REGISTER_FAIL_EXISTS").count() == 2


def test_login_by_username_or_email(client, other_client):
    register(client, username="Alice", email="alice@example.com")

    resp = login(other_client, "alice")
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Login successful"

    resp = login(other_client, "ALICE@EXAMPLE.COM")
    assert resp.status_code == 200
    assert resp.get_json()["user"]["username"] == "Alice"


def test_login_requires_both_fields(client):
    resp = client.post("/auth/login", json={"identifier": "alice"})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Email/username and password are required"


def test_unknown_user_and_wrong_password_look_the_same(client, other_client):
    register(client)

    unknown = login(other_client, "nobody", password="whatever")
    wrong = login(other_client, "alice", password="whatever")

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.get_json() == wrong.get_json() == {
        "success": False,
        "message": "Invalid credentials",
        "code": "INVALID_CREDENTIALS",
    }


@pytest.mark.parametrize("identifier", ["nobody", "alice"])
def test_exactly_one_password_check_per_attempt(client, other_client, monkeypatch, identifier):
    register(client)

    calls = []
    real_verify = accounts.verify_password

    def counting_verify(plain, hashed):
        calls.append(hashed)
        return real_verify(plain, hashed)

    monkeypatch.setattr(accounts, "verify_password", counting_verify)

    assert login(other_client, identifier, password="wrong").status_code == 401
    assert len(calls) == 1
    assert calls[0].startswith("$2")


def test_me_requires_login(client):
    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.get_json() == {
        "success": False,
        "message": "Authentication required",
        "code": "AUTHENTICATION_REQUIRED",
    }


def test_login_audit_trail(app, client, other_client):
    register(client)
    login(other_client, "alice", password="nope")
    login(other_client, "alice")

    with app.app_context():
        actions = [row.action for row in AuditLog.query.order_by(AuditLog.id)]
    assert actions == ["REGISTER_SUCCESS", "LOGIN_FAIL", "LOGIN_SUCCESS"]


def test_auth_rate_limit_covers_register_and_login():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "BCRYPT_ROUNDS": 4,
        "AUTH_RATE_MAX_REQUESTS": 2,
    })
    with app.app_context():
        db.create_all()

    client = app.test_client()
    assert register(client, username="bob").status_code == 201
    assert login(app.test_client(), "bob").status_code == 200

    resp = login(app.test_client(), "bob")
    assert resp.status_code == 429
    assert resp.get_json()["code"] == "RATE_LIMITED"
    assert int(resp.headers["Retry-After"]) > 0

    with app.app_context():
        assert AuditLog.query.filter_by(action="AUTH_RATE_LIMIT").count() == 1
        db.drop_all()


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_unknown_route_uses_json_errors(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_non_object_json_body_is_rejected(client):
    resp = client.post("/auth/login", json=["alice", "pw"])
    assert resp.status_code == 400
    assert resp.get_json() == {
        "success": False,
        "message": "Request body must be a JSON object",
        "code": "VALIDATION_ERROR",
    }

    resp = client.post("/auth/register", json="alice")
    assert resp.status_code == 400


@pytest.mark.parametrize("remember", ["false", "yes", 1])
def test_remember_me_needs_a_real_boolean(client, other_client, remember):
    register(client)
    resp = other_client.post(
        "/auth/login",
        json={"identifier": "alice", "password": "s3cret-pass", "remember": remember},
    )
    assert resp.status_code == 200
    assert "Max-Age" not in resp.headers["Set-Cookie"]
