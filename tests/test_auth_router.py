import re
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from hotel_auth.application.ports.messaging import DeliveryError
from hotel_auth.core.config import Settings
from hotel_auth.database import build_engine
from hotel_auth.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from hotel_auth.main import create_app

EMAIL = "guest@x.com"
PHONE = "+15551234567"


class Clock:
    def __init__(self):
        self.now = datetime(2024, 6, 1, 10, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeDispatcher:
    def __init__(self):
        self.fail = False
        self.outbox = []

    def send_email(self, to, subject, text, html=None):
        if self.fail:
            raise DeliveryError("smtp unavailable")
        self.outbox.append((to, text))

    def send_sms(self, to, body):
        if self.fail:
            raise DeliveryError("twilio unavailable")
        self.outbox.append((to, body))

    def last_code(self, to):
        body = [text for dest, text in self.outbox if dest == to][-1]
        return re.search(r"\b\d{6}\b", body).group(0)


class FakeIdentity:
    def __init__(self):
        self.tokens = {
            "new-user": {"uid": "fb-1", "email": EMAIL},
            "other-user": {"uid": "fb-2", "email": "other@x.com"},
        }
        self.passwords = {}

    def verify_id_token(self, id_token):
        return self.tokens.get(id_token)

    def update_password(self, uid, new_password):
        self.passwords[uid] = new_password


@pytest.fixture
def ctx():
    clock = Clock()
    dispatcher = FakeDispatcher()
    identity = FakeIdentity()
    app = create_app(
        settings=Settings(JWT_SECRET_KEY="test-secret", MESSAGING_BACKEND="log", REDIS_URL=None),
        engine=build_engine("sqlite://", poolclass=StaticPool),
        dispatcher=dispatcher,
        identity=identity,
        rate_limiter=InMemoryRateLimiter(),
        clock=clock,
    )
    with TestClient(app) as client:
        yield client, dispatcher, identity, clock


def register(client, token="new-user", phone=PHONE):
    res = client.post("/api/auth/register", json={
        "firebaseIdToken": token, "firstName": "Ada", "lastName": "Lovelace", "phone": phone,
    })
    assert res.status_code == 201, res.text
    return res.json()["data"]


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def assert_error(res, status, reason):
    assert res.status_code == status, res.text
    body = res.json()
    assert body["success"] is False
    assert body["error"] == reason
    assert body["message"]


def test_health(ctx):
    client, *_ = ctx
    res = client.get("/health", headers={"X-Request-ID": "req-1"})
    assert res.status_code == 200
    assert res.json()["database"]["ok"] is True
    assert res.headers["X-Request-ID"] == "req-1"
    assert res.headers["X-Content-Type-Options"] == "nosniff"


def test_register_then_verify_email(ctx):
    client, dispatcher, _, clock = ctx
    data = register(client)
    assert data["user"]["email"] == EMAIL
    assert data["user"]["isEmailVerified"] is False
    assert data["token"]

    clock.advance(minutes=5)
    res = client.post("/api/auth/verify-email-otp", json={"email": EMAIL, "otp": dispatcher.last_code(EMAIL)})
    assert res.status_code == 200, res.text
    assert res.json()["data"]["user"]["isEmailVerified"] is True


def test_register_conflict(ctx):
    client, *_ = ctx
    register(client)
    res = client.post("/api/auth/register", json={"firebaseIdToken": "new-user"})
    assert_error(res, 409, "conflict")


def test_login_with_invalid_token(ctx):
    client, *_ = ctx
    assert_error(client.post("/api/auth/login", json={"firebaseIdToken": "nope"}), 401, "unauthorized")
    assert_error(client.post("/api/auth/login", json={}), 400, "validation_error")


def test_login_returns_token(ctx):
    client, *_ = ctx
    res = client.post("/api/auth/login", json={"firebaseIdToken": "other-user"})
    assert res.status_code == 200
    token = res.json()["data"]["token"]
    me = client.get("/api/auth/me", headers=auth_header(token))
    assert me.json()["data"]["email"] == "other@x.com"
    assert me.json()["data"]["isEmailVerified"] is False


def test_verify_error_reasons(ctx):
    client, dispatcher, _, clock = ctx
    register(client)

    res = client.post("/api/auth/verify-phone-otp", json={"phone": PHONE, "otp": "123456"})
    assert_error(res, 400, "not_requested")

    assert client.post("/api/auth/send-phone-otp", json={"phone": "+1 555 123 4567"}).status_code == 200
    code = dispatcher.last_code(PHONE)
    assert_error(client.post("/api/auth/verify-phone-otp", json={"phone": PHONE, "code": "000000"}), 400, "invalid")

    clock.advance(minutes=11)
    assert_error(client.post("/api/auth/verify-phone-otp", json={"phone": PHONE, "code": code}), 400, "expired")


def test_unknown_user_and_bad_input(ctx):
    client, *_ = ctx
    assert_error(client.post("/api/auth/send-email-otp", json={"email": "nobody@x.com"}), 404, "not_found")
    assert_error(client.post("/api/auth/send-email-otp", json={"email": "not-an-email"}), 400, "validation_error")
    assert_error(client.post("/api/auth/send-email-otp", json={}), 400, "validation_error")


def test_otp_requests_are_rate_limited(ctx):
    client, *_ = ctx
    register(client)
    for _ in range(3):
        assert client.post("/api/auth/send-email-otp", json={"email": EMAIL}).status_code == 200
    assert_error(client.post("/api/auth/send-email-otp", json={"email": EMAIL}), 429, "rate_limited")


def test_delivery_failure_keeps_code(ctx):
    client, dispatcher, _, _ = ctx
    register(client)
    dispatcher.fail = True
    assert_error(client.post("/api/auth/send-phone-otp", json={"phone": PHONE}), 502, "delivery_failed")


def test_password_reset_flow(ctx):
    client, dispatcher, identity, _ = ctx
    register(client)

    assert_error(client.post("/api/auth/reset-password", json={"email": EMAIL, "newPassword": "hunter22"}), 403, "unauthorized")

    assert client.post("/api/auth/forgot-password", json={"email": EMAIL}).status_code == 200
    res = client.post("/api/auth/verify-reset-otp", json={"email": EMAIL, "otp": dispatcher.last_code(EMAIL)})
    assert res.status_code == 200, res.text

    res = client.post("/api/auth/reset-password", json={"email": EMAIL, "newPassword": "hunter22"})
    assert res.status_code == 200, res.text
    assert identity.passwords == {"fb-1": "hunter22"}

    assert_error(client.post("/api/auth/reset-password", json={"email": EMAIL, "newPassword": "hunter23"}), 403, "unauthorized")


def test_me_requires_token(ctx):
    client, *_ = ctx
    assert_error(client.get("/api/auth/me"), 401, "unauthenticated")
    assert_error(client.get("/api/auth/me", headers=auth_header("garbage")), 401, "unauthenticated")


def test_profile_endpoints(ctx):
    client, *_ = ctx
    token = register(client)["token"]
    headers = auth_header(token)

    res = client.put("/api/profile", json={"firstName": "Grace", "city": "Pune", "dateOfBirth": "1990-12-09"}, headers=headers)
    assert res.status_code == 200, res.text
    profile = res.json()["data"]
    assert profile["firstName"] == "Grace"
    assert profile["lastName"] == "Lovelace"
    assert profile["dateOfBirth"] == "1990-12-09"

    register(client, token="other-user", phone="+15559876543")
    assert_error(client.put("/api/profile/email", json={"email": "other@x.com"}, headers=headers), 409, "conflict")
    res = client.put("/api/profile/phone", json={"phone": "+15550001111"}, headers=headers)
    assert res.json()["data"] == {"phone": "+15550001111"}

    assert_error(client.request("DELETE", "/api/profile", json={}, headers=headers), 400, "validation_error")
    assert client.request("DELETE", "/api/profile", json={"confirmDelete": True}, headers=headers).status_code == 200
    assert_error(client.get("/api/profile", headers=headers), 403, "unauthorized")


def test_verify_attempts_are_capped(ctx):
    client, dispatcher, _, _ = ctx
    register(client)
    code = dispatcher.last_code(EMAIL)

    for _ in range(5):
        assert_error(client.post("/api/auth/verify-email-otp", json={"email": EMAIL, "otp": "000000"}), 400, "invalid")
    # The budget is spent; even the right code is refused until the window passes
    assert_error(client.post("/api/auth/verify-email-otp", json={"email": EMAIL, "otp": code}), 429, "rate_limited")

    for _ in range(5):
        client.post("/api/auth/verify-reset-otp", json={"email": EMAIL, "otp": "000000"})
    assert_error(client.post("/api/auth/verify-reset-otp", json={"email": EMAIL, "otp": "000000"}), 429, "rate_limited")

    for _ in range(5):
        client.post("/api/auth/verify-phone-otp", json={"phone": PHONE, "otp": "000000"})
    assert_error(client.post("/api/auth/verify-phone-otp", json={"phone": PHONE, "otp": "000000"}), 429, "rate_limited")
