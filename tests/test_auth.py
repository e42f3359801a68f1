"""
tests/test_auth.py -- Registration, login, refresh, logout and logout-all.

Covers:
  - Acme scenario: register -> 200 with token and admin role; same domain again -> 400
  - Conflicting registrations create no rows
  - Login errors don't reveal whether the email exists
  - Refresh window: fresh tokens are returned as-is, near-expiry tokens reissued
  - logout-all revokes access and refresh tokens issued before it
"""
from datetime import timedelta

from conftest import PASSWORD, bearer, registration_payload
from sigstudio.core.security import create_access_token
from sigstudio.models import Activity, Tenant, User


class TestRegister:
    """POST /api/auth/register"""

    def test_acme_registration_returns_admin_token(self, client):
        resp = client.post("/api/auth/register", json=registration_payload())

        assert resp.status_code == 200
        data = resp.json()
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 15 * 60
        assert data["user"]["role"] == "admin"
        assert data["user"]["email"] == "a@acme.com"
        assert data["tenant"]["name"] == "Acme"
        assert data["tenant"]["domain"] == "acme.com"
        assert data["tenant"]["plan"] == "starter"
        assert "hashed_password" not in data["user"]

    def test_sets_httponly_refresh_cookie(self, client):
        resp = client.post("/api/auth/register", json=registration_payload())

        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("refresh_token=")
        assert "HttpOnly" in cookie
        assert "Path=/api/auth" in cookie
        assert "SameSite=strict" in cookie

    def test_duplicate_domain_is_rejected_without_creating_rows(self, client, db):
        client.post("/api/auth/register", json=registration_payload())

        resp = client.post(
            "/api/auth/register",
            json=registration_payload(organization_name="Acme Two", email="b@acme.com"),
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == "DOMAIN_EXISTS"
        assert db.query(Tenant).count() == 1
        assert db.query(User).count() == 1

    def test_domain_comparison_ignores_case(self, client):
        client.post("/api/auth/register", json=registration_payload())

        resp = client.post(
            "/api/auth/register",
            json=registration_payload(domain="ACME.com", email="b@acme.com"),
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == "DOMAIN_EXISTS"

    def test_duplicate_email_is_rejected_without_creating_rows(self, client, db):
        client.post("/api/auth/register", json=registration_payload())

        resp = client.post(
            "/api/auth/register",
            json=registration_payload(organization_name="Other", domain="other.com"),
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == "EMAIL_EXISTS"
        assert db.query(Tenant).count() == 1
        assert db.query(User).count() == 1
        assert db.query(Tenant).filter(Tenant.domain == "other.com").first() is None

    def test_records_registration_activity(self, client, db):
        client.post("/api/auth/register", json=registration_payload())

        activity = db.query(Activity).one()
        assert activity.action == "registered"
        assert activity.entity_type == "tenant"

    def test_validation_errors_list_fields(self, client):
        payload = registration_payload(domain="not a domain", password="weakpass")
        payload["confirm_password"] = "weakpass"

        resp = client.post("/api/auth/register", json=payload)

        assert resp.status_code == 400
        data = resp.json()
        assert data["code"] == "VALIDATION_ERROR"
        fields = {error["field"] for error in data["errors"]}
        assert "domain" in fields
        assert "password" in fields

    def test_password_confirmation_must_match(self, client):
        payload = registration_payload()
        payload["confirm_password"] = "Different123"

        resp = client.post("/api/auth/register", json=payload)

        assert resp.status_code == 400
        assert "Passwords do not match" in resp.text


class TestLogin:
    """POST /api/auth/login"""

    def test_login_returns_token_and_payload(self, client, acme):
        resp = client.post("/api/auth/login", json={"email": "a@acme.com", "password": PASSWORD})

        assert resp.status_code == 200
        data = resp.json()
        assert data["user"]["id"] == acme.user["id"]
        assert data["tenant"]["id"] == acme.tenant["id"]
        assert data["user"]["last_login_at"] is not None

    def test_email_is_case_insensitive(self, client, acme):
        resp = client.post("/api/auth/login", json={"email": "A@Acme.com", "password": PASSWORD})
        assert resp.status_code == 200

    def test_wrong_password_and_unknown_email_look_the_same(self, client, acme):
        wrong_password = client.post("/api/auth/login", json={"email": "a@acme.com", "password": "Nope12345"})
        unknown_email = client.post("/api/auth/login", json={"email": "nobody@acme.com", "password": PASSWORD})

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()
        assert wrong_password.json()["detail"] == "Invalid credentials"
        assert wrong_password.json()["code"] == "INVALID_CREDENTIALS"
        assert wrong_password.headers["www-authenticate"] == "Bearer"

    def test_inactive_user_cannot_log_in(self, client, acme, db):
        acme.invite("m@acme.com")
        member = db.query(User).filter(User.email == "m@acme.com").one()
        member.is_active = False
        db.commit()

        resp = client.post("/api/auth/login", json={"email": "m@acme.com", "password": PASSWORD})

        assert resp.status_code == 401
        assert resp.json()["code"] == "ACCOUNT_DISABLED"


class TestVerify:
    """Bearer token verification via GET /api/auth/me"""

    def test_me_returns_user_and_tenant(self, client, acme):
        resp = client.get("/api/auth/me", headers=acme.headers)

        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "a@acme.com"
        assert resp.json()["tenant"]["domain"] == "acme.com"

    def test_missing_token_is_401(self, client):
        resp = client.get("/api/auth/me")

        assert resp.status_code == 401
        assert resp.json()["type"] == "authentication_error"

    def test_garbage_token_is_invalid(self, client):
        resp = client.get("/api/auth/me", headers=bearer("not-a-jwt"))

        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_INVALID"

    def test_expired_token(self, client, acme):
        token = create_access_token(
            user_id=acme.user["id"],
            tenant_id=acme.tenant["id"],
            email=acme.user["email"],
            role="admin",
            token_version=0,
            expires_delta=timedelta(seconds=-10),
        )

        resp = client.get("/api/auth/me", headers=bearer(token))

        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_EXPIRED"

    def test_token_version_mismatch_is_rejected(self, client, acme):
        token = create_access_token(
            user_id=acme.user["id"],
            tenant_id=acme.tenant["id"],
            email=acme.user["email"],
            role="admin",
            token_version=7,
        )

        resp = client.get("/api/auth/me", headers=bearer(token))

        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_INVALID"


class TestRefresh:
    """POST /api/auth/refresh"""

    def test_token_outside_window_is_returned_unchanged(self, client, acme):
        resp = client.post("/api/auth/refresh", headers=acme.headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["refreshed"] is False
        assert data["access_token"] == acme.token
        assert 0 < data["expires_in"] <= 15 * 60

    def test_token_near_expiry_is_reissued(self, client, acme):
        short_lived = create_access_token(
            user_id=acme.user["id"],
            tenant_id=acme.tenant["id"],
            email=acme.user["email"],
            role="admin",
            token_version=0,
            expires_delta=timedelta(seconds=60),
        )

        resp = client.post("/api/auth/refresh", headers=bearer(short_lived))

        assert resp.status_code == 200
        data = resp.json()
        assert data["refreshed"] is True
        assert data["access_token"] != short_lived
        assert client.get("/api/auth/me", headers=bearer(data["access_token"])).status_code == 200

    def test_cookie_alone_issues_new_token(self, client, acme):
        resp = client.post("/api/auth/refresh")

        assert resp.status_code == 200
        assert resp.json()["refreshed"] is True
        assert "refresh_token=" in resp.headers["set-cookie"]

    def test_refresh_token_in_body(self, client, acme):
        refresh_token = client.cookies.get("refresh_token")
        client.cookies.clear()

        resp = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

        assert resp.status_code == 200
        assert resp.json()["refreshed"] is True

    def test_without_credentials_is_401(self, client, acme):
        client.cookies.clear()

        resp = client.post("/api/auth/refresh")

        assert resp.status_code == 401
        assert resp.json()["code"] == "NOT_AUTHENTICATED"

    def test_invalid_refresh_token_clears_cookie(self, client, acme):
        client.cookies.clear()

        resp = client.post("/api/auth/refresh", json={"refresh_token": "garbage"})

        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_INVALID"
        assert 'refresh_token=""' in resp.headers["set-cookie"] or "Max-Age=0" in resp.headers["set-cookie"]

    def test_access_token_is_not_a_refresh_token(self, client, acme):
        client.cookies.clear()

        resp = client.post("/api/auth/refresh", json={"refresh_token": acme.token})

        assert resp.status_code == 401


class TestLogout:
    """POST /api/auth/logout and /api/auth/logout-all"""

    def test_logout_clears_cookie(self, client, acme):
        resp = client.post("/api/auth/logout")

        assert resp.status_code == 200
        assert "refresh_token=" in resp.headers["set-cookie"]
        assert client.post("/api/auth/refresh").status_code == 401

    def test_logout_all_revokes_existing_access_tokens(self, client, acme):
        second_session = client.post(
            "/api/auth/login", json={"email": "a@acme.com", "password": PASSWORD}
        ).json()["access_token"]

        resp = client.post("/api/auth/logout-all", headers=acme.headers)
        assert resp.status_code == 200

        for token in (acme.token, second_session):
            me = client.get("/api/auth/me", headers=bearer(token))
            assert me.status_code == 401
            assert me.json()["code"] == "TOKEN_INVALID"

    def test_logout_all_revokes_refresh_tokens(self, client, acme):
        old_refresh = client.cookies.get("refresh_token")

        client.post("/api/auth/logout-all", headers=acme.headers)
        client.cookies.clear()

        resp = client.post("/api/auth/refresh", json={"refresh_token": old_refresh})
        assert resp.status_code == 401

    def test_logout_all_with_cookie_only(self, client, acme, db):
        resp = client.post("/api/auth/logout-all")

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=acme.headers).status_code == 401
        assert db.query(User).filter(User.id == acme.user["id"]).one().token_version == 1

    def test_new_login_after_logout_all_works(self, client, acme):
        client.post("/api/auth/logout-all", headers=acme.headers)

        token = acme.login("a@acme.com")

        assert client.get("/api/auth/me", headers=bearer(token)).status_code == 200

    def test_logout_all_without_credentials_is_401(self, client):
        assert client.post("/api/auth/logout-all").status_code == 401
