"""
tests/test_security.py -- Unit tests for tokens, passwords, upload sniffing,
tenant scoping helpers and settings parsing.
"""
import importlib.util
import io
import re
import warnings
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic.warnings import PydanticDeprecatedSince20

import sigstudio
from sigstudio.config import Settings, get_settings
from sigstudio.core import permissions
from sigstudio.core.exceptions import (
    InvalidInputError,
    InvalidTokenError,
    TemplateNotFoundError,
    TenantIsolationError,
    TokenExpiredError,
)
from sigstudio.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    generate_temporary_password,
    get_password_hash,
    needs_refresh,
    verify_password,
)
from sigstudio.core.tenancy import ensure_tenant_access, get_owned_or_404
from sigstudio.models import SignatureTemplate, Tenant, User
from sigstudio.models.user import UserRole
from sigstudio.schemas.user import validate_password_strength
from sigstudio.services.uploads import read_limited, sniff_mime_type, validate_upload

settings = get_settings()


def access_token(**overrides) -> str:
    claims = {
        "user_id": "u1",
        "tenant_id": "t1",
        "email": "a@acme.com",
        "role": "admin",
        "token_version": 0,
    }
    claims.update(overrides)
    return create_access_token(**claims)


class TestTokens:
    def test_access_token_claims(self):
        payload = decode_access_token(access_token())

        assert payload["sub"] == "u1"
        assert payload["tenant_id"] == "t1"
        assert payload["role"] == "admin"
        assert payload["token_version"] == 0
        assert payload["type"] == "access"

    def test_refresh_token_is_not_an_access_token(self):
        refresh = create_refresh_token("u1", 0)

        with pytest.raises(InvalidTokenError):
            decode_access_token(refresh)

    def test_access_token_is_not_a_refresh_token(self):
        with pytest.raises(InvalidTokenError):
            decode_refresh_token(access_token())

    def test_expired_token(self):
        token = access_token(expires_delta=timedelta(seconds=-10))

        with pytest.raises(TokenExpiredError) as exc_info:
            decode_access_token(token)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_tampered_token(self):
        token = access_token()
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])

        with pytest.raises(InvalidTokenError):
            decode_access_token(tampered)

    def test_garbage_token(self):
        with pytest.raises(InvalidTokenError):
            decode_access_token("not-a-jwt")

    def test_needs_refresh_inside_window(self):
        now = datetime.now(timezone.utc)
        window = settings.TOKEN_REFRESH_WINDOW_SECONDS

        assert needs_refresh({"exp": now.timestamp() + window - 1}, now) is True
        assert needs_refresh({"exp": now.timestamp() + window + 60}, now) is False


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = get_password_hash("Secret123")

        assert hashed != "Secret123"
        assert verify_password("Secret123", hashed)
        assert not verify_password("secret123", hashed)

    def test_temporary_password_meets_strength_rules(self):
        password = generate_temporary_password()

        assert validate_password_strength(password) == password
        assert generate_temporary_password() != password

    def test_temporary_password_is_url_safe(self):
        assert re.fullmatch(r"[A-Za-z0-9_\-]+", generate_temporary_password())

    @pytest.mark.parametrize("weak", ["alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    def test_weak_passwords_rejected(self, weak):
        with pytest.raises(ValueError):
            validate_password_strength(weak)


class TestUploadChecks:
    def test_sniffs_known_formats(self):
        assert sniff_mime_type(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
        assert sniff_mime_type(b"\x89PNG\r\n\x1a\nrest") == "image/png"
        assert sniff_mime_type(b"GIF87a....") == "image/gif"
        assert sniff_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert sniff_mime_type(b'  <svg xmlns="http://www.w3.org/2000/svg"/>') == "image/svg+xml"

    def test_unknown_bytes(self):
        assert sniff_mime_type(b"MZ\x90\x00") is None
        assert sniff_mime_type(b"<html><body/></html>") is None
        assert sniff_mime_type(b"") is None

    def test_read_limited(self):
        assert read_limited(io.BytesIO(b"12345"), 5) == b"12345"

        with pytest.raises(InvalidInputError) as exc_info:
            read_limited(io.BytesIO(b"123456"), 5)
        assert exc_info.value.code == "FILE_TOO_LARGE"

    def test_declared_type_parameters_are_ignored(self):
        png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8

        assert validate_upload(png, "image/PNG; charset=binary") == "image/png"

    def test_declared_and_sniffed_types_may_differ_within_allow_list(self):
        gif = b"GIF89a" + b"\x00" * 8

        assert validate_upload(gif, "image/png") == "image/gif"


class TestTenantScoping:
    def test_matching_tenant_passes(self):
        ensure_tenant_access("t1", "t1")

    def test_mismatch_raises(self):
        with pytest.raises(TenantIsolationError) as exc_info:
            ensure_tenant_access("t1", "t2", user_id="u1", resource="templates:x")
        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "TENANT_MISMATCH"

    def test_get_owned_or_404(self, db, acme, globex):
        template_id = acme.create_template()["id"]

        found = get_owned_or_404(
            db, SignatureTemplate, template_id, tenant_id=acme.tenant["id"], not_found=TemplateNotFoundError
        )
        assert found.id == template_id

        with pytest.raises(TenantIsolationError):
            get_owned_or_404(
                db, SignatureTemplate, template_id, tenant_id=globex.tenant["id"], not_found=TemplateNotFoundError
            )

        with pytest.raises(TemplateNotFoundError):
            get_owned_or_404(
                db, SignatureTemplate, "missing", tenant_id=acme.tenant["id"], not_found=TemplateNotFoundError
            )

    def test_tenant_rows_own_themselves(self, db, acme):
        tenant = get_owned_or_404(
            db, Tenant, acme.tenant["id"], tenant_id=acme.tenant["id"], not_found=TemplateNotFoundError
        )

        assert tenant.domain == "acme.com"


class TestSettings:
    def test_comma_separated_lists(self):
        parsed = Settings(CORS_ORIGINS="https://a.example, https://b.example")

        assert parsed.CORS_ORIGINS == ["https://a.example", "https://b.example"]

    def test_json_lists_from_environment(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_UPLOAD_MIME_TYPES", '["image/png", "image/gif"]')

        assert Settings().ALLOWED_UPLOAD_MIME_TYPES == ["image/png", "image/gif"]

    def test_production_flag(self):
        assert Settings(ENVIRONMENT="production").is_production
        assert not settings.is_production


class TestPermissions:
    def _user(self, user_id, role):
        return User(id=user_id, tenant_id="t1", email=f"{user_id}@acme.com", role=role)

    def test_role_helpers(self):
        admin = self._user("a", UserRole.ADMIN)
        member = self._user("m", UserRole.MEMBER)

        assert permissions.can_modify_user(admin, member)
        assert permissions.can_modify_user(member, member)
        assert not permissions.can_modify_user(member, admin)
        assert permissions.can_delete_template(member, "m")
        assert not permissions.can_delete_template(member, None)
        assert permissions.can_delete_asset(admin, None)
        assert permissions.can_view_user_assignments(member, "m")
        assert not permissions.can_view_user_assignments(member, "a")

    def test_admin_gate_lives_only_in_deps(self):
        assert not hasattr(permissions, "require_admin")
        assert not hasattr(permissions, "require_role")


@pytest.mark.parametrize(
    "module_file",
    sorted((Path(sigstudio.__file__).parent / "schemas").glob("*.py")) + [Path(sigstudio.__file__).parent / "config.py"],
    ids=lambda path: path.stem,
)
def test_models_use_v2_config(module_file):
    """Re-executing each schema module under -W error finds no class-based Config."""
    spec = importlib.util.spec_from_file_location(f"_config_check_{module_file.stem}", module_file)
    module = importlib.util.module_from_spec(spec)
    with warnings.catch_warnings():
        warnings.simplefilter("error", PydanticDeprecatedSince20)
        spec.loader.exec_module(module)
