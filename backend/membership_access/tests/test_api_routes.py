"""
HTTP route tests for media tokens, grant reconciliation and the license
trigger.
"""

import pytest
import time
import jwt
from fastapi import FastAPI
from fastapi.testclient import TestClient

from membership_access.api.routes import access, health, license_check, media
from membership_access.auth import jwt as auth_jwt
from membership_access.database.session import get_db_session
from membership_access.models.training_access import TrainingAccess
from membership_access.services.media_token_service import sign


JWT_SECRET = "test-jwt-secret"
SIGNING_KEY = "test-signing-key"
TRIGGER_SECRET = "cron-secret"


def make_token(user_id, secret=JWT_SECRET, audience="authenticated", expires_in=3600):
    now = int(time.time())
    return jwt.encode(
        {"sub": user_id, "aud": audience, "iat": now, "exp": now + expires_in},
        secret,
        algorithm="HS256",
    )


def auth_header(user_id, **kwargs):
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


@pytest.fixture
def app(db_session, monkeypatch):
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("BUNNY_EMBED_TOKEN_KEY", SIGNING_KEY)
    monkeypatch.setenv("LICENSE_SUBJECT_EMAIL", "owner@example.com")
    monkeypatch.delenv("LICENSE_CHECK_SECRET_KEY", raising=False)
    monkeypatch.setattr(auth_jwt, "_verifier", None)

    app = FastAPI()
    app.include_router(health.router)
    app.include_router(media.router)
    app.include_router(access.router)
    app.include_router(license_check.router)

    def override_db():
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


# ============================================================================
# TEST SUITE: AUTHENTICATION
# ============================================================================

@pytest.mark.security
class TestAuthentication:
    def test_missing_token(self, client):
        response = client.post("/api/v1/media/token", json={"lesson_id": "x"})
        assert response.status_code == 401

    def test_wrong_secret(self, client, make_profile):
        profile = make_profile(license="elite")
        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": "x"},
            headers=auth_header(profile.id, secret="other-secret"),
        )
        assert response.status_code == 401

    def test_expired_token(self, client, make_profile):
        profile = make_profile(license="elite")
        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": "x"},
            headers=auth_header(profile.id, expires_in=-3600),
        )
        assert response.status_code == 401

    def test_wrong_audience(self, client, make_profile):
        profile = make_profile(license="elite")
        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": "x"},
            headers=auth_header(profile.id, audience="anon"),
        )
        assert response.status_code == 401

    def test_auth_not_configured(self, client, monkeypatch):
        monkeypatch.delenv("SUPABASE_JWT_SECRET")
        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": "x"},
            headers=auth_header("someone"),
        )
        assert response.status_code == 503


# ============================================================================
# TEST SUITE: MEDIA TOKEN
# ============================================================================

class TestMediaTokenRoute:
    def test_entitled_member_gets_signed_url(self, client, make_profile, make_module, make_lesson):
        profile = make_profile(license="immersion")
        lesson = make_lesson(make_module(required_license="elite"), bunny_video_id="vid-9")

        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": lesson.id, "ttl_seconds": 600},
            headers=auth_header(profile.id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["video_id"] == "vid-9"
        assert body["token"] == sign(SIGNING_KEY, "vid-9", body["expires"])
        assert body["embed_url"].endswith(f"/vid-9?token={body['token']}&expires={body['expires']}")
        assert abs(body["expires"] - (int(time.time()) + 600)) <= 5

    def test_insufficient_license_is_403_with_reason(
        self, client, make_profile, make_module, make_lesson
    ):
        profile = make_profile(license="transformation")
        lesson = make_lesson(make_module(required_license="elite"))

        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": lesson.id},
            headers=auth_header(profile.id),
        )

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "media_access_denied"
        assert body["machine_readable"]["code"] == "insufficient_license"
        assert body["user_tier"] == "pro"
        assert body["required_tier"] == "elite"

    def test_preview_open_to_unlicensed(self, client, make_profile, make_module, make_lesson):
        profile = make_profile(license="none")
        lesson = make_lesson(make_module(required_license="elite"), is_preview=True)

        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": lesson.id},
            headers=auth_header(profile.id),
        )

        assert response.status_code == 200

    def test_inactive_module_is_403(self, client, make_profile, make_module, make_lesson):
        profile = make_profile(role="admin")
        lesson = make_lesson(make_module(is_active=False))

        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": lesson.id},
            headers=auth_header(profile.id),
        )

        assert response.status_code == 403
        assert response.json()["machine_readable"]["code"] == "module_inactive"

    def test_unknown_lesson_is_404(self, client, make_profile):
        profile = make_profile(license="elite")
        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": "missing"},
            headers=auth_header(profile.id),
        )
        assert response.status_code == 404

    def test_unknown_profile_is_404(self, client):
        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": "missing"},
            headers=auth_header("no-such-profile"),
        )
        assert response.status_code == 404

    def test_lesson_without_video_is_404(self, client, make_profile, make_module, make_lesson):
        profile = make_profile(license="elite")
        lesson = make_lesson(make_module(), bunny_video_id=None)

        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": lesson.id},
            headers=auth_header(profile.id),
        )

        assert response.status_code == 404

    def test_non_positive_ttl_is_422(self, client, make_profile, make_module, make_lesson):
        profile = make_profile(license="elite")
        lesson = make_lesson(make_module())

        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": lesson.id, "ttl_seconds": 0},
            headers=auth_header(profile.id),
        )

        assert response.status_code == 422

    def test_signing_not_configured_is_503(self, client, make_profile, monkeypatch):
        monkeypatch.delenv("BUNNY_EMBED_TOKEN_KEY")
        profile = make_profile(license="elite")

        response = client.post(
            "/api/v1/media/token",
            json={"lesson_id": "anything"},
            headers=auth_header(profile.id),
        )

        assert response.status_code == 503


# ============================================================================
# TEST SUITE: RECONCILE
# ============================================================================

class TestReconcileRoutes:
    def test_reconcile_me(self, client, db_session, make_profile, make_module):
        profile = make_profile(license="pro")
        starter = make_module(required_license="starter")
        make_module(required_license="elite")

        response = client.post("/api/v1/access/reconcile/me", headers=auth_header(profile.id))

        assert response.status_code == 200
        assert response.json()["granted"] == [starter.id]
        assert db_session.query(TrainingAccess).filter_by(user_id=profile.id).count() == 1

    def test_admin_reconciles_member(self, client, make_profile, make_module):
        admin = make_profile(role="admin")
        member = make_profile(license="starter")
        make_module(required_license="starter")

        response = client.post(
            "/api/v1/access/reconcile",
            json={"user_id": member.id},
            headers=auth_header(admin.id),
        )

        assert response.status_code == 200
        assert response.json()["user_id"] == member.id
        assert len(response.json()["granted"]) == 1

    def test_member_cannot_reconcile_others(self, client, make_profile):
        caller = make_profile(license="elite")
        other = make_profile(license="elite")

        response = client.post(
            "/api/v1/access/reconcile",
            json={"user_id": other.id},
            headers=auth_header(caller.id),
        )

        assert response.status_code == 403

    def test_unknown_member_is_404(self, client, make_profile):
        admin = make_profile(role="developer")
        response = client.post(
            "/api/v1/access/reconcile",
            json={"user_id": "missing"},
            headers=auth_header(admin.id),
        )
        assert response.status_code == 404


# ============================================================================
# TEST SUITE: LICENSE TRIGGER
# ============================================================================

@pytest.mark.security
class TestLicenseTrigger:
    def test_open_when_no_secret_configured(self, client, make_profile):
        make_profile(role="admin", email="owner@example.com")

        response = client.post("/api/v1/license/check")

        assert response.status_code == 200
        assert response.json()["action"] == "created"
        assert response.json()["state"] == "active"

    def test_bearer_secret(self, client, monkeypatch):
        monkeypatch.setenv("LICENSE_CHECK_SECRET_KEY", TRIGGER_SECRET)

        response = client.post(
            "/api/v1/license/check",
            headers={"Authorization": f"Bearer {TRIGGER_SECRET}"},
        )

        assert response.status_code == 200

    def test_header_secret(self, client, monkeypatch):
        monkeypatch.setenv("LICENSE_CHECK_SECRET_KEY", TRIGGER_SECRET)

        response = client.post("/api/v1/license/check", headers={"X-Secret-Key": TRIGGER_SECRET})

        assert response.status_code == 200

    def test_bad_secret_rejected(self, client, monkeypatch):
        monkeypatch.setenv("LICENSE_CHECK_SECRET_KEY", TRIGGER_SECRET)

        response = client.post("/api/v1/license/check", headers={"X-Secret-Key": "guess"})

        assert response.status_code == 401

    def test_missing_secret_rejected(self, client, monkeypatch):
        monkeypatch.setenv("LICENSE_CHECK_SECRET_KEY", TRIGGER_SECRET)
        assert client.post("/api/v1/license/check").status_code == 401

    def test_renew(self, client, make_profile):
        make_profile(role="client", email="owner@example.com")

        response = client.post(
            "/api/v1/license/renew",
            json={"auto_renewal": True, "restore_role": True},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["action"] == "renewed"
        assert body["auto_renewal_enabled"] is True
        assert body["state"] == "active"

    def test_not_configured_is_503(self, client, monkeypatch):
        monkeypatch.delenv("LICENSE_SUBJECT_EMAIL")
        assert client.post("/api/v1/license/check").status_code == 503
