"""Tests for the account endpoints."""

from datetime import datetime, timedelta, timezone

import pytest

from modules.auth import AuthSession
from modules.entitlements import Entitlement, Role, machine_id_for
from shared.models import Identity


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestMe:
    def test_requires_token(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "MISSING_TOKEN", "message": "Please sign in to continue"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_rejects_unknown_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-session"})

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"

    def test_first_sight_starts_seven_day_trial(self, client, auth_headers, entitlement_repository):
        before = datetime.now(timezone.utc)

        response = client.get("/auth/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == "test-user-123"
        assert data["subscriptionStatus"] == "trial"
        trial_end = _parse(data["machine"]["trial_end"])
        assert before + timedelta(days=7) <= trial_end <= datetime.now(timezone.utc) + timedelta(days=7)
        assert len(entitlement_repository) == 1

    def test_expired_premium_is_downgraded(self, client, auth_headers, entitlement_repository):
        entitlement_repository.create_if_absent(
            Entitlement(
                id=machine_id_for("test-user-123"),
                email="test@example.com",
                role=Role.PREMIUM,
                subscription_start=datetime.now(timezone.utc) - timedelta(days=31),
                subscription_end=datetime.now(timezone.utc) - timedelta(days=1),
                subscription_type="monthly",
            )
        )

        response = client.get("/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["X-Auto-Downgraded"] == "true"
        assert response.json()["subscriptionStatus"] == "free"
        stored = entitlement_repository.get_by_email("test@example.com")
        assert stored.role == Role.FREE
        assert stored.subscription_end is None

    def test_rate_limit_headers(self, client, auth_headers):
        response = client.get("/auth/me", headers=auth_headers)

        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"


class TestVerify:
    def test_does_not_create_entitlement(self, client, auth_headers, entitlement_repository):
        response = client.get("/api/auth/verify", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["machine"] is None
        assert len(entitlement_repository) == 0

    def test_reports_existing_entitlement(self, client, auth_headers):
        client.get("/auth/me", headers=auth_headers)

        data = client.get("/api/auth/verify", headers=auth_headers).json()

        assert data["subscriptionStatus"] == "trial"
        assert data["machine"]["email"] == "test@example.com"


class TestTokenRefreshHeaders:
    def test_expired_token_is_renewed(self, client, auth_provider, identity, token_factory):
        expired = token_factory(expires_in=timedelta(hours=-1))
        fresh = token_factory(expires_in=timedelta(hours=1))
        auth_provider.refresh_tokens["refresh-1"] = AuthSession(
            access_token=fresh,
            refresh_token="refresh-2",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            identity=identity,
        )

        response = client.get(
            "/auth/me",
            headers={"Authorization": f"Bearer {expired}", "X-Refresh-Token": "refresh-1"},
        )

        assert response.status_code == 200
        assert response.headers["X-New-Access-Token"] == fresh
        assert response.headers["X-New-Refresh-Token"] == "refresh-2"

    def test_expired_token_without_refresh(self, client, token_factory):
        expired = token_factory(expires_in=timedelta(hours=-1))

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {expired}"})

        assert response.status_code == 401
        assert response.json()["error"] == "TOKEN_EXPIRED"


class TestSignInOut:
    @pytest.fixture
    def signed_in(self, auth_provider, identity, token_factory):
        token = token_factory()

        async def sign_in(email, password):
            return AuthSession(
                access_token=token,
                refresh_token="refresh-1",
                expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
                identity=identity,
            )

        auth_provider.sign_in = sign_in
        return token

    def test_sign_in_primes_session_cache(self, client, container, auth_provider, signed_in):
        response = client.post("/auth/signin", json={"email": "test@example.com", "password": "pw"})

        assert response.status_code == 200
        data = response.json()
        assert data["session"]["access_token"] == signed_in
        assert data["session"]["refresh_token"] == "refresh-1"
        assert container.session_cache.resolve(signed_in).id == "test-user-123"

        client.get("/auth/me", headers={"Authorization": f"Bearer {signed_in}"})
        assert auth_provider.verify_calls == []

    def test_sign_in_marks_web_user(self, client, entitlement_repository, signed_in):
        entitlement_repository.create_if_absent(
            Entitlement(id="m-1", email="test@example.com", role=Role.FREE)
        )

        client.post("/auth/signin", json={"email": "test@example.com", "password": "pw"})

        assert entitlement_repository.get_by_email("test@example.com").web_user is True

    def test_wrong_credentials(self, client):
        response = client.post("/auth/signin", json={"email": "test@example.com", "password": "pw"})

        assert response.status_code == 401

    def test_sign_out_evicts_session(self, client, container, auth_provider, auth_headers, auth_token):
        client.get("/auth/me", headers=auth_headers)
        assert auth_token in container.session_cache

        response = client.post("/auth/signout", headers=auth_headers)

        assert response.json()["success"] is True
        assert auth_token not in container.session_cache
        assert auth_provider.signed_out == [auth_token]


class TestSignUp:
    def test_pending_email_confirmation(self, client):
        response = client.post("/auth/signup", json={"email": "new@example.com", "password": "secret1"})

        assert response.status_code == 200
        data = response.json()
        assert data["user"] == {"email": "new@example.com"}
        assert "check your email" in data["message"]
        assert "session" not in data

    def test_short_password(self, client):
        response = client.post("/auth/signup", json={"email": "new@example.com", "password": "123"})

        assert response.status_code == 422


class TestResetPassword:
    def test_sends_link(self, client):
        response = client.post("/auth/reset-password", json={"email": "test@example.com"})

        assert response.status_code == 200
        assert response.json()["success"] is True
