"""
Security Tests — credential sealing, JWT handling and the auth dependency.
"""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from api.deps import get_current_user
from api.main import app
from core.security import (
    create_access_token,
    decode_access_token,
    decrypt,
    encrypt,
    seal_credentials,
    unseal_credentials,
)

ACCOUNT_ID = "00000000-0000-0000-0000-000000000001"


class TestCredentialSealing:
    def test_encrypt_round_trip(self):
        token = encrypt("shpat_secret")
        assert token != "shpat_secret"
        assert decrypt(token) == "shpat_secret"

    def test_only_secret_fields_are_sealed(self):
        credentials = {"username": "api@tienda.co", "access_key": "k-123", "consumer_secret": "cs", "store_url": "x"}
        sealed = seal_credentials(credentials)

        assert sealed["username"] == "api@tienda.co"
        assert sealed["store_url"] == "x"
        assert sealed["access_key"] != "k-123"
        assert sealed["consumer_secret"] != "cs"
        assert unseal_credentials(sealed) == credentials

    def test_empty_and_missing_maps(self):
        assert seal_credentials({"access_token": ""}) == {"access_token": ""}
        assert unseal_credentials(None) == {}


class TestAccessTokens:
    def test_round_trip(self):
        token = create_access_token({"sub": "user-1", "account_id": ACCOUNT_ID})
        payload = decode_access_token(token)
        assert payload["sub"] == "user-1"
        assert payload["account_id"] == ACCOUNT_ID

    def test_expired_token_is_rejected(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-5))
        assert decode_access_token(token) is None

    def test_garbage_token_is_rejected(self):
        assert decode_access_token("not-a-jwt") is None


@pytest.mark.asyncio
class TestAuthDependency:
    """The real get_current_user, with only the DB dependencies overridden."""

    @pytest.fixture
    async def anon_client(self, client: AsyncClient):
        app.dependency_overrides.pop(get_current_user, None)
        return client

    async def test_missing_token_is_401(self, anon_client: AsyncClient):
        resp = await anon_client.get("/api/v1/channels/")
        assert resp.status_code == 401

    async def test_invalid_token_is_401(self, anon_client: AsyncClient):
        resp = await anon_client.get("/api/v1/channels/", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    async def test_token_without_account_is_403(self, anon_client: AsyncClient):
        token = create_access_token({"sub": "user-1"})
        resp = await anon_client.get("/api/v1/channels/", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

    async def test_valid_token_scopes_to_its_account(self, anon_client: AsyncClient, seeded_db):
        token = create_access_token({"sub": "user-1", "account_id": ACCOUNT_ID})
        resp = await anon_client.get("/api/v1/sync/status", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["account_id"] == ACCOUNT_ID
        assert len(resp.json()["channels"]) == 3

    async def test_token_cannot_reach_another_account(self, anon_client: AsyncClient, seeded_db):
        token = create_access_token({"sub": "user-1", "account_id": str(uuid.uuid4())})
        resp = await anon_client.get(
            "/api/v1/sync/status",
            params={"account_id": ACCOUNT_ID},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 403
