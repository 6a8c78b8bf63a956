from datetime import timedelta

import pytest

from services.auth_service.service import AuthService
from shared.security.jwt_handler import create_access_token, verify_access_token


@pytest.fixture
async def dispatcher(database):
    async with database.session() as session:
        return await AuthService.provision_dispatcher(session, "bodega", "s3cret-pass")


class TestDispatcherLogin:

    async def test_login_returns_token(self, client, dispatcher):
        resp = await client.post("/auth/dispatcher-login", json={"username": "bodega", "password": "s3cret-pass"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["username"] == "bodega"
        assert body["role"] == "dispatcher"
        assert body["tokenType"] == "bearer"
        claims = verify_access_token(body["accessToken"], "test-secret-key")
        assert claims["sub"] == "bodega"
        assert claims["role"] == "dispatcher"

    @pytest.mark.parametrize("username,password", [
        ("bodega", "wrong"),
        ("nobody", "s3cret-pass"),
    ])
    async def test_bad_credentials(self, client, dispatcher, username, password):
        resp = await client.post("/auth/dispatcher-login", json={"username": username, "password": password})
        assert resp.status_code == 401

    async def test_disabled_account(self, client, database, dispatcher):
        from sqlalchemy import update
        from services.auth_service.models import Dispatcher

        async with database.session() as session:
            async with session.begin():
                await session.execute(update(Dispatcher).values(is_active=False))

        resp = await client.post("/auth/dispatcher-login", json={"username": "bodega", "password": "s3cret-pass"})
        assert resp.status_code == 403

    async def test_duplicate_provisioning_fails(self, database, dispatcher):
        async with database.session() as session:
            with pytest.raises(ValueError):
                await AuthService.provision_dispatcher(session, "bodega", "other")

    async def test_password_is_stored_hashed(self, dispatcher):
        assert dispatcher.password_hash != "s3cret-pass"
        assert dispatcher.password_hash.startswith("$2")


class TestCurrentDispatcher:

    async def test_me(self, client, auth_headers):
        resp = await client.get("/auth/me", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json() == {"username": "bodega", "role": "dispatcher"}

    async def test_token_signed_with_other_key(self, client):
        token = create_access_token({"sub": "bodega", "role": "dispatcher"}, "another-key")
        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    async def test_expired_token(self, client):
        token = create_access_token(
            {"sub": "bodega", "role": "dispatcher"},
            "test-secret-key",
            expires_delta=timedelta(minutes=-5),
        )
        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    async def test_token_without_dispatch_role(self, client):
        token = create_access_token({"sub": "shopper", "role": "customer"}, "test-secret-key")
        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
