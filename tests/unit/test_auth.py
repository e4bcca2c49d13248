"""
Tests for bearer token verification and the admin guard.
"""

import time
from unittest.mock import AsyncMock

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from safewatch.auth.verify import admin_dependency, auth_dependency
from safewatch.config import settings


def make_token(**claims):
    payload = {"exp": int(time.time()) + 3600, **claims}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def client():
    app = FastAPI()

    @app.get("/user")
    async def user_route(claims: dict = Depends(auth_dependency)):
        return {"id": claims["id"]}

    @app.get("/admin")
    async def admin_route(claims: dict = Depends(admin_dependency)):
        return {"ok": True}

    return TestClient(app)


def test_missing_token(client):
    response = client.get("/user")

    assert response.status_code == 401
    assert response.json()["detail"] == "No token, authorization denied"


def test_invalid_token(client):
    response = client.get("/user", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token is not valid"


def test_expired_token(client):
    token = make_token(id="user-123", exp=int(time.time()) - 10)

    response = client.get("/user", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_valid_token(client):
    token = make_token(id="user-123")

    response = client.get("/user", headers={"Authorization": f"Bearer {token}"})

    assert response.json() == {"id": "user-123"}


def test_user_token_on_admin_route(client):
    token = make_token(id="user-123")

    response = client.get("/admin", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403


def test_admin_token_without_admin_row(client, monkeypatch):
    monkeypatch.setattr(
        "safewatch.auth.verify.user_repository.get_admin", AsyncMock(return_value=None)
    )
    token = make_token(id="admin-1", role="admin")

    response = client.get("/admin", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403


def test_admin_token_with_admin_row(client, monkeypatch):
    monkeypatch.setattr(
        "safewatch.auth.verify.user_repository.get_admin",
        AsyncMock(return_value={"id": "admin-1", "role": "admin"}),
    )
    token = make_token(id="admin-1", role="admin")

    response = client.get("/admin", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
