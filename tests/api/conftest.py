"""Fixtures for exercising the HTTP and WebSocket surface end to end."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from conftest import make_settings
from fastapi import FastAPI
from fastapi.testclient import TestClient

from autotrade.app import create_app, initialize_services


@pytest.fixture
def services(tmp_path: Path) -> dict[str, Any]:
    return initialize_services(make_settings(tmp_path))


@pytest.fixture
def app(services: dict[str, Any]) -> FastAPI:
    return create_app(services)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """A client with the lifespan running, so WebSockets share one event loop."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth(services: dict[str, Any]) -> Callable[[str], dict[str, str]]:
    """Return ``Authorization`` headers for a user id."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {services['identity'].issue_token(user_id)}"}

    return _headers


@pytest.fixture
def token(services: dict[str, Any]) -> Callable[[str], str]:
    return services["identity"].issue_token


@pytest.fixture
def api_vehicle(client: TestClient, auth) -> Callable[..., dict[str, Any]]:
    """Factory: add a vehicle through the API and return its JSON."""

    def _add(owner_id: str, **overrides: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "make": "Toyota",
            "model": "Supra",
            "year": 1998,
            "vin": f"vin-{owner_id}-{overrides.get('model', 'supra')}",
            "mileage": 120000,
            "transmission": "manual",
            "estimated_value": "45000",
        }
        body.update(overrides)
        resp = client.post("/api/vehicles", json=body, headers=auth(owner_id))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _add


@pytest.fixture
def api_listing(client: TestClient, auth, api_vehicle) -> Callable[..., dict[str, Any]]:
    """Factory: list a fresh vehicle through the API and return the listing JSON."""

    def _add(seller_id: str, price: str = "30000", **overrides: Any) -> dict[str, Any]:
        vehicle = api_vehicle(seller_id, make="Nissan", model="Skyline")
        body: dict[str, Any] = {"vehicle_id": vehicle["id"], "title": "1999 Nissan Skyline", "price": price}
        body.update(overrides)
        resp = client.post("/api/listings", json=body, headers=auth(seller_id))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _add
