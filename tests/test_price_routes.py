from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient

from app.server.dependencies import get_price_service
from app.server.main import app
from app.services.pricing.coinmarketcap import CoinMarketCapService

QUOTES = {
    "data": {
        "5625": {
            "symbol": "LYX",
            "quote": {"USD": {"price": 2.0, "last_updated": "2024-05-01T12:00:00.000Z"}},
        }
    }
}


@pytest.fixture
def service():
    return CoinMarketCapService(api_key="test-key")


@pytest.fixture
def client(service):
    app.dependency_overrides[get_price_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def mock_response(body):
    response = MagicMock()
    response.json.return_value = body
    response.raise_for_status.return_value = None
    return response


def test_price(client):
    with patch("app.services.pricing.coinmarketcap.requests.get") as get:
        get.return_value = mock_response(QUOTES)
        response = client.get("/price/lyx")

    assert response.status_code == 200
    assert response.json() == {
        "price": 2.0,
        "symbol": "LYX",
        "lastUpdated": "2024-05-01T12:00:00.000Z",
    }
    _, kwargs = get.call_args
    assert kwargs["params"] == {"slug": "lukso-network", "convert": "USD"}
    assert kwargs["headers"]["X-CMC_PRO_API_KEY"] == "test-key"


def test_token_is_case_insensitive(client):
    with patch("app.services.pricing.coinmarketcap.requests.get") as get:
        get.return_value = mock_response(QUOTES)

        assert client.get("/price/LYX").status_code == 200


def test_unknown_token(client):
    assert client.get("/price/doge").status_code == 404


def test_missing_api_key():
    app.dependency_overrides[get_price_service] = lambda: CoinMarketCapService(api_key=None)
    try:
        response = TestClient(app).get("/price/lyx")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json()["detail"] == "CoinMarketCap API key is not configured"


def test_upstream_failure(client):
    with patch("app.services.pricing.coinmarketcap.requests.get") as get:
        get.side_effect = requests.ConnectionError("connection refused")
        response = client.get("/price/lyx")

    assert response.status_code == 500
    assert "Failed to fetch LYX price" in response.json()["detail"]


def test_malformed_upstream_response(client):
    with patch("app.services.pricing.coinmarketcap.requests.get") as get:
        get.return_value = mock_response({"data": {"5625": {"symbol": "LYX", "quote": {}}}})
        response = client.get("/price/lyx")

    assert response.status_code == 500
    assert "price data not found" in response.json()["detail"]
