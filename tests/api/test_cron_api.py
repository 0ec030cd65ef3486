"""
API tests for the cron-triggered snapshot job.

Tests cover:
- Bearer secret checks (401)
- Full success (200) and partial failure (207)
"""

from fastapi.testclient import TestClient

AUTH = {"Authorization": "Bearer test-secret"}


def buy(client: TestClient, instrument_id: str) -> None:
    response = client.post(
        "/portfolios/pf-1/trades",
        json={"instrument_id": instrument_id, "side": "BUY", "quantity": "1", "price": "100"},
    )
    assert response.status_code == 201


class TestCronAuthAPI:
    """Tests for the cron secret."""

    def test_missing_header_returns_401(self, client: TestClient):
        response = client.post("/cron/price-snapshots")

        assert response.status_code == 401

    def test_wrong_secret_returns_401(self, client: TestClient):
        response = client.post("/cron/price-snapshots", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_no_secret_configured_allows_call(self, client: TestClient, api_settings):
        api_settings.cron_secret = None

        response = client.post("/cron/price-snapshots")

        assert response.status_code == 200


class TestCronRunAPI:
    """Tests for POST /cron/price-snapshots."""

    def test_successful_run(self, client: TestClient, api_instruments):
        """
        GIVEN open AAPL and SAP positions priced by the provider
        WHEN the cron endpoint is called with the secret
        THEN response is 200 and two snapshots are written
        """
        buy(client, "inst-aapl")
        buy(client, "inst-sap")

        response = client.post("/cron/price-snapshots", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["total_instruments"] == 2
        assert data["snapshots_written"] == 2
        assert data["errors"] == []

    def test_rerun_writes_nothing(self, client: TestClient, api_instruments):
        buy(client, "inst-aapl")
        client.post("/cron/price-snapshots", headers=AUTH)

        response = client.post("/cron/price-snapshots", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["up_to_date"] == 1
        assert response.json()["snapshots_written"] == 0

    def test_partial_failure_returns_207(self, client: TestClient, api_instruments):
        """
        GIVEN open AAPL and BTC positions where only AAPL can be priced
        WHEN the cron endpoint is called
        THEN response is 207 with the BTC failure listed
        """
        buy(client, "inst-aapl")
        buy(client, "inst-btc")

        response = client.post("/cron/price-snapshots", headers=AUTH)

        assert response.status_code == 207
        data = response.json()
        assert data["success"] is False
        assert data["snapshots_written"] == 1
        assert [e["instrument_id"] for e in data["errors"]] == ["inst-btc"]
