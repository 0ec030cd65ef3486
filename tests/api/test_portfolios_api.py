"""
API tests for portfolio and trade endpoints.

Tests cover:
- Recording trades (201) and oversell rejection (400)
- Positions and totals valued at live prices
- Trade removal (204) with dependency checks
- Validation errors (400, 404, 422)
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient


def post_trade(client: TestClient, side: str, quantity: str, price: str, **extra):
    body = {"instrument_id": "inst-aapl", "side": side, "quantity": quantity, "price": price}
    body.update(extra)
    return client.post("/portfolios/pf-1/trades", json=body)


# =============================================================================
# RECORD TRADE TESTS
# =============================================================================


class TestRecordTradeAPI:
    """Tests for POST /portfolios/{id}/trades."""

    def test_record_buy_success(self, client: TestClient, api_instruments):
        """
        GIVEN AAPL in the directory
        WHEN I POST a BUY
        THEN response is 201 with identifiers copied from the instrument
        """
        response = post_trade(
            client, "buy", "10", "150.00", fees="1.00", executed_at="2024-01-02T15:30:00Z", note="first"
        )

        assert response.status_code == 201
        data = response.json()
        assert data["side"] == "BUY"
        assert data["isin"] == "US0378331005"
        assert data["ticker"] == "AAPL"
        assert data["currency"] == "USD"
        assert Decimal(data["quantity"]) == Decimal("10")
        assert data["executed_at"].startswith("2024-01-02T15:30:00")

    def test_oversell_returns_400(self, client: TestClient, api_instruments):
        post_trade(client, "BUY", "10", "150", executed_at="2024-01-02T10:00:00Z")

        response = post_trade(client, "SELL", "10.5", "160", executed_at="2024-01-03T10:00:00Z")

        assert response.status_code == 400
        assert response.json()["error"] == "INSUFFICIENT_QUANTITY"

    def test_unknown_instrument_returns_404(self, client: TestClient):
        response = post_trade(client, "BUY", "1", "1", instrument_id="ghost")

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "override",
        [{"side": "HOLD"}, {"quantity": "0"}, {"price": "-1"}, {"fees": "-0.5"}, {"currency": "EURO"}],
    )
    def test_invalid_body_returns_422(self, client: TestClient, api_instruments, override):
        body = {"instrument_id": "inst-aapl", "side": "BUY", "quantity": "1", "price": "1"}
        body.update(override)

        response = client.post("/portfolios/pf-1/trades", json=body)

        assert response.status_code == 422

    def test_list_trades(self, client: TestClient, api_instruments):
        post_trade(client, "BUY", "1", "150", executed_at="2024-01-05T10:00:00Z")
        post_trade(client, "BUY", "2", "140", executed_at="2024-01-02T10:00:00Z")

        response = client.get("/portfolios/pf-1/trades")

        assert response.status_code == 200
        assert [Decimal(t["quantity"]) for t in response.json()] == [Decimal("2"), Decimal("1")]


# =============================================================================
# POSITION AND TOTALS TESTS
# =============================================================================


class TestPositionsAPI:
    """Tests for GET /portfolios/{id}/positions and /totals."""

    def test_positions_valued_at_live_price(self, client: TestClient, api_instruments):
        """
        GIVEN 10 AAPL bought at 100 and 10 at 120, then 5 sold at 150
        WHEN I GET the positions with a live price of 200
        THEN the open 15 units are valued at 3000 with 1350 unrealized
        """
        post_trade(client, "BUY", "10", "100", executed_at="2024-01-01T10:00:00Z")
        post_trade(client, "BUY", "10", "120", executed_at="2024-01-02T10:00:00Z")
        post_trade(client, "SELL", "5", "150", executed_at="2024-01-03T10:00:00Z")

        response = client.get("/portfolios/pf-1/positions")

        assert response.status_code == 200
        position = response.json()["positions"][0]
        assert Decimal(position["open_quantity"]) == Decimal("15")
        assert Decimal(position["average_cost"]) == Decimal("110")
        assert Decimal(position["realized_pnl"]) == Decimal("200")
        assert Decimal(position["current_price"]) == Decimal("200")
        assert Decimal(position["market_value"]) == Decimal("3000")
        assert Decimal(position["unrealized_pnl"]) == Decimal("1350")
        assert position["is_closed"] is False
        assert len(position["open_lots"]) == 2
        assert response.json()["price_errors"] == []

    def test_unpriced_position_reported(self, client: TestClient, api_instruments):
        client.post(
            "/portfolios/pf-1/trades",
            json={"instrument_id": "inst-btc", "side": "BUY", "quantity": "0.5", "price": "60000"},
        )

        response = client.get("/portfolios/pf-1/positions")

        data = response.json()
        assert data["positions"][0]["price_available"] is False
        assert data["price_errors"][0]["instrument_id"] == "inst-btc"

    def test_totals(self, client: TestClient, api_instruments):
        post_trade(client, "BUY", "10", "150", executed_at="2024-01-01T10:00:00Z")
        client.post(
            "/portfolios/pf-1/trades",
            json={"instrument_id": "inst-sap", "side": "BUY", "quantity": "2", "price": "100",
                  "executed_at": "2024-01-01T10:00:00Z"},
        )
        client.post(
            "/portfolios/pf-1/trades",
            json={"instrument_id": "inst-sap", "side": "SELL", "quantity": "2", "price": "90",
                  "executed_at": "2024-02-01T10:00:00Z"},
        )

        response = client.get("/portfolios/pf-1/totals")
        closed = client.get("/portfolios/pf-1/totals", params={"closed_only": True})

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total_value"]) == Decimal("2000")
        assert Decimal(data["realized_pnl"]) == Decimal("-20")
        assert Decimal(data["unrealized_pnl"]) == Decimal("500")
        assert data["open_count"] == 1
        assert data["closed_count"] == 1
        assert closed.json()["position_count"] == 1
        assert Decimal(closed.json()["total_pnl"]) == Decimal("-20")


# =============================================================================
# REMOVE TRADE TESTS
# =============================================================================


class TestRemoveTradeAPI:
    """Tests for DELETE /trades/{id}."""

    def test_remove_trade(self, client: TestClient, api_instruments):
        trade = post_trade(client, "BUY", "1", "150").json()

        response = client.delete(f"/trades/{trade['trade_id']}")

        assert response.status_code == 204
        assert client.get("/portfolios/pf-1/trades").json() == []

    def test_remove_unknown_trade_returns_404(self, client: TestClient):
        response = client.delete("/trades/missing")

        assert response.status_code == 404

    def test_remove_buy_needed_by_sell_returns_400(self, client: TestClient, api_instruments):
        buy = post_trade(client, "BUY", "5", "100", executed_at="2024-01-01T10:00:00Z").json()
        post_trade(client, "SELL", "5", "110", executed_at="2024-01-02T10:00:00Z")

        response = client.delete(f"/trades/{buy['trade_id']}")

        assert response.status_code == 400
        assert response.json()["error"] == "INSUFFICIENT_QUANTITY"
