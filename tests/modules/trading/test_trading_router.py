"""
Trading Router Tests

HTTP status mapping and response envelopes for the trading endpoints.
"""

import pytest
from decimal import Decimal


async def open_trade(client, **overrides):
    payload = {"symbol": "BTC", "side": "buy", "notional_amount": 4000}
    payload.update(overrides)
    response = await client.post("/api/v1/trading/execute", json=payload)
    return response.json()["data"]


# ==================== EXECUTE ====================

@pytest.mark.asyncio
async def test_execute_trade(client):
    response = await client.post(
        "/api/v1/trading/execute",
        json={"symbol": "btc", "side": "buy", "notional_amount": 4000, "take_profit": 44000},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["error"] is None
    assert body["data"]["status"] == "executed"
    assert body["data"]["symbol"] == "BTC"
    assert body["data"]["trade_id"].startswith("trade_")
    assert body["data"]["fees"] == 4.0


@pytest.mark.asyncio
async def test_insufficient_balance_is_http_200_failed(client):
    response = await client.post(
        "/api/v1/trading/execute",
        json={"symbol": "BTC", "side": "buy", "notional_amount": 1000000},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "failed"
    assert data["success"] is False
    assert data["message"] == "Insufficient USD balance"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"side": "buy", "notional_amount": 100},
    {"symbol": "BTC", "notional_amount": 100},
    {"symbol": "BTC", "side": "buy"},
    {"symbol": "BTC", "side": "hold", "notional_amount": 100},
    {"symbol": "BTC", "side": "buy", "notional_amount": "lots"},
    {"symbol": "BTC", "side": "buy", "notional_amount": 100, "take_profit": 0},
    {"symbol": "BTC", "side": "buy", "notional_amount": 100, "stop_loss": -1},
])
async def test_malformed_execute_is_400(client, payload):
    response = await client.post("/api/v1/trading/execute", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["data"] is None
    assert body["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_portfolio_status(client):
    response = await client.get("/api/v1/trading/execute")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["portfolio"]["USD"] == 10000.0
    assert "BTC/USD" in data["available_pairs"]
    assert data["trading_fee"] == "0.1%"


# ==================== CLOSE ====================

@pytest.mark.asyncio
async def test_close_trade(client):
    trade = await open_trade(client)

    response = await client.post(
        "/api/v1/trading/close",
        json={"trade_id": trade["trade_id"], "reason": "manual"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["trade_id"] == trade["trade_id"]
    assert data["reason"] == "manual"
    assert data["fees"] == 4.0


@pytest.mark.asyncio
async def test_close_with_explicit_price(client):
    trade = await open_trade(client)

    response = await client.post(
        "/api/v1/trading/close",
        json={"trade_id": trade["trade_id"], "reason": "take_profit", "close_price": 44000},
    )

    data = response.json()["data"]
    assert data["realized_pnl"] == pytest.approx(395.6)
    assert data["reason"] == "take_profit"


@pytest.mark.asyncio
async def test_close_unknown_trade_is_404(client):
    response = await client.post("/api/v1/trading/close", json={"trade_id": "trade_nope", "reason": "manual"})

    assert response.status_code == 404
    body = response.json()
    assert body["error"]["code"] == "POSITION_NOT_FOUND"
    assert "not found" in body["error"]["message"]


@pytest.mark.asyncio
async def test_close_twice_is_404(client):
    trade = await open_trade(client)
    await client.post("/api/v1/trading/close", json={"trade_id": trade["trade_id"], "reason": "manual"})

    response = await client.post("/api/v1/trading/close", json={"trade_id": trade["trade_id"], "reason": "manual"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_close_without_reason_is_400(client, book):
    trade = await open_trade(client)

    response = await client.post("/api/v1/trading/close", json={"trade_id": trade["trade_id"]})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert trade["trade_id"] in book


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", ["max_duration", "because"])
async def test_close_with_invalid_reason_is_400(client, reason):
    trade = await open_trade(client)

    response = await client.post(
        "/api/v1/trading/close",
        json={"trade_id": trade["trade_id"], "reason": reason},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_sweep_endpoint_reports_auto_closed(client, price_feed):
    trade = await open_trade(client, take_profit=44000)
    price_feed.set_price("BTC", Decimal("44000"))

    response = await client.get("/api/v1/trading/close")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [c["trade_id"] for c in data["auto_closed"]] == [trade["trade_id"]]
    assert data["open_positions"] == []
    assert data["trade_history"][0]["close_reason"] == "take_profit"


# ==================== HISTORY & SERVICE ====================

@pytest.mark.asyncio
async def test_history_endpoint(client):
    trade = await open_trade(client)
    await client.post("/api/v1/trading/close", json={"trade_id": trade["trade_id"], "reason": "manual"})

    response = await client.get("/api/v1/trading/history", params={"limit": 10, "window_hours": 1})

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["trades"]) == 1
    assert data["summary"]["by_reason"]["manual"] == 1


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["data"]["docs"] == "/api/docs"
