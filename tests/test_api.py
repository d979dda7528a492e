"""Tests for the JSON API."""
import json
from concurrent.futures import TimeoutError as FuturesTimeoutError

import pytest

from ta_assistant.analysis.models import LLMResponse
from ta_assistant.analysis.pipeline import AnalysisService
from ta_assistant.backend import create_app
from ta_assistant.errors import BackendUnavailable
from ta_assistant.market.price_feed import LIVE, WAITING, PriceSnapshot


class FakePrice:
    """Stands in for the price worker."""

    def __init__(self, symbol="BTCUSDT", price="65123.45"):
        self.symbol = symbol
        self.price = price
        self.switch_error = None

    def snapshot(self):
        if self.price is None:
            return PriceSnapshot(symbol=self.symbol, state=WAITING)
        return PriceSnapshot(symbol=self.symbol, state=LIVE, price=self.price, trend="up")

    def live_price(self, symbol):
        return self.price if symbol == self.symbol else None

    def switch(self, symbol):
        if self.switch_error is not None:
            raise self.switch_error
        self.symbol = symbol
        self.price = None
        return self.snapshot()

    def status(self):
        return {"running": True, "symbol": self.symbol}


class Backend:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.text, citations=[])


@pytest.fixture
def backend(analysis_text):
    return Backend(text=analysis_text)


@pytest.fixture
def price():
    return FakePrice()


@pytest.fixture
def client(store, backend, price):
    app = create_app(history=store, analyzer=AnalysisService(history=store, execute=backend), price=price)
    app.testing = True
    return app.test_client()


def test_instruments(client):
    data = client.get("/api/instruments").get_json()
    assert data["cryptos"][0] == {"name": "Bitcoin (BTC)", "ticker": "BTCUSDT"}
    assert data["defaultTimeframe"] == "4 Hours"
    assert "1H" in data["chartTimeframes"]


def test_price_snapshot(client):
    data = client.get("/api/price").get_json()
    assert data == {
        "symbol": "BTCUSDT", "state": "live", "price": "65123.45",
        "trend": "up", "error": None, "updatedAt": None,
    }


def test_subscribe_switches_instrument(client, price):
    resp = client.post("/api/price/subscribe", json={"ticker": "ethusdt"})
    assert resp.status_code == 200
    assert resp.get_json()["symbol"] == "ETHUSDT"
    assert resp.get_json()["state"] == "waiting"
    assert price.symbol == "ETHUSDT"


def test_subscribe_rejects_unknown_ticker(client):
    assert client.post("/api/price/subscribe", json={"ticker": "FOOUSDT"}).status_code == 400


def test_subscribe_timeout(client, price):
    price.switch_error = FuturesTimeoutError()
    assert client.post("/api/price/subscribe", json={"ticker": "ETHUSDT"}).status_code == 504


def test_analyze_success_uses_live_price(client, backend, store):
    resp = client.post("/api/analyze", json={"ticker": "BTCUSDT", "timeframe": "1 Hour"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["success"] is True
    assert data["ticker"] == "BTCUSDT"
    assert data["timeframe"] == "1 Hour"
    assert data["persisted"] is True
    assert data["analysis"]["biasProbabilities"] == {"long": 35, "short": 65}
    assert "**$65123.45**" in backend.prompts[0]
    assert store.latest().id == data["id"]


def test_analyze_without_live_price_for_other_instrument(client, backend):
    resp = client.post("/api/analyze", json={"ticker": "SOLUSDT"})
    assert resp.status_code == 200
    assert resp.get_json()["timeframe"] == "4 Hours"
    assert "find the live, real-time price of SOL/USD" in backend.prompts[0]


def test_analyze_unknown_ticker(client, backend):
    resp = client.post("/api/analyze", json={"ticker": "NOPE"})
    assert resp.status_code == 400
    assert backend.prompts == []


def test_analyze_malformed_hides_raw_text(client, backend, store):
    backend.text = "secret raw model text"
    resp = client.post("/api/analyze", json={"ticker": "BTCUSDT"})
    assert resp.status_code == 502
    data = resp.get_json()
    assert data["success"] is False
    assert "secret raw model text" not in json.dumps(data)
    assert len(store) == 0

    status = client.get("/api/status").get_json()
    assert status["events"][0]["action"] == "malformed"
    assert "secret raw model text" not in json.dumps(status)


def test_analyze_backend_unavailable(client, backend):
    backend.error = BackendUnavailable("budget exhausted")
    resp = client.post("/api/analyze", json={"ticker": "BTCUSDT"})
    assert resp.status_code == 503
    assert "unavailable" in resp.get_json()["error"]


def test_history_list_and_get(client):
    client.post("/api/analyze", json={"ticker": "BTCUSDT"})
    client.post("/api/analyze", json={"ticker": "ETHUSDT"})
    data = client.get("/api/history").get_json()
    assert data["count"] == 2
    assert [e["ticker"] for e in data["entries"]] == ["ETHUSDT", "BTCUSDT"]

    entry_id = data["entries"][1]["id"]
    one = client.get(f"/api/history/{entry_id}").get_json()
    assert one["cryptoName"] == "Bitcoin (BTC)"
    assert client.get("/api/history/missing").status_code == 404


def test_clear_history_requires_confirmation(client, store):
    client.post("/api/analyze", json={"ticker": "BTCUSDT"})
    assert client.delete("/api/history").status_code == 400
    assert len(store) == 1
    resp = client.delete("/api/history?confirm=true")
    assert resp.get_json() == {"success": True, "count": 0}
    assert len(store) == 0


def test_chart_lines_for_latest_entry(client):
    empty = client.get("/api/chart").get_json()
    assert empty["symbol"] is None
    assert empty["lines"] == []

    client.post("/api/analyze", json={"ticker": "BTCUSDT"})
    data = client.get("/api/chart?timeframe=4H").get_json()
    assert data["symbol"] == "BYBIT:BTCUSDT"
    assert data["interval"] == "240"
    names = [line["name"] for line in data["lines"]]
    assert names == ["resistance1", "support1", "resistance2", "support2", "dailyPivot", "invalidationLevel"]
    assert data["lines"][0]["price"] == 66000.0
    assert client.get("/api/chart?entry=missing").status_code == 404


def test_status(client):
    data = client.get("/api/status").get_json()
    assert data["analysisInProgress"] is False
    assert data["history"]["max"] == 50
    assert data["price"]["symbol"] == "BTCUSDT"
