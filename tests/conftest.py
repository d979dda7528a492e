"""Shared fixtures for the TA Assistant tests."""
import copy
import json
import os
import tempfile

# Keep config side effects (data dir, price feed autostart) out of the repo
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="ta_assistant_test_"))
os.environ["AUTO_PRICE"] = "0"

import pytest

from ta_assistant.analysis.validator import parse_analysis
from ta_assistant.config import Config
from ta_assistant.history.store import HistoryStore, new_history_entry

SAMPLE_ANALYSIS = {
    "currentPrice": "$65,123.45",
    "assumptions": "Based on BTC price action around $65,123 and assuming average funding rates.",
    "bottomLine": "SHORT bias for the next 4 Hours while price holds below the daily pivot.",
    "biasProbabilities": {"long": 35, "short": 65},
    "keyLevels": {
        "resistance1": {"price": "$66,000", "description": "Short-term resistance from recent swing high."},
        "support1": {"price": "$64,500", "description": "Immediate support at the 4H 50 EMA."},
        "resistance2": {"price": "$67,200", "description": "Major resistance at the weekly open."},
        "support2": {"price": "$63,100", "description": "Previous consolidation zone."},
        "dailyPivot": {"price": "$65,100", "description": "Daily pivot; bullish above, bearish below."},
        "invalidationLevel": {"price": "$66,450", "description": "A close above invalidates the short thesis."},
    },
    "liveNews": [
        {"title": "Fed Chair mentions inflation concerns", "source": "Reuters",
         "summary": "Risk assets sold off after the remarks.", "importance": "High"},
    ],
    "upcomingEvents": [
        {"event": "US CPI Data Release", "date": "2099-01-15T13:30:00Z",
         "potentialImpact": "High volatility expected."},
    ],
    "technicalJustification": {
        "confluenceScore": 72,
        "marketRegime": "Weak Trend Down on 1H, Range Bound on 5M",
        "methodsEvaluation": {
            "Trend-Following Pullback": {"score": 7, "reasoning": "1H lower highs, pullback into 15M 20 EMA."},
            "Range / Mean Reversion": {"score": 3, "reasoning": "ADX rising, range trading unsuitable."},
        },
        "trendAndStructure": "LH/LL on 1H and 15M.",
        "keyLevels": "Levels from swing points and the weekly open.",
        "momentumAndVolume": "RSI 42, MACD below signal, volume declining on bounces.",
        "liquidityNotes": "Liquidity resting above $66,000.",
        "newsSummary": "Macro headlines weigh on sentiment.",
    },
    "educationalTradeIdea": {
        "bias": "SHORT",
        "entryZone": "$65,300 - $65,450",
        "stopLossZone": "$66,100",
        "takeProfitZones": ["$64,500", "$63,200"],
        "riskReward": "~1:2.5",
        "explanation": "Trend-following pullback short into dynamic resistance.",
    },
    "riskWarning": "This is a high-risk educational trade idea, not financial advice.",
}


@pytest.fixture
def analysis_dict():
    """A fresh, valid analysis object in wire form."""
    return copy.deepcopy(SAMPLE_ANALYSIS)


@pytest.fixture
def analysis_text(analysis_dict):
    return json.dumps(analysis_dict)


@pytest.fixture
def record(analysis_text):
    return parse_analysis(analysis_text)


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point the application database at a temporary file."""
    path = tmp_path / "ta_assistant_test.db"
    monkeypatch.setattr(Config, "DB_PATH", path)
    return path


@pytest.fixture
def store(db_path):
    s = HistoryStore(db_path=db_path)
    s.load()
    return s


@pytest.fixture
def make_entry(record):
    """Factory for history entries with distinct timestamps."""
    counter = {"n": 0}

    def _make(ticker="BTCUSDT", timeframe="4 Hours", timestamp=None):
        counter["n"] += 1
        ts = timestamp or f"2025-01-01T00:00:{counter['n'] % 60:02d}.{counter['n']:06d}+00:00"
        return new_history_entry("Bitcoin (BTC)", ticker, timeframe, record, timestamp=ts)

    return _make
