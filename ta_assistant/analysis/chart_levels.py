"""Chart helpers: key levels as numeric horizontal lines."""
from typing import Any, Dict, List

from ta_assistant.analysis.models import KeyLevels
from ta_assistant.utils import parse_price_text

CHART_TIMEFRAMES = ("5m", "15m", "30m", "1H", "4H", "1D")

_INTERVALS = {"5m": "5", "15m": "15", "30m": "30", "1H": "60", "4H": "240", "1D": "D"}

LEVEL_STYLES: Dict[str, Dict[str, Any]] = {
    "resistance1": {"color": "rgba(239, 68, 68, 0.7)", "style": "dashed", "width": 1, "text": "Resistance 1"},
    "resistance2": {"color": "rgba(220, 38, 38, 0.8)", "style": "dashed", "width": 2, "text": "Resistance 2"},
    "support1": {"color": "rgba(34, 197, 94, 0.7)", "style": "dashed", "width": 1, "text": "Support 1"},
    "support2": {"color": "rgba(22, 163, 74, 0.8)", "style": "dashed", "width": 2, "text": "Support 2"},
    "dailyPivot": {"color": "rgba(59, 130, 246, 0.7)", "style": "dotted", "width": 2, "text": "Daily Pivot"},
    "invalidationLevel": {"color": "rgba(249, 115, 22, 0.9)", "style": "solid", "width": 2, "text": "Invalidation Level"},
}


def chart_interval(timeframe: str) -> str:
    """TradingView interval for a chart timeframe label (1 hour by default)."""
    return _INTERVALS.get(timeframe, "60")


def chart_lines(levels: KeyLevels) -> List[Dict[str, Any]]:
    """Horizontal lines for every level whose price parses as a number."""
    lines = []
    for name, level in levels.items():
        price = parse_price_text(level.price)
        if price is None:
            continue
        lines.append({"name": name, "price": price, "style": dict(LEVEL_STYLES[name])})
    return lines
