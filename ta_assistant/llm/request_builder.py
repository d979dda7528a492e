"""
Request builder: one deterministic instruction text per analysis request.

The same (crypto name, ticker, timeframe, live price) always produces the
same text. The output schema is generated from the same field names the
validator checks, so the two cannot drift apart.
"""
import json
import re
from typing import Any, Dict, Optional

from ta_assistant.analysis.models import KEY_LEVEL_NAMES
from ta_assistant.errors import BackendUnavailable
from ta_assistant.llm.prompts import format_prompt, get_prompt
from ta_assistant.utils import fmt_locale_number

PROMPT_CATEGORY = "analysis"
PROMPT_NAME = "crypto_ta"

_PAREN_CODE = re.compile(r"\(([^()]*)\)")
_QUOTE_SUFFIXES = ("USDT", "USDC", "BUSD", "FDUSD", "USD")

# Illustrative level values shown in the schema
_EXAMPLE_LEVELS = {
    "resistance1": ("$66,000", "Short-term resistance from recent swing high."),
    "support1": ("$64,500", "Immediate support at the 4H 50 EMA."),
    "resistance2": ("$67,200", "Major resistance at the weekly open."),
    "support2": ("$63,100", "Stronger support from the previous consolidation zone."),
    "dailyPivot": ("$65,100", "Daily pivot point; bullish above, bearish below."),
    "invalidationLevel": ("$62,500", "Price level that would invalidate the primary bullish/bearish thesis."),
}


def bare_ticker(crypto_name: str, ticker: str = "") -> str:
    """
    Bare instrument code used inside the instruction text.

    "Bitcoin (BTC)" -> "BTC"; "(ETH)" -> "ETH". Without a parenthetical,
    the pair ticker loses its quote currency: "SOLUSDT" -> "SOL".
    """
    for source in (crypto_name or "", ticker or ""):
        m = _PAREN_CODE.search(source)
        if m and m.group(1).strip():
            return m.group(1).strip().upper()
    code = (ticker or crypto_name or "").replace("(", "").replace(")", "").strip().upper()
    code = code.split("/")[0].split("-")[0]
    for suffix in _QUOTE_SUFFIXES:
        if code.endswith(suffix) and len(code) > len(suffix):
            return code[: -len(suffix)]
    return code


def display_name(crypto_name: str) -> str:
    """Instrument name without its parenthetical: "Bitcoin (BTC)" -> "Bitcoin"."""
    return _PAREN_CODE.sub("", crypto_name or "").strip() or (crypto_name or "").strip()


def _price_display(live_price: Optional[str]) -> Optional[str]:
    if live_price is None:
        return None
    try:
        return fmt_locale_number(float(str(live_price).replace(",", "")))
    except ValueError:
        return str(live_price)


def output_schema(ticker: str, timeframe: str, live_price: Optional[str]) -> Dict[str, Any]:
    """The JSON object the backend must answer with, with example values."""
    shown = _price_display(live_price)
    if shown is not None:
        price_hint = f"The current price of {ticker}/USD. You MUST use the provided price: '${shown}'"
        assumed = f"${shown}"
    else:
        price_hint = f"The current price of {ticker}/USD, e.g., '$65,123.45'"
        assumed = "$65,000"

    return {
        "currentPrice": price_hint,
        "assumptions": (
            "A brief statement on the data found and assumptions made, e.g., "
            f"'Based on {ticker} price action around {assumed} and assuming average funding rates.'"
        ),
        "bottomLine": (
            f"One sentence with the primary bias: LONG or SHORT for the specified timeframe of {timeframe}. "
            "This MUST NOT be neutral or wait."
        ),
        "biasProbabilities": {"long": 50, "short": 50},
        "keyLevels": {
            name: {"price": _EXAMPLE_LEVELS[name][0], "description": _EXAMPLE_LEVELS[name][1]}
            for name in KEY_LEVEL_NAMES
        },
        "liveNews": [
            {
                "title": "Fed Chair mentions inflation concerns",
                "source": "Reuters",
                "summary": "Summary of the news article and its direct relevance to the crypto market.",
                "importance": "High | Medium | Low",
            }
        ],
        "upcomingEvents": [
            {
                "event": "US CPI Data Release",
                "date": "YYYY-MM-DDTHH:MM:SSZ",
                "potentialImpact": "High volatility expected. The date MUST be in the future.",
            }
        ],
        "technicalJustification": {
            "confluenceScore": 85,
            "marketRegime": "e.g., Strong Trend Down on 1H, Range Bound on 5M",
            "methodsEvaluation": {
                "Trend-Following Pullback": {"score": 8, "reasoning": "Why this method fits or not (0-10)."},
                "Breakout / Breakdown": {"score": 4, "reasoning": "Why this method fits or not (0-10)."},
                "Range / Mean Reversion": {"score": 2, "reasoning": "Why this method fits or not (0-10)."},
                "Liquidity-Grab Reversal": {"score": 6, "reasoning": "Why this method fits or not (0-10)."},
                "VWAP Reversion/Trend": {"score": 5, "reasoning": "Why this method fits or not (0-10)."},
            },
            "trendAndStructure": "Analysis of trend on 1H, 15M, 5M timeframes.",
            "keyLevels": "A summary of why the chosen key levels are important.",
            "momentumAndVolume": "Observations on RSI, MACD, Volume, etc.",
            "liquidityNotes": "Notes on potential liquidity grabs or important liquidity zones.",
            "newsSummary": f"A concise summary of how the combined recent news is impacting market sentiment for {ticker}.",
        },
        "educationalTradeIdea": {
            "bias": "LONG | SHORT",
            "entryZone": "A specific price or tight range, e.g., '$65,000 - $65,200'",
            "stopLossZone": "A specific price, e.g., '$65,600'",
            "takeProfitZones": ["A specific price, e.g., '$64,200'", "A specific price, e.g., '$63,500'"],
            "riskReward": "e.g., '~1:3'",
            "explanation": (
                f"Rationale for the trade idea based on the analysis for the {timeframe} view. "
                "It should be based on the highest-scoring trading method."
            ),
        },
        "riskWarning": (
            "This is a high-risk educational trade idea, not financial advice. The crypto market is extremely "
            "volatile. Strong confluence does not guarantee success. Always use proper risk management."
        ),
    }


def build_analysis_prompt(
    crypto_name: str,
    ticker: str,
    timeframe: str,
    live_price: Optional[str] = None,
) -> str:
    """
    Compose the full instruction for one analysis.

    Args:
        crypto_name: Display name, e.g. "Bitcoin (BTC)"
        ticker: Pair ticker, e.g. "BTCUSDT"
        timeframe: Horizon label, e.g. "4 Hours"
        live_price: Latest streamed price, or None to let the backend look it up

    Returns:
        Instruction text

    Raises:
        BackendUnavailable: the prompt file is missing or its template is broken
    """
    prompt = get_prompt(PROMPT_CATEGORY, PROMPT_NAME)
    if not prompt:
        raise BackendUnavailable(f"prompt {PROMPT_CATEGORY}/{PROMPT_NAME} is not available")

    code = bare_ticker(crypto_name, ticker)
    # A price string that is empty or the feed's error marker counts as absent
    price = live_price.strip() if isinstance(live_price, str) else live_price
    if price in ("", "Error"):
        price = None

    schema = json.dumps(output_schema(code, timeframe, price), indent=2, ensure_ascii=False)
    try:
        if price is not None:
            price_instruction = format_prompt(prompt["price_given"], ticker=code, live_price=price)
        else:
            price_instruction = format_prompt(prompt["price_search"], ticker=code)
        return format_prompt(
            prompt["template"],
            crypto_name=display_name(crypto_name),
            ticker=code,
            timeframe=timeframe,
            price_instruction=price_instruction,
            key_level_names=", ".join(KEY_LEVEL_NAMES),
            schema=schema,
        )
    except KeyError as e:
        raise BackendUnavailable(f"prompt {PROMPT_CATEGORY}/{PROMPT_NAME} is incomplete: {e}") from e
