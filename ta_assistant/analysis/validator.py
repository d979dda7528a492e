"""
Response validator: turns the backend's free text into an AnalysisRecord.

The text is treated as untrusted. Parsing is strict: a single JSON object,
optionally wrapped in one markdown code fence. Every required field is
checked and the first problem raises ``MalformedResponse`` naming the
offending path. Values are never rounded, clamped or renormalized.
"""
import dataclasses
import datetime as dt
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ta_assistant.analysis.models import (
    BIAS_VALUES,
    IMPORTANCE_VALUES,
    KEY_LEVEL_NAMES,
    UNTITLED_SOURCE,
    AnalysisRecord,
    BiasProbabilities,
    GroundingSource,
    KeyLevel,
    KeyLevels,
    MethodScore,
    NewsItem,
    TechnicalJustification,
    TradeIdea,
    UpcomingEvent,
)
from ta_assistant.errors import MalformedResponse
from ta_assistant.utils import parse_iso_utc, strip_code_fence

logger = logging.getLogger("ta_assistant.analysis")

REQUIRED_TEXT_FIELDS = ("currentPrice", "bottomLine", "riskWarning")
REQUIRED_SECTIONS = (
    "biasProbabilities",
    "keyLevels",
    "liveNews",
    "upcomingEvents",
    "technicalJustification",
    "educationalTradeIdea",
)
JUSTIFICATION_TEXT_FIELDS = (
    "marketRegime",
    "trendAndStructure",
    "keyLevels",
    "momentumAndVolume",
    "liquidityNotes",
    "newsSummary",
)
TRADE_IDEA_TEXT_FIELDS = ("entryZone", "stopLossZone", "riskReward", "explanation")

_LONG_WORD = re.compile(r"\bLONG\b")
_SHORT_WORD = re.compile(r"\bSHORT\b")


class _Checker:
    """Field accessors that raise MalformedResponse with a dotted path."""

    def __init__(self, raw_text: str):
        self.raw_text = raw_text

    def fail(self, path: str, message: str):
        raise MalformedResponse(f"{path}: {message}", raw_text=self.raw_text, path=path)

    def obj(self, parent: Dict[str, Any], key: str, path: str) -> Dict[str, Any]:
        if key not in parent:
            self.fail(path, "missing required field")
        value = parent[key]
        if not isinstance(value, dict):
            self.fail(path, "expected an object")
        return value

    def arr(self, parent: Dict[str, Any], key: str, path: str) -> List[Any]:
        if key not in parent:
            self.fail(path, "missing required field")
        value = parent[key]
        if not isinstance(value, list):
            self.fail(path, "expected an array")
        return value

    def text(self, parent: Dict[str, Any], key: str, path: str, non_empty: bool = False) -> str:
        if key not in parent:
            self.fail(path, "missing required field")
        value = parent[key]
        if not isinstance(value, str):
            self.fail(path, "expected a string")
        if non_empty and not value.strip():
            self.fail(path, "must not be empty")
        return value

    def number(self, parent: Dict[str, Any], key: str, path: str):
        if key not in parent:
            self.fail(path, "missing required field")
        value = parent[key]
        # bool is an int subclass; true/false is not a score
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self.fail(path, "expected a number")
        return value

    def score(self, parent: Dict[str, Any], key: str, path: str, low: int, high: int):
        value = self.number(parent, key, path)
        if not float(value).is_integer():
            self.fail(path, f"expected a whole number, got {value}")
        if value < low or value > high:
            self.fail(path, f"must be within {low}-{high}, got {value}")
        return value

    def choice(self, parent: Dict[str, Any], key: str, path: str, allowed: Tuple[str, ...]) -> str:
        value = self.text(parent, key, path)
        if value not in allowed:
            self.fail(path, f"expected one of {', '.join(allowed)}, got {value!r}")
        return value


def parse_json_object(raw_text: str) -> Dict[str, Any]:
    """Trim, strip a wrapping code fence and parse exactly one JSON object."""
    body = strip_code_fence(raw_text)
    if not body:
        raise MalformedResponse("empty response", raw_text=raw_text or "")
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        logger.debug(f"parse_json_object: JSON parse error: {e}; first 200 chars: {body[:200]}")
        raise MalformedResponse(f"invalid JSON: {e}", raw_text=raw_text) from e
    if not isinstance(data, dict):
        raise MalformedResponse("expected a JSON object at top level", raw_text=raw_text)
    return data


def analysis_from_dict(data: Dict[str, Any], raw_text: str = "") -> AnalysisRecord:
    """
    Build an AnalysisRecord from its wire form, verifying shape and invariants.

    Also used to re-read persisted history entries, so any ``sources``
    already present in ``data`` are kept.
    """
    c = _Checker(raw_text)
    if not isinstance(data, dict):
        c.fail("$", "expected an object")

    texts = {key: c.text(data, key, key, non_empty=(key == "riskWarning")) for key in REQUIRED_TEXT_FIELDS}
    for section in REQUIRED_SECTIONS:
        if section not in data:
            c.fail(section, "missing required field")

    # Bias probabilities: exact sum, no renormalization
    probs = c.obj(data, "biasProbabilities", "biasProbabilities")
    long_p = c.number(probs, "long", "biasProbabilities.long")
    short_p = c.number(probs, "short", "biasProbabilities.short")
    for name, value in (("long", long_p), ("short", short_p)):
        if value < 0 or value > 100:
            c.fail(f"biasProbabilities.{name}", f"must be within 0-100, got {value}")
    if long_p + short_p != 100:
        c.fail("biasProbabilities", f"long + short must equal 100, got {long_p} + {short_p}")

    levels_raw = c.obj(data, "keyLevels", "keyLevels")
    levels: Dict[str, KeyLevel] = {}
    for name in KEY_LEVEL_NAMES:
        lvl = c.obj(levels_raw, name, f"keyLevels.{name}")
        levels[name] = KeyLevel(
            price=c.text(lvl, "price", f"keyLevels.{name}.price", non_empty=True),
            description=c.text(lvl, "description", f"keyLevels.{name}.description", non_empty=True),
        )

    news: List[NewsItem] = []
    for i, item in enumerate(c.arr(data, "liveNews", "liveNews")):
        path = f"liveNews[{i}]"
        if not isinstance(item, dict):
            c.fail(path, "expected an object")
        news.append(NewsItem(
            title=c.text(item, "title", f"{path}.title"),
            source=c.text(item, "source", f"{path}.source"),
            summary=c.text(item, "summary", f"{path}.summary"),
            importance=c.choice(item, "importance", f"{path}.importance", IMPORTANCE_VALUES),
        ))

    events: List[UpcomingEvent] = []
    for i, item in enumerate(c.arr(data, "upcomingEvents", "upcomingEvents")):
        path = f"upcomingEvents[{i}]"
        if not isinstance(item, dict):
            c.fail(path, "expected an object")
        events.append(UpcomingEvent(
            event=c.text(item, "event", f"{path}.event"),
            date=c.text(item, "date", f"{path}.date"),
            potential_impact=c.text(item, "potentialImpact", f"{path}.potentialImpact"),
        ))

    tj = c.obj(data, "technicalJustification", "technicalJustification")
    methods_raw = c.obj(tj, "methodsEvaluation", "technicalJustification.methodsEvaluation")
    methods: Dict[str, MethodScore] = {}
    for name, entry in methods_raw.items():
        path = f"technicalJustification.methodsEvaluation.{name}"
        if not isinstance(entry, dict):
            c.fail(path, "expected an object")
        methods[name] = MethodScore(
            score=c.number(entry, "score", f"{path}.score"),
            reasoning=c.text(entry, "reasoning", f"{path}.reasoning"),
        )
    tj_texts = {key: c.text(tj, key, f"technicalJustification.{key}") for key in JUSTIFICATION_TEXT_FIELDS}
    justification = TechnicalJustification(
        confluence_score=c.score(tj, "confluenceScore", "technicalJustification.confluenceScore", 0, 100),
        market_regime=tj_texts["marketRegime"],
        methods_evaluation=methods,
        trend_and_structure=tj_texts["trendAndStructure"],
        key_levels=tj_texts["keyLevels"],
        momentum_and_volume=tj_texts["momentumAndVolume"],
        liquidity_notes=tj_texts["liquidityNotes"],
        news_summary=tj_texts["newsSummary"],
    )

    idea = c.obj(data, "educationalTradeIdea", "educationalTradeIdea")
    tps = c.arr(idea, "takeProfitZones", "educationalTradeIdea.takeProfitZones")
    for i, tp in enumerate(tps):
        if not isinstance(tp, str):
            c.fail(f"educationalTradeIdea.takeProfitZones[{i}]", "expected a string")
    idea_texts = {key: c.text(idea, key, f"educationalTradeIdea.{key}") for key in TRADE_IDEA_TEXT_FIELDS}
    trade_idea = TradeIdea(
        bias=c.choice(idea, "bias", "educationalTradeIdea.bias", BIAS_VALUES),
        entry_zone=idea_texts["entryZone"],
        stop_loss_zone=idea_texts["stopLossZone"],
        take_profit_zones=tuple(tps),
        risk_reward=idea_texts["riskReward"],
        explanation=idea_texts["explanation"],
    )

    assumptions = data.get("assumptions", "")
    if not isinstance(assumptions, str):
        c.fail("assumptions", "expected a string")

    existing_sources = data.get("sources") or []
    if not isinstance(existing_sources, list):
        c.fail("sources", "expected an array")

    return AnalysisRecord(
        current_price=texts["currentPrice"],
        bottom_line=texts["bottomLine"],
        bias_probabilities=BiasProbabilities(long=long_p, short=short_p),
        key_levels=KeyLevels(
            resistance1=levels["resistance1"],
            support1=levels["support1"],
            resistance2=levels["resistance2"],
            support2=levels["support2"],
            daily_pivot=levels["dailyPivot"],
            invalidation_level=levels["invalidationLevel"],
        ),
        live_news=tuple(news),
        upcoming_events=tuple(events),
        technical_justification=justification,
        educational_trade_idea=trade_idea,
        risk_warning=texts["riskWarning"],
        assumptions=assumptions,
        sources=extract_sources(existing_sources, key=None),
    )


def extract_sources(chunks: Optional[Iterable[Any]], key: Optional[str] = "web") -> Tuple[GroundingSource, ...]:
    """
    Map citation chunks to sources. Never fails.

    With ``key="web"`` each chunk is ``{"web": {"uri", "title"}}`` as the
    backend returns them; with ``key=None`` chunks are already ``{uri, title}``.
    Missing titles become "Untitled Source"; empty uris are dropped; the
    first occurrence of a uri wins.
    """
    out: List[GroundingSource] = []
    seen = set()
    for chunk in chunks or ():
        if not isinstance(chunk, dict):
            continue
        ref = chunk.get(key) if key else chunk
        if not isinstance(ref, dict):
            continue
        uri = ref.get("uri") or ""
        if not isinstance(uri, str) or not uri or uri in seen:
            continue
        title = ref.get("title") or UNTITLED_SOURCE
        if not isinstance(title, str):
            title = UNTITLED_SOURCE
        seen.add(uri)
        out.append(GroundingSource(uri=uri, title=title))
    return tuple(out)


def parse_analysis(raw_text: str, citations: Optional[Iterable[Any]] = None) -> AnalysisRecord:
    """
    Validate raw backend text and attach citation sources.

    Raises:
        MalformedResponse: the text is not one valid analysis object
    """
    data = parse_json_object(raw_text)
    data.pop("sources", None)
    record = analysis_from_dict(data, raw_text=raw_text)
    sources = extract_sources(citations)
    if not sources:
        return record
    return dataclasses.replace(record, sources=sources)


def quality_warnings(record: AnalysisRecord, now: Optional[dt.datetime] = None) -> List[str]:
    """
    Data-quality notes the prompt asks for but the validator does not enforce.

    Checks that the trade-idea bias matches the direction stated in the
    bottom line and that upcoming events are dated in the future.
    """
    warnings: List[str] = []
    line = record.bottom_line.upper()
    says_long = _LONG_WORD.search(line) is not None
    says_short = _SHORT_WORD.search(line) is not None
    bias = record.educational_trade_idea.bias
    if says_long != says_short:
        stated = "LONG" if says_long else "SHORT"
        if stated != bias:
            warnings.append(f"trade idea bias {bias} disagrees with bottom line ({stated})")
    elif not says_long:
        warnings.append("bottom line does not state LONG or SHORT")

    if now is not None:
        for ev in record.upcoming_events:
            when = parse_iso_utc(ev.date)
            if when is None:
                warnings.append(f"event {ev.event!r} has an unparseable date {ev.date!r}")
            elif when <= now:
                warnings.append(f"event {ev.event!r} is not in the future ({ev.date})")
    return warnings
