"""Typed analysis records and history entries."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

Number = Union[int, float]

# Wire names of the six fixed key levels, in the order the schema lists them
KEY_LEVEL_NAMES = (
    "resistance1",
    "support1",
    "resistance2",
    "support2",
    "dailyPivot",
    "invalidationLevel",
)

IMPORTANCE_VALUES = ("Low", "Medium", "High")
BIAS_VALUES = ("LONG", "SHORT")
UNTITLED_SOURCE = "Untitled Source"


@dataclass(frozen=True)
class GroundingSource:
    uri: str
    title: str = UNTITLED_SOURCE

    def to_dict(self) -> Dict[str, Any]:
        return {"uri": self.uri, "title": self.title}


@dataclass(frozen=True)
class KeyLevel:
    price: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"price": self.price, "description": self.description}


@dataclass(frozen=True)
class KeyLevels:
    """The six named levels. A closed record: no other names are allowed."""
    resistance1: KeyLevel
    support1: KeyLevel
    resistance2: KeyLevel
    support2: KeyLevel
    daily_pivot: KeyLevel
    invalidation_level: KeyLevel

    def items(self) -> List[Tuple[str, KeyLevel]]:
        """(wire name, level) pairs in schema order."""
        return [
            ("resistance1", self.resistance1),
            ("support1", self.support1),
            ("resistance2", self.resistance2),
            ("support2", self.support2),
            ("dailyPivot", self.daily_pivot),
            ("invalidationLevel", self.invalidation_level),
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {name: level.to_dict() for name, level in self.items()}


@dataclass(frozen=True)
class BiasProbabilities:
    long: Number
    short: Number

    def to_dict(self) -> Dict[str, Any]:
        return {"long": self.long, "short": self.short}


@dataclass(frozen=True)
class NewsItem:
    title: str
    source: str
    summary: str
    importance: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "source": self.source,
            "summary": self.summary,
            "importance": self.importance,
        }


@dataclass(frozen=True)
class UpcomingEvent:
    event: str
    date: str
    potential_impact: str

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event, "date": self.date, "potentialImpact": self.potential_impact}


@dataclass(frozen=True)
class MethodScore:
    score: Number
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "reasoning": self.reasoning}


@dataclass(frozen=True)
class TechnicalJustification:
    confluence_score: Number
    market_regime: str
    # Open mapping: method names are chosen by the model
    methods_evaluation: Dict[str, MethodScore]
    trend_and_structure: str
    key_levels: str
    momentum_and_volume: str
    liquidity_notes: str
    news_summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confluenceScore": self.confluence_score,
            "marketRegime": self.market_regime,
            "methodsEvaluation": {name: m.to_dict() for name, m in self.methods_evaluation.items()},
            "trendAndStructure": self.trend_and_structure,
            "keyLevels": self.key_levels,
            "momentumAndVolume": self.momentum_and_volume,
            "liquidityNotes": self.liquidity_notes,
            "newsSummary": self.news_summary,
        }


@dataclass(frozen=True)
class TradeIdea:
    bias: str
    entry_zone: str
    stop_loss_zone: str
    take_profit_zones: Tuple[str, ...]
    risk_reward: str
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bias": self.bias,
            "entryZone": self.entry_zone,
            "stopLossZone": self.stop_loss_zone,
            "takeProfitZones": list(self.take_profit_zones),
            "riskReward": self.risk_reward,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class AnalysisRecord:
    """
    One validated analysis.

    Created only by the response validator and never updated in place.
    ``to_dict()`` produces the camelCase wire form used by the API and by
    the persisted history.
    """
    current_price: str
    bottom_line: str
    bias_probabilities: BiasProbabilities
    key_levels: KeyLevels
    live_news: Tuple[NewsItem, ...]
    upcoming_events: Tuple[UpcomingEvent, ...]
    technical_justification: TechnicalJustification
    educational_trade_idea: TradeIdea
    risk_warning: str
    assumptions: str = ""
    sources: Tuple[GroundingSource, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"currentPrice": self.current_price}
        if self.assumptions:
            out["assumptions"] = self.assumptions
        out.update({
            "bottomLine": self.bottom_line,
            "biasProbabilities": self.bias_probabilities.to_dict(),
            "keyLevels": self.key_levels.to_dict(),
            "liveNews": [n.to_dict() for n in self.live_news],
            "upcomingEvents": [e.to_dict() for e in self.upcoming_events],
            "technicalJustification": self.technical_justification.to_dict(),
            "educationalTradeIdea": self.educational_trade_idea.to_dict(),
            "riskWarning": self.risk_warning,
        })
        if self.sources:
            out["sources"] = [s.to_dict() for s in self.sources]
        return out


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    timestamp: str
    crypto_name: str
    ticker: str
    timeframe: str
    analysis: AnalysisRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "cryptoName": self.crypto_name,
            "ticker": self.ticker,
            "timeframe": self.timeframe,
            "analysis": self.analysis.to_dict(),
        }


@dataclass(frozen=True)
class LLMResponse:
    """Raw backend answer: free text plus optional citation chunks."""
    text: str
    citations: Optional[List[Dict[str, Any]]] = None
