"""Analysis module - typed records and response validation (the request pipeline is in analysis.pipeline)."""

from ta_assistant.analysis.models import (
    AnalysisRecord,
    GroundingSource,
    HistoryEntry,
    KEY_LEVEL_NAMES,
    LLMResponse,
)
from ta_assistant.analysis.validator import (
    analysis_from_dict,
    extract_sources,
    parse_analysis,
    quality_warnings,
)

__all__ = [
    "AnalysisRecord",
    "GroundingSource",
    "HistoryEntry",
    "KEY_LEVEL_NAMES",
    "LLMResponse",
    "analysis_from_dict",
    "extract_sources",
    "parse_analysis",
    "quality_warnings",
]
