"""Tests for response validation and normalization."""
import datetime as dt
import json

import pytest

from ta_assistant.analysis.models import KEY_LEVEL_NAMES, GroundingSource
from ta_assistant.analysis.validator import extract_sources, parse_analysis, quality_warnings
from ta_assistant.errors import MalformedResponse
from ta_assistant.utils import strip_code_fence


def test_valid_response_builds_record(record):
    assert record.current_price == "$65,123.45"
    assert record.bias_probabilities.long + record.bias_probabilities.short == 100
    assert record.educational_trade_idea.bias == "SHORT"
    assert record.educational_trade_idea.take_profit_zones == ("$64,500", "$63,200")
    assert record.key_levels.daily_pivot.price == "$65,100"
    assert record.technical_justification.methods_evaluation["Trend-Following Pullback"].score == 7
    assert record.sources == ()


def test_all_key_levels_present_and_non_empty(record):
    names = [name for name, _ in record.key_levels.items()]
    assert names == list(KEY_LEVEL_NAMES)
    for _, level in record.key_levels.items():
        assert level.price and level.description


def test_fenced_response_parses_identically(analysis_text):
    plain = parse_analysis(analysis_text)
    assert parse_analysis(f"```json\n{analysis_text}\n```") == plain
    assert parse_analysis(f"```\n{analysis_text}\n```") == plain
    assert parse_analysis(f"  \n```JSON\n{analysis_text}\n```\n  ") == plain


def test_fence_strip_only_touches_outer_lines():
    inner = '{"a": "```keep```",\n"b": 1}'
    assert strip_code_fence(f"```json\n{inner}\n```") == inner
    assert strip_code_fence(inner) == inner


def test_validation_is_idempotent(analysis_text):
    assert parse_analysis(analysis_text) == parse_analysis(analysis_text)


def test_invalid_json_is_malformed():
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis("Sure! Here is the analysis: {not json}")
    assert exc.value.raw_text == "Sure! Here is the analysis: {not json}"


def test_empty_response_is_malformed():
    with pytest.raises(MalformedResponse):
        parse_analysis("   ")


def test_top_level_array_is_malformed():
    with pytest.raises(MalformedResponse):
        parse_analysis("[1, 2, 3]")


def test_missing_section_names_path(analysis_dict):
    del analysis_dict["technicalJustification"]
    raw = json.dumps(analysis_dict)
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(raw)
    assert exc.value.path == "technicalJustification"
    assert exc.value.raw_text == raw


def test_missing_key_level_names_path(analysis_dict):
    del analysis_dict["keyLevels"]["invalidationLevel"]
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "keyLevels.invalidationLevel"


def test_empty_key_level_price_is_rejected(analysis_dict):
    analysis_dict["keyLevels"]["support2"]["price"] = ""
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "keyLevels.support2.price"


def test_missing_nested_field_names_path(analysis_dict):
    del analysis_dict["educationalTradeIdea"]["stopLossZone"]
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "educationalTradeIdea.stopLossZone"


@pytest.mark.parametrize("long_p,short_p", [(60, 30), (50.5, 50), (101, -1)])
def test_probabilities_must_sum_to_100(analysis_dict, long_p, short_p):
    analysis_dict["biasProbabilities"] = {"long": long_p, "short": short_p}
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path.startswith("biasProbabilities")


def test_probabilities_are_not_renormalized(analysis_dict):
    analysis_dict["biasProbabilities"] = {"long": 62.5, "short": 37.5}
    rec = parse_analysis(json.dumps(analysis_dict))
    assert rec.bias_probabilities.long == 62.5
    assert rec.bias_probabilities.short == 37.5


def test_boolean_is_not_a_number(analysis_dict):
    analysis_dict["technicalJustification"]["confluenceScore"] = True
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "technicalJustification.confluenceScore"


@pytest.mark.parametrize("bias", ["NEUTRAL", "WAIT", "long"])
def test_bias_must_be_binary(analysis_dict, bias):
    analysis_dict["educationalTradeIdea"]["bias"] = bias
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "educationalTradeIdea.bias"


def test_news_importance_is_checked(analysis_dict):
    analysis_dict["liveNews"][0]["importance"] = "Critical"
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "liveNews[0].importance"


def test_empty_news_and_events_are_allowed(analysis_dict):
    analysis_dict["liveNews"] = []
    analysis_dict["upcomingEvents"] = []
    rec = parse_analysis(json.dumps(analysis_dict))
    assert rec.live_news == ()
    assert rec.upcoming_events == ()


def test_empty_risk_warning_is_rejected(analysis_dict):
    analysis_dict["riskWarning"] = "  "
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "riskWarning"


def test_citations_become_sources(analysis_text):
    chunks = [
        {"web": {"uri": "https://a.example/btc", "title": "BTC news"}},
        {"web": {"uri": "https://b.example/cpi"}},
        {"web": {"uri": "", "title": "No link"}},
        {"web": {"uri": "https://a.example/btc", "title": "Duplicate"}},
        {"retrievedContext": {"uri": "ignored"}},
    ]
    rec = parse_analysis(analysis_text, chunks)
    assert rec.sources == (
        GroundingSource(uri="https://a.example/btc", title="BTC news"),
        GroundingSource(uri="https://b.example/cpi", title="Untitled Source"),
    )
    assert rec.to_dict()["sources"][1] == {"uri": "https://b.example/cpi", "title": "Untitled Source"}


def test_model_supplied_sources_are_ignored(analysis_dict):
    analysis_dict["sources"] = [{"uri": "https://made-up.example", "title": "x"}]
    rec = parse_analysis(json.dumps(analysis_dict), None)
    assert rec.sources == ()
    assert "sources" not in rec.to_dict()


def test_extract_sources_never_fails():
    assert extract_sources(None) == ()
    assert extract_sources([None, 3, "x", {"web": None}]) == ()


def test_wire_form_matches_input(analysis_dict, record):
    assert record.to_dict() == analysis_dict


def test_quality_warnings_flag_bias_mismatch_and_past_events(analysis_dict):
    analysis_dict["bottomLine"] = "LONG bias while above the pivot."
    analysis_dict["upcomingEvents"][0]["date"] = "2020-01-01T00:00:00Z"
    rec = parse_analysis(json.dumps(analysis_dict))
    now = dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)
    warnings = quality_warnings(rec, now)
    assert any("disagrees" in w for w in warnings)
    assert any("not in the future" in w for w in warnings)


def test_quality_warnings_empty_for_consistent_record(record):
    now = dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)
    assert quality_warnings(record, now) == []


@pytest.mark.parametrize("score", [72.5, 101, -1])
def test_confluence_score_must_be_whole_and_in_range(analysis_dict, score):
    analysis_dict["technicalJustification"]["confluenceScore"] = score
    with pytest.raises(MalformedResponse) as exc:
        parse_analysis(json.dumps(analysis_dict))
    assert exc.value.path == "technicalJustification.confluenceScore"


def test_confluence_score_accepts_integral_float(analysis_dict):
    analysis_dict["technicalJustification"]["confluenceScore"] = 80.0
    rec = parse_analysis(json.dumps(analysis_dict))
    assert rec.technical_justification.confluence_score == 80


def test_bias_words_match_whole_words_only(analysis_dict):
    analysis_dict["bottomLine"] = "SHORT bias; the trend is no LONGER bullish on the 4 Hours view."
    rec = parse_analysis(json.dumps(analysis_dict))
    now = dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)
    assert quality_warnings(rec, now) == []

    analysis_dict["bottomLine"] = "Momentum is SHORTLIVED, expect a LONGER consolidation."
    rec = parse_analysis(json.dumps(analysis_dict))
    assert quality_warnings(rec, now) == ["bottom line does not state LONG or SHORT"]
