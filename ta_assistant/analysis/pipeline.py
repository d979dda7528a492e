"""
Analysis pipeline: build the instruction, call the backend once, validate,
and record the result in the history.

Failures come back as an ``AnalysisOutcome`` carrying the typed error; the
boundary layer decides what the user sees. Nothing is retried here.
"""
import logging
import sqlite3
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from ta_assistant.analysis.models import AnalysisRecord, HistoryEntry, LLMResponse
from ta_assistant.analysis.validator import parse_analysis, quality_warnings
from ta_assistant.database import db_conn, log_event
from ta_assistant.errors import AnalysisError, AnalysisInProgress, MalformedResponse
from ta_assistant.history.store import HISTORY, HistoryStore, new_history_entry
from ta_assistant.llm.interface import execute_analysis
from ta_assistant.llm.request_builder import build_analysis_prompt
from ta_assistant.utils import now_utc

logger = logging.getLogger("ta_assistant.analysis")

Executor = Callable[[str], LLMResponse]


@dataclass(frozen=True)
class AnalysisOutcome:
    """Tagged result: either ``record``/``entry`` or ``error`` is set."""
    record: Optional[AnalysisRecord] = None
    entry: Optional[HistoryEntry] = None
    error: Optional[AnalysisError] = None
    persisted: bool = False
    warnings: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None and self.record is not None

    def user_message(self) -> Optional[str]:
        return self.error.user_message() if self.error is not None else None


def _record_event(history: HistoryStore, action: str, detail: str):
    """Best-effort diagnostics row; a failure here only gets logged."""
    try:
        with db_conn(history.db_path) as conn:
            log_event(conn, "analysis", action, detail)
    except sqlite3.Error as e:
        logger.warning(f"Could not record analysis event {action}: {e}")


def run_analysis(
    crypto_name: str,
    ticker: str,
    timeframe: str,
    live_price: Optional[str] = None,
    history: Optional[HistoryStore] = None,
    execute: Optional[Executor] = None,
) -> AnalysisOutcome:
    """
    Run one analysis request end to end.

    Args:
        crypto_name: Display name, e.g. "Bitcoin (BTC)"
        ticker: Pair ticker, e.g. "BTCUSDT"
        timeframe: Horizon label, e.g. "4 Hours"
        live_price: Latest streamed price, or None
        history: Store to append to (defaults to the global HISTORY)
        execute: Backend call (defaults to execute_analysis)

    Returns:
        AnalysisOutcome
    """
    history = history if history is not None else HISTORY
    execute = execute or execute_analysis

    logger.info(f"Analysis requested: {ticker} horizon={timeframe} live_price={live_price or 'lookup'}")

    try:
        prompt = build_analysis_prompt(crypto_name, ticker, timeframe, live_price)
        response = execute(prompt)
        record = parse_analysis(response.text, response.citations)
    except MalformedResponse as e:
        logger.error(f"Malformed analysis response for {ticker}: {e}")
        logger.debug(f"Raw response: {e.raw_text}")
        _record_event(history, "malformed", f"{ticker} {timeframe}: {e}\n{e.raw_text}")
        return AnalysisOutcome(error=e)
    except AnalysisError as e:
        logger.error(f"Analysis failed for {ticker}: {e.__class__.__name__}: {e}")
        _record_event(history, e.__class__.__name__, f"{ticker} {timeframe}: {e}")
        return AnalysisOutcome(error=e)

    warnings = tuple(quality_warnings(record, now_utc()))
    for w in warnings:
        logger.warning(f"Analysis quality ({ticker}): {w}")

    entry = new_history_entry(crypto_name, ticker, timeframe, record, existing=history.entries)
    persisted = history.append(entry)
    _record_event(
        history,
        "ok",
        f"{ticker} {timeframe}: bias={record.educational_trade_idea.bias} "
        f"long={record.bias_probabilities.long} sources={len(record.sources)}",
    )
    logger.info(f"Analysis complete for {ticker}: entry={entry.id} persisted={persisted}")
    return AnalysisOutcome(record=record, entry=entry, persisted=persisted, warnings=warnings)


class AnalysisService:
    """
    Session-level gate: at most one analysis in flight.

    A request made while another is running fails fast with
    ``AnalysisInProgress`` instead of queueing.
    """

    def __init__(self, history: Optional[HistoryStore] = None, execute: Optional[Executor] = None):
        self.history = history
        self.execute = execute
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def analyze(self, crypto_name: str, ticker: str, timeframe: str,
                live_price: Optional[str] = None) -> AnalysisOutcome:
        if not self._lock.acquire(blocking=False):
            return AnalysisOutcome(error=AnalysisInProgress("an analysis is already running"))
        try:
            return run_analysis(
                crypto_name,
                ticker,
                timeframe,
                live_price=live_price,
                history=self.history,
                execute=self.execute,
            )
        finally:
            self._lock.release()


# Global service instance
ANALYZER = AnalysisService()
