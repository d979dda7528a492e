"""
Live price feed: one Binance trade-stream subscription at a time.

``PriceFeedManager`` owns the single subscription slot and always closes
the current ``PriceSubscription`` (task cancelled and awaited) before a new
one starts. A closed subscription discards any message still in flight.
Trend direction is computed against the previously *emitted* price.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import websockets

from ta_assistant.config import Config
from ta_assistant.utils import utc_now

logger = logging.getLogger("ta_assistant.price")

UP = "up"
DOWN = "down"
UNCHANGED = "unchanged"

WAITING = "waiting"
LIVE = "live"
ERROR = "error"
CLOSED = "closed"


@dataclass(frozen=True)
class PriceTick:
    value: float
    price: str
    trend: str


@dataclass(frozen=True)
class PriceSnapshot:
    symbol: str
    state: str
    price: Optional[str] = None
    trend: str = UNCHANGED
    error: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self):
        return {
            "symbol": self.symbol,
            "state": self.state,
            "price": self.price,
            "trend": self.trend,
            "error": self.error,
            "updatedAt": self.updated_at,
        }


class TrendTracker:
    """Up/down/unchanged signal against the last emitted price."""

    def __init__(self):
        self.last: Optional[float] = None
        self.trend = UNCHANGED

    def update(self, value: float) -> PriceTick:
        price = f"{value:.2f}"
        if self.last is not None:
            if value > self.last:
                self.trend = UP
            elif value < self.last:
                self.trend = DOWN
            # equal: keep the previous direction
        # next tick compares against what was shown, not the raw trade price
        self.last = float(price)
        return PriceTick(value=value, price=price, trend=self.trend)


def trade_stream_url(symbol: str) -> str:
    """wss URL of the @trade stream for a pair such as BTCUSDT."""
    stream = (symbol or "").replace("/", "").replace("-", "").strip().lower()
    if not stream:
        raise ValueError("missing symbol")
    return f"{Config.BINANCE_WS_BASE}/{stream}@trade"


def parse_trade_price(raw: Any) -> Optional[float]:
    """Trade price field ``p`` of a stream message, or None."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None
    p = raw.get("p")
    if p is None or isinstance(p, bool):
        return None
    try:
        value = float(p)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def default_connect(url: str):
    """Open the websocket (async context manager yielding text frames)."""
    return websockets.connect(
        url,
        ping_interval=20,
        ping_timeout=20,
        close_timeout=2,
        max_queue=32,
    )


class PriceSubscription:
    """
    Handle for one instrument's stream.

    States: waiting (no data yet), live, error (terminal), closed.
    """

    def __init__(self, symbol: str, on_tick: Optional[Callable[[str, PriceTick], None]] = None):
        self.symbol = symbol.upper()
        self.on_tick = on_tick
        self.tracker = TrendTracker()
        self.closed = False
        self._snapshot = PriceSnapshot(symbol=self.symbol, state=WAITING)

    @property
    def state(self) -> str:
        return self._snapshot.state

    def snapshot(self) -> PriceSnapshot:
        return self._snapshot

    def handle_message(self, raw: Any) -> Optional[PriceTick]:
        """Process one wire message; returns the emitted tick, if any."""
        if self.closed or self._snapshot.state == ERROR:
            return None
        value = parse_trade_price(raw)
        if value is None:
            logger.debug(f"{self.symbol}: ignoring message without trade price")
            return None
        tick = self.tracker.update(value)
        self._snapshot = PriceSnapshot(
            symbol=self.symbol,
            state=LIVE,
            price=tick.price,
            trend=tick.trend,
            updated_at=utc_now(),
        )
        if self.on_tick is not None:
            self.on_tick(self.symbol, tick)
        return tick

    def fail(self, error: str):
        """Enter the terminal error state (ignored once closed)."""
        if self.closed:
            return
        logger.error(f"Price stream error for {self.symbol}: {error}")
        self._snapshot = PriceSnapshot(
            symbol=self.symbol,
            state=ERROR,
            price=self._snapshot.price,
            trend=self._snapshot.trend,
            error=error,
            updated_at=utc_now(),
        )

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._snapshot = PriceSnapshot(
            symbol=self.symbol,
            state=CLOSED,
            price=self._snapshot.price,
            trend=self._snapshot.trend,
            updated_at=utc_now(),
        )
        logger.info(f"Price stream closed for {self.symbol}")

    async def run(self, connect: Callable[[str], Any] = default_connect):
        """Consume the stream until closed, cancelled or failed."""
        url = trade_stream_url(self.symbol)
        try:
            async with connect(url) as ws:
                logger.info(f"Price stream connected for {self.symbol}")
                async for raw in ws:
                    if self.closed:
                        break
                    self.handle_message(raw)
            if not self.closed:
                self.fail("stream ended")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.fail(str(e) or e.__class__.__name__)


class PriceFeedManager:
    """
    Owns the one active subscription; close-before-replace.

    ``subscribe`` and ``close`` are serialized, so overlapping switches
    (a user switch racing a reconnect) still leave exactly one subscription.
    """

    def __init__(self, connect: Callable[[str], Any] = default_connect,
                 on_tick: Optional[Callable[[str, PriceTick], None]] = None):
        self.connect = connect
        self.on_tick = on_tick
        self.current: Optional[PriceSubscription] = None
        self._task: Optional[asyncio.Task] = None
        self._lock: Optional[asyncio.Lock] = None

    def _slot_lock(self) -> asyncio.Lock:
        # created on first use so it belongs to the loop running the feed
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def subscribe(self, symbol: str) -> PriceSubscription:
        """Close the current subscription, then start one for ``symbol``."""
        async with self._slot_lock():
            return await self._replace(symbol)

    async def reopen(self, stale: PriceSubscription) -> Optional[PriceSubscription]:
        """Restart ``stale``'s instrument, unless it was replaced meanwhile."""
        async with self._slot_lock():
            if self.current is not stale:
                return None
            return await self._replace(stale.symbol)

    async def _replace(self, symbol: str) -> PriceSubscription:
        await self._close_current()
        sub = PriceSubscription(symbol, on_tick=self.on_tick)
        self.current = sub
        self._task = asyncio.ensure_future(sub.run(self.connect))
        logger.info(f"Subscribed to {sub.symbol}")
        return sub

    async def close(self):
        """Close the current subscription and wait for its task to finish."""
        async with self._slot_lock():
            await self._close_current()

    async def _close_current(self):
        sub, task = self.current, self._task
        self.current, self._task = None, None
        if sub is not None:
            sub.close()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def snapshot(self) -> Optional[PriceSnapshot]:
        return self.current.snapshot() if self.current else None
