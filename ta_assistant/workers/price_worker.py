"""Price Worker - hosts the live price feed event loop in a background thread."""
import asyncio
import logging
import threading
import time
import traceback
from typing import Any, Callable, Dict, Optional

from ta_assistant.config import Config
from ta_assistant.market.price_feed import (
    ERROR,
    LIVE,
    WAITING,
    PriceFeedManager,
    PriceSnapshot,
    PriceTick,
    default_connect,
)
from ta_assistant.utils import utc_now

logger = logging.getLogger("ta_assistant.price")


class PriceWorker:
    """
    Background worker that owns the price subscription.

    All subscription work happens on one asyncio loop running in the
    worker thread; other threads only call ``switch`` (which waits for the
    close-before-replace to finish) and read snapshots. When
    ``reconnect_seconds`` > 0, a subscription that ended in error is
    re-opened after that delay.
    """

    def __init__(self, connect: Callable[[str], Any] = default_connect,
                 reconnect_seconds: Optional[float] = None):
        self.connect = connect
        self.reconnect_seconds = Config.PRICE_RECONNECT_SECONDS if reconnect_seconds is None else reconnect_seconds
        self.running = False
        self.symbol = Config.DEFAULT_TICKER
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.thread: Optional[threading.Thread] = None
        self.manager: Optional[PriceFeedManager] = None
        self._ready = threading.Event()
        self._error_since: Optional[float] = None
        self.stats = {
            "ticks": 0,
            "switches": 0,
            "reconnects": 0,
            "last_ts": None,
            "last_error": None
        }

    def start(self, symbol: Optional[str] = None):
        """Start the worker thread and subscribe to ``symbol`` (or the current one)."""
        if self.thread and self.thread.is_alive():
            return
        self.loop = asyncio.new_event_loop()
        self._ready.clear()
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()
        self._ready.wait(timeout=5.0)
        self.running = True
        logger.info("PriceWorker started")
        self.switch(symbol or self.symbol)

    def stop_now(self, timeout: float = 5.0):
        """Close the subscription and stop the loop."""
        self.running = False
        if not self.loop or not self.manager:
            return
        try:
            fut = asyncio.run_coroutine_threadsafe(self.manager.close(), self.loop)
            fut.result(timeout=timeout)
        except Exception as e:
            logger.error(f"PriceWorker close error: {e}")
        self.loop.call_soon_threadsafe(self.loop.stop)
        if self.thread:
            self.thread.join(timeout=timeout)
        logger.info("PriceWorker stopped")

    def switch(self, symbol: str, timeout: float = 5.0) -> PriceSnapshot:
        """Replace the subscription; returns once the old one is closed."""
        symbol = symbol.upper()
        self.symbol = symbol
        self._error_since = None
        if not self.running or not self.loop or not self.manager:
            return self.snapshot()
        fut = asyncio.run_coroutine_threadsafe(self.manager.subscribe(symbol), self.loop)
        fut.result(timeout=timeout)
        self.stats["switches"] += 1
        return self.snapshot()

    def snapshot(self) -> PriceSnapshot:
        snap = self.manager.snapshot() if self.manager else None
        return snap or PriceSnapshot(symbol=self.symbol, state=WAITING)

    def live_price(self, symbol: str) -> Optional[str]:
        """Latest streamed price for ``symbol``, or None when not live."""
        snap = self.snapshot()
        if snap.state != LIVE or snap.symbol != (symbol or "").upper():
            return None
        return snap.price

    def _on_tick(self, symbol: str, tick: PriceTick):
        self.stats["ticks"] += 1
        self.stats["last_ts"] = utc_now()

    def _run(self):
        """Thread body: run the event loop until stopped."""
        asyncio.set_event_loop(self.loop)
        self.manager = PriceFeedManager(connect=self.connect, on_tick=self._on_tick)
        watchdog = self.loop.create_task(self._watchdog())
        self._ready.set()
        try:
            self.loop.run_forever()
        except Exception as e:
            self.stats["last_error"] = str(e)
            logger.error(f"PriceWorker loop error: {e}")
            logger.debug(traceback.format_exc())
        finally:
            watchdog.cancel()
            self.loop.run_until_complete(asyncio.gather(watchdog, return_exceptions=True))
            self.loop.close()

    async def _watchdog(self):
        """Re-open a failed subscription after the reconnect delay."""
        while True:
            await asyncio.sleep(1.0)
            sub = self.manager.current if self.manager else None
            if sub is None or sub.state != ERROR:
                self._error_since = None
                continue
            self.stats["last_error"] = sub.snapshot().error
            if self.reconnect_seconds <= 0:
                continue
            now = time.monotonic()
            if self._error_since is None:
                self._error_since = now
            if now - self._error_since >= self.reconnect_seconds:
                self._error_since = None
                if await self.manager.reopen(sub) is not None:
                    logger.info(f"PriceWorker reconnected {sub.symbol}")
                    self.stats["reconnects"] += 1

    def status(self) -> Dict[str, Any]:
        return {"running": self.running, "symbol": self.symbol, **self.stats}


# Global instance
PRICE = PriceWorker()
