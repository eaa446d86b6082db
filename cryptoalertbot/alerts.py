import asyncio
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from .config import PRICE_CHECK_INTERVAL, PRICE_BATCH_SIZE, PRICE_BATCH_DELAY, EXACT_TOLERANCE
from .errors import NotificationError, PersistenceError, PriceUnavailable
from .helpers import chunked, fmt_price, sleep_or_stop
from .logging_setup import get_logger
from .market import MarketData
from .messages import price_alert
from .models import Alert
from .notifier import Notifier
from .storage import AlertStore

log = get_logger("monitor")


# ---- Trigger predicates ----
def within_tolerance(current: float, target: float, tolerance: float = EXACT_TOLERANCE) -> bool:
    return abs(current - target) <= target * tolerance

def should_trigger(alert: Alert, current: float, tolerance: float = EXACT_TOLERANCE) -> bool:
    """Evaluate `alert` against the fetched price, using alert.last_price as the previous observation."""
    last = alert.last_price
    if alert.kind == "percentage":
        if not last or last <= 0:
            return False
        # decimal: a move of exactly the threshold must trigger
        prev, now = Decimal(str(last)), Decimal(str(current))
        change, threshold = (now - prev) / prev, Decimal(str(alert.threshold))
        is_up = now > prev
        if alert.direction == "up":
            return is_up and change >= threshold
        return (not is_up) and abs(change) >= threshold
    if alert.kind == "exact":
        return within_tolerance(current, alert.target_price, tolerance)
    if alert.kind == "above":
        return current >= alert.target_price and last < alert.target_price
    if alert.kind == "below":
        return current <= alert.target_price and last > alert.target_price
    raise ValueError(f"unknown alert kind {alert.kind!r}")

def already_satisfied(kind: str, target: float, current: float, tolerance: float = EXACT_TOLERANCE) -> bool:
    """State check used at creation time, where there is no previous price to cross from."""
    if kind == "exact":
        return within_tolerance(current, target, tolerance)
    if kind == "above":
        return current >= target
    if kind == "below":
        return current <= target
    return False


# ---- Monitor ----
class PriceAlertMonitor:

    def __init__(self, store: AlertStore, market: MarketData, notifier: Notifier, *,
                 interval: float = PRICE_CHECK_INTERVAL, batch_size: int = PRICE_BATCH_SIZE,
                 batch_delay: float = PRICE_BATCH_DELAY, tolerance: float = EXACT_TOLERANCE):
        self.store = store
        self.market = market
        self.notifier = notifier
        self.interval = interval
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.tolerance = tolerance
        self._stop = asyncio.Event()
        self._cycle: Optional[asyncio.Task] = None
        # fired alerts whose removal did not reach the disk yet
        self._fired: Set[str] = set()

    @property
    def running(self) -> bool:
        return self._cycle is not None and not self._cycle.done()

    async def run_forever(self):
        log.info(f"Price monitor started (every {self.interval}s)")
        while not self._stop.is_set():
            if self.running:
                log.warning("Previous price check still running; skipping this tick")
            else:
                self._cycle = asyncio.create_task(self.run_cycle(), name="price-cycle")
            if await sleep_or_stop(self._stop, self.interval):
                break
        if self._cycle is not None:
            await self._cycle
        log.info("Price monitor stopped")

    def stop(self):
        self._stop.set()

    async def run_cycle(self):
        try:
            users = await self.store.users_with_alerts()
        except Exception:
            log.exception("Price cycle: failed to load alerts")
            return
        if not users:
            return

        by_token: Dict[str, List[Tuple[int, Alert]]] = defaultdict(list)
        for u in users:
            for a in u.alerts:
                by_token[a.token.upper()].append((u.user_id, a))

        tokens = list(by_token)
        batches = list(chunked(tokens, self.batch_size))
        log.debug(f"Price cycle: {len(tokens)} token(s) in {len(batches)} batch(es)")
        for i, batch in enumerate(batches):
            try:
                await self._process_batch(batch, by_token)
            except Exception:
                log.exception(f"Price cycle: batch {i + 1}/{len(batches)} failed")
            if i < len(batches) - 1:
                await asyncio.sleep(self.batch_delay)

    async def _process_batch(self, batch: List[str], by_token: Dict[str, List[Tuple[int, Alert]]]):
        ids: Dict[str, str] = {}
        for token in batch:
            info = self.market.resolve(token)
            if info is None:
                log.warning(f"Token {token} is not in the supported list; skipping")
                continue
            ids[token] = info.provider_id
        if not ids:
            return

        try:
            prices = await self.market.get_prices(sorted(set(ids.values())))
        except PriceUnavailable as e:
            log.warning(f"Skipping {len(ids)} token(s) this cycle: {e.reason}")
            return

        for token, pid in ids.items():
            current = prices.get(pid)
            if current is None:
                log.warning(f"No price for {token} ({pid}); skipping")
                continue
            for user_id, alert in by_token[token]:
                try:
                    await self._evaluate(user_id, alert, current)
                except Exception:
                    log.exception(f"Failed to process alert {alert.id} for user {user_id}")

    async def _evaluate(self, user_id: int, alert: Alert, current: float):
        if alert.id in self._fired:
            await self._remove(user_id, alert)
            return
        if not should_trigger(alert, current, self.tolerance):
            await self.store.update_alert_last_price(user_id, alert.id, current)
            return
        log.info(f"Alert fired | user={user_id} {alert.kind} {alert.token} last={fmt_price(alert.last_price)} curr={fmt_price(current)}")
        try:
            await self.notifier.send(user_id, price_alert(alert, current))
        except NotificationError as e:
            log.error(f"Alert {alert.id} notification failed: {e.reason}")
        except Exception:
            log.exception(f"Alert {alert.id} notification failed")
        await self._remove(user_id, alert)

    async def _remove(self, user_id: int, alert: Alert):
        try:
            await self.store.delete_alert(user_id, alert.id)
        except PersistenceError as e:
            self._fired.add(alert.id)
            log.error(f"Alert {alert.id} fired but could not be removed; retrying next cycle: {e.reason}")
            return
        self._fired.discard(alert.id)
