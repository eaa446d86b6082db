import asyncio
import copy
import json
import os
from typing import Dict, List, Optional

from .config import ALERTS_STORE_FILE
from .errors import PersistenceError
from .logging_setup import get_logger
from .models import Alert, User, WalletAlert

log = get_logger("store")


class AlertStore:
    """Per-user alerts and wallet alerts, persisted to a JSON file.

    Reads hand out deep copies, so callers never hold a reference into the
    store's own state; every write is an upsert keyed by user id and is
    flushed to disk before it returns.
    """

    def __init__(self, path: str = ALERTS_STORE_FILE):
        self.path = path
        self._users: Dict[int, User] = {}
        self._lock = asyncio.Lock()

    # ---- load / save ----
    async def load(self):
        async with self._lock:
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except FileNotFoundError:
                log.info(f"No store file at {self.path}; starting fresh.")
                self._users = {}
                return
            except (OSError, ValueError) as e:
                raise PersistenceError(f"Failed to read {self.path}: {e}") from e
            users = {}
            try:
                for it in data.get("users", []):
                    u = User.from_dict(it)
                    users[u.user_id] = u
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                raise PersistenceError(f"Malformed record in {self.path}: {e!r}") from e
            self._users = users
            n_alerts = sum(len(u.alerts) for u in self._users.values())
            n_wallets = sum(len(u.wallet_alerts) for u in self._users.values())
            log.info(f"Loaded {len(self._users)} user(s) | alerts={n_alerts} wallet_alerts={n_wallets}")

    def _flush(self):
        tmp = f"{self.path}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump({"users": [u.to_dict() for u in self._users.values()]}, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e

    def _upsert_user(self, user_id: int, username: str = "") -> User:
        user = self._users.get(user_id)
        if user is None:
            user = self._users[user_id] = User(user_id=user_id, username=username)
        elif username:
            user.username = username
        return user

    def _append(self, items: list, item):
        items.append(item)
        try:
            self._flush()
        except PersistenceError:
            items.remove(item)
            raise

    # ---- reads ----
    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._lock:
            u = self._users.get(user_id)
            return copy.deepcopy(u) if u else None

    async def users_with_alerts(self) -> List[User]:
        async with self._lock:
            return [copy.deepcopy(u) for u in self._users.values() if u.alerts]

    async def users_with_wallet_alerts(self, network: str) -> List[User]:
        async with self._lock:
            out = []
            for u in self._users.values():
                wallets = [w for w in u.wallet_alerts if w.network == network]
                if wallets:
                    c = copy.deepcopy(u); c.wallet_alerts = copy.deepcopy(wallets)
                    out.append(c)
            return out

    # ---- writes ----
    async def append_alert(self, user_id: int, alert: Alert, username: str = ""):
        async with self._lock:
            self._append(self._upsert_user(user_id, username).alerts, copy.deepcopy(alert))

    async def append_wallet_alert(self, user_id: int, wallet_alert: WalletAlert, username: str = ""):
        async with self._lock:
            self._append(self._upsert_user(user_id, username).wallet_alerts, copy.deepcopy(wallet_alert))

    async def update_alert_last_price(self, user_id: int, alert_id: str, price: float) -> bool:
        async with self._lock:
            user = self._users.get(user_id)
            for a in (user.alerts if user else []):
                if a.id == alert_id:
                    previous, a.last_price = a.last_price, float(price)
                    try:
                        self._flush()
                    except PersistenceError:
                        a.last_price = previous
                        raise
                    return True
            return False

    async def delete_alert(self, user_id: int, alert_id: str) -> bool:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            before = list(user.alerts)
            user.alerts[:] = [a for a in before if a.id != alert_id]
            if len(user.alerts) == len(before):
                return False
            try:
                self._flush()
            except PersistenceError:
                user.alerts[:] = before
                raise
            return True
