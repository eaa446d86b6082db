from decimal import Decimal
from typing import List, Optional, Union

from .alerts import already_satisfied
from .config import EXACT_TOLERANCE
from .constants import ALERT_KINDS, DIRECTIONS, KIND_ALIASES, NETWORKS
from .errors import (InvalidAddress, InvalidAlert, InvalidAmount, InvalidNetwork, NotificationError,
                     PriceUnavailable, TokenNotFound)
from .helpers import is_evm_address, normalize_address, parse_decimal
from .logging_setup import log
from .market import MarketData
from .messages import immediate_alert
from .models import ALERT_TYPES, Alert, Confirmation, TokenInfo, WalletAlert
from .notifier import Notifier
from .storage import AlertStore


def normalize_kind(kind: str) -> str:
    k = (kind or "").strip().lower()
    k = KIND_ALIASES.get(k, k)
    if k not in ALERT_KINDS:
        raise InvalidAlert(f"Unknown alert type `{kind}`. Use one of: {', '.join(ALERT_KINDS)}.")
    return k


class AlertSubscriptions:
    """Creation path for price and wallet alerts, plus the read helpers the bot exposes."""

    def __init__(self, store: AlertStore, market: MarketData, notifier: Notifier, *,
                 tolerance: float = EXACT_TOLERANCE):
        self.store = store
        self.market = market
        self.notifier = notifier
        self.tolerance = tolerance

    def _resolve(self, token: str) -> TokenInfo:
        info = self.market.resolve(token)
        if info is None:
            raise TokenNotFound((token or "").strip().upper())
        return info

    async def current_price(self, token: str) -> float:
        return await self._price(self._resolve(token))

    async def _price(self, info: TokenInfo) -> float:
        try:
            return await self.market.get_price(info)
        except PriceUnavailable as e:
            log.warning(f"Price lookup failed for {info.symbol}: {e.reason}")
            raise PriceUnavailable(f"Unable to fetch the price of {info.symbol} right now. Please try again in a moment!") from e

    async def create_alert(self, user_id: int, token: str, kind: str, *,
                           target_price: Optional[float] = None, threshold: Optional[float] = None,
                           direction: Optional[str] = None, username: str = "") -> Confirmation:
        kind = normalize_kind(kind)
        if kind == "percentage":
            direction = (direction or "").strip().lower()
            if threshold is None or threshold <= 0:
                raise InvalidAlert("Percentage must be a number greater than 0.")
            if direction not in DIRECTIONS:
                raise InvalidAlert("Direction must be `up` or `down`.")
        elif target_price is None or target_price <= 0:
            raise InvalidAlert("Target price must be a number greater than 0.")

        info = self._resolve(token)
        current = await self._price(info)
        symbol = info.symbol

        if kind != "percentage" and already_satisfied(kind, target_price, current, self.tolerance):
            log.info(f"Immediate alert | user={user_id} {kind} {symbol} target={target_price} curr={current}")
            try:
                await self.notifier.send(user_id, immediate_alert(symbol, kind, target_price, current))
            except NotificationError as e:
                log.error(f"Immediate alert notification failed: {e.reason}")
            return Confirmation(kind=kind, token=symbol, current_price=current, alert=None, triggered_immediately=True)

        if kind == "percentage":
            alert: Alert = ALERT_TYPES[kind](token=symbol, threshold=float(threshold), direction=direction, last_price=current)
        else:
            alert = ALERT_TYPES[kind](token=symbol, target_price=float(target_price), last_price=current)
        await self.store.append_alert(user_id, alert, username=username)
        log.info(f"Alert created | user={user_id} {kind} {symbol} id={alert.id}")
        return Confirmation(kind=kind, token=symbol, current_price=current, alert=alert)

    async def create_wallet_alert(self, user_id: int, address: str, network: str,
                                  min_value: Union[str, float, Decimal], name: str = "",
                                  username: str = "") -> WalletAlert:
        net = (network or "").strip().lower()
        if net not in NETWORKS:
            raise InvalidNetwork(f"Unsupported network `{network}`. Use one of: {', '.join(NETWORKS)}.")
        if not is_evm_address(address or ""):
            raise InvalidAddress(f"`{address}` is not a valid wallet address (expected 0x followed by 40 hex characters).")
        amount = parse_decimal(min_value)
        if amount is None or amount <= 0:
            raise InvalidAmount("Minimum value must be a number greater than 0.")

        wallet = WalletAlert(address=normalize_address(address), network=net, min_value=amount, name=(name or "").strip())
        await self.store.append_wallet_alert(user_id, wallet, username=username)
        log.info(f"Wallet alert created | user={user_id} {net} {wallet.address} min={amount}")
        return wallet

    async def list_alerts(self, user_id: int) -> List[Alert]:
        user = await self.store.get_user(user_id)
        return list(user.alerts) if user else []

    async def list_wallet_alerts(self, user_id: int) -> List[WalletAlert]:
        user = await self.store.get_user(user_id)
        return list(user.wallet_alerts) if user else []

    def search_tokens(self, query: str = "") -> List[TokenInfo]:
        return self.market.index.search(query)
