import uuid
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import ClassVar, Dict, List, Optional, Union

from .errors import PersistenceError


def new_alert_id() -> str:
    return uuid.uuid4().hex[:12]


# ---- Price alerts (tagged by `kind`) ----
@dataclass
class PercentageAlert:
    token: str
    threshold: float         # fraction, 0.05 == 5%
    direction: str           # "up"|"down"
    last_price: float
    id: str = field(default_factory=new_alert_id)
    kind: ClassVar[str] = "percentage"

@dataclass
class ExactAlert:
    token: str
    target_price: float
    last_price: float
    id: str = field(default_factory=new_alert_id)
    kind: ClassVar[str] = "exact"

@dataclass
class AboveAlert:
    token: str
    target_price: float
    last_price: float
    id: str = field(default_factory=new_alert_id)
    kind: ClassVar[str] = "above"

@dataclass
class BelowAlert:
    token: str
    target_price: float
    last_price: float
    id: str = field(default_factory=new_alert_id)
    kind: ClassVar[str] = "below"


Alert = Union[PercentageAlert, ExactAlert, AboveAlert, BelowAlert]

ALERT_TYPES: Dict[str, type] = {cls.kind: cls for cls in (PercentageAlert, ExactAlert, AboveAlert, BelowAlert)}


def alert_to_dict(alert: Alert) -> dict:
    return {"kind": alert.kind, **asdict(alert)}

def alert_from_dict(data: dict) -> Alert:
    data = dict(data)
    kind = data.pop("kind", None)
    cls = ALERT_TYPES.get(kind)
    if cls is None:
        raise PersistenceError(f"Unknown alert kind {kind!r}")
    return cls(**data)


# ---- Wallet alerts ----
@dataclass
class WalletAlert:
    address: str             # lowercase 0x…
    network: str             # ethereum|bsc|polygon
    min_value: Decimal       # native units
    name: str = ""

    def to_dict(self) -> dict:
        return {"address": self.address, "network": self.network, "min_value": str(self.min_value), "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "WalletAlert":
        return cls(
            address=data["address"].lower(), network=data["network"],
            min_value=Decimal(str(data["min_value"])), name=data.get("name") or "",
        )


@dataclass
class User:
    user_id: int
    username: str = ""
    alerts: List[Alert] = field(default_factory=list)
    wallet_alerts: List[WalletAlert] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "alerts": [alert_to_dict(a) for a in self.alerts],
            "wallet_alerts": [w.to_dict() for w in self.wallet_alerts],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            user_id=int(data["user_id"]),
            username=data.get("username") or "",
            alerts=[alert_from_dict(a) for a in data.get("alerts", [])],
            wallet_alerts=[WalletAlert.from_dict(w) for w in data.get("wallet_alerts", [])],
        )


# ---- Market data ----
@dataclass(frozen=True)
class TokenInfo:
    symbol: str              # uppercase ticker
    provider_id: str         # coingecko id, e.g. "bitcoin"
    name: str


# ---- Chain data ----
@dataclass
class Transaction:
    hash: str
    sender: Optional[str]
    receiver: Optional[str]  # None for contract creation
    value: int               # wei

@dataclass
class Block:
    number: int
    transactions: List[Transaction] = field(default_factory=list)


@dataclass
class Confirmation:
    kind: str
    token: str
    current_price: float
    alert: Optional[Alert]           # None when the condition already held
    triggered_immediately: bool = False
