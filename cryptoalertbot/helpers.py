import asyncio
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from .constants import NATIVE_DECIMALS

_EVM_ADDRESS = re.compile(r"0x[0-9a-fA-F]{40}")

def is_evm_address(addr: str) -> bool:
    return bool(addr) and _EVM_ADDRESS.fullmatch(addr.strip()) is not None

def normalize_address(addr: str) -> str:
    return addr.strip().lower()

def fmt_price(x: Optional[float]) -> str:
    if x is None: return "—"
    x=float(x)
    if x == 0: return "$0.00"
    # sub-cent tokens keep their significant digits
    if abs(x) < 1: return f"${x:,.6f}".rstrip("0").rstrip(".")
    return f"${x:,.2f}"

def parse_decimal(v) -> Optional[Decimal]:
    try:
        d = Decimal(str(v).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None

def to_native(raw: int, network: str) -> Decimal:
    """Convert a raw integer amount (wei) to the network's native unit."""
    decimals = NATIVE_DECIMALS[network]
    return Decimal(int(raw)).scaleb(-decimals)

def fmt_native(value: Decimal) -> str:
    return f"{value:,.4f}"

def chunked(items: list, size: int):
    for i in range(0, len(items), size):
        yield items[i:i+size]

async def sleep_or_stop(stop: asyncio.Event, seconds: float) -> bool:
    """Sleep up to `seconds`; True if `stop` was set meanwhile."""
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
        return True
    except asyncio.TimeoutError:
        return False
