import asyncio
import itertools
from typing import Awaitable, Callable, Dict, Optional

import aiohttp

from .config import BLOCK_POLL_SECONDS, BLOCK_MAX_CATCHUP, HTTP_TIMEOUT
from .errors import BlockFetchError
from .helpers import sleep_or_stop
from .logging_setup import get_logger
from .models import Block, Transaction

_ids = itertools.count(1)

log = get_logger("chain")


def _hex_int(v) -> Optional[int]:
    if v is None: return None
    try:
        return int(v, 16) if isinstance(v, str) else int(v)
    except (TypeError, ValueError):
        return None

def parse_block(raw: dict) -> Block:
    txs = []
    for tx in raw.get("transactions") or []:
        if not isinstance(tx, dict):  # hash-only listing
            continue
        txs.append(Transaction(
            hash=tx.get("hash") or "",
            sender=tx.get("from"),
            receiver=tx.get("to"),
            value=_hex_int(tx.get("value")),
        ))
    return Block(number=_hex_int(raw.get("number")) or 0, transactions=txs)


class EvmChain:
    """JSON-RPC access to one EVM network plus a polling new-block subscription."""

    def __init__(self, network: str, rpc_url: str, *, poll_seconds: float = BLOCK_POLL_SECONDS,
                 max_catchup: int = BLOCK_MAX_CATCHUP, timeout: int = HTTP_TIMEOUT):
        self.network = network
        self.rpc_url = rpc_url
        self.poll_seconds = poll_seconds
        self.max_catchup = max_catchup
        self.timeout = timeout
        self.log = get_logger(f"chain.{network}")

    async def rpc(self, method: str, params: list):
        payload = {"jsonrpc": "2.0", "id": next(_ids), "method": method, "params": params}
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as s:
                async with s.post(self.rpc_url, json=payload) as r:
                    if r.status != 200:
                        raise BlockFetchError(f"{self.network} {method} returned HTTP {r.status}", self.network)
                    res = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise BlockFetchError(f"{self.network} {method} failed: {e!r}", self.network) from e
        if (res or {}).get("error"):
            raise BlockFetchError(f"{self.network} {method} error: {res['error']}", self.network)
        return (res or {}).get("result")

    async def block_number(self) -> int:
        n = _hex_int(await self.rpc("eth_blockNumber", []))
        if n is None:
            raise BlockFetchError(f"{self.network} returned no block number", self.network)
        return n

    async def get_block(self, number: int) -> Block:
        raw = await self.rpc("eth_getBlockByNumber", [hex(number), True])
        if not raw:
            raise BlockFetchError(f"{self.network} block {number} not found", self.network, number)
        return parse_block(raw)

    async def subscribe_blocks(self, on_block: Callable[[int], Awaitable[None]], stop: asyncio.Event):
        """Deliver each new block number to `on_block`, in order, until `stop` is set.

        The first head observed is the starting point; anything older is never
        delivered. Handlers run one at a time, so a block finishes before the
        next one starts.
        """
        last: Optional[int] = None
        self.log.info("block subscription started")
        while not stop.is_set():
            try:
                head = await self.block_number()
            except BlockFetchError as e:
                self.log.warning(f"head poll failed: {e.reason}")
            else:
                if last is None:
                    last = head
                elif head > last:
                    if head - last > self.max_catchup:
                        self.log.warning(f"{head - last} blocks behind; skipping to {head - self.max_catchup + 1}")
                        last = head - self.max_catchup
                    for n in range(last + 1, head + 1):
                        if stop.is_set():
                            break
                        try:
                            await on_block(n)
                        except Exception:
                            self.log.exception(f"block {n} handler failed")
                        last = n
            if await sleep_or_stop(stop, self.poll_seconds):
                break
        self.log.info("block subscription stopped")


def configured_chains(rpc_urls: Dict[str, str], **kwargs) -> Dict[str, EvmChain]:
    """One EvmChain per network that has an RPC URL; networks without one are left out."""
    chains = {net: EvmChain(net, url, **kwargs) for net, url in rpc_urls.items() if url}
    for net in rpc_urls:
        if net not in chains:
            log.info(f"[{net}] no RPC URL configured; not watching wallets on it")
    return chains
