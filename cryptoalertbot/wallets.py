import asyncio
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from .chain import EvmChain
from .config import WALLET_NOTIFY_CONCURRENCY
from .errors import BlockFetchError, NotificationError
from .helpers import normalize_address, to_native
from .logging_setup import get_logger
from .messages import wallet_tx_alert
from .models import Transaction
from .notifier import Notifier
from .storage import AlertStore

log = get_logger("wallets")


@dataclass
class Watcher:
    user_id: int
    min_value: Decimal
    name: str = ""


class WalletScanner:
    """Matches every transaction of each new block against the tracked wallets of that network."""

    def __init__(self, store: AlertStore, notifier: Notifier, chains: Dict[str, EvmChain], *,
                 concurrency: int = WALLET_NOTIFY_CONCURRENCY):
        self.store = store
        self.notifier = notifier
        self.chains = chains
        self.concurrency = max(1, concurrency)
        self._stop = asyncio.Event()

    def stop(self):
        self._stop.set()

    async def run_forever(self):
        if not self.chains:
            log.info("No RPC endpoints configured; wallet scanner disabled.")
            return
        log.info(f"Wallet scanner watching: {', '.join(self.chains)}")
        async with asyncio.TaskGroup() as tg:
            for network, chain in self.chains.items():
                tg.create_task(self._listen(network, chain), name=f"blocks-{network}")

    async def _listen(self, network: str, chain: EvmChain):
        async def handler(block_number: int):
            await self.on_block(network, block_number)
        try:
            await chain.subscribe_blocks(handler, self._stop)
        except Exception:
            log.exception(f"[{network}] block subscription crashed")

    async def _tracked(self, network: str) -> Dict[str, List[Watcher]]:
        tracked: Dict[str, List[Watcher]] = defaultdict(list)
        for u in await self.store.users_with_wallet_alerts(network):
            for w in u.wallet_alerts:
                if w.network == network:
                    tracked[w.address].append(Watcher(u.user_id, w.min_value, w.name))
        return tracked

    async def on_block(self, network: str, block_number: int):
        chain = self.chains[network]
        try:
            block = await chain.get_block(block_number)
        except BlockFetchError as e:
            log.warning(f"[{network}] skipping block {block_number}: {e.reason}")
            return
        if not block.transactions:
            return

        tracked = await self._tracked(network)
        if not tracked:
            return

        sem = asyncio.Semaphore(self.concurrency)
        hits = 0
        async with asyncio.TaskGroup() as tg:
            for tx in block.transactions:
                try:
                    matches = list(self._matches(network, tx, tracked))
                except Exception:
                    log.exception(f"[{network}] failed to process tx {tx.hash}")
                    continue
                for direction, address, value, w in matches:
                    try:
                        text = wallet_tx_alert(network, direction, value, address, w.name, block_number, tx.hash)
                    except Exception:
                        log.exception(f"[{network}] failed to format tx {tx.hash} for {w.user_id}")
                        continue
                    hits += 1
                    tg.create_task(self._notify(sem, w.user_id, text))
        if hits:
            log.info(f"[{network}] block {block_number}: {hits} wallet alert(s)")

    def _matches(self, network: str, tx: Transaction, tracked: Dict[str, List[Watcher]]):
        """Yield (direction, address, value, watcher) for every watcher this transaction clears."""
        if not tx.value or not tx.sender or not tx.receiver:
            return
        value = self._native_value(network, tx)
        if value is None or value <= 0:
            return
        sender = normalize_address(tx.sender)
        receiver = normalize_address(tx.receiver)
        for address in (sender, receiver):
            direction = "sent" if address == sender else "received"
            for w in tracked.get(address, ()):
                if value >= w.min_value:
                    yield direction, address, value, w

    @staticmethod
    def _native_value(network: str, tx: Transaction) -> Optional[Decimal]:
        try:
            return to_native(tx.value, network)
        except (TypeError, ValueError, InvalidOperation):
            log.debug(f"[{network}] bad value on tx {tx.hash}: {tx.value!r}")
            return None

    async def _notify(self, sem: asyncio.Semaphore, user_id: int, text: str):
        async with sem:
            try:
                await self.notifier.send(user_id, text, link_preview=False)
            except NotificationError as e:
                log.error(f"Wallet alert to {user_id} failed: {e.reason}")
            except Exception:
                log.exception(f"Wallet alert to {user_id} failed")
