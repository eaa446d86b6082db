from typing import Dict, List, Optional

import pytest

from cryptoalertbot.errors import BlockFetchError, NotificationError
from cryptoalertbot.market import MarketData, TokenIndex
from cryptoalertbot.models import Block, TokenInfo
from cryptoalertbot.storage import AlertStore


@pytest.fixture
def anyio_backend():
    return 'asyncio'


TOKENS = [
    TokenInfo(symbol='BTC', provider_id='bitcoin', name='Bitcoin'),
    TokenInfo(symbol='ETH', provider_id='ethereum', name='Ethereum'),
    TokenInfo(symbol='SOL', provider_id='solana', name='Solana'),
    TokenInfo(symbol='DOGE', provider_id='dogecoin', name='Dogecoin'),
]


class FakeProvider:
    """Stands in for CoinGecko; `errors` are raised (in order) before prices are served."""

    def __init__(self, prices: Optional[Dict[str, float]] = None):
        self.prices = dict(prices or {})
        self.errors: List[Exception] = []
        self.calls: List[List[str]] = []

    async def get_prices(self, provider_ids):
        self.calls.append(list(provider_ids))
        if self.errors:
            raise self.errors.pop(0)
        return {pid: self.prices[pid] for pid in provider_ids if pid in self.prices}

    async def list_supported_tokens(self):
        return list(TOKENS)


class FakeNotifier:

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    async def send(self, user_id, text, link_preview=True):
        if user_id in self.fail_for:
            raise NotificationError('blocked', user_id)
        self.sent.append((user_id, text, link_preview))

    def texts(self, user_id=None):
        return [t for u, t, _ in self.sent if user_id is None or u == user_id]


class FakeChain:
    """Delivers its stored blocks once when subscribed, then idles until stopped."""

    def __init__(self, network='ethereum'):
        self.network = network
        self.blocks: Dict[int, Block] = {}
        self.subscribed = False
        self.crash: Optional[Exception] = None

    async def subscribe_blocks(self, on_block, stop):
        self.subscribed = True
        if self.crash:
            raise self.crash
        for n in sorted(self.blocks):
            await on_block(n)
        await stop.wait()

    async def get_block(self, number):
        if number not in self.blocks:
            raise BlockFetchError('not found', self.network, number)
        return self.blocks[number]


@pytest.fixture
def provider():
    return FakeProvider({'bitcoin': 45000.0, 'ethereum': 3000.0, 'solana': 150.0})


@pytest.fixture
def market(provider):
    return MarketData(provider, TokenIndex(TOKENS), retries=2, retry_delay=0)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def store(tmp_path):
    return AlertStore(str(tmp_path / 'users.json'))


@pytest.fixture
def chains():
    return {'ethereum': FakeChain('ethereum'), 'bsc': FakeChain('bsc')}
