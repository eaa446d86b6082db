import pytest

from cryptoalertbot.errors import PriceUnavailable, RateLimited
from cryptoalertbot.market import MarketData, TokenIndex, fetch_with_retry
from cryptoalertbot.models import TokenInfo

pytestmark = pytest.mark.anyio


class Flaky:

    def __init__(self, *errors, result='ok'):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


async def test_retry_recovers_from_rate_limit():
    call = Flaky(RateLimited(), RateLimited())
    assert await fetch_with_retry(call, retries=3, delay=0) == 'ok'
    assert call.calls == 3


async def test_retry_is_bounded():
    call = Flaky(*[RateLimited()] * 10)
    with pytest.raises(RateLimited):
        await fetch_with_retry(call, retries=3, delay=0)
    assert call.calls == 4


async def test_other_errors_are_not_retried():
    call = Flaky(PriceUnavailable('HTTP 500'))
    with pytest.raises(PriceUnavailable):
        await fetch_with_retry(call, retries=3, delay=0)
    assert call.calls == 1


def test_token_index_resolution():
    index = TokenIndex([
        TokenInfo('USDC', 'usd-coin', 'USDC'),
        TokenInfo('usdc', 'bridged-usdc', 'Bridged USDC'),
        TokenInfo('PEPE', 'pepe', 'Pepe'),
    ])
    assert len(index) == 2
    assert index.resolve(' usdc ').provider_id == 'usd-coin'
    assert index.resolve('nope') is None
    assert [t.symbol for t in index.search('pe')] == ['PEPE']


async def test_refresh_swaps_the_index(provider):
    market = MarketData(provider)
    assert market.resolve('BTC') is None
    old = market.index

    await market.refresh_token_index()

    assert market.index is not old
    assert market.resolve('btc').provider_id == 'bitcoin'
    assert old.resolve('btc') is None


async def test_get_price(market, provider):
    btc = market.resolve('BTC')
    assert await market.get_price(btc) == 45000
    provider.prices['bitcoin'] = 0
    with pytest.raises(PriceUnavailable):
        await market.get_price(btc)
