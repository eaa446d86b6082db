import asyncio
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

import aiohttp

from .config import (COINGECKO_API_URL, COINGECKO_API_KEY, COINGECKO_MARKETS_PER_PAGE, HTTP_TIMEOUT,
                     RATE_LIMIT_RETRY_DELAY, RATE_LIMIT_MAX_RETRIES)
from .errors import PriceUnavailable, RateLimited
from .logging_setup import get_logger
from .models import TokenInfo

T = TypeVar("T")

log = get_logger("market")


async def fetch_with_retry(call: Callable[[], Awaitable[T]], *,
                           retries: int = RATE_LIMIT_MAX_RETRIES,
                           delay: float = RATE_LIMIT_RETRY_DELAY) -> T:
    """Await `call()`, retrying only on RateLimited, at most `retries` extra times."""
    attempt = 0
    while True:
        try:
            return await call()
        except RateLimited as e:
            if attempt >= retries:
                log.warning(f"Rate limited; giving up after {attempt + 1} attempt(s)")
                raise
            attempt += 1
            wait = max(delay, e.retry_after or 0)
            log.info(f"Rate limited; retry {attempt}/{retries} in {wait:.1f}s")
            await asyncio.sleep(wait)


class TokenIndex:
    """Immutable symbol -> TokenInfo snapshot. Replace it, never mutate it."""

    def __init__(self, tokens: Iterable[TokenInfo] = ()):
        by_symbol: Dict[str, TokenInfo] = {}
        for t in tokens:
            # markets come sorted by market cap; the biggest coin keeps the ticker
            by_symbol.setdefault(t.symbol.upper(), t)
        self._by_symbol = MappingProxyType(by_symbol)

    def __len__(self): return len(self._by_symbol)

    def __iter__(self): return iter(self._by_symbol.values())

    def resolve(self, symbol: str) -> Optional[TokenInfo]:
        return self._by_symbol.get((symbol or "").strip().upper())

    def search(self, query: str) -> List[TokenInfo]:
        q = (query or "").strip().lower()
        if not q:
            return list(self._by_symbol.values())
        exact = self.resolve(q)
        if exact:
            return [exact]
        return [t for t in self._by_symbol.values() if q in t.symbol.lower() or q in t.name.lower()]


class CoinGecko:
    def __init__(self, base_url: str = COINGECKO_API_URL, api_key: str = COINGECKO_API_KEY,
                 timeout: int = HTTP_TIMEOUT):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout

    async def _get(self, path: str, params: dict):
        headers = {"accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as s:
                async with s.get(f"{self.base_url}{path}", params=params, headers=headers) as r:
                    if r.status == 429:
                        retry_after = r.headers.get("Retry-After")
                        raise RateLimited(retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None)
                    if r.status != 200:
                        raise PriceUnavailable(f"CoinGecko {path} returned HTTP {r.status}")
                    return await r.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PriceUnavailable(f"CoinGecko {path} request failed: {e!r}") from e

    async def list_supported_tokens(self) -> List[TokenInfo]:
        data = await fetch_with_retry(lambda: self._get("/coins/markets", {
            "vs_currency": "usd", "order": "market_cap_desc",
            "per_page": COINGECKO_MARKETS_PER_PAGE, "page": 1, "sparkline": "false",
        }))
        out = []
        for c in data or []:
            if c.get("id") and c.get("symbol"):
                out.append(TokenInfo(symbol=c["symbol"].upper(), provider_id=c["id"], name=c.get("name") or c["symbol"]))
        return out

    async def get_prices(self, provider_ids: List[str]) -> Dict[str, float]:
        if not provider_ids:
            return {}
        data = await self._get("/simple/price", {"ids": ",".join(provider_ids), "vs_currencies": "usd"})
        prices = {}
        for pid, quote in (data or {}).items():
            usd = (quote or {}).get("usd")
            if usd is not None:
                prices[pid] = float(usd)
        return prices


class MarketData:
    """Token index + price lookups with the bounded rate-limit retry."""

    def __init__(self, provider: CoinGecko, index: Optional[TokenIndex] = None, *,
                 retries: int = RATE_LIMIT_MAX_RETRIES, retry_delay: float = RATE_LIMIT_RETRY_DELAY):
        self.provider = provider
        self.index = index or TokenIndex()
        self.retries = retries
        self.retry_delay = retry_delay

    async def refresh_token_index(self) -> TokenIndex:
        tokens = await self.provider.list_supported_tokens()
        self.index = TokenIndex(tokens)  # atomic swap
        log.info(f"Loaded {len(self.index)} supported token(s)")
        return self.index

    def resolve(self, symbol: str) -> Optional[TokenInfo]:
        return self.index.resolve(symbol)

    async def get_prices(self, provider_ids: List[str]) -> Dict[str, float]:
        return await fetch_with_retry(lambda: self.provider.get_prices(provider_ids),
                                      retries=self.retries, delay=self.retry_delay)

    async def get_price(self, token: TokenInfo) -> float:
        prices = await self.get_prices([token.provider_id])
        price = prices.get(token.provider_id)
        if not price or price <= 0:
            raise PriceUnavailable(f"No price available for {token.symbol}")
        return price
