import asyncio
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from .alerts import PriceAlertMonitor
from .chain import configured_chains
from .config import RPC_URLS
from .constants import ALERT_KINDS, KIND_ALIASES
from .errors import AlertBotError, PersistenceError
from .logging_setup import log
from .market import CoinGecko, MarketData
from .messages import alert_created, describe_alert, help_text, token_line, wallet_tracked, welcome_text
from .helpers import fmt_price, parse_decimal
from .notifier import DiscordNotifier
from .storage import AlertStore
from .subscriptions import AlertSubscriptions, normalize_kind
from .wallets import WalletScanner

TOKENS_PER_PAGE = 25


class Bot(commands.Bot):
    def __init__(self, store: Optional[AlertStore] = None):
        intents = discord.Intents.default()
        intents.message_content = False
        super().__init__(command_prefix="!", intents=intents)  # slash commands only
        self.store = store or AlertStore()
        self.market = MarketData(CoinGecko())
        self.notifier = DiscordNotifier(self)
        self.subscriptions = AlertSubscriptions(self.store, self.market, self.notifier)
        self.monitor = PriceAlertMonitor(self.store, self.market, self.notifier)
        self.scanner = WalletScanner(self.store, self.notifier, configured_chains(RPC_URLS))
        self._tasks: List[asyncio.Task] = []

    async def _start_background(self):
        await self.wait_until_ready()
        self._tasks.append(asyncio.create_task(self.monitor.run_forever(), name="price-monitor"))
        self._tasks.append(asyncio.create_task(self.scanner.run_forever(), name="wallet-scanner"))

    async def setup_hook(self):
        await self.store.load()
        try:
            await self.market.refresh_token_index()
        except AlertBotError as e:
            log.error(f"Could not load supported tokens: {e.reason}")

        asyncio.create_task(self._start_background())
        self._register_commands()
        await self.tree.sync()

    async def close(self):
        self.monitor.stop(); self.scanner.stop()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await super().close()

    def _register_commands(self):
        subs = self.subscriptions

        async def fail(inter: discord.Interaction, e: AlertBotError):
            if isinstance(e, PersistenceError):
                log.error(f"Store error: {e.reason}")
                msg = "❌ Sorry, there was an error saving your alert. Please try again in a moment!"
            else:
                msg = f"❌ {e.reason}"
            await inter.followup.send(msg, ephemeral=True)

        @self.tree.command(name="subscribe", description="Set a price alert (percentage, exact, above, below)")
        @app_commands.describe(token="Token symbol, e.g. BTC", kind="percentage | exact | above | below",
                               value="Percent for percentage alerts, price otherwise", direction="up/down (percentage only)")
        async def subscribe(inter: discord.Interaction, token: str, kind: str, value: str, direction: Optional[str] = None):
            await inter.response.defer(thinking=True, ephemeral=True)
            num = parse_decimal(value)
            if num is None:
                await inter.followup.send("❌ Invalid number. Example: `/subscribe BTC above 45000`", ephemeral=True); return
            try:
                kind = normalize_kind(kind)
                if kind == "percentage":
                    conf = await subs.create_alert(inter.user.id, token, kind, threshold=float(num) / 100,
                                                   direction=direction, username=inter.user.name)
                else:
                    conf = await subs.create_alert(inter.user.id, token, kind, target_price=float(num),
                                                   username=inter.user.name)
            except AlertBotError as e:
                await fail(inter, e); return
            if conf.triggered_immediately:
                await inter.followup.send("⚡ Condition already met. I sent you the alert right away; nothing was saved.", ephemeral=True)
            else:
                await inter.followup.send(alert_created(conf.alert, conf.current_price), ephemeral=True)

        @subscribe.autocomplete("kind")
        async def kind_autocomplete(inter: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
            cur = (current or "").lower()
            names = list(ALERT_KINDS) + list(KIND_ALIASES)
            return [app_commands.Choice(name=n, value=n) for n in names if cur in n][:25]

        @self.tree.command(name="track_wallet", description="Get alerted about transfers of a wallet")
        @app_commands.describe(address="0x… wallet address", network="ethereum | bsc | polygon",
                               min_value="Minimum transfer in native units (ETH/BNB/MATIC)", name="Optional label")
        async def track_wallet(inter: discord.Interaction, address: str, network: str = "ethereum",
                               min_value: str = "1", name: Optional[str] = None):
            await inter.response.defer(thinking=True, ephemeral=True)
            try:
                w = await subs.create_wallet_alert(inter.user.id, address, network, min_value, name or "",
                                                   username=inter.user.name)
            except AlertBotError as e:
                await fail(inter, e); return
            await inter.followup.send(wallet_tracked(w), ephemeral=True)

        @self.tree.command(name="alerts", description="List your active alerts")
        async def alerts(inter: discord.Interaction):
            await inter.response.defer(thinking=True, ephemeral=True)
            price_alerts = await subs.list_alerts(inter.user.id)
            wallets = await subs.list_wallet_alerts(inter.user.id)
            if not price_alerts and not wallets:
                await inter.followup.send("📝 You have no active alerts.\n\n💡 Use /subscribe to set up a new alert!", ephemeral=True); return
            lines = [f"{describe_alert(a)}\n💰 Last: {fmt_price(a.last_price)}" for a in price_alerts]
            lines += [f"👛 {w.network}: `{w.address}`{f' ({w.name})' if w.name else ''} ≥ {w.min_value}" for w in wallets]
            await inter.followup.send("📊 Your Active Alerts:\n\n" + "\n\n".join(lines)
                                      + "\n\nℹ️ Price alerts are removed once triggered.", ephemeral=True)

        @self.tree.command(name="price", description="Current price of a token")
        async def price(inter: discord.Interaction, token: str):
            await inter.response.defer(thinking=True)
            try:
                current = await subs.current_price(token)
            except AlertBotError as e:
                await fail(inter, e); return
            info = self.market.resolve(token)
            await inter.followup.send(f"💰 {info.symbol} ({info.name}): {fmt_price(current)} USD")

        @self.tree.command(name="tokens", description="List or search supported tokens")
        async def tokens(inter: discord.Interaction, search: Optional[str] = None):
            await inter.response.defer(thinking=True, ephemeral=True)
            found = subs.search_tokens(search or "")
            if not found:
                await inter.followup.send("No tokens found. Try a full name or an exact symbol, e.g. `btc` or `bitcoin`.", ephemeral=True); return
            head = f"Found {len(found)} token(s)" + (f" matching \"{search}\"" if search else "") + ":\n\n"
            pages = ["\n".join(token_line(t) for t in found[i:i+TOKENS_PER_PAGE]) for i in range(0, len(found), TOKENS_PER_PAGE)]
            await inter.followup.send(head + pages[0], ephemeral=True)
            for page in pages[1:4]:
                await inter.followup.send(page, ephemeral=True)

        @self.tree.command(name="start", description="Welcome message")
        async def start(inter: discord.Interaction):
            await inter.response.send_message(welcome_text(), ephemeral=True)

        @self.tree.command(name="help", description="How to set alerts")
        async def help_(inter: discord.Interaction):
            await inter.response.send_message(help_text(), ephemeral=True)
