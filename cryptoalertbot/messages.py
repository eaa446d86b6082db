from decimal import Decimal

from .constants import EXPLORER_URLS, KIND_ALIASES, NATIVE_SYMBOL, NETWORKS
from .helpers import fmt_native, fmt_price
from .models import Alert, TokenInfo, WalletAlert

FOOTER = "Want to set another alert? Use /subscribe"


def describe_alert(alert: Alert) -> str:
    if alert.kind == "percentage":
        return f"{alert.token}: {alert.threshold * 100:.2f}% {alert.direction}"
    if alert.kind == "exact":
        return f"{alert.token}: at {fmt_price(alert.target_price)}"
    return f"{alert.token}: {alert.kind} {fmt_price(alert.target_price)}"

def trigger_line(alert: Alert, current: float) -> str:
    if alert.kind == "percentage":
        change = (current - alert.last_price) / alert.last_price
        return f"{alert.token} has moved {abs(change) * 100:.2f}% {'up' if change > 0 else 'down'}!"
    if alert.kind == "exact":
        return f"{alert.token} has reached {fmt_price(current)}!"
    return f"{alert.token} has gone {alert.kind} {fmt_price(alert.target_price)}!"

def price_alert(alert: Alert, current: float) -> str:
    return (
        "🚨 Price Alert!\n\n"
        f"{trigger_line(alert, current)}\n"
        f"💰 Current price: {fmt_price(current)}\n"
        f"📊 Previous price: {fmt_price(alert.last_price)}\n\n"
        f"{FOOTER}"
    )

def immediate_alert(token: str, kind: str, target: float, current: float) -> str:
    where = "at" if kind == "exact" else kind
    return (
        "🚨 Immediate Price Alert!\n\n"
        f"{token} is already {where} your target price!\n"
        f"💰 Current price: {fmt_price(current)}\n"
        f"🎯 Target price: {fmt_price(target)}\n\n"
        f"{FOOTER}"
    )

def alert_created(alert: Alert, current: float) -> str:
    if alert.kind == "percentage":
        when = f"when price goes {alert.direction} by {alert.threshold * 100:g}%"
    elif alert.kind == "exact":
        when = f"when price reaches {fmt_price(alert.target_price)}"
    else:
        when = f"when price goes {alert.kind} {fmt_price(alert.target_price)}"
    return (
        "✅ Alert set successfully!\n\n"
        f"🪙 Token: {alert.token}\n"
        f"💰 Current price: {fmt_price(current)}\n"
        f"🎯 Alert will trigger {when}"
    )

def wallet_tx_alert(network: str, direction: str, value: Decimal, address: str, name: str,
                    block_number: int, tx_hash: str) -> str:
    url = f"{EXPLORER_URLS[network]}/tx/{tx_hash}"
    label = f"{name} ({address})" if name else address
    return (
        "🚨 Transaction Alert!\n\n"
        f"💰 Value: {fmt_native(value)} {NATIVE_SYMBOL[network]}\n"
        f"💸 Direction: {direction}\n"
        f"🏷️ Address: {label}\n"
        f"🕒 Block: {block_number}\n"
        f"🔗 Transaction: [{url}]({url})"
    )

def wallet_tracked(w: WalletAlert) -> str:
    return (
        f"👀 Tracking `{w.address}` on {w.network}"
        + (f" ({w.name})" if w.name else "")
        + f"\nYou'll be alerted for transfers ≥ {fmt_native(w.min_value)} {NATIVE_SYMBOL[w.network]}."
    )

def token_line(t: TokenInfo) -> str:
    return f"{t.symbol} - {t.name}"

def welcome_text() -> str:
    return (
        "👋 Welcome to the Crypto Alert Bot!\n\n"
        "I DM you when a token's price moves or when a wallet you track moves funds.\n\n"
        "📌 Commands:\n"
        "• /subscribe - Set a price alert\n"
        "• /track_wallet - Watch a wallet's transfers\n"
        "• /alerts - View your active alerts\n"
        "• /price - Check a token's current price\n"
        "• /tokens - List or search supported tokens\n"
        "• /help - Show the usage guide\n\n"
        "💡 Tip: Use /tokens to see the list of supported tokens!"
    )

def help_text() -> str:
    aliases = ", ".join(f"`{a}` = {k}" for a, k in KIND_ALIASES.items())
    networks = " | ".join(NETWORKS)
    return (
        "📚 Crypto Alert Bot Help\n\n"
        "1️⃣ Percentage change: fires when the price moves up/down by the given percent\n"
        "📊 /subscribe token:BTC kind:percentage value:5 direction:up\n\n"
        "2️⃣ Exact price: fires when the price reaches the value (±0.1%)\n"
        "📊 /subscribe token:BTC kind:exact value:45000\n\n"
        "3️⃣ Price level: fires when the price crosses above/below the value\n"
        "📊 /subscribe token:BTC kind:above value:45000\n\n"
        f"Short names: {aliases}\n\n"
        f"👛 Wallets ({networks}): /track_wallet address:0x… network:ethereum min_value:10\n\n"
        "💡 Tips:\n"
        "• Use exact token symbols (BTC, ETH, etc.)\n"
        "• Price alerts trigger only once\n"
        "• You can have multiple alerts per token"
    )
