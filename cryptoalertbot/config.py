import os
from dotenv import load_dotenv

load_dotenv()

# ---- Config / Env ----
DISCORD_TOKEN     = os.getenv("DISCORD_TOKEN")
LOG_LEVEL         = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVELS        = os.getenv("LOG_LEVELS", "")  # per component, e.g. "chain=DEBUG,monitor=WARNING"
HTTP_TIMEOUT      = int(os.getenv("HTTP_TIMEOUT", "15"))

# ---- Market data ----
COINGECKO_API_URL          = os.getenv("COINGECKO_API_URL", "https://api.coingecko.com/api/v3").rstrip("/")
COINGECKO_API_KEY          = os.getenv("COINGECKO_API_KEY", "").strip()
COINGECKO_MARKETS_PER_PAGE = 250

# ---- Price monitor ----
PRICE_CHECK_INTERVAL   = int(os.getenv("PRICE_CHECK_INTERVAL", "60"))
PRICE_BATCH_SIZE       = int(os.getenv("PRICE_BATCH_SIZE", "50"))
PRICE_BATCH_DELAY      = float(os.getenv("PRICE_BATCH_DELAY", "1"))
RATE_LIMIT_RETRY_DELAY = float(os.getenv("RATE_LIMIT_RETRY_DELAY", "5"))
RATE_LIMIT_MAX_RETRIES = int(os.getenv("RATE_LIMIT_MAX_RETRIES", "3"))
EXACT_TOLERANCE        = float(os.getenv("EXACT_TOLERANCE", "0.001"))  # 0.1% band

# ---- Wallet scanner ----
ALCHEMY_API_KEY = os.getenv("ALCHEMY_API_KEY", "").strip()
RPC_URLS = {
    "ethereum": os.getenv("ETHEREUM_RPC") or (f"https://eth-mainnet.g.alchemy.com/v2/{ALCHEMY_API_KEY}" if ALCHEMY_API_KEY else ""),
    "bsc":      os.getenv("BSC_RPC", "https://bsc-dataseed.binance.org"),
    "polygon":  os.getenv("POLYGON_RPC") or (f"https://polygon-mainnet.g.alchemy.com/v2/{ALCHEMY_API_KEY}" if ALCHEMY_API_KEY else ""),
}
BLOCK_POLL_SECONDS        = float(os.getenv("BLOCK_POLL_SECONDS", "4"))
WALLET_NOTIFY_CONCURRENCY = int(os.getenv("WALLET_NOTIFY_CONCURRENCY", "10"))
BLOCK_MAX_CATCHUP         = int(os.getenv("BLOCK_MAX_CATCHUP", "25"))  # live head only, never a backfill

# ---- Files ----
ALERTS_STORE_FILE = os.getenv("ALERTS_STORE_FILE", "users.json")
