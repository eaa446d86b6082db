NETWORKS = ("ethereum", "bsc", "polygon")

NATIVE_SYMBOL = {
    "ethereum": "ETH",
    "bsc":      "BNB",
    "polygon":  "MATIC",
}

# all three chains denominate the base currency in 18-decimal wei
NATIVE_DECIMALS = {
    "ethereum": 18,
    "bsc":      18,
    "polygon":  18,
}

EXPLORER_URLS = {
    "ethereum": "https://etherscan.io",
    "bsc":      "https://bscscan.com",
    "polygon":  "https://polygonscan.com",
}

ALERT_KINDS = ("percentage", "exact", "above", "below")
DIRECTIONS  = ("up", "down")

# /subscribe aliases
KIND_ALIASES = {
    "at": "exact",
    "greaterthan": "above",
    "lessthan": "below",
    "percent": "percentage",
    "pct": "percentage",
}
