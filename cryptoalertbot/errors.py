from typing import Optional


class AlertBotError(Exception):
    """Base error; `reason` is safe to show to the user."""

    def __init__(self, reason: str, *args):
        super().__init__(reason, *args)
        self.reason = reason


class TokenNotFound(AlertBotError):
    def __init__(self, token: str):
        super().__init__(f"Token `{token}` is not supported. Use /tokens to see the list of supported tokens.")
        self.token = token


class PriceUnavailable(AlertBotError):
    pass


class RateLimited(PriceUnavailable):
    def __init__(self, reason: str = "Market data provider rate limit hit", retry_after: Optional[float] = None):
        super().__init__(reason)
        self.retry_after = retry_after


class PersistenceError(AlertBotError):
    pass


class NotificationError(AlertBotError):
    def __init__(self, reason: str, user_id: Optional[int] = None):
        super().__init__(reason)
        self.user_id = user_id


class BlockFetchError(AlertBotError):
    def __init__(self, reason: str, network: str = "", block_number: Optional[int] = None):
        super().__init__(reason)
        self.network = network
        self.block_number = block_number


# ---- Validation (raised before anything is persisted) ----
class ValidationError(AlertBotError):
    pass


class InvalidAlert(ValidationError):
    pass


class InvalidAddress(ValidationError):
    pass


class InvalidNetwork(ValidationError):
    pass


class InvalidAmount(ValidationError):
    pass
