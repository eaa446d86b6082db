from typing import Protocol

import discord

from .errors import NotificationError


class Notifier(Protocol):
    async def send(self, user_id: int, text: str, link_preview: bool = True) -> None: ...


class DiscordNotifier:
    """Delivers alerts as direct messages from the bot account."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def _user(self, user_id: int) -> discord.abc.User:
        user = self.client.get_user(user_id)
        if user is None:
            user = await self.client.fetch_user(user_id)
        return user

    async def send(self, user_id: int, text: str, link_preview: bool = True) -> None:
        try:
            user = await self._user(user_id)
            await user.send(text, suppress_embeds=not link_preview)
        except discord.DiscordException as e:
            raise NotificationError(f"Could not DM user {user_id}: {e}", user_id) from e
