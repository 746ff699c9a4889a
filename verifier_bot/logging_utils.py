from __future__ import annotations

import logging
from typing import Final

import discord

log: Final = logging.getLogger("mod-gateway")


async def resolve_log_channel(
    bot: discord.Client,
    admin_log_channel_id: int | None,
    guild: discord.Guild | None = None,
) -> discord.TextChannel | None:
    """Return a TextChannel object or None if unavailable.

    Looks in the guild (or global) cache first, then tries REST fetch as fallback.
    """
    if not admin_log_channel_id:
        return None

    channel = None
    if guild is not None:
        channel = guild.get_channel(admin_log_channel_id)
    if channel is None:
        channel = bot.get_channel(admin_log_channel_id)
    if isinstance(channel, discord.TextChannel):
        return channel

    try:
        channel = await bot.fetch_channel(admin_log_channel_id)
    except discord.NotFound:
        log.warning("Channel %s not found", admin_log_channel_id)
        return None
    except discord.Forbidden:
        log.warning(
            "No access to channel %s – check bot permissions",
            admin_log_channel_id,
        )
        return None
    except discord.HTTPException as exc:
        log.warning(
            "Cannot fetch channel %s – HTTP error: %s",
            admin_log_channel_id,
            exc,
        )
        return None

    if not isinstance(channel, discord.TextChannel):
        log.warning("Channel ID %s is not a text channel", admin_log_channel_id)
        return None
    if guild is not None and channel.guild.id != guild.id:
        log.warning(
            "Channel %s belongs to different guild (%s) than expected (%s)",
            admin_log_channel_id,
            channel.guild.id,
            guild.id,
        )
        return None
    return channel


class OpsLog:
    """Operational log: every entry goes to the logger and the admin channel."""

    def __init__(self, bot: discord.Client, channel_id: int | None) -> None:
        self._bot = bot
        self._channel_id = channel_id
        self._channel: discord.TextChannel | None = None

    async def send(self, message: str, *, level: int = logging.INFO) -> None:
        log.log(level, message)
        if not self._channel_id:
            return
        if self._channel is None:
            self._channel = await resolve_log_channel(self._bot, self._channel_id)
            if self._channel is None:
                return
        try:
            await self._channel.send(message)
        except discord.Forbidden:
            log.warning("No send permission in log channel %s", self._channel_id)
        except discord.HTTPException as exc:
            log.warning("Failed to post to log channel %s: %s", self._channel_id, exc)

    async def error(self, message: str) -> None:
        await self.send(message, level=logging.ERROR)
