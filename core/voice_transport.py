# core/voice_transport.py

import asyncio
import logging
from typing import Optional

import discord

import config
from core.errors import VoiceConnectError

log = logging.getLogger('GreetBot.VoiceTransport')


class DiscordVoiceTransport:
    """
    Adapts py-cord voice clients to what the session manager needs:
    connect, release, and the two reconnect signals it races after a drop.
    """

    def __init__(self, bot: discord.Bot, poll_interval: float = config.RECONNECT_POLL_INTERVAL_SECONDS):
        self.bot = bot
        self.poll_interval = poll_interval

    def can_join(self, channel: discord.VoiceChannel) -> bool:
        guild = channel.guild
        if guild is None or guild.me is None:
            return False
        perms = channel.permissions_for(guild.me)
        return bool(perms.connect and perms.speak)

    async def connect(self, channel: discord.VoiceChannel) -> discord.VoiceClient:
        """Opens a voice connection. Callers bound the wait; cancellation leaves cleanup to release()."""
        log.debug(f"Attempting to join channel: {channel.name} ({channel.id})")
        try:
            # reconnect=True lets py-cord resume the websocket after involuntary drops
            return await channel.connect(reconnect=True)
        except discord.ClientException as e:
            raise VoiceConnectError(f"Voice client error: {e}") from e
        except discord.DiscordException as e:
            raise VoiceConnectError(f"Discord error while connecting: {e}") from e
        except OSError as e:
            raise VoiceConnectError(f"Network error while connecting: {e}") from e

    async def release(self, group_id: int, handle: Optional[discord.VoiceClient] = None):
        """Force-disconnects handle, or whatever voice client the guild still holds."""
        if handle is None:
            guild = self.bot.get_guild(group_id)
            handle = guild.voice_client if guild else None
        if handle is None:
            return
        try:
            await handle.disconnect(force=True)
            log.debug(f"GID:{group_id} - Voice connection released.")
        except Exception as e:
            log.warning(f"GID:{group_id} - Error releasing voice connection: {e}")

    async def wait_for_signalling(self, handle: discord.VoiceClient):
        """Returns once the gateway reports the bot back in a voice channel."""
        while True:
            guild = handle.guild
            me = guild.me if guild else None
            if me is not None and me.voice is not None and me.voice.channel is not None:
                return
            await asyncio.sleep(self.poll_interval)

    async def wait_for_connecting(self, handle: discord.VoiceClient):
        """Returns once the voice websocket is connected again."""
        while not handle.is_connected():
            await asyncio.sleep(self.poll_interval)
