# -*- coding: utf-8 -*-
import discord
from discord.ext import commands
import json
import logging
from typing import List, Optional

import config
from core.command_service import CommandService, SOUND_KINDS
from core.session_types import Outcome
from utils import file_helpers

log = logging.getLogger('GreetBot.Cog.SoundCommands')

# Discord rejects messages above 2000 characters
MESSAGE_LIMIT = 1900


# --- Autocomplete ---
async def sound_autocomplete(ctx: discord.AutocompleteContext) -> List[discord.OptionChoice]:
    """Suggests catalog sounds, prefix matches first."""
    try:
        sounds = ctx.bot.catalog.list_sounds()
        current_value = ctx.value.lower() if ctx.value else ""

        starts_with = []
        contains = []
        for sound_name in sounds:
            name = file_helpers.display_name(sound_name)
            lower_name = name.lower()
            label = name if len(name) <= 100 else name[:97] + "..."
            if lower_name.startswith(current_value):
                starts_with.append(discord.OptionChoice(name=label, value=name))
            elif current_value in lower_name:
                contains.append(discord.OptionChoice(name=label, value=name))
        return (starts_with + contains)[:25] # Discord limit
    except Exception as e:
        log.error(f"Error during sound autocomplete for user {ctx.interaction.user.id}: {e}", exc_info=True)
        return []


def paginate_lines(lines: List[str], limit: int = MESSAGE_LIMIT) -> List[str]:
    """Packs lines into as few messages as fit under limit characters each."""
    pages = []
    current = ""
    for line in lines:
        if len(line) > limit:
            line = line[:limit - 3] + "..."
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            pages.append(current)
            current = line
        else:
            current = candidate
    if current:
        pages.append(current)
    return pages


async def send_outcome(ctx: discord.ApplicationContext, outcome: Outcome):
    message = outcome.message if outcome.ok or outcome.message.startswith(("❌", "⏳", "🚫")) else f"❌ {outcome.message}"
    await ctx.followup.send(message, ephemeral=True)


class SoundCommandsCog(commands.Cog):
    greet = discord.SlashCommandGroup(config.COMMAND_GROUP_NAME, "Join greeting sounds")

    def __init__(self, bot: discord.Bot):
        self.bot = bot
        self.service: CommandService = bot.command_service

    # --- Session Commands ---
    @greet.command(name="stop", description="Make the bot leave its voice channel in this server.")
    @commands.cooldown(1, 5, commands.BucketType.guild)
    async def stop(self, ctx: discord.ApplicationContext):
        await ctx.defer(ephemeral=True)
        if not ctx.guild:
            await ctx.followup.send("This command must be used in a server.", ephemeral=True); return
        log.info(f"COMMAND: /{config.COMMAND_GROUP_NAME} stop by {ctx.author.name} in GID:{ctx.guild.id}")
        outcome = await self.service.stop(ctx.guild.id)
        await ctx.followup.send(f"👋 {outcome.message}" if outcome.ok else f"🤷 {outcome.message}", ephemeral=True)

    @greet.command(name="random", description="Join your voice channel and play a random sound.")
    @commands.cooldown(1, 5, commands.BucketType.user)
    async def random(self, ctx: discord.ApplicationContext):
        await ctx.defer(ephemeral=True)
        if not ctx.guild:
            await ctx.followup.send("This command must be used in a server.", ephemeral=True); return
        log.info(f"COMMAND: /{config.COMMAND_GROUP_NAME} random by {ctx.author.name} in GID:{ctx.guild.id}")
        voice_state = getattr(ctx.author, 'voice', None)
        channel = voice_state.channel if voice_state else None
        outcome = await self.service.random_play(ctx.author.id, channel)
        await send_outcome(ctx, outcome)

    # --- Catalog Commands ---
    @greet.command(name="addsound", description=f"Upload a new {config.SOUND_EXTENSION} greeting sound.")
    @commands.cooldown(2, 20, commands.BucketType.user)
    async def addsound(
        self,
        ctx: discord.ApplicationContext,
        name: discord.Option(str, description="Short name (letters, numbers, underscore). Will be sanitized.", required=True),
        sound_file: discord.Option(discord.Attachment, description=f"Sound ({config.SOUND_EXTENSION}). Max {config.MAX_SOUND_SIZE_MB}MB.", required=True),
    ):
        await ctx.defer(ephemeral=True)
        log.info(f"COMMAND: /{config.COMMAND_GROUP_NAME} addsound by {ctx.author.name} ({ctx.author.id}), name: '{name}', file: '{sound_file.filename}'")

        # Cheap checks before downloading anything
        if not file_helpers.has_sound_extension(sound_file.filename, config.SOUND_EXTENSION):
            await ctx.followup.send(f"❌ Invalid file type. Only `{config.SOUND_EXTENSION}` files are supported.", ephemeral=True); return
        if sound_file.size > self.service.max_upload_bytes:
            await ctx.followup.send(f"❌ File too large (`{sound_file.size / (1024 * 1024):.2f}` MB). Max: {config.MAX_SOUND_SIZE_MB}MB.", ephemeral=True); return

        try:
            data = await sound_file.read()
        except (discord.HTTPException, discord.NotFound) as e:
            log.warning(f"ADD SOUND: Could not download attachment '{sound_file.filename}': {e}")
            await ctx.followup.send("❌ Could not download the attachment. Please try again.", ephemeral=True); return

        outcome = self.service.add_sound(name, data, sound_file.filename)
        await send_outcome(ctx, outcome)

    @greet.command(name="sounds", description="List all available greeting sounds.")
    @commands.cooldown(1, 10, commands.BucketType.user)
    async def sounds(self, ctx: discord.ApplicationContext):
        await ctx.defer(ephemeral=True)
        outcome = self.service.list_sounds()
        if not outcome.ok:
            await ctx.followup.send(f"🤷 {outcome.message} Use `/{config.COMMAND_GROUP_NAME} addsound` to add one.", ephemeral=True); return

        lines = [f"- `{file_helpers.display_name(s)}`" for s in outcome.data]
        pages = paginate_lines(lines)
        for page_num, page_text in enumerate(pages, start=1):
            embed = discord.Embed(
                title=f"🔊 Greeting Sounds ({len(outcome.data)})",
                description=page_text,
                color=discord.Color.blurple()
            )
            if len(pages) > 1:
                embed.set_footer(text=f"Page {page_num}/{len(pages)}")
            await ctx.followup.send(embed=embed, ephemeral=True)

    # --- Preference Commands ---
    @greet.command(name="setsound", description="Set the greeting sound for a channel or a user.")
    @commands.cooldown(1, 5, commands.BucketType.user)
    async def setsound(
        self,
        ctx: discord.ApplicationContext,
        kind: discord.Option(str, description="What the sound is for.", choices=list(SOUND_KINDS), required=True),
        sound: discord.Option(str, description="Sound name.", required=True, autocomplete=sound_autocomplete),
        user: discord.Option(discord.Member, description="Target user (default: you).", required=False, default=None),
        channel: discord.Option(discord.VoiceChannel, description="Target voice channel (default: your current one).", required=False, default=None),
    ):
        await ctx.defer(ephemeral=True)
        log.info(f"COMMAND: /{config.COMMAND_GROUP_NAME} setsound by {ctx.author.name}, kind: {kind}, sound: '{sound}'")
        target_id = self._resolve_target(ctx, kind, user, channel)
        if target_id is None:
            await ctx.followup.send("❌ Pick a channel, or join a voice channel first.", ephemeral=True); return
        outcome = self.service.set_sound(kind, target_id, sound)
        await send_outcome(ctx, outcome)

    @greet.command(name="setdefault", description="Set the fallback greeting sound (leave empty to clear).")
    @commands.cooldown(1, 5, commands.BucketType.user)
    async def setdefault(
        self,
        ctx: discord.ApplicationContext,
        sound: discord.Option(str, description="Sound name.", required=False, default=None, autocomplete=sound_autocomplete),
    ):
        await ctx.defer(ephemeral=True)
        log.info(f"COMMAND: /{config.COMMAND_GROUP_NAME} setdefault by {ctx.author.name}, sound: '{sound}'")
        outcome = self.service.set_default_sound(sound)
        await send_outcome(ctx, outcome)

    @greet.command(name="debug", description="Show the current sound preferences and voice sessions.")
    @commands.cooldown(1, 10, commands.BucketType.user)
    async def debug(self, ctx: discord.ApplicationContext):
        await ctx.defer(ephemeral=True)
        outcome = self.service.debug_dump()
        dump = json.dumps(outcome.data, indent=2, sort_keys=True)
        for page in paginate_lines(dump.splitlines(), limit=MESSAGE_LIMIT - 12):
            await ctx.followup.send(f"```json\n{page}\n```", ephemeral=True)

    @staticmethod
    def _resolve_target(ctx: discord.ApplicationContext, kind: str, user: Optional[discord.Member],
                        channel: Optional[discord.VoiceChannel]) -> Optional[int]:
        if kind == "user":
            return (user or ctx.author).id
        if channel is not None:
            return channel.id
        voice_state = getattr(ctx.author, 'voice', None)
        if voice_state and voice_state.channel:
            return voice_state.channel.id
        return None


def setup(bot: discord.Bot):
    if not hasattr(bot, 'command_service'):
        log.critical("Cannot load SoundCommandsCog: bot.command_service is not set.")
        return
    bot.add_cog(SoundCommandsCog(bot))
    log.info("SoundCommands Cog loaded.")
