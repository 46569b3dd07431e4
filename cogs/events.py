# cogs/events.py

import discord
from discord.ext import commands
import logging

# Local application imports
import config
from core.session_manager import SessionManager

log = logging.getLogger('GreetBot.Cog.Events')


class EventsCog(commands.Cog):
    def __init__(self, bot: discord.Bot):
        self.bot = bot
        if not isinstance(getattr(bot, 'session_manager', None), SessionManager):
            log.critical("EventsCog FATAL: bot.session_manager not found or is not a SessionManager instance!")
            raise RuntimeError("SessionManager not initialized on Bot before loading EventsCog")
        self.session_manager: SessionManager = bot.session_manager

    @commands.Cog.listener()
    async def on_ready(self):
        """Called once the bot is ready and operational."""
        log.info(f'Logged in as {self.bot.user.name} ({self.bot.user.id})')
        log.info(f"Using py-cord version {discord.__version__}")
        log.info(f"Connect Timeout: {self.session_manager.connect_timeout}s, Reconnect Timeout: {self.session_manager.reconnect_timeout}s, Settle Delay: {self.session_manager.settle_delay}s")
        log.info(f"Catalog: {len(self.bot.catalog.list_sounds())} sound(s) in '{config.SOUNDS_DIR}'")
        log.info(f"Bot is ready and in {len(self.bot.guilds)} servers")

    @commands.Cog.listener()
    async def on_voice_state_update(self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState):
        """Greets members entering voice, leaves empty channels, and reacts to our own drops."""
        guild = member.guild
        if not guild: return # Ignore DM voice states

        try:
            # --- Bot's Own Voice State Changes ---
            if self.bot.user and member.id == self.bot.user.id:
                if before.channel and not after.channel:
                    log.info(f"EVENT: Bot dropped from {before.channel.name} in {guild.name}.")
                    await self.session_manager.handle_disconnect(guild.id)
                elif before.channel and after.channel and before.channel != after.channel:
                    log.info(f"EVENT: Bot moved from {before.channel.name} to {after.channel.name} in {guild.name}.")
                    await self.session_manager.handle_bot_moved(after.channel)
                return

            if member.bot:
                return

            # --- User Joins a Channel (from no channel) ---
            if before.channel is None and after.channel is not None:
                log.info(f"EVENT: User {member.display_name} ({member.id}) joined voice channel {after.channel.name} in {guild.name}")
                outcome = await self.session_manager.handle_member_join(after.channel, member.id)
                if not outcome.ok:
                    log.info(f"GID:{guild.id} - No greeting for {member.display_name}: {outcome.message}")

            # --- User Leaves/Moves Out ---
            elif before.channel is not None and before.channel != after.channel:
                await self.session_manager.handle_member_leave(before.channel)

        except Exception as e:
            log.error(f"Error in voice state update handler (GID:{guild.id}): {e}", exc_info=True)

    @commands.Cog.listener()
    async def on_application_command_error(self, ctx: discord.ApplicationContext, error: discord.DiscordException):
        """Global handler for slash command errors."""
        command_name = ctx.command.qualified_name if ctx.command else "N/A"
        user_name = f"{ctx.author.name}({ctx.author.id})" if ctx.author else "Unknown User"
        log_prefix = f"CMD ERROR (/{command_name}, User: {user_name}):"

        if isinstance(error, commands.CommandOnCooldown):
            message = f"⏳ Command on cooldown. Please wait {error.retry_after:.1f} seconds."
            log.debug(f"{log_prefix} {message}")
        elif isinstance(error, commands.MissingPermissions):
            perms = ', '.join(f"`{p}`" for p in error.missing_permissions)
            message = f"🚫 You lack the required permissions: {perms}"
            log.warning(f"{log_prefix} {message}")
        elif isinstance(error, commands.CheckFailure):
            message = "🚫 You do not meet the requirements to use this command."
            log.warning(f"{log_prefix} CheckFailure encountered: {error}")
        elif isinstance(error, discord.ApplicationCommandInvokeError):
            log.error(f"{log_prefix} An error occurred within the command code.", exc_info=error.original)
            message = "❌ An internal error occurred while executing the command. Please report this if it persists."
        else:
            log.error(f"{log_prefix} Unexpected application command error: {error}", exc_info=error)
            message = f"❌ An unexpected error occurred ({type(error).__name__})."

        try:
            if ctx.interaction.response.is_done():
                await ctx.followup.send(message, ephemeral=True)
            else:
                await ctx.respond(message, ephemeral=True)
        except discord.NotFound:
            log.warning(f"{log_prefix} Interaction not found while attempting to send error response.")
        except discord.HTTPException as e:
            log.warning(f"{log_prefix} Failed to send error response (HTTPException {e.status}).")


def setup(bot: discord.Bot):
    if not hasattr(bot, 'session_manager'):
        log.critical("Cannot load EventsCog: bot.session_manager is not set.")
        return
    bot.add_cog(EventsCog(bot))
    log.info("Events Cog loaded.")
