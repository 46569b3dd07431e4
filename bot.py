# -*- coding: utf-8 -*-
import discord
import os
import sys
import logging
import asyncio
import platform

# --- Import Core Components ---
import config # Bot config, paths, constants
from data_manager import PreferenceStore
from core.command_service import CommandService
from core.playback_manager import PlaybackManager
from core.session_manager import SessionManager, SessionRegistry
from core.sound_catalog import SoundCatalog
from core.sound_resolver import SoundResolver
from core.voice_transport import DiscordVoiceTransport
from utils import voice_helpers
from utils.storage import LocalStorage

# --- Logging Setup ---
log_formatter = logging.Formatter('%(asctime)s:%(levelname)s:%(name)s: %(message)s')
console_handler = logging.StreamHandler()
console_handler.setFormatter(log_formatter)
root_logger = logging.getLogger()
root_logger.setLevel(config.LOG_LEVEL)
root_logger.addHandler(console_handler)
logging.getLogger('discord').setLevel(logging.WARNING) # Reduce discord lib noise
logging.getLogger('GreetBot').setLevel(config.LOG_LEVEL)
log = logging.getLogger('GreetBot.Main')

# --- Initial Dependency Checks ---
try: import nacl; NACL_OK = True
except ImportError: log.critical("CRITICAL: PyNaCl library not found. Voice WILL NOT WORK. Install: pip install PyNaCl"); NACL_OK = False

COG_FILES = ['events', 'sound_commands']


class GreetBot(discord.Bot):
    """discord.Bot that releases every voice session before closing."""

    session_manager: SessionManager

    async def close(self):
        manager = getattr(self, 'session_manager', None)
        if manager is not None:
            log.info("Shutting down: releasing voice sessions...")
            try:
                await manager.shutdown()
            except Exception as e:
                log.error(f"Error releasing voice sessions during shutdown: {e}", exc_info=True)
        await super().close()


def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict):
    """Logs anything that escaped a task instead of letting it vanish."""
    error = context.get("exception")
    message = context.get("message", "Unhandled exception in event loop")
    if error is not None:
        log.error(f"Unhandled exception: {message}", exc_info=error)
    else:
        log.error(f"Unhandled event loop error: {message}")


def create_bot() -> GreetBot:
    # --- Bot Intents ---
    intents = discord.Intents.default()
    intents.voice_states = True # Needed for join/leave events and VC state
    intents.guilds = True       # Needed for guild information and commands
    intents.message_content = False # Not needed for slash commands
    intents.members = True      # NEEDED to accurately check channel members

    bot = GreetBot(intents=intents)

    # --- Build Components ---
    sound_storage = LocalStorage(config.SOUNDS_DIR)
    sound_storage.ensure_root()
    preferences = PreferenceStore()
    log.info("Loading sound preferences...")
    preferences.load()

    catalog = SoundCatalog(storage=sound_storage)
    registry = SessionRegistry()
    session_manager = SessionManager(
        registry=registry,
        transport=DiscordVoiceTransport(bot),
        playback=PlaybackManager(),
        resolver=SoundResolver(preferences, catalog),
        catalog=catalog,
    )

    # --- Attach to Bot Instance ---
    # This makes them accessible within Cogs via self.bot.*
    bot.config = config
    bot.preferences = preferences
    bot.catalog = catalog
    bot.session_manager = session_manager
    bot.command_service = CommandService(session_manager, preferences, catalog)
    log.info("Session manager and command service initialized.")

    @bot.listen("on_ready", once=True)
    async def install_loop_guard():
        asyncio.get_running_loop().set_exception_handler(handle_loop_exception)

    @bot.event
    async def on_error(event_method: str, *args, **kwargs):
        log.error(f"Unhandled exception in event '{event_method}'", exc_info=True)

    # --- Load Cogs ---
    log.info("Loading Cogs...")
    loaded_cogs = 0
    for cog_name in COG_FILES:
        cog_path = f"cogs.{cog_name}"
        try:
            bot.load_extension(cog_path)
            log.info(f"Successfully loaded Cog: {cog_path}")
            loaded_cogs += 1
        except discord.errors.ExtensionNotFound:
            log.error(f"Cog not found: {cog_path}. Skipping.")
        except discord.errors.ExtensionAlreadyLoaded:
            log.warning(f"Cog already loaded: {cog_path}. Skipping.")
        except Exception as e:
            log.error(f"Failed to load Cog {cog_path}: {e}", exc_info=True)
    log.info(f"Finished loading Cogs ({loaded_cogs}/{len(COG_FILES)} successful).")
    return bot


def main():
    if not config.BOT_TOKEN or not NACL_OK:
        log.critical("CRITICAL ERROR: Bot token missing or core libraries failed to import. Exiting.")
        sys.exit(1)

    voice_helpers.load_opus()
    bot = create_bot()

    log.info(f"Starting Bot (Python {platform.python_version()}, py-cord {discord.__version__}, cwd {os.getcwd()})")
    try:
        bot.run(config.BOT_TOKEN)
    except discord.errors.LoginFailure:
        log.critical("CRITICAL STARTUP ERROR: Login Failure - Invalid BOT_TOKEN.")
    except discord.errors.PrivilegedIntentsRequired as e:
        log.critical(f"CRITICAL STARTUP ERROR: Missing Privileged Intents: {e}. Enable in Dev Portal.")
    except Exception as e:
        log.critical(f"FATAL RUNTIME ERROR: {e}", exc_info=True)
    finally:
        log.info("Bot process has ended.")


# --- Run the Bot ---
if __name__ == "__main__":
    main()
