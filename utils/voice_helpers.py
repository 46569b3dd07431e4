# -*- coding: utf-8 -*-
import os
import sys
import struct
import logging
import ctypes.util
from typing import Any, Optional

import discord

log = logging.getLogger('GreetBot.VoiceHelpers')

def count_human_members(channel: Optional[Any]) -> int:
    """Number of non-bot members currently in channel."""
    if channel is None:
        return 0
    human_members = [m for m in getattr(channel, 'members', []) if not m.bot]
    log.debug(f"ALONE CHECK (Chan: {getattr(channel, 'name', '?')}): {len(human_members)} human(s).")
    return len(human_members)

def load_opus() -> bool:
    """Loads the Opus codec for voice. Returns True if it is loaded afterwards."""
    if discord.opus.is_loaded():
        log.info("Opus library already loaded.")
        return True

    log.info("Opus library not initially loaded. Attempting default load...")
    try:
        # Bundled libopus DLL first (Windows)
        if sys.platform == 'win32':
            basedir = os.path.dirname(os.path.abspath(discord.opus.__file__))
            _bitness = struct.calcsize('P') * 8
            _target = 'x64' if _bitness > 32 else 'x86'
            _filename = os.path.join(basedir, 'bin', f'libopus-0.{_target}.dll')
            if os.path.exists(_filename):
                discord.opus.load_opus(_filename)
                if discord.opus.is_loaded(): log.info(f"Successfully loaded bundled Opus DLL: {_filename}")
            else: log.warning(f"Bundled Opus DLL not found: {_filename}")

        # Linux/macOS/other
        if not discord.opus.is_loaded():
            found_path = ctypes.util.find_library('opus')
            if found_path:
                discord.opus.load_opus(found_path)
                if discord.opus.is_loaded(): log.info(f"Successfully loaded Opus via find_library: {found_path}")
            else: log.warning("Could not find Opus library using ctypes.util.find_library('opus').")

        # Final fallback: generic name
        if not discord.opus.is_loaded():
            try:
                discord.opus.load_opus('opus')
            except OSError as e:
                log.debug(f"Generic Opus load failed: {e}")
    except Exception as e:
        log.error(f"Error occurred during Opus load attempt: {e}", exc_info=True)

    if discord.opus.is_loaded():
        log.info("Opus library loading confirmed.")
        return True
    log.error("❌ FAILED to confirm Opus library loading. Voice will not work.")
    return False
