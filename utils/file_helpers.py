# -*- coding: utf-8 -*-
import os
import re
import logging

import config # Import config for SOUND_EXTENSION

log = logging.getLogger('GreetBot.Utils.FileHelpers')

def sanitize_filename(name: str, max_len: int = config.MAX_SOUND_NAME_LENGTH) -> str:
    """Removes/replaces invalid chars for filenames and limits length. Returns '' if nothing usable is left."""
    if not isinstance(name, str): return ""
    # Replace whitespace and filesystem-hostile characters with underscore
    name = re.sub(r'[<>:"/\\|?*\x00-\x1f\s]+', '_', name)
    # Drop shell metacharacters
    name = re.sub(r'[;&$()`\'"]', '', name)
    name = re.sub(r'_+', '_', name)
    # Leading dots would make hidden files
    name = name.strip('_.')
    return name[:max_len]

def has_sound_extension(filename: str, extension: str = config.SOUND_EXTENSION) -> bool:
    return bool(filename) and os.path.splitext(filename)[1].lower() == extension.lower()

def normalize_sound_name(name: str, extension: str = config.SOUND_EXTENSION) -> str:
    """Maps 'alpha' to the catalog name 'alpha.mp3'. A name that already has the extension is kept as given."""
    name = (name or "").strip()
    if not name:
        return ""
    if has_sound_extension(name, extension):
        return name
    return f"{name}{extension}"

def is_flat_name(name: str) -> bool:
    """True if name is a plain file name: no directories, no '.'/'..'."""
    if not name or name in ('.', '..'):
        return False
    if '/' in name or '\\' in name or '\x00' in name:
        return False
    return os.path.basename(name) == name

def display_name(sound_name: str) -> str:
    """Sound name without its extension, for user-facing lists."""
    return os.path.splitext(sound_name)[0]
