# -*- coding: utf-8 -*-
import os
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

import config # Import the config module
from utils.storage import Storage, LocalStorage

log = logging.getLogger('GreetBot.DataManager')


@dataclass
class PreferenceMapping:
    channel_sounds: Dict[str, str] = field(default_factory=dict)
    user_sounds: Dict[str, str] = field(default_factory=dict)
    default_sound: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelSounds": dict(self.channel_sounds),
            "userSounds": dict(self.user_sounds),
            "defaultSound": self.default_sound,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreferenceMapping":
        """Builds a mapping from the persisted record. Raises ValueError on a bad shape."""
        if not isinstance(data, dict):
            raise ValueError(f"Preference record must be an object, got {type(data).__name__}")
        channel_sounds = data.get("channelSounds", {}) or {}
        user_sounds = data.get("userSounds", {}) or {}
        default_sound = data.get("defaultSound")
        if not isinstance(channel_sounds, dict) or not isinstance(user_sounds, dict):
            raise ValueError("channelSounds and userSounds must be objects")
        if default_sound is not None and not isinstance(default_sound, str):
            raise ValueError("defaultSound must be a string or null")
        # JSON keys are strings anyway; ids arrive as ints from the platform
        return cls(
            channel_sounds={str(k): str(v) for k, v in channel_sounds.items()},
            user_sounds={str(k): str(v) for k, v in user_sounds.items()},
            default_sound=default_sound,
        )

    def copy(self) -> "PreferenceMapping":
        return PreferenceMapping(dict(self.channel_sounds), dict(self.user_sounds), self.default_sound)


class PreferenceStore:
    """Loads and saves the channel/user/default sound mapping as one JSON file."""

    def __init__(self, storage: Optional[Storage] = None, file_name: Optional[str] = None):
        if storage is None:
            pref_path = os.path.abspath(config.PREFERENCES_FILE)
            storage = LocalStorage(os.path.dirname(pref_path))
            file_name = file_name or os.path.basename(pref_path)
        self.storage = storage
        self.file_name = file_name or os.path.basename(config.PREFERENCES_FILE)
        self.mapping = PreferenceMapping()

    def load(self) -> PreferenceMapping:
        """Loads the mapping. Never raises: missing/unreadable/malformed files yield an empty mapping."""
        if not self.storage.exists(self.file_name):
            log.info(f"{self.file_name} not found. Starting with empty sound preferences.")
            self.mapping = PreferenceMapping()
            return self.mapping
        try:
            raw = self.storage.read_text(self.file_name)
            self.mapping = PreferenceMapping.from_dict(json.loads(raw))
            log.info(f"Loaded preferences from {self.file_name}: {len(self.mapping.user_sounds)} user, "
                     f"{len(self.mapping.channel_sounds)} channel, default={self.mapping.default_sound!r}")
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
            log.error(f"Malformed {self.file_name}: {e}. Starting with empty preferences.")
            self.mapping = PreferenceMapping()
        except OSError as e:
            log.error(f"Could not read {self.file_name}: {e}. Starting with empty preferences.", exc_info=True)
            self.mapping = PreferenceMapping()
        return self.mapping

    def save(self, mapping: Optional[PreferenceMapping] = None) -> bool:
        """Rewrites the whole file. Returns False on I/O failure; in-memory state is left untouched."""
        mapping = mapping if mapping is not None else self.mapping
        try:
            payload = json.dumps(mapping.to_dict(), indent=4, ensure_ascii=False, sort_keys=True)
            self.storage.write_text(self.file_name, payload)
        except (OSError, TypeError, ValueError) as e:
            log.error(f"Error saving {self.file_name}: {e}", exc_info=True)
            return False
        self.mapping = mapping
        log.debug(f"Saved preferences to {self.file_name}")
        return True

    # --- Mutations (caller must follow with save) ---
    def set_channel_sound(self, channel_id: int, sound_name: str):
        self.mapping.channel_sounds[str(channel_id)] = sound_name

    def set_user_sound(self, user_id: int, sound_name: str):
        self.mapping.user_sounds[str(user_id)] = sound_name

    def set_default_sound(self, sound_name: Optional[str]):
        self.mapping.default_sound = sound_name

    # --- Lookups ---
    def user_sound(self, user_id: int) -> Optional[str]:
        return self.mapping.user_sounds.get(str(user_id))

    def channel_sound(self, channel_id: int) -> Optional[str]:
        return self.mapping.channel_sounds.get(str(channel_id))

    @property
    def default_sound(self) -> Optional[str]:
        return self.mapping.default_sound
