# core/command_service.py

import logging
from typing import Any, Optional

import config
from core.errors import AlreadyExists, InvalidFormat
from core.session_manager import SessionManager
from core.session_types import Outcome
from core.sound_catalog import SoundCatalog
from data_manager import PreferenceMapping, PreferenceStore
from utils import file_helpers

log = logging.getLogger('GreetBot.CommandService')

SOUND_KINDS = ("channel", "user")


class CommandService:
    """The operations behind the slash commands. Every method returns an Outcome."""

    def __init__(self, sessions: SessionManager, preferences: PreferenceStore, catalog: SoundCatalog,
                 max_upload_bytes: int = config.MAX_SOUND_SIZE_MB * 1024 * 1024):
        self.sessions = sessions
        self.preferences = preferences
        self.catalog = catalog
        self.max_upload_bytes = max_upload_bytes

    async def stop(self, group_id: int) -> Outcome:
        outcome = await self.sessions.stop(group_id)
        if outcome.ok:
            log.info(f"GID:{group_id} - Bot left voice channel by command")
        return outcome

    def add_sound(self, name: str, attachment_bytes: bytes, attachment_declared_name: str) -> Outcome:
        if not file_helpers.has_sound_extension(attachment_declared_name, self.catalog.extension):
            return Outcome.failure(f"❌ Invalid file type. Only `{self.catalog.extension}` files are supported.")
        if len(attachment_bytes) > self.max_upload_bytes:
            size_mb = len(attachment_bytes) / (1024 * 1024)
            return Outcome.failure(f"❌ File too large (`{size_mb:.2f}` MB). Max: {self.max_upload_bytes // (1024 * 1024)}MB.")

        stem = file_helpers.display_name(name) if file_helpers.has_sound_extension(name, self.catalog.extension) else name
        clean_name = file_helpers.sanitize_filename(stem)
        if not clean_name:
            return Outcome.failure("❌ Invalid name provided. Please use letters, numbers, or underscores.")
        if self.catalog.exists(clean_name):
            return Outcome.failure(f"❌ A sound named `{clean_name}` already exists.")

        try:
            sound_name = self.catalog.add_sound(clean_name, attachment_bytes)
        except AlreadyExists:
            return Outcome.failure(f"❌ A sound named `{clean_name}` already exists.")
        except InvalidFormat as e:
            log.info(f"ADD SOUND: Rejected '{attachment_declared_name}': {e}")
            return Outcome.failure(f"❌ **Audio Validation Failed!** `{attachment_declared_name}` is not a valid {self.catalog.extension} file.")
        except OSError as e:
            log.error(f"ADD SOUND: Could not save '{clean_name}': {e}", exc_info=True)
            return Outcome.failure("❌ Error saving the sound file.")

        prefix = f"ℹ️ Name sanitized to `{clean_name}`.\n" if clean_name != stem else ""
        return Outcome.success(f"{prefix}✅ Sound `{clean_name}` added.", data=sound_name)

    def set_sound(self, kind: str, target_id: Any, sound_name: str) -> Outcome:
        if kind not in SOUND_KINDS:
            return Outcome.failure(f"❌ Unknown target kind `{kind}`. Use one of: {', '.join(SOUND_KINDS)}.")
        normalized = self.catalog.lookup(sound_name)
        if normalized is None:
            return Outcome.failure(f"❌ Sound `{sound_name}` not found. Use `/{config.COMMAND_GROUP_NAME} sounds` to see available sounds.")

        before = self.preferences.mapping.copy()
        if kind == "channel":
            self.preferences.set_channel_sound(target_id, normalized)
        else:
            self.preferences.set_user_sound(target_id, normalized)
        return self._persist(before, f"✅ {kind.capitalize()} sound for `{target_id}` set to `{file_helpers.display_name(normalized)}`.")

    def set_default_sound(self, sound_name: Optional[str]) -> Outcome:
        normalized = self.catalog.lookup(sound_name) if sound_name else None
        if sound_name and normalized is None:
            return Outcome.failure(f"❌ Sound `{sound_name}` not found.")
        before = self.preferences.mapping.copy()
        self.preferences.set_default_sound(normalized)
        message = (f"✅ Default sound set to `{file_helpers.display_name(normalized)}`." if normalized
                   else "✅ Default sound cleared; a random sound will be used.")
        return self._persist(before, message)

    def list_sounds(self) -> Outcome:
        sounds = self.catalog.list_sounds()
        if not sounds:
            return Outcome.failure("No sounds available.", data=[])
        return Outcome.success(f"{len(sounds)} sound(s) available.", data=sounds)

    async def random_play(self, invoking_user_id: int, invoking_user_channel: Optional[Any]) -> Outcome:
        if invoking_user_channel is None:
            return Outcome.failure("❌ You need to be in a voice channel to use this command.")
        log.info(f"RANDOM: Requested by user {invoking_user_id} for channel {invoking_user_channel.id}")
        return await self.sessions.play_random(invoking_user_channel)

    def debug_dump(self) -> Outcome:
        data = self.preferences.mapping.to_dict()
        data["activeSessions"] = self.sessions.snapshot()
        return Outcome.success("Current preferences.", data=data)

    def _persist(self, before: PreferenceMapping, message: str) -> Outcome:
        if self.preferences.save():
            return Outcome.success(message)
        # Keep memory consistent with what is on disk
        self.preferences.mapping = before
        return Outcome.failure("❌ Could not save preferences. Nothing was changed.")
