# core/sound_resolver.py

import logging
from typing import Optional

from data_manager import PreferenceStore
from core.sound_catalog import SoundCatalog

log = logging.getLogger('GreetBot.SoundResolver')


class SoundResolver:
    """Picks the greeting for a (user, channel) pair: user > channel > default > random > none."""

    def __init__(self, preferences: PreferenceStore, catalog: SoundCatalog):
        self.preferences = preferences
        self.catalog = catalog

    def resolve(self, user_id: int, channel_id: int) -> Optional[str]:
        candidates = (
            ("user", self.preferences.user_sound(user_id)),
            ("channel", self.preferences.channel_sound(channel_id)),
            ("default", self.preferences.default_sound),
        )
        for source, sound_name in candidates:
            if not sound_name:
                continue
            listed = self.catalog.lookup(sound_name)
            if listed:
                log.debug(f"RESOLVE: User {user_id} / Channel {channel_id} -> '{listed}' ({source} sound)")
                return listed
            # Stale entries stay in the mapping; only explicit set-operations change it
            log.info(f"RESOLVE: {source} sound '{sound_name}' no longer in catalog, falling through.")

        sound_name = self.catalog.random_sound()
        if sound_name:
            log.debug(f"RESOLVE: User {user_id} / Channel {channel_id} -> '{sound_name}' (random)")
        else:
            log.info(f"RESOLVE: Catalog is empty, no sound for user {user_id} in channel {channel_id}.")
        return sound_name
