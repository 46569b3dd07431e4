# core/sound_catalog.py

import random
import logging
from typing import Callable, List, Optional

import config
from core.errors import AlreadyExists, InvalidFormat
from utils import file_helpers
from utils.storage import Storage, LocalStorage

log = logging.getLogger('GreetBot.SoundCatalog')

AudioValidator = Callable[[bytes], bool]


def _default_validator(data: bytes) -> bool:
    # Imported lazily so the catalog can be used without pydub/FFmpeg when a validator is injected
    from utils import audio_processor
    return audio_processor.is_valid_audio(data, config.SOUND_EXTENSION)


class SoundCatalog:
    """The greeting clips available in the asset directory, named '<stem>.mp3'."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        extension: str = config.SOUND_EXTENSION,
        validator: Optional[AudioValidator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.storage = storage if storage is not None else LocalStorage(config.SOUNDS_DIR)
        self.extension = extension
        self.validator = validator or _default_validator
        self._rng = rng or random.Random()

    def list_sounds(self) -> List[str]:
        """Sorted sound names. Empty (never raises) if the directory is missing or unreadable."""
        try:
            names = self.storage.list_names(self.extension)
        except FileNotFoundError:
            log.warning(f"Sound directory {self.storage} not found. Catalog is empty.")
            return []
        except OSError as e:
            log.error(f"Error listing sounds in {self.storage}: {e}")
            return []
        return sorted(names, key=str.lower)

    def random_sound(self) -> Optional[str]:
        sounds = self.list_sounds()
        if not sounds:
            return None
        return self._rng.choice(sounds)

    def normalize(self, sound_name: str) -> str:
        return file_helpers.normalize_sound_name(sound_name, self.extension)

    def lookup(self, sound_name: Optional[str]) -> Optional[str]:
        """
        The listed sound that sound_name refers to, or None. Only names the
        directory listing reports can match, so paths never leave the catalog.
        An exact match wins over one that differs only in extension case.
        """
        if not sound_name or not file_helpers.is_flat_name(sound_name):
            return None
        wanted = self.normalize(sound_name)
        sounds = self.list_sounds()
        if wanted in sounds:
            return wanted
        stem = file_helpers.display_name(wanted)
        for listed in sounds:
            if file_helpers.display_name(listed) == stem:
                return listed
        return None

    def exists(self, sound_name: Optional[str]) -> bool:
        return self.lookup(sound_name) is not None

    def path_for(self, sound_name: str) -> str:
        return self.storage.path_for(self.lookup(sound_name) or self.normalize(sound_name))

    def add_sound(self, name: str, source_bytes: bytes) -> str:
        """
        Writes a new asset '<name><ext>' and returns its sound name.
        Raises AlreadyExists (never overwrites), InvalidFormat, or OSError.
        """
        sound_name = self.normalize(name)
        if not sound_name or sound_name == self.extension or not file_helpers.is_flat_name(sound_name):
            raise InvalidFormat(f"'{name}' is not a usable sound name")
        existing = self.lookup(sound_name)
        if existing:
            raise AlreadyExists(existing)
        if not self.validator(source_bytes):
            raise InvalidFormat(f"Upload is not a valid {self.extension} file")
        self.storage.ensure_root()
        try:
            self.storage.write_new(sound_name, source_bytes)
        except FileExistsError as e:
            raise AlreadyExists(sound_name) from e
        log.info(f"CATALOG: Added sound '{sound_name}' ({len(source_bytes)} bytes)")
        return sound_name
