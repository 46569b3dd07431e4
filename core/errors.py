# core/errors.py


class GreetBotError(Exception):
    """Base class for failures raised inside the greeting core."""


class AlreadyExists(GreetBotError):
    """A sound with the requested name is already in the catalog."""

    def __init__(self, sound_name: str):
        super().__init__(f"Sound '{sound_name}' already exists")
        self.sound_name = sound_name


class InvalidFormat(GreetBotError):
    """Uploaded bytes or filename are not the supported audio container."""


class AssetMissing(GreetBotError):
    """The sound file vanished between catalog listing and playback."""

    def __init__(self, file_path: str):
        super().__init__(f"Audio file not found at {file_path}")
        self.file_path = file_path


class PlaybackError(GreetBotError):
    pass


class VoiceConnectError(GreetBotError):
    """The voice transport refused or failed the connection attempt."""


class SessionExists(GreetBotError):
    """A live session is already registered for the group."""

    def __init__(self, group_id: int):
        super().__init__(f"A live voice session already exists for GID:{group_id}")
        self.group_id = group_id
