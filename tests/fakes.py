"""In-memory stand-ins for storage and the voice platform."""

import asyncio
from typing import Dict, List, Optional, Union

from utils.storage import Storage


class MemoryStorage(Storage):
    def __init__(self, files: Optional[Dict[str, Union[str, bytes]]] = None, root: str = "mem"):
        self.files: Dict[str, Union[str, bytes]] = dict(files or {})
        self.root = root
        self.fail_writes = False
        self.fail_reads = False
        self.missing_root = False

    def read_text(self, name: str) -> str:
        if self.fail_reads:
            raise PermissionError(name)
        if name not in self.files:
            raise FileNotFoundError(name)
        data = self.files[name]
        return data.decode("utf-8") if isinstance(data, bytes) else data

    def write_text(self, name: str, text: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.files[name] = text

    def write_new(self, name: str, data: bytes) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        if name in self.files:
            raise FileExistsError(name)
        self.files[name] = data

    def list_names(self, suffix: str) -> List[str]:
        if self.missing_root:
            raise FileNotFoundError(self.root)
        return [n for n in self.files if n.lower().endswith(suffix.lower())]

    def exists(self, name: str) -> bool:
        return name in self.files

    def path_for(self, name: str) -> str:
        return f"{self.root}/{name}"


class FakeGuild:
    def __init__(self, guild_id: int, name: str = "guild"):
        self.id = guild_id
        self.name = name


class FakeMember:
    def __init__(self, member_id: int, bot: bool = False):
        self.id = member_id
        self.bot = bot


class FakeChannel:
    def __init__(self, channel_id: int, guild: FakeGuild, members: Optional[List[FakeMember]] = None, name: str = "voice"):
        self.id = channel_id
        self.guild = guild
        self.members = list(members or [])
        self.name = name


class FakeVoiceHandle:
    """Mimics discord.VoiceClient: stop() ends the player, which fires the after callback."""

    def __init__(self, channel_id: int):
        self.channel_id = channel_id
        self.connected = True
        self.playing = False
        self.after = None
        self.sources = []
        self.stop_calls = 0
        self.disconnect_calls = 0

    def is_connected(self) -> bool:
        return self.connected

    def is_playing(self) -> bool:
        return self.playing

    def play(self, source, after=None):
        self.playing = True
        self.after = after
        self.sources.append(source)

    def stop(self):
        self.stop_calls += 1
        if self.playing:
            self.finish()

    def finish(self, error: Optional[Exception] = None):
        self.playing = False
        after, self.after = self.after, None
        if after is not None:
            after(error)

    async def disconnect(self, force: bool = False):
        self.connected = False
        self.disconnect_calls += 1


class FakeTransport:
    def __init__(self):
        self.allow_join = True
        self.connect_delay = 0.0
        self.connect_error: Optional[Exception] = None
        self.connect_calls: List[int] = []
        self.handles: List[FakeVoiceHandle] = []
        self.released = []
        self.signalling = asyncio.Event()
        self.connecting = asyncio.Event()

    def can_join(self, channel) -> bool:
        return self.allow_join

    async def connect(self, channel) -> FakeVoiceHandle:
        self.connect_calls.append(channel.id)
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        handle = FakeVoiceHandle(channel.id)
        self.handles.append(handle)
        return handle

    async def release(self, group_id: int, handle: Optional[FakeVoiceHandle] = None):
        self.released.append((group_id, handle))
        if handle is not None:
            await handle.disconnect(force=True)

    async def wait_for_signalling(self, handle):
        await self.signalling.wait()

    async def wait_for_connecting(self, handle):
        await self.connecting.wait()


class FakeSource:
    def __init__(self, path: str):
        self.path = path


async def drain(rounds: int = 10):
    """Lets call_soon callbacks and the tasks they spawn run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)
