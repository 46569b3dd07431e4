import random
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path; the bot is laid out flat, not installed as a package
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
TESTS_DIR = Path(__file__).parent.resolve()
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from core.command_service import CommandService
from core.playback_manager import PlaybackManager
from core.session_manager import SessionManager, SessionRegistry
from core.sound_catalog import SoundCatalog
from core.sound_resolver import SoundResolver
from data_manager import PreferenceStore
from utils.storage import LocalStorage

from fakes import FakeChannel, FakeGuild, FakeMember, FakeSource, FakeTransport, MemoryStorage


@pytest.fixture
def sound_dir(tmp_path):
    directory = tmp_path / "sounds"
    directory.mkdir()
    for stem in ("alpha", "beta"):
        (directory / f"{stem}.mp3").write_bytes(b"ID3 not really audio")
    return directory


@pytest.fixture
def catalog(sound_dir):
    return SoundCatalog(storage=LocalStorage(str(sound_dir)), validator=lambda data: True, rng=random.Random(7))


@pytest.fixture
def preferences():
    return PreferenceStore(storage=MemoryStorage(), file_name="prefs.json")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def playback():
    return PlaybackManager(source_factory=lambda path: (FakeSource(path), None))


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def manager(registry, transport, playback, preferences, catalog):
    return SessionManager(
        registry=registry,
        transport=transport,
        playback=playback,
        resolver=SoundResolver(preferences, catalog),
        catalog=catalog,
        connect_timeout=0.2,
        reconnect_timeout=0.05,
        settle_delay=0,
    )


@pytest.fixture
def service(manager, preferences, catalog):
    return CommandService(manager, preferences, catalog, max_upload_bytes=1024)


@pytest.fixture
def guild():
    return FakeGuild(100)


@pytest.fixture
def channel(guild):
    return FakeChannel(200, guild, members=[FakeMember(1)])
