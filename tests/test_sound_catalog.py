"""Tests for the sound catalog and sound resolver."""

import os
import random

import pytest

from core.errors import AlreadyExists, InvalidFormat
from core.sound_catalog import SoundCatalog
from core.sound_resolver import SoundResolver
from data_manager import PreferenceStore
from utils.storage import LocalStorage

from fakes import MemoryStorage


def make_catalog(files=None, valid=True) -> SoundCatalog:
    return SoundCatalog(storage=MemoryStorage(files or {}), validator=lambda data: valid, rng=random.Random(1))


class TestSoundCatalog:
    def test_lists_only_sound_files_sorted(self):
        catalog = make_catalog({"beta.mp3": b"", "Alpha.mp3": b"", "readme.txt": b""})
        assert catalog.list_sounds() == ["Alpha.mp3", "beta.mp3"]

    def test_missing_directory_is_empty(self):
        catalog = make_catalog()
        catalog.storage.missing_root = True
        assert catalog.list_sounds() == []
        assert catalog.random_sound() is None

    def test_random_sound_comes_from_catalog(self):
        catalog = make_catalog({"alpha.mp3": b"", "beta.mp3": b""})
        for _ in range(10):
            assert catalog.random_sound() in ("alpha.mp3", "beta.mp3")

    def test_exists_accepts_bare_stem(self):
        catalog = make_catalog({"alpha.mp3": b""})
        assert catalog.exists("alpha")
        assert catalog.exists("alpha.mp3")
        assert not catalog.exists("beta")
        assert not catalog.exists(None)

    def test_add_sound_writes_new_asset(self):
        catalog = make_catalog()
        assert catalog.add_sound("gamma", b"ID3") == "gamma.mp3"
        assert catalog.storage.files["gamma.mp3"] == b"ID3"
        assert catalog.list_sounds() == ["gamma.mp3"]

    def test_add_sound_never_overwrites(self):
        catalog = make_catalog({"alpha.mp3": b"old"})
        with pytest.raises(AlreadyExists):
            catalog.add_sound("alpha", b"new")
        assert catalog.storage.files["alpha.mp3"] == b"old"

    def test_adding_same_name_twice(self):
        catalog = make_catalog()
        catalog.add_sound("x", b"ID3")
        with pytest.raises(AlreadyExists):
            catalog.add_sound("x", b"ID3")
        assert catalog.list_sounds() == ["x.mp3"]

    def test_add_sound_rejects_undecodable_audio(self):
        catalog = make_catalog(valid=False)
        with pytest.raises(InvalidFormat):
            catalog.add_sound("gamma", b"garbage")
        assert catalog.list_sounds() == []


class TestSoundResolver:
    @pytest.fixture
    def setup(self):
        catalog = make_catalog({"alpha.mp3": b"", "beta.mp3": b"", "gamma.mp3": b""})
        preferences = PreferenceStore(storage=MemoryStorage(), file_name="prefs.json")
        return SoundResolver(preferences, catalog), preferences, catalog

    def test_user_sound_wins(self, setup):
        resolver, preferences, _ = setup
        preferences.set_user_sound(1, "alpha.mp3")
        preferences.set_channel_sound(200, "beta.mp3")
        preferences.set_default_sound("gamma.mp3")
        assert resolver.resolve(1, 200) == "alpha.mp3"

    def test_channel_sound_before_default(self, setup):
        resolver, preferences, _ = setup
        preferences.set_channel_sound(200, "beta.mp3")
        preferences.set_default_sound("gamma.mp3")
        assert resolver.resolve(1, 200) == "beta.mp3"

    def test_default_sound(self, setup):
        resolver, preferences, _ = setup
        preferences.set_default_sound("gamma.mp3")
        assert resolver.resolve(1, 200) == "gamma.mp3"

    def test_stale_preference_falls_through(self, setup):
        resolver, preferences, _ = setup
        preferences.set_user_sound(1, "deleted.mp3")
        preferences.set_channel_sound(200, "beta.mp3")
        assert resolver.resolve(1, 200) == "beta.mp3"
        # The stale entry is kept as-is
        assert preferences.user_sound(1) == "deleted.mp3"

    def test_random_when_nothing_configured(self, setup):
        resolver, _, catalog = setup
        assert resolver.resolve(1, 200) in catalog.list_sounds()

    def test_none_when_catalog_empty(self):
        catalog = make_catalog()
        preferences = PreferenceStore(storage=MemoryStorage(), file_name="prefs.json")
        preferences.set_default_sound("alpha.mp3")
        assert SoundResolver(preferences, catalog).resolve(1, 200) is None


class TestCatalogBoundaries:
    @pytest.fixture
    def local_catalog(self, tmp_path):
        sounds = tmp_path / "sounds"
        sounds.mkdir()
        (sounds / "alpha.mp3").write_bytes(b"ID3")
        (sounds / "LOUD.MP3").write_bytes(b"ID3")
        (tmp_path / "secret.mp3").write_bytes(b"ID3")
        return SoundCatalog(storage=LocalStorage(str(sounds)), validator=lambda data: True, rng=random.Random(1))

    def test_names_outside_the_directory_do_not_exist(self, local_catalog):
        assert not local_catalog.exists("../secret")
        assert not local_catalog.exists("../secret.mp3")
        assert not local_catalog.exists("sounds/../alpha.mp3")
        assert local_catalog.lookup("../secret") is None

    def test_resolver_skips_escaping_preference(self, local_catalog):
        preferences = PreferenceStore(storage=MemoryStorage(), file_name="prefs.json")
        preferences.set_user_sound(1, "../secret.mp3")
        preferences.set_default_sound("alpha.mp3")
        assert SoundResolver(preferences, local_catalog).resolve(1, 200) == "alpha.mp3"

    def test_add_sound_rejects_path_names(self, local_catalog, tmp_path):
        with pytest.raises(InvalidFormat):
            local_catalog.add_sound("../evil", b"ID3")
        assert not (tmp_path / "evil.mp3").exists()

    def test_uppercase_extension_is_playable(self, local_catalog):
        assert "LOUD.MP3" in local_catalog.list_sounds()
        assert local_catalog.exists("LOUD.MP3")
        assert local_catalog.exists("LOUD")
        assert local_catalog.lookup("LOUD") == "LOUD.MP3"
        assert os.path.exists(local_catalog.path_for("LOUD.MP3"))
        assert os.path.exists(local_catalog.path_for("LOUD"))

    def test_every_listed_sound_has_a_real_path(self, local_catalog):
        for sound_name in local_catalog.list_sounds():
            assert os.path.exists(local_catalog.path_for(sound_name))
