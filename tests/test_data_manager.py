"""Tests for loading and saving sound preferences."""

import json

from data_manager import PreferenceMapping, PreferenceStore
from utils.storage import LocalStorage

from fakes import MemoryStorage


class TestPreferenceStore:
    def test_missing_file_loads_empty(self):
        store = PreferenceStore(storage=MemoryStorage(), file_name="prefs.json")
        mapping = store.load()
        assert mapping == PreferenceMapping()

    def test_malformed_file_loads_empty(self):
        store = PreferenceStore(storage=MemoryStorage({"prefs.json": "{not json"}), file_name="prefs.json")
        assert store.load() == PreferenceMapping()

    def test_wrong_shape_loads_empty(self):
        storage = MemoryStorage({"prefs.json": json.dumps({"channelSounds": ["a"]})})
        store = PreferenceStore(storage=storage, file_name="prefs.json")
        assert store.load() == PreferenceMapping()

    def test_unreadable_file_loads_empty(self):
        storage = MemoryStorage({"prefs.json": "{}"})
        storage.fail_reads = True
        store = PreferenceStore(storage=storage, file_name="prefs.json")
        assert store.load() == PreferenceMapping()

    def test_loads_persisted_record(self):
        record = {"channelSounds": {"200": "alpha.mp3"}, "userSounds": {"1": "beta.mp3"}, "defaultSound": "alpha.mp3"}
        store = PreferenceStore(storage=MemoryStorage({"prefs.json": json.dumps(record)}), file_name="prefs.json")
        store.load()

        assert store.channel_sound(200) == "alpha.mp3"
        assert store.user_sound(1) == "beta.mp3"
        assert store.user_sound(2) is None
        assert store.default_sound == "alpha.mp3"

    def test_save_then_load_round_trip(self, tmp_path):
        store = PreferenceStore(storage=LocalStorage(str(tmp_path)), file_name="prefs.json")
        store.set_channel_sound(200, "alpha.mp3")
        store.set_user_sound(1, "beta.mp3")
        store.set_default_sound("alpha.mp3")
        assert store.save()

        on_disk = json.loads((tmp_path / "prefs.json").read_text())
        assert on_disk == {"channelSounds": {"200": "alpha.mp3"}, "userSounds": {"1": "beta.mp3"}, "defaultSound": "alpha.mp3"}

        reloaded = PreferenceStore(storage=LocalStorage(str(tmp_path)), file_name="prefs.json")
        assert reloaded.load() == store.mapping

    def test_failed_save_reports_false(self):
        storage = MemoryStorage()
        storage.fail_writes = True
        store = PreferenceStore(storage=storage, file_name="prefs.json")
        store.set_default_sound("alpha.mp3")

        assert store.save() is False
        assert "prefs.json" not in storage.files
