"""Tests for small helpers: name handling, state transitions, reply pagination."""

from cogs.sound_commands import paginate_lines
from core.session_types import SessionState, VoiceSession
from utils import file_helpers, voice_helpers

from fakes import FakeChannel, FakeGuild, FakeMember


class TestFileHelpers:
    def test_sanitize_filename(self):
        assert file_helpers.sanitize_filename("my cool sound") == "my_cool_sound"
        assert file_helpers.sanitize_filename("a/b\\c") == "a_b_c"
        assert file_helpers.sanitize_filename("$(rm -rf)") == "rm_-rf"
        assert file_helpers.sanitize_filename("...hidden") == "hidden"
        assert file_helpers.sanitize_filename("x" * 80, max_len=10) == "x" * 10
        assert file_helpers.sanitize_filename("   ") == ""

    def test_normalize_sound_name(self):
        assert file_helpers.normalize_sound_name("alpha") == "alpha.mp3"
        assert file_helpers.normalize_sound_name("alpha.mp3") == "alpha.mp3"
        assert file_helpers.normalize_sound_name("LOUD.MP3") == "LOUD.MP3"
        assert file_helpers.normalize_sound_name("") == ""

    def test_is_flat_name(self):
        assert file_helpers.is_flat_name("alpha.mp3")
        assert not file_helpers.is_flat_name("../secret.mp3")
        assert not file_helpers.is_flat_name("sub/alpha.mp3")
        assert not file_helpers.is_flat_name("sub\\alpha.mp3")
        assert not file_helpers.is_flat_name("..")
        assert not file_helpers.is_flat_name("")

    def test_display_name(self):
        assert file_helpers.display_name("alpha.mp3") == "alpha"


class TestVoiceSession:
    def test_happy_path(self):
        session = VoiceSession(group_id=1, channel_id=10)
        for state in (SessionState.READY, SessionState.PLAYING, SessionState.IDLE, SessionState.DESTROYED):
            assert session.transition(state)
        assert not session.is_live

    def test_illegal_transition_is_refused(self):
        session = VoiceSession(group_id=1, channel_id=10)
        assert not session.transition(SessionState.PLAYING)
        assert session.state is SessionState.CONNECTING

    def test_destroyed_is_terminal(self):
        session = VoiceSession(group_id=1, channel_id=10)
        session.transition(SessionState.DESTROYED)
        for state in SessionState:
            assert not session.can_transition(state)

    def test_disconnect_remembers_previous_state(self):
        session = VoiceSession(group_id=1, channel_id=10)
        session.transition(SessionState.READY)
        session.transition(SessionState.DISCONNECTED)
        assert session.previous_state is SessionState.READY
        assert session.transition(SessionState.READY)


def test_count_human_members_ignores_bots():
    channel = FakeChannel(1, FakeGuild(1), members=[FakeMember(1), FakeMember(2, bot=True), FakeMember(3)])
    assert voice_helpers.count_human_members(channel) == 2
    assert voice_helpers.count_human_members(None) == 0


def test_paginate_lines_respects_limit():
    lines = [f"- `sound_{i:03d}`" for i in range(200)]
    pages = paginate_lines(lines, limit=100)

    assert all(len(page) <= 100 for page in pages)
    assert "\n".join(pages).splitlines() == lines
    assert paginate_lines([]) == []
