# core/session_manager.py

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import config
from core.errors import AssetMissing, PlaybackError, SessionExists, VoiceConnectError
from core.playback_manager import PlaybackManager
from core.session_types import Outcome, PlaybackRequest, SessionState, VoiceSession
from core.sound_catalog import SoundCatalog
from core.sound_resolver import SoundResolver
from utils import file_helpers, voice_helpers

log = logging.getLogger('GreetBot.SessionManager')


class SessionRegistry:
    """group id -> the one live VoiceSession for that group."""

    def __init__(self):
        self._sessions: Dict[int, VoiceSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, group_id: int) -> bool:
        return group_id in self._sessions

    def get(self, group_id: int) -> Optional[VoiceSession]:
        return self._sessions.get(group_id)

    def add(self, session: VoiceSession):
        existing = self._sessions.get(session.group_id)
        if existing is not None and existing.is_live:
            raise SessionExists(session.group_id)
        self._sessions[session.group_id] = session

    def remove(self, session: VoiceSession) -> bool:
        """Removes session only if it is the registered one for its group."""
        if self._sessions.get(session.group_id) is session:
            del self._sessions[session.group_id]
            return True
        return False

    def sessions(self) -> List[VoiceSession]:
        return list(self._sessions.values())

    def snapshot(self) -> Dict[str, str]:
        return {str(gid): s.state.value for gid, s in self._sessions.items()}


class SessionManager:
    """
    Drives the per-group voice session state machine:

        CONNECTING -> READY -> PLAYING -> IDLE -> DESTROYED
        READY/PLAYING/IDLE -> DISCONNECTED -> (previous state) | DESTROYED

    Every automatic join is a one-shot greeting: the session is destroyed as
    soon as playback completes. All methods run on the event loop; after each
    await the session state is re-checked, because a stop or empty-channel
    event may have destroyed the session in the meantime.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        transport: Any,
        playback: PlaybackManager,
        resolver: SoundResolver,
        catalog: SoundCatalog,
        connect_timeout: float = config.CONNECT_TIMEOUT_SECONDS,
        reconnect_timeout: float = config.RECONNECT_TIMEOUT_SECONDS,
        settle_delay: float = config.SETTLE_DELAY_SECONDS,
    ):
        self.registry = registry
        self.transport = transport
        self.playback = playback
        self.resolver = resolver
        self.catalog = catalog
        self.connect_timeout = connect_timeout
        self.reconnect_timeout = reconnect_timeout
        self.settle_delay = settle_delay

    # --- Event entry points ---
    async def handle_member_join(self, channel: Any, user_id: int) -> Outcome:
        """A member moved from no channel into channel: greet them if the group is free."""
        group_id = channel.guild.id
        existing = self.registry.get(group_id)
        if existing is not None:
            log.info(f"GID:{group_id} - Session already {existing.state.name}, not greeting user {user_id}.")
            return Outcome.failure("A voice session is already active in this server.")

        outcome = await self._open_session(channel)
        if not outcome.ok:
            return outcome
        return await self._start_playback(outcome.data, lambda: self.resolver.resolve(user_id, channel.id), settle=True)

    async def handle_member_leave(self, channel: Any) -> Outcome:
        """A member left channel. Tears the session down if no humans remain there."""
        group_id = channel.guild.id
        session = self.registry.get(group_id)
        if session is None or session.channel_id != channel.id:
            return Outcome.failure("No session in that channel.")
        humans = voice_helpers.count_human_members(channel)
        if humans > 0:
            log.debug(f"GID:{group_id} - {humans} human(s) still in channel {channel.id}, staying.")
            return Outcome.success("Channel still occupied.")
        log.info(f"GID:{group_id} - Voice channel is empty, disconnecting...")
        await self._teardown(session, reason="voice channel empty")
        return Outcome.success("Left the empty voice channel.")

    async def handle_disconnect(self, group_id: int) -> Outcome:
        """The platform dropped our connection. Race the two reconnect signals, else tear down."""
        session = self.registry.get(group_id)
        if session is None:
            log.debug(f"GID:{group_id} - Disconnect with no registered session (already torn down).")
            return Outcome.failure("No active session.")
        if session.state in (SessionState.CONNECTING, SessionState.DISCONNECTED, SessionState.DESTROYED):
            log.debug(f"GID:{group_id} - Ignoring disconnect signal in state {session.state.name}.")
            return Outcome.failure(f"Session is {session.state.value}.")

        resume_state = session.state
        session.transition(SessionState.DISCONNECTED)
        log.info(f"GID:{group_id} - Voice connection disconnected, attempting to reconnect...")
        reconnected = await self._race_reconnect(session)

        if session.state is not SessionState.DISCONNECTED:
            log.debug(f"GID:{group_id} - Session became {session.state.name} while waiting for reconnect.")
            return Outcome.failure("Session ended while reconnecting.")
        if not reconnected:
            log.warning(f"GID:{group_id} - Failed to reconnect, destroying connection")
            await self._teardown(session, reason="reconnect timed out")
            return Outcome.failure("Voice connection lost.")

        log.info(f"GID:{group_id} - Successfully reconnected to voice channel")
        session.transition(resume_state)
        if resume_state is SessionState.IDLE:
            await self._teardown(session, reason="playback finished before disconnect")
        return Outcome.success("Reconnected.")

    async def handle_bot_moved(self, channel: Any) -> Outcome:
        """Someone dragged the bot into channel. Follow it there and re-run the empty check."""
        group_id = channel.guild.id
        session = self.registry.get(group_id)
        if session is None:
            return Outcome.failure("No active session.")
        if session.channel_id == channel.id:
            return Outcome.success("Channel unchanged.")
        log.info(f"GID:{group_id} - Bot moved from channel {session.channel_id} to {channel.id}.")
        session.channel_id = channel.id
        return await self.handle_member_leave(channel)

    async def handle_playback_finished(self, session: VoiceSession, request: PlaybackRequest, error: Optional[Exception]):
        """Completion signal from the sink: PLAYING -> IDLE -> DESTROYED."""
        group_id = session.group_id
        if self.registry.get(group_id) is not session:
            # Normal after a stop/teardown cut playback short; anything else is a stray signal
            level = logging.DEBUG if session.state is SessionState.DESTROYED else logging.WARNING
            log.log(level, f"GID:{group_id} - Playback completion with no registered session, ignoring.")
            return
        if session.request is not request:
            log.debug(f"GID:{group_id} - Completion for superseded request '{request.sound_name}', ignoring.")
            return
        if session.state is SessionState.DISCONNECTED:
            await self._teardown(session, reason="playback finished while disconnected")
            return
        if session.transition(SessionState.IDLE):
            log.info(f"GID:{group_id} - Audio finished playing, disconnecting...")
            await self._teardown(session, reason="playback finished")

    # --- Command entry points ---
    async def play_random(self, channel: Any) -> Outcome:
        """Joins (or reuses a session in) channel and plays a uniformly random sound."""
        if not self.catalog.list_sounds():
            return Outcome.failure("No sounds available.")
        group_id = channel.guild.id
        session = self.registry.get(group_id)

        if session is not None and session.channel_id != channel.id:
            log.info(f"GID:{group_id} - Leaving channel {session.channel_id} for invoker's channel {channel.id}.")
            await self._teardown(session, reason="moving to invoker's channel")
            session = None

        if session is not None:
            if session.state in (SessionState.CONNECTING, SessionState.DISCONNECTED):
                return Outcome.failure("⏳ Voice connection is busy. Please try again in a moment.")
            if session.state is SessionState.PLAYING:
                self.playback.stop()
                session.transition(SessionState.READY)
            if session.state is SessionState.READY:
                return await self._start_playback(session, self.catalog.random_sound, settle=False)
            # IDLE is only ever transient on the way to teardown
            await self._teardown(session, reason="replacing idle session")

        outcome = await self._open_session(channel)
        if not outcome.ok:
            return outcome
        return await self._start_playback(outcome.data, self.catalog.random_sound, settle=True)

    async def stop(self, group_id: int) -> Outcome:
        session = self.registry.get(group_id)
        if session is None:
            return Outcome.failure("Bot is not in a voice channel.")
        await self._teardown(session, reason="stop command")
        return Outcome.success("Bot has left the voice channel.")

    async def shutdown(self):
        for session in self.registry.sessions():
            await self._teardown(session, reason="shutdown")

    def snapshot(self) -> Dict[str, str]:
        return self.registry.snapshot()

    # --- Internals ---
    async def _open_session(self, channel: Any) -> Outcome:
        """Absent -> CONNECTING -> READY. On success, Outcome.data is the session."""
        group_id = channel.guild.id
        if not self.transport.can_join(channel):
            log.warning(f"GID:{group_id} - Missing Connect/Speak permission in channel {channel.id}.")
            return Outcome.failure("❌ I don't have permission to connect or speak in that voice channel.")

        session = VoiceSession(group_id=group_id, channel_id=channel.id)
        try:
            self.registry.add(session)
        except SessionExists:
            return Outcome.failure("A voice session is already active in this server.")
        log.info(f"GID:{group_id} - Connecting to channel {channel.id}")

        try:
            handle = await asyncio.wait_for(self.transport.connect(channel), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            log.error(f"GID:{group_id} - Voice connection not ready within {self.connect_timeout}s.")
            await self._abort_connect(session)
            return Outcome.failure("❌ Timed out connecting to the voice channel.")
        except VoiceConnectError as e:
            log.error(f"GID:{group_id} - Voice connection error: {e}")
            await self._abort_connect(session)
            return Outcome.failure("❌ Could not connect to the voice channel.")
        except Exception as e:
            log.error(f"GID:{group_id} - Unexpected error while connecting: {e}", exc_info=True)
            await self._abort_connect(session)
            return Outcome.failure("❌ An unexpected error occurred while connecting.")

        if session.state is not SessionState.CONNECTING:
            log.info(f"GID:{group_id} - Session {session.state.name} while connecting, releasing new connection.")
            await self.transport.release(group_id, handle)
            return Outcome.failure("Voice session was cancelled.")

        session.connection_handle = handle
        session.transition(SessionState.READY)
        log.info(f"GID:{group_id} - Voice connection established successfully")
        return Outcome.success("Connected.", data=session)

    async def _abort_connect(self, session: VoiceSession):
        await self._teardown(session, reason="connect failed")
        # A cancelled connect may have left a half-open client behind
        await self.transport.release(session.group_id)

    async def _start_playback(self, session: VoiceSession, pick: Callable[[], Optional[str]], settle: bool) -> Outcome:
        """READY -> PLAYING. Subscribes the shared sink before starting playback."""
        group_id = session.group_id
        sound_name = pick()
        if sound_name is None:
            log.info(f"GID:{group_id} - No sound to play, leaving.")
            await self._teardown(session, reason="no sound available")
            return Outcome.failure("No sounds available.")

        if settle and self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        if session.state is not SessionState.READY:
            # Nothing would ever move a greeting-less session forward again
            log.info(f"GID:{group_id} - Session {session.state.name} before playback could start.")
            await self._teardown(session, reason=f"{session.state.value} before playback started")
            return Outcome.failure("Voice session ended before playback started.")

        file_path = self.catalog.path_for(sound_name)
        self.playback.subscribe(session)
        try:
            self.playback.play(session, sound_name, file_path, self.handle_playback_finished)
        except AssetMissing as e:
            log.error(f"GID:{group_id} - {e}")
            await self._teardown(session, reason="audio file missing")
            return Outcome.failure(f"❌ Sound `{file_helpers.display_name(sound_name)}` is missing.")
        except PlaybackError as e:
            log.error(f"GID:{group_id} - Error during audio playback setup: {e}")
            await self._teardown(session, reason="playback setup failed")
            return Outcome.failure("❌ Could not play the sound.")

        session.transition(SessionState.PLAYING)
        return Outcome.success(f"▶️ Playing `{file_helpers.display_name(sound_name)}`", data=sound_name)

    async def _race_reconnect(self, session: VoiceSession) -> bool:
        """True if either reconnect signal arrives within reconnect_timeout."""
        handle = session.connection_handle
        if handle is None:
            return False
        waiters = [
            asyncio.ensure_future(self.transport.wait_for_signalling(handle)),
            asyncio.ensure_future(self.transport.wait_for_connecting(handle)),
        ]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.reconnect_timeout
        pending = set(waiters)
        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if not task.cancelled() and task.exception() is None:
                        return True
                    if not task.cancelled():
                        log.debug(f"GID:{session.group_id} - Reconnect wait failed: {task.exception()}")
            return False
        finally:
            for task in waiters:
                task.cancel()

    async def _teardown(self, session: VoiceSession, reason: str) -> bool:
        """Any state -> DESTROYED. Removes the registry entry and releases the connection."""
        if session.state is SessionState.DESTROYED:
            return False
        session.transition(SessionState.DESTROYED)
        self.registry.remove(session)
        if self.playback.is_subscribed(session):
            self.playback.stop()
            self.playback.unsubscribe(session)
        handle, session.connection_handle = session.connection_handle, None
        if handle is not None:
            await self.transport.release(session.group_id, handle)
        log.info(f"GID:{session.group_id} - Session destroyed. Reason: {reason}")
        return True
