import io
import os
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from core.errors import AssetMissing, PlaybackError
from core.session_types import PlaybackRequest, VoiceSession

log = logging.getLogger('GreetBot.PlaybackManager')

# (audio source, buffer to close after playback)
SourceFactory = Callable[[str], Tuple[Any, Optional[io.BytesIO]]]
FinishedHandler = Callable[[VoiceSession, PlaybackRequest, Optional[Exception]], Awaitable[None]]


def _default_source_factory(file_path: str) -> Tuple[Any, Optional[io.BytesIO]]:
    from utils import audio_processor
    return audio_processor.process_audio(file_path)


class PlaybackManager:
    """
    The single process-wide output sink. At most one session is subscribed at a
    time, so only one group is audible at once. Subscribe before play.
    """

    def __init__(self, source_factory: Optional[SourceFactory] = None):
        self.source_factory = source_factory or _default_source_factory
        self.subscriber: Optional[VoiceSession] = None
        self.current: Optional[PlaybackRequest] = None
        self._current_buffer: Optional[io.BytesIO] = None

    def subscribe(self, session: VoiceSession):
        """Attaches the sink to session's connection, cutting off any other subscriber."""
        if self.subscriber is session:
            return
        if self.subscriber is not None:
            log.info(f"SINK: Moving from GID:{self.subscriber.group_id} to GID:{session.group_id}. Stopping previous playback.")
            self.stop()
        self.subscriber = session
        log.debug(f"SINK: Subscribed to GID:{session.group_id}")

    def unsubscribe(self, session: VoiceSession):
        if self.subscriber is session:
            self.subscriber = None
            log.debug(f"SINK: Unsubscribed from GID:{session.group_id}")

    def is_subscribed(self, session: VoiceSession) -> bool:
        return self.subscriber is session

    def is_playing(self) -> bool:
        if self.subscriber is None or self.subscriber.connection_handle is None:
            return False
        return bool(self.subscriber.connection_handle.is_playing())

    def play(self, session: VoiceSession, sound_name: str, file_path: str, on_finished: FinishedHandler) -> PlaybackRequest:
        """
        Starts streaming file_path on session's connection. on_finished is scheduled on
        the event loop exactly once per call. Raises AssetMissing or PlaybackError.
        """
        if self.subscriber is not session:
            raise PlaybackError(f"Sink is not subscribed to GID:{session.group_id}")
        handle = session.connection_handle
        if handle is None:
            raise PlaybackError(f"GID:{session.group_id} has no voice connection")
        if not os.path.exists(file_path):
            raise AssetMissing(file_path)

        loop = asyncio.get_running_loop()
        audio_source, audio_buffer = self.source_factory(file_path)
        if audio_source is None:
            self._close_buffer(audio_buffer)
            raise PlaybackError(f"Could not prepare audio for '{os.path.basename(file_path)}'")

        if handle.is_playing():
            log.debug(f"SINK: GID:{session.group_id} - Cutting current playback for new request.")
            handle.stop()
        self._close_buffer(self._current_buffer)

        request = PlaybackRequest(sound_name=sound_name, file_path=file_path)

        def after_play(error: Optional[Exception]):
            # Runs on the voice player thread
            loop.call_soon_threadsafe(self._dispatch_finished, session, request, audio_buffer, on_finished, error)

        try:
            handle.play(audio_source, after=after_play)
        except Exception as e:
            self._close_buffer(audio_buffer)
            raise PlaybackError(f"Voice client refused playback: {e}") from e

        self.current = request
        self._current_buffer = audio_buffer
        session.request = request
        log.info(f"SINK: GID:{session.group_id} - Playing '{sound_name}'")
        return request

    def stop(self):
        """Cuts the current playback short. Safe to call when nothing is playing."""
        session = self.subscriber
        if session is None or session.connection_handle is None:
            return
        handle = session.connection_handle
        try:
            if handle.is_playing():
                log.debug(f"SINK: GID:{session.group_id} - Stopping playback.")
                handle.stop()
        except Exception as e:
            log.warning(f"SINK: GID:{session.group_id} - Error stopping playback: {e}")

    def _dispatch_finished(self, session: VoiceSession, request: PlaybackRequest, buffer: Optional[io.BytesIO],
                           on_finished: FinishedHandler, error: Optional[Exception]):
        if request.finished:
            log.warning(f"SINK: GID:{session.group_id} - Duplicate completion for '{request.sound_name}' ignored.")
            return
        request.finished = True
        self._close_buffer(buffer)
        if self.current is request:
            self.current = None
            self._current_buffer = None
        if error:
            log.error(f"SINK: GID:{session.group_id} - Playback error for '{request.sound_name}': {error}")
        else:
            log.info(f"SINK: GID:{session.group_id} - Audio playback finished ('{request.sound_name}')")
        asyncio.ensure_future(on_finished(session, request, error))

    @staticmethod
    def _close_buffer(buffer: Optional[io.BytesIO]):
        if buffer is not None and not buffer.closed:
            try:
                buffer.close()
            except Exception as e:
                log.warning(f"SINK: Error closing audio buffer: {e}")
