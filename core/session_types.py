# core/session_types.py

import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, NamedTuple, Optional

log = logging.getLogger('GreetBot.SessionTypes')


# --- Enums and Dataclasses ---
class SessionState(Enum):
    CONNECTING = "connecting"
    READY = "ready"
    PLAYING = "playing"
    IDLE = "idle"
    DISCONNECTED = "disconnected"
    DESTROYED = "destroyed"


# Allowed transitions per state. DESTROYED is terminal.
# PLAYING -> READY is the command path replaying on a reused session.
# DISCONNECTED -> READY/PLAYING/IDLE restores whatever state preceded the drop.
TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.CONNECTING: frozenset({SessionState.READY, SessionState.DESTROYED}),
    SessionState.READY: frozenset({SessionState.PLAYING, SessionState.DISCONNECTED, SessionState.DESTROYED}),
    SessionState.PLAYING: frozenset({SessionState.IDLE, SessionState.READY, SessionState.DISCONNECTED, SessionState.DESTROYED}),
    SessionState.IDLE: frozenset({SessionState.DISCONNECTED, SessionState.DESTROYED}),
    SessionState.DISCONNECTED: frozenset({SessionState.READY, SessionState.PLAYING, SessionState.IDLE, SessionState.DESTROYED}),
    SessionState.DESTROYED: frozenset(),
}

LIVE_STATES = frozenset(state for state in SessionState if state is not SessionState.DESTROYED)


@dataclass
class PlaybackRequest:
    """One play-to-idle cycle. Never persisted."""
    sound_name: str
    file_path: str
    started_at: float = field(default_factory=time.time)
    finished: bool = False


@dataclass
class VoiceSession:
    group_id: int
    channel_id: int
    connection_handle: Any = None # Opaque voice transport handle (a discord.VoiceClient at runtime)
    state: SessionState = SessionState.CONNECTING
    previous_state: Optional[SessionState] = None
    request: Optional[PlaybackRequest] = None
    created_at: float = field(default_factory=time.time)

    # --- Properties ---
    @property
    def is_live(self) -> bool:
        return self.state in LIVE_STATES

    def can_transition(self, new_state: SessionState) -> bool:
        return new_state in TRANSITIONS[self.state]

    def transition(self, new_state: SessionState) -> bool:
        """Moves the session to new_state. Illegal moves are logged and refused."""
        if not self.can_transition(new_state):
            log.warning(f"GID:{self.group_id} - Refusing illegal transition {self.state.name} -> {new_state.name}")
            return False
        log.debug(f"GID:{self.group_id} - Session state {self.state.name} -> {new_state.name}")
        self.previous_state = self.state
        self.state = new_state
        return True


class Outcome(NamedTuple):
    """Result of a public core operation, rendered by the command/event layer."""
    ok: bool
    message: str
    data: Any = None

    @classmethod
    def success(cls, message: str, data: Any = None) -> "Outcome":
        return cls(True, message, data)

    @classmethod
    def failure(cls, message: str, data: Any = None) -> "Outcome":
        return cls(False, message, data)
