"""Turn-taking state machine for a read-through.

The engine walks the dialogue lines in order. Lines the user has claimed
wait for user_confirm(); every other line is handed to a speech facility and
the engine advances when that facility reports completion.

Completion arrives asynchronously. Each request's callback carries the epoch
it was issued in, and start()/restart() bump the epoch, so a late callback
from a superseded request cannot move the position.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Protocol

from scene_rehearsal.models import DialogueLine, PlaybackSettings
from scene_rehearsal.roles import RoleAssignment

logger = logging.getLogger(__name__)


class SpeechFacility(Protocol):
    def request_utterance(self, text: str, on_complete: Callable[[], None]) -> Any: ...

    def pause(self, handle: Any) -> None: ...

    def resume(self, handle: Any) -> None: ...

    def stop(self, handle: Any) -> None: ...


class State(str, Enum):
    IDLE = "idle"
    MACHINE_SPEAKING = "machine_speaking"
    AWAITING_USER = "awaiting_user"
    PAUSED = "paused"
    COMPLETED = "completed"


def _noop(*args):
    pass


class TurnTakingEngine:
    """Sequence dialogue lines between the user and a speech facility.

    Hooks, all optional and called on the engine's own control flow:
      on_line(engine, line, owned)  -- a line became current
      on_progress(engine, index)    -- position advanced to index
      on_complete(engine)           -- every line has been read
    """

    def __init__(
        self,
        lines: list[DialogueLine],
        settings: PlaybackSettings,
        speech: SpeechFacility,
        on_line: Callable | None = None,
        on_progress: Callable | None = None,
        on_complete: Callable | None = None,
    ):
        self.lines = list(lines)
        self.speech = speech
        self.on_line = on_line or _noop
        self.on_progress = on_progress or _noop
        self.on_complete = on_complete or _noop

        self.settings = settings
        self.needs_role_selection = False
        self._roles = settings.roles.copy()

        self._state = State.IDLE
        self._index = 0
        self._epoch = 0
        self._handle = None
        self._deferred_completion = False
        self._in_request = False
        self._finished_inline = False

    @property
    def state(self) -> State:
        return self._state

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def current_line(self) -> DialogueLine | None:
        if self._index < len(self.lines):
            return self.lines[self._index]
        return None

    @property
    def roles(self) -> RoleAssignment:
        return self._roles

    def configure(self, settings: PlaybackSettings) -> None:
        """Install new settings. Takes effect on the next start()."""
        self.settings = settings
        self._roles = settings.roles.copy()
        self.needs_role_selection = False

    # --- Transitions ---

    def start(self, start_index: int = 0) -> bool:
        """Begin reading from the first line (or start_index when resuming)."""
        if self.needs_role_selection:
            logger.warning("start() ignored: roles must be chosen again after a restart")
            return False
        self._cancel_pending()
        self._epoch += 1
        self._index = max(0, min(start_index, len(self.lines)))
        logger.debug("Starting read-through at line %d (epoch %d)", self._index, self._epoch)
        self._evaluate()
        return True

    def user_confirm(self) -> bool:
        """The user has delivered their line; move on."""
        if self._state is not State.AWAITING_USER:
            logger.debug("user_confirm() ignored in state %s", self._state.value)
            return False
        self._advance()
        self._evaluate()
        return True

    def pause(self) -> bool:
        if self._state is not State.MACHINE_SPEAKING:
            logger.debug("pause() ignored in state %s", self._state.value)
            return False
        self.speech.pause(self._handle)
        self._state = State.PAUSED
        return True

    def resume(self) -> bool:
        if self._state is not State.PAUSED:
            logger.debug("resume() ignored in state %s", self._state.value)
            return False
        self.speech.resume(self._handle)
        self._state = State.MACHINE_SPEAKING
        if self._deferred_completion:
            self._deferred_completion = False
            self._finish_machine_line()
        return True

    def restart(self, keep_settings: bool) -> bool:
        """Stop speech and go back to the first line.

        With keep_settings the read-through starts again at once. Otherwise
        the roles fall back to "no role", only lines read so far are shown,
        and the engine stays idle until configure() is called.
        """
        self._cancel_pending()
        self._epoch += 1
        self._index = 0
        self._state = State.IDLE
        if keep_settings:
            return self.start()
        self.settings = replace(
            self.settings,
            roles=RoleAssignment.no_role(),
            show_only_lines_read_so_far=True,
        )
        self._roles = self.settings.roles.copy()
        self.needs_role_selection = True
        return True

    # --- Internals ---

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self.speech.stop(self._handle)
        self._handle = None
        self._deferred_completion = False

    def _advance(self) -> None:
        self._index += 1
        self.on_progress(self, self._index)

    def _evaluate(self) -> None:
        # Loops instead of recursing so a facility that completes inside
        # request_utterance() cannot grow the stack.
        while True:
            i = self._index
            if i >= len(self.lines):
                self._state = State.COMPLETED
                logger.debug("Read-through complete (%d lines)", len(self.lines))
                self.on_complete(self)
                return

            line = self.lines[i]
            if self._roles.owns_line(line.speaker):
                self._state = State.AWAITING_USER
                self.on_line(self, line, True)
                return

            self._state = State.MACHINE_SPEAKING
            self.on_line(self, line, False)
            epoch = self._epoch
            self._finished_inline = False
            self._in_request = True
            try:
                handle = self.speech.request_utterance(line.text, self._completion_for(epoch, i))
            finally:
                self._in_request = False

            if not self._finished_inline:
                if self._is_current(epoch, i):
                    self._handle = handle
                return

    def _is_current(self, epoch: int, index: int) -> bool:
        return epoch == self._epoch and index == self._index

    def _completion_for(self, epoch: int, index: int) -> Callable[[], None]:
        fired = False

        def on_complete():
            nonlocal fired
            if fired:
                return
            fired = True
            if not self._is_current(epoch, index):
                logger.debug("Ignoring stale completion for line %d (epoch %d)", index, epoch)
                return
            if self._state is State.PAUSED:
                self._deferred_completion = True
                return
            if self._state is not State.MACHINE_SPEAKING:
                return
            self._finish_machine_line()

        return on_complete

    def _finish_machine_line(self) -> None:
        self._handle = None
        self._advance()
        if self._in_request:
            self._finished_inline = True
            return
        self._evaluate()
