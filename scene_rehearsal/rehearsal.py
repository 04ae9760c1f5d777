"""Host-side rehearsal session: load a script, pick roles, read it through."""

import logging
from enum import Enum

from scene_rehearsal.engine import SpeechFacility, State, TurnTakingEngine
from scene_rehearsal.library import create_snapshot
from scene_rehearsal.models import PlaybackSettings, SessionSnapshot
from scene_rehearsal.parser import parse_script, speaker_set
from scene_rehearsal.roles import RoleAssignment

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    UPLOADING = "uploading"
    SELECTING_ROLES = "selecting_roles"
    READING = "reading"
    COMPLETED = "completed"


class Rehearsal:
    """One script being rehearsed.

    Owns the outer flow Uploading -> SelectingRoles -> Reading -> Completed.
    Parsing is pure and the engine only knows about the Reading phase; this
    class connects them and produces snapshots for the library. Engine hooks
    are forwarded to the optional on_line / on_progress / on_complete
    callbacks given here.
    """

    def __init__(self, speech: SpeechFacility, on_line=None, on_progress=None, on_complete=None):
        self.speech = speech
        self.on_line = on_line
        self.on_progress = on_progress
        self.on_complete = on_complete

        self.phase = Phase.UPLOADING
        self.title = ""
        self.raw_text = ""
        self.lines = []
        self.speakers = []
        self.roles = RoleAssignment()
        self.show_only_lines_read_so_far = True
        self.show_my_lines = False
        self.show_hints = True
        self.starting_line_index = 0
        self.engine: TurnTakingEngine | None = None
        self.snapshot_id: str | None = None

    def load_text(self, raw_text: str, title: str = "Typed Script") -> bool:
        """Parse a script. Returns False, staying in Uploading, if no lines were found."""
        self._stop_engine()
        lines = parse_script(raw_text)
        if not lines:
            logger.info("No lines with a speaker found in %s", title)
            self.phase = Phase.UPLOADING
            return False
        self.title = title
        self.raw_text = raw_text
        self.lines = lines
        self.speakers = speaker_set(lines)
        self.roles = RoleAssignment()
        self.starting_line_index = 0
        self.snapshot_id = None
        self.phase = Phase.SELECTING_ROLES
        logger.debug("Loaded %d lines, %d speakers from %s", len(lines), len(self.speakers), title)
        return True

    @property
    def settings(self) -> PlaybackSettings:
        return PlaybackSettings(
            roles=self.roles.copy(),
            show_only_lines_read_so_far=self.show_only_lines_read_so_far,
            show_my_lines=self.show_my_lines,
            show_hints=self.show_hints,
            starting_line_index=self.starting_line_index,
        )

    @property
    def current_index(self) -> int:
        return self.engine.current_index if self.engine else 0

    def begin(self, start_index: int | None = None) -> bool:
        """Start reading. Requires a speaker or "no role" to have been chosen.

        Without ``start_index`` the read-through begins at the chosen starting line.
        """
        if self.phase is Phase.UPLOADING:
            logger.warning("begin() ignored: no script loaded")
            return False
        if self.roles.is_empty:
            logger.warning("begin() ignored: no role selected")
            return False
        self._stop_engine()
        self.engine = TurnTakingEngine(
            self.lines,
            self.settings,
            self.speech,
            on_line=self._line_reached,
            on_progress=self._progress_made,
            on_complete=self._finished,
        )
        self.phase = Phase.READING
        if start_index is None:
            start_index = self.starting_line_index
        return self.engine.start(start_index)

    def keep_settings(self) -> bool:
        """Read the script again from the top with the same roles."""
        if self.engine is None or self.engine.needs_role_selection:
            logger.debug("keep_settings() ignored: roles must be chosen first")
            return False
        if not self.engine.restart(keep_settings=True):
            return False
        if self.engine.state is not State.COMPLETED:
            self.phase = Phase.READING
        return True

    def change_settings(self) -> None:
        """Go back to role selection; the previous choice is dropped."""
        if self.engine is not None:
            self.engine.restart(keep_settings=False)
        self.roles = RoleAssignment.no_role()
        self.show_only_lines_read_so_far = True
        self.phase = Phase.SELECTING_ROLES

    def snapshot(self) -> SessionSnapshot:
        return create_snapshot(
            self.title,
            self.raw_text,
            self.settings,
            progress_index=self.current_index,
            snapshot_id=self.snapshot_id,
        )

    def restore(self, snapshot: SessionSnapshot, begin: bool = True) -> bool:
        """Load a saved session and, unless told otherwise, continue where it stopped."""
        if not self.load_text(snapshot.raw_text, snapshot.title):
            return False
        self.snapshot_id = snapshot.id
        self.roles = snapshot.settings.roles.copy()
        self.show_only_lines_read_so_far = snapshot.settings.show_only_lines_read_so_far
        self.show_my_lines = snapshot.settings.show_my_lines
        self.show_hints = snapshot.settings.show_hints
        self.starting_line_index = snapshot.settings.starting_line_index
        if begin and not self.roles.is_empty:
            return self.begin(start_index=snapshot.progress_index or None)
        return True

    def _stop_engine(self) -> None:
        if self.engine is not None and self.engine.state is not State.IDLE:
            self.engine.restart(keep_settings=False)
        self.engine = None

    def _line_reached(self, engine, line, owned):
        if self.on_line:
            self.on_line(self, line, owned)

    def _progress_made(self, engine, index):
        if self.on_progress:
            self.on_progress(self, index)

    def _finished(self, engine):
        self.phase = Phase.COMPLETED
        if self.on_complete:
            self.on_complete(self)

