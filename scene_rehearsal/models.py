"""Data models for script rehearsal."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from scene_rehearsal.roles import RoleAssignment


@dataclass(frozen=True)
class DialogueLine:
    index: int         # position in playback order, assigned at extraction
    speaker: str       # as written in the script, case preserved
    text: str


@dataclass(frozen=True)
class PlaybackSettings:
    """Settings a read-through is started with.

    ``show_only_lines_read_so_far`` hides lines past the current one;
    ``show_my_lines`` prints the user's own lines instead of a prompt, and
    ``show_hints`` chooses between that prompt and a bare placeholder.
    ``starting_line_index`` is where a fresh read-through begins.
    """

    roles: RoleAssignment = field(default_factory=RoleAssignment.no_role)
    show_only_lines_read_so_far: bool = True
    show_my_lines: bool = False
    show_hints: bool = True
    starting_line_index: int = 0


@dataclass
class SessionSnapshot:
    id: str
    title: str             # file name, or "Typed Script"
    raw_text: str          # full script text as supplied, before normalizing
    settings: PlaybackSettings
    progress_index: int = 0
    saved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
