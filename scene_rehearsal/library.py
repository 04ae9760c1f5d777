"""Session snapshots and the JSON library that keeps them between runs."""

import json
import logging
import os
import uuid
from datetime import datetime, timezone

from scene_rehearsal.constants import LIBRARY_PATH
from scene_rehearsal.models import PlaybackSettings, SessionSnapshot
from scene_rehearsal.parser import parse_script
from scene_rehearsal.roles import RoleAssignment

logger = logging.getLogger(__name__)


def create_snapshot(
    title: str,
    raw_text: str,
    settings: PlaybackSettings,
    progress_index: int = 0,
    snapshot_id: str | None = None,
) -> SessionSnapshot:
    """Capture a script, its settings and reading position.

    Pass the id of an existing snapshot to produce its updated version.
    """
    return SessionSnapshot(
        id=snapshot_id or str(uuid.uuid4()),
        title=title,
        raw_text=raw_text,
        settings=settings,
        progress_index=progress_index,
        saved_at=datetime.now(timezone.utc),
    )


def settings_to_dict(settings: PlaybackSettings) -> dict:
    return {
        "selected_characters": settings.roles.to_names(),
        "no_role": settings.roles.is_no_role,
        "display_lines_as_read": settings.show_only_lines_read_so_far,
        "display_my_lines": settings.show_my_lines,
        "show_hints": settings.show_hints,
        "starting_line_index": settings.starting_line_index,
    }


def settings_from_dict(data: dict) -> PlaybackSettings:
    """Decode settings, filling in defaults for keys older files lack."""
    names = data.get("selected_characters", [])
    if data.get("no_role"):
        roles = RoleAssignment.no_role()
    else:
        roles = RoleAssignment.from_names(names)
    return PlaybackSettings(
        roles=roles,
        show_only_lines_read_so_far=data.get("display_lines_as_read", True),
        show_my_lines=data.get("display_my_lines", False),
        show_hints=data.get("show_hints", True),
        starting_line_index=data.get("starting_line_index", 0),
    )


def snapshot_to_dict(snapshot: SessionSnapshot) -> dict:
    return {
        "id": snapshot.id,
        "title": snapshot.title,
        "raw_text": snapshot.raw_text,
        "settings": settings_to_dict(snapshot.settings),
        "progress_index": snapshot.progress_index,
        "saved_at": snapshot.saved_at.isoformat(),
    }


def snapshot_from_dict(data: dict) -> SessionSnapshot:
    saved_at = datetime.fromisoformat(data["saved_at"]) if data.get("saved_at") else datetime.now(timezone.utc)
    if saved_at.tzinfo is None:
        # Timestamps without an offset are taken as UTC
        saved_at = saved_at.replace(tzinfo=timezone.utc)
    return SessionSnapshot(
        id=data["id"],
        title=data.get("title", "Untitled"),
        raw_text=data.get("raw_text", ""),
        settings=settings_from_dict(data.get("settings", {})),
        progress_index=data.get("progress_index", 0),
        saved_at=saved_at,
    )


def progress_label(snapshot: SessionSnapshot) -> str:
    """Summary such as "Progress: 3/12", or "" when the script has no lines."""
    total = len(parse_script(snapshot.raw_text))
    if not total:
        return ""
    return f"Progress: {min(snapshot.progress_index, total)}/{total}"


class SessionLibrary:
    """Saved sessions, persisted as a JSON list after every change.

    The library never saves on its own initiative; callers decide when a
    snapshot is worth keeping.
    """

    def __init__(self, path: str = LIBRARY_PATH):
        self.path = path
        self._snapshots: list[SessionSnapshot] = []
        self._unreadable: list = []
        self._load()

    def add(self, snapshot: SessionSnapshot) -> None:
        self._snapshots.append(snapshot)
        self._persist()

    def update(self, snapshot: SessionSnapshot) -> bool:
        """Replace the snapshot with the same id. Unknown ids are ignored."""
        for i, existing in enumerate(self._snapshots):
            if existing.id == snapshot.id:
                self._snapshots[i] = snapshot
                self._persist()
                return True
        logger.warning("No saved session with id %s — nothing updated", snapshot.id)
        return False

    def save(self, snapshot: SessionSnapshot) -> None:
        """Update the snapshot if the library has it, otherwise add it."""
        if self.get(snapshot.id) is None:
            self.add(snapshot)
        else:
            self.update(snapshot)

    def delete(self, snapshot_id: str) -> bool:
        remaining = [s for s in self._snapshots if s.id != snapshot_id]
        if len(remaining) == len(self._snapshots):
            return False
        self._snapshots = remaining
        self._persist()
        return True

    def get(self, snapshot_id: str) -> SessionSnapshot | None:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def find(self, prefix: str) -> SessionSnapshot | None:
        """Look up a snapshot by id or by an unambiguous id prefix."""
        exact = self.get(prefix)
        if exact is not None:
            return exact
        matches = [s for s in self._snapshots if s.id.startswith(prefix)]
        return matches[0] if len(matches) == 1 else None

    def list_all(self) -> list[SessionSnapshot]:
        """All saved sessions, most recently saved first."""
        return sorted(self._snapshots, key=lambda s: s.saved_at, reverse=True)

    def _persist(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        entries = [snapshot_to_dict(s) for s in self._snapshots] + self._unreadable
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w") as f:
            json.dump(entries, f, indent=2)
        os.replace(tmp_path, self.path)

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            data = None
        if not isinstance(data, list):
            backup = self.path + ".bak"
            os.replace(self.path, backup)
            logger.warning("Malformed library file: %s — moved to %s, starting empty", self.path, backup)
            return

        for position, item in enumerate(data):
            try:
                self._snapshots.append(snapshot_from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                # Written back untouched so a later save does not lose it
                logger.warning("Skipping unreadable session #%d in %s (%s)", position, self.path, e)
                self._unreadable.append(item)
