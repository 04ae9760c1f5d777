"""Which speakers the user voices during a read-through."""

from scene_rehearsal.constants import NO_ROLE_LABEL, PALETTE


class RoleAssignment:
    """A set of speaker names the user reads, or the "no role" sentinel.

    The sentinel means every line is machine-voiced. It never coexists with
    real speakers: choosing a speaker clears it, choosing it clears the
    speakers. Names are stored as written; ownership checks ignore case.
    """

    def __init__(self, speakers=(), no_role: bool = False):
        self._speakers: set[str] = set()
        self._no_role = False
        if no_role:
            self.set_sentinel()
        for name in speakers:
            self.toggle_speaker(name, True)

    @classmethod
    def no_role(cls) -> "RoleAssignment":
        return cls(no_role=True)

    @classmethod
    def from_names(cls, names: list[str]) -> "RoleAssignment":
        """Rebuild an assignment from its stored names.

        Libraries written before the sentinel was a flag stored it as the
        literal "Not Applicable" entry.
        """
        if NO_ROLE_LABEL in names:
            return cls.no_role()
        return cls(names)

    @property
    def is_no_role(self) -> bool:
        return self._no_role

    @property
    def is_empty(self) -> bool:
        """True when neither a speaker nor the sentinel has been chosen."""
        return not self._no_role and not self._speakers

    @property
    def speakers(self) -> tuple[str, ...]:
        return tuple(sorted(self._speakers))

    def set_sentinel(self) -> None:
        self._speakers.clear()
        self._no_role = True

    def clear(self) -> None:
        self._speakers.clear()
        self._no_role = False

    def toggle_speaker(self, name: str, on: bool) -> None:
        if on:
            self._no_role = False
            self._speakers.add(name)
        else:
            self._speakers.discard(name)

    def owns_line(self, speaker: str) -> bool:
        if self._no_role:
            return False
        folded = speaker.casefold()
        return any(name.casefold() == folded for name in self._speakers)

    def color_for(self, speaker: str) -> int | None:
        """Palette index for an assigned speaker, None for everyone else.

        Depends on the current selection: adding or removing a speaker can
        shift the colour of the others.
        """
        ordered = sorted(self._speakers)
        if speaker not in ordered:
            return None
        return ordered.index(speaker) % len(PALETTE)

    def to_names(self) -> list[str]:
        return [] if self._no_role else list(self.speakers)

    def copy(self) -> "RoleAssignment":
        return RoleAssignment(self._speakers, no_role=self._no_role)

    def __eq__(self, other):
        if not isinstance(other, RoleAssignment):
            return NotImplemented
        return self._no_role == other._no_role and self._speakers == other._speakers

    def __repr__(self):
        if self._no_role:
            return "RoleAssignment(no_role=True)"
        return f"RoleAssignment({list(self.speakers)!r})"
