"""Tests for role assignment."""

from scene_rehearsal.constants import PALETTE
from scene_rehearsal.roles import RoleAssignment


def test_new_assignment_is_empty():
    roles = RoleAssignment()
    assert roles.is_empty
    assert not roles.is_no_role
    assert roles.speakers == ()


def test_set_sentinel_discards_speakers():
    roles = RoleAssignment(["ALICE", "Bob"])
    roles.set_sentinel()
    assert roles.is_no_role
    assert roles.speakers == ()
    assert not roles.is_empty


def test_toggle_on_clears_sentinel():
    roles = RoleAssignment.no_role()
    roles.toggle_speaker("ALICE", True)
    assert not roles.is_no_role
    assert roles.speakers == ("ALICE",)


def test_toggle_off_removes_speaker():
    roles = RoleAssignment(["ALICE", "Bob"])
    roles.toggle_speaker("Bob", False)
    assert roles.speakers == ("ALICE",)


def test_toggle_is_idempotent():
    roles = RoleAssignment()
    roles.toggle_speaker("ALICE", True)
    roles.toggle_speaker("ALICE", True)
    assert roles.speakers == ("ALICE",)
    roles.toggle_speaker("ALICE", False)
    roles.toggle_speaker("ALICE", False)
    assert roles.is_empty


def test_toggle_off_keeps_sentinel():
    """Removing a speaker that was never chosen leaves "no role" in place."""
    roles = RoleAssignment.no_role()
    roles.toggle_speaker("ALICE", False)
    assert roles.is_no_role


def test_owns_line_case_insensitive():
    roles = RoleAssignment(["ALICE"])
    assert roles.owns_line("alice")
    assert roles.owns_line("Alice")
    assert roles.owns_line("ALICE")
    assert not roles.owns_line("Bob")


def test_owns_line_false_with_sentinel():
    roles = RoleAssignment.no_role()
    assert not roles.owns_line("ALICE")
    assert not roles.owns_line("Not Applicable")


def test_owns_line_empty_assignment():
    assert not RoleAssignment().owns_line("ALICE")


def test_color_for_sorted_position():
    roles = RoleAssignment(["Zed", "Amy", "Max"])
    assert roles.color_for("Amy") == 0
    assert roles.color_for("Max") == 1
    assert roles.color_for("Zed") == 2


def test_color_for_wraps_palette():
    names = [f"S{i}" for i in range(len(PALETTE) + 1)]
    roles = RoleAssignment(names)
    assert roles.color_for(names[len(PALETTE)]) == 0


def test_color_for_non_member_is_neutral():
    roles = RoleAssignment(["ALICE"])
    assert roles.color_for("Bob") is None
    assert RoleAssignment.no_role().color_for("Bob") is None


def test_color_shifts_when_selection_changes():
    """Colours are relative to the current selection."""
    roles = RoleAssignment(["Max"])
    assert roles.color_for("Max") == 0
    roles.toggle_speaker("Amy", True)
    assert roles.color_for("Max") == 1


def test_from_names_legacy_marker():
    """Older libraries stored "no role" as a literal entry."""
    roles = RoleAssignment.from_names(["Not Applicable"])
    assert roles.is_no_role


def test_to_names_round_trip():
    roles = RoleAssignment(["Bob", "ALICE"])
    assert RoleAssignment.from_names(roles.to_names()) == roles
    assert RoleAssignment.no_role().to_names() == []


def test_copy_is_independent():
    roles = RoleAssignment(["ALICE"])
    clone = roles.copy()
    clone.toggle_speaker("Bob", True)
    assert roles.speakers == ("ALICE",)
    assert clone == RoleAssignment(["ALICE", "Bob"])
