"""Read-only projections of engine position for whatever draws the script."""

from scene_rehearsal.constants import HIDDEN_LINE_MARK, HIGHLIGHT_COLOR, NEUTRAL_COLOR, PALETTE, YOUR_LINE_PROMPT
from scene_rehearsal.models import DialogueLine
from scene_rehearsal.roles import RoleAssignment


def visible_lines(
    lines: list[DialogueLine],
    current_index: int,
    show_only_read: bool,
) -> list[DialogueLine]:
    """Lines to draw: everything up to the current line, or the whole script."""
    if not show_only_read:
        return list(lines)
    return [line for line in lines if line.index <= current_index]


def line_text_for(
    line: DialogueLine,
    roles: RoleAssignment,
    show_my_lines: bool,
    show_hints: bool = True,
) -> str:
    """Text to show for a line, hiding the user's own lines unless asked not to."""
    if roles.owns_line(line.speaker) and not show_my_lines:
        return YOUR_LINE_PROMPT if show_hints else HIDDEN_LINE_MARK
    return line.text


def highlight_for(line: DialogueLine, roles: RoleAssignment) -> str:
    """Colour used when this line is the current one."""
    if not roles.owns_line(line.speaker):
        return HIGHLIGHT_COLOR
    color = roles.color_for(line.speaker)
    return NEUTRAL_COLOR if color is None else PALETTE[color]
