"""Rewrite loosely formatted script text into canonical "Speaker: line" form."""

import re

# Stage directions such as "(smiling)"; each occurrence is removed on its own
_PARENTHETICAL_RE = re.compile(r"\(.*?\)")


def _clean(line: str) -> str:
    """Trim a raw line and drop its parentheticals."""
    return _PARENTHETICAL_RE.sub("", line.strip()).strip()


def _is_all_caps(line: str) -> bool:
    return line == line.upper()


def _is_speaker_candidate(line: str) -> bool:
    return _is_all_caps(line) and ":" not in line


def normalize(raw_text: str) -> str:
    """Convert script text to one "Speaker: line" entry per line.

    Best effort, never fails. Handles two layouts and any mix of them:

      ALICE                          ALICE: Hello there.
      Hello there.          ->
      Bob: I'm ready.                Bob: I'm ready.

    Blank lines and bare scene/page numbers are skipped. A name line only
    absorbs the following line when that line is not itself all caps. Lines
    left without a colon are dropped.
    """
    lines = raw_text.splitlines()
    converted = []
    i = 0

    while i < len(lines):
        current = _clean(lines[i])

        if not current or current.isdecimal():
            i += 1
            continue

        if _is_speaker_candidate(current) and i + 1 < len(lines):
            following = _clean(lines[i + 1])
            if following and not _is_all_caps(following):
                converted.append(f"{current}: {following}")
                i += 2
                continue

        if ":" in current:
            converted.append(current)

        i += 1

    return "\n".join(converted)
