"""Turn canonical script text into ordered dialogue lines."""

from scene_rehearsal.models import DialogueLine
from scene_rehearsal.normalizer import normalize


def extract(normalized_text: str) -> list[DialogueLine]:
    """Split each "Speaker: text" line at its first colon.

    Lines without a colon are skipped, so text that never went through
    normalize() is still safe to pass in. Indexes are contiguous from 0.
    """
    lines = []
    for raw in normalized_text.split("\n"):
        line = raw.strip()
        if not line:
            continue
        speaker, sep, text = line.partition(":")
        if not sep:
            continue
        lines.append(DialogueLine(index=len(lines), speaker=speaker.strip(), text=text.strip()))
    return lines


def speaker_set(lines: list[DialogueLine]) -> list[str]:
    """Distinct speakers (exact match), sorted for display."""
    return sorted({line.speaker for line in lines})


def parse_script(raw_text: str) -> list[DialogueLine]:
    """Normalize raw script text and extract its dialogue lines."""
    return extract(normalize(raw_text))
