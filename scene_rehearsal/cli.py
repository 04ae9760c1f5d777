"""CLI interface: parse scripts, manage saved sessions, rehearse in the terminal."""

import argparse
import logging
import os
import queue
import sys
import threading

from rich.console import Console
from rich.text import Text

from scene_rehearsal.constants import DEFAULT_VOICE, LIBRARY_PATH, NEUTRAL_COLOR, TTS_RATE, VERSION
from scene_rehearsal.display import highlight_for, line_text_for, visible_lines
from scene_rehearsal.engine import State
from scene_rehearsal.library import SessionLibrary, create_snapshot, progress_label
from scene_rehearsal.models import PlaybackSettings
from scene_rehearsal.normalizer import normalize
from scene_rehearsal.parser import extract, speaker_set
from scene_rehearsal.rehearsal import Phase, Rehearsal
from scene_rehearsal.roles import RoleAssignment
from scene_rehearsal.tts import EdgeSpeech, MuteSpeech

logger = logging.getLogger(__name__)

READING_HELP = "Enter: done with your line   p: pause/resume   r: restart   c: change roles   s: save   q: quit"
COMPLETED_HELP = "Script complete.   k: again with the same roles   c: change roles   q: quit"


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(1)


def _read_source(path: str) -> str:
    """Read script text from a file, or from stdin when path is "-"."""
    if path == "-":
        return sys.stdin.read()
    if not os.path.exists(path):
        _fail(f"File not found: {path}")
    with open(path, encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        _fail(f"File is empty: {path}")
    return text


def _title_for(path: str, title: str | None) -> str:
    if title:
        return title
    return "Typed Script" if path == "-" else os.path.basename(path)


def _queue_deliver(events: queue.Queue):
    def deliver(callback):
        events.put(("callback", callback))

    return deliver


def _make_speech(args, deliver):
    if args.mute:
        return MuteSpeech(deliver=deliver)
    return EdgeSpeech(voice=args.voice, rate=args.rate, deliver=deliver)


def parse_role_choice(answer: str, speakers: list[str]) -> RoleAssignment | None:
    """Turn a role prompt answer into an assignment.

    Accepts "0" for no role, or comma-separated speaker numbers and/or
    names. Returns None when nothing valid was chosen.
    """
    answer = answer.strip()
    if answer == "0":
        return RoleAssignment.no_role()
    roles = RoleAssignment()
    for part in answer.split(","):
        part = part.strip()
        if not part:
            continue
        if part.isdecimal():
            number = int(part)
            if 1 <= number <= len(speakers):
                roles.toggle_speaker(speakers[number - 1], True)
            continue
        for speaker in speakers:
            if speaker.casefold() == part.casefold():
                roles.toggle_speaker(speaker, True)
                break
    return None if roles.is_empty else roles


def _roles_from_args(args, speakers: list[str]) -> RoleAssignment:
    """Roles named on the command line; an unknown name only gets a warning."""
    roles = RoleAssignment()
    if args.no_role:
        roles.set_sentinel()
        return roles
    known = {s.casefold() for s in speakers}
    for name in args.role or []:
        if name.casefold() not in known:
            print(f"Warning: '{name}' has no lines in this script.", file=sys.stderr)
        roles.toggle_speaker(name, True)
    return roles


def _settings_from_args(args, lines) -> PlaybackSettings:
    if args.from_line is not None and not 0 <= args.from_line < len(lines):
        _fail(f"--from-line must be between 0 and {len(lines) - 1} (see 'parse' for line numbers).")
    return PlaybackSettings(
        roles=_roles_from_args(args, speaker_set(lines)),
        show_only_lines_read_so_far=not args.show_all,
        show_my_lines=args.show_my_lines,
        show_hints=not args.no_hints,
        starting_line_index=args.from_line or 0,
    )


def _next_input(events: queue.Queue) -> str:
    """Wait for the next line typed by the user, running speech callbacks meanwhile."""
    while True:
        kind, payload = events.get()
        if kind == "input":
            return payload
        payload()


def _prompt_roles(rehearsal: Rehearsal, events: queue.Queue) -> bool:
    """Ask which speakers the user reads. Returns False if the user quit."""
    print("Speakers:")
    print("  0. No role (listen to the whole script)")
    for number, speaker in enumerate(rehearsal.speakers, start=1):
        print(f"  {number}. {speaker}")
    while True:
        print("Your role(s), e.g. 1,3 (q to quit): ", end="", flush=True)
        answer = _next_input(events)
        if answer.lower() == "q":
            return False
        roles = parse_role_choice(answer, rehearsal.speakers)
        if roles is not None:
            rehearsal.roles = roles
            return True
        print("Please select at least one character, or 0 for no role.")


def _render_line(console: Console, rehearsal: Rehearsal, line, current: bool) -> None:
    roles = rehearsal.roles
    console.print(Text(line.speaker, style="bold"))
    text = line_text_for(line, roles, rehearsal.show_my_lines, rehearsal.show_hints)
    if current:
        console.print(Text(text, style=f"black on {highlight_for(line, roles)}"))
    else:
        console.print(Text(text, style=NEUTRAL_COLOR))


def _save(rehearsal: Rehearsal, library: SessionLibrary) -> None:
    snapshot = rehearsal.snapshot()
    library.save(snapshot)
    rehearsal.snapshot_id = snapshot.id
    print(f"Saved session {snapshot.id[:8]} ({snapshot.title})")


def run_read_through(
    rehearsal: Rehearsal,
    events: queue.Queue,
    console: Console,
    library: SessionLibrary | None = None,
    start_index: int | None = None,
) -> None:
    """Drive a rehearsal from a queue of ("input", text) and ("callback", fn) events.

    The first read-through begins at start_index, or at the rehearsal's
    starting line when it is None.

    Speech completions and keystrokes arrive on the same queue, so the engine
    only ever runs on this thread.
    """

    def on_line(r, line, owned):
        _render_line(console, r, line, current=True)

    def on_progress(r, index):
        if library is not None and r.snapshot_id:
            library.update(r.snapshot())

    def on_complete(r):
        console.print(COMPLETED_HELP)

    rehearsal.on_line = on_line
    rehearsal.on_progress = on_progress
    rehearsal.on_complete = on_complete

    while True:
        if rehearsal.phase is Phase.SELECTING_ROLES:
            if rehearsal.roles.is_empty and not _prompt_roles(rehearsal, events):
                return
            console.print(READING_HELP, style=NEUTRAL_COLOR)
            first = rehearsal.starting_line_index if start_index is None else start_index
            for line in visible_lines(rehearsal.lines, first - 1, rehearsal.show_only_lines_read_so_far):
                _render_line(console, rehearsal, line, current=False)
            rehearsal.begin(start_index=start_index)
            start_index = None

        kind, payload = events.get()
        if kind == "callback":
            payload()
            continue

        key = payload.strip().lower()
        engine = rehearsal.engine
        if key == "q" or engine is None:
            if library is not None and rehearsal.snapshot_id:
                library.update(rehearsal.snapshot())
            if engine is not None:
                engine.restart(keep_settings=False)
            return
        if key == "s" and library is not None:
            _save(rehearsal, library)
        elif key == "c":
            rehearsal.change_settings()
            rehearsal.roles = RoleAssignment()
        elif rehearsal.phase is Phase.COMPLETED:
            if key == "k":
                console.print(READING_HELP, style=NEUTRAL_COLOR)
                rehearsal.keep_settings()
        elif key == "":
            if not engine.user_confirm():
                logger.debug("Not your line yet")
        elif key == "p":
            if engine.state is State.PAUSED:
                engine.resume()
            else:
                engine.pause()
        elif key == "r":
            rehearsal.keep_settings()


def _start_input_thread(events: queue.Queue) -> None:
    def read_lines():
        for line in sys.stdin:
            events.put(("input", line.rstrip("\n")))
        events.put(("input", "q"))

    threading.Thread(target=read_lines, daemon=True).start()


def cmd_parse(args):
    """Show how a script file is read."""
    text = _read_source(args.file)
    normalized = normalize(text)
    if args.normalized:
        print(normalized)
        return
    lines = extract(normalized)
    if not lines:
        _fail(f"No lines with a speaker found in: {args.file}")
    speakers = speaker_set(lines)
    print(f"Parsed {len(lines)} lines, {len(speakers)} speakers")
    print(f"Speakers: {', '.join(speakers)}")
    for line in lines:
        print(f"  {line.index:>4}  {line.speaker}: {line.text}")


def cmd_new(args):
    """Save a script to the library without rehearsing it."""
    text = _read_source(args.file)
    lines = extract(normalize(text))
    if not lines:
        _fail(f"No lines with a speaker found in: {args.file}")
    settings = _settings_from_args(args, lines)
    snapshot = create_snapshot(_title_for(args.file, args.title), text, settings)
    SessionLibrary(args.library).add(snapshot)
    print(f"Saved session {snapshot.id[:8]} ({snapshot.title})")


def cmd_list(args):
    """List saved sessions."""
    snapshots = SessionLibrary(args.library).list_all()
    if not snapshots:
        print("No saved sessions.")
        return
    print("Saved sessions:")
    for s in snapshots:
        roles = s.settings.roles
        cast = "no role" if roles.is_no_role else ", ".join(roles.speakers) or "roles not chosen"
        print(f"  {s.id[:8]}  {s.title:<24} {s.saved_at:%Y-%m-%d}  {progress_label(s):<16} {cast}")


def cmd_delete(args):
    """Delete a saved session."""
    library = SessionLibrary(args.library)
    snapshot = library.find(args.id)
    if snapshot is None:
        _fail(f"No saved session matches '{args.id}'.")
    library.delete(snapshot.id)
    print(f"Deleted session {snapshot.id[:8]} ({snapshot.title})")


def cmd_rehearse(args):
    """Rehearse a script file interactively."""
    if args.file == "-":
        _fail("Rehearsing needs the keyboard; save typed scripts with 'new -' first.")
    text = _read_source(args.file)

    events = queue.Queue()
    rehearsal = Rehearsal(_make_speech(args, _queue_deliver(events)))
    if not rehearsal.load_text(text, _title_for(args.file, args.title)):
        _fail(f"No lines with a speaker found in: {args.file}")

    settings = _settings_from_args(args, rehearsal.lines)
    rehearsal.roles = settings.roles
    rehearsal.show_only_lines_read_so_far = settings.show_only_lines_read_so_far
    rehearsal.show_my_lines = settings.show_my_lines
    rehearsal.show_hints = settings.show_hints
    rehearsal.starting_line_index = settings.starting_line_index
    if rehearsal.roles.is_empty and not sys.stdin.isatty():
        _fail("No role selected. Use --role NAME or --no-role.")

    library = SessionLibrary(args.library)
    if args.save:
        _save(rehearsal, library)

    _start_input_thread(events)
    run_read_through(rehearsal, events, Console(), library=library)


def cmd_resume(args):
    """Continue a saved session where it stopped."""
    library = SessionLibrary(args.library)
    snapshot = library.find(args.id)
    if snapshot is None:
        _fail(f"No saved session matches '{args.id}'.")

    events = queue.Queue()
    rehearsal = Rehearsal(_make_speech(args, _queue_deliver(events)))
    if not rehearsal.restore(snapshot, begin=False):
        _fail(f"Saved session '{snapshot.title}' has no lines with a speaker.")

    _start_input_thread(events)
    run_read_through(rehearsal, events, Console(), library=library, start_index=snapshot.progress_index or None)


def _add_settings_args(parser):
    parser.add_argument("--title", help="Title to save under (default: file name)")
    parser.add_argument("--role", action="append", help="Speaker you will read (repeatable)")
    parser.add_argument("--no-role", action="store_true", help="Listen to every line")
    parser.add_argument("--show-all", action="store_true", help="Show the whole script, not only lines read so far")
    parser.add_argument("--show-my-lines", action="store_true", help="Show the text of your own lines")
    parser.add_argument("--no-hints", action="store_true", help="Mark your lines with '...' instead of a prompt")
    parser.add_argument("--from-line", type=int, metavar="N", help="Start at line N, as numbered by 'parse'")


def _add_speech_args(parser):
    parser.add_argument("--mute", action="store_true", help="Show lines without speaking them")
    parser.add_argument("--voice", default=DEFAULT_VOICE, help=f"edge-tts voice (default: {DEFAULT_VOICE})")
    parser.add_argument("--rate", default=TTS_RATE, help="Speech rate, e.g. -10%% or +20%%")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="scene-rehearsal",
        description="Scene Rehearsal — read a script aloud with the computer voicing the other parts",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--library", default=LIBRARY_PATH, help="Path to the saved-session library")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # parse
    parse_parser = subparsers.add_parser("parse", help="Show the lines and speakers found in a script")
    parse_parser.add_argument("file", help="Script text file, or - for stdin")
    parse_parser.add_argument("--normalized", action="store_true", help="Print the normalized text only")
    parse_parser.set_defaults(func=cmd_parse)

    # new
    new_parser = subparsers.add_parser("new", help="Save a script to the library")
    new_parser.add_argument("file", help="Script text file, or - for stdin")
    _add_settings_args(new_parser)
    new_parser.set_defaults(func=cmd_new)

    # list
    list_parser = subparsers.add_parser("list", help="List saved sessions")
    list_parser.set_defaults(func=cmd_list)

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a saved session")
    delete_parser.add_argument("id", help="Session id or unique id prefix")
    delete_parser.set_defaults(func=cmd_delete)

    # rehearse
    rehearse_parser = subparsers.add_parser("rehearse", help="Rehearse a script file")
    rehearse_parser.add_argument("file", help="Script text file")
    _add_settings_args(rehearse_parser)
    rehearse_parser.add_argument("--save", action="store_true", help="Save the session and keep its progress")
    _add_speech_args(rehearse_parser)
    rehearse_parser.set_defaults(func=cmd_rehearse)

    # resume
    resume_parser = subparsers.add_parser("resume", help="Continue a saved session")
    resume_parser.add_argument("id", help="Session id or unique id prefix")
    _add_speech_args(resume_parser)
    resume_parser.set_defaults(func=cmd_resume)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)
