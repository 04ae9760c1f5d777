"""Shared fixtures for scene rehearsal tests."""

import pytest

from scene_rehearsal.models import DialogueLine


class FakeSpeech:
    """Speech facility that records requests and completes only when told to."""

    def __init__(self):
        self.requests = []      # (handle, text, on_complete)
        self.calls = []         # ("pause" | "resume" | "stop", handle)

    def request_utterance(self, text, on_complete):
        handle = len(self.requests)
        self.requests.append((handle, text, on_complete))
        return handle

    def pause(self, handle):
        self.calls.append(("pause", handle))

    def resume(self, handle):
        self.calls.append(("resume", handle))

    def stop(self, handle):
        self.calls.append(("stop", handle))

    @property
    def spoken(self):
        return [text for _, text, _ in self.requests]

    def finish(self, n=-1):
        """Fire the completion callback of request n (default: the latest)."""
        self.requests[n][2]()


class InstantSpeech(FakeSpeech):
    """Completes every request before request_utterance returns."""

    def request_utterance(self, text, on_complete):
        handle = super().request_utterance(text, on_complete)
        on_complete()
        return handle


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def sample_lines():
    """Three-line scene: Alice, Bob, Alice."""
    return [
        DialogueLine(index=0, speaker="ALICE", text="Hello there."),
        DialogueLine(index=1, speaker="Bob", text="I'm ready."),
        DialogueLine(index=2, speaker="ALICE", text="Then let's begin."),
    ]


@pytest.fixture
def sample_script():
    return (
        "1\n"
        "ALICE (smiling)\n"
        "Hello there.\n"
        "\n"
        "Bob: I'm ready.\n"
        "ALICE\n"
        "Then let's begin.\n"
    )


@pytest.fixture
def instant_speech():
    return InstantSpeech()
