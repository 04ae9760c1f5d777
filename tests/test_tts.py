"""Tests for the speech facilities."""

import os
import threading
from unittest.mock import patch, MagicMock

import pytest
from pydub import AudioSegment

from scene_rehearsal.tts import EdgeSpeech, MuteSpeech, Utterance, render_line, render_path, split_phrases


def _make_mock_communicate():
    """Create a mock edge_tts.Communicate that writes a non-empty file."""
    def factory(text, voice, **kwargs):
        mock = MagicMock()
        async def save(path):
            with open(path, "wb") as f:
                f.write(b"ID3fake-mp3")
        mock.save = save
        return mock
    return factory


# --- Synthesis ---

@patch("scene_rehearsal.tts.time.sleep")
@patch("scene_rehearsal.tts.edge_tts.Communicate")
def test_render_line(mock_comm, mock_sleep, tmp_path):
    mock_comm.side_effect = _make_mock_communicate()
    path = render_line("Hello there.", "en-US-AriaNeural", "+0%", str(tmp_path / "cache"))
    assert path == render_path("Hello there.", "en-US-AriaNeural", "+0%", str(tmp_path / "cache"))
    assert os.path.getsize(path) > 0
    assert not os.path.exists(path + ".part")
    mock_sleep.assert_not_called()


@patch("scene_rehearsal.tts.time.sleep")
@patch("scene_rehearsal.tts.edge_tts.Communicate")
def test_render_line_retry(mock_comm, mock_sleep, tmp_path):
    """Retry works when the first attempt fails."""
    call_count = 0
    ok = _make_mock_communicate()

    def fail_then_succeed(text, voice, **kwargs):
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            mock = MagicMock()
            async def fail_save(path):
                raise Exception("Network error")
            mock.save = fail_save
            return mock
        return ok(text, voice, **kwargs)

    mock_comm.side_effect = fail_then_succeed
    path = render_line("Hello", "en-US-AriaNeural", "+0%", str(tmp_path))
    assert os.path.exists(path)
    assert call_count == 2
    mock_sleep.assert_called_once()


@patch("scene_rehearsal.tts.time.sleep")
@patch("scene_rehearsal.tts.edge_tts.Communicate")
def test_render_line_retry_exhausted(mock_comm, mock_sleep, tmp_path):
    def always_fail(text, voice, **kwargs):
        mock = MagicMock()
        async def fail_save(path):
            raise Exception("Permanent failure")
        mock.save = fail_save
        return mock

    mock_comm.side_effect = always_fail
    with pytest.raises(Exception, match="Permanent failure"):
        render_line("Hello", "en-US-AriaNeural", "+0%", str(tmp_path))
    assert os.listdir(tmp_path) == []


@patch("scene_rehearsal.tts.time.sleep")
@patch("scene_rehearsal.tts.edge_tts.Communicate")
def test_render_line_zero_byte_never_cached(mock_comm, mock_sleep, tmp_path):
    def write_empty(text, voice, **kwargs):
        mock = MagicMock()
        async def save(path):
            open(path, "w").close()
        mock.save = save
        return mock

    mock_comm.side_effect = write_empty
    with pytest.raises(Exception, match="0-byte"):
        render_line("Hello", "en-US-AriaNeural", "+0%", str(tmp_path))
    assert os.listdir(tmp_path) == []


def test_render_path_depends_on_voice_rate_text(tmp_path):
    base = render_path("Hi.", "voice-a", "+0%", str(tmp_path))
    assert base == render_path("Hi.", "voice-a", "+0%", str(tmp_path))
    assert base != render_path("Hi.", "voice-b", "+0%", str(tmp_path))
    assert base != render_path("Hi.", "voice-a", "-10%", str(tmp_path))
    assert base != render_path("Bye.", "voice-a", "+0%", str(tmp_path))
    assert base.endswith(".mp3")


@patch("scene_rehearsal.tts.edge_tts.Communicate")
def test_render_uses_cache(mock_comm, tmp_path):
    mock_comm.side_effect = _make_mock_communicate()
    speech = EdgeSpeech(cache_dir=str(tmp_path / "cache"))
    first = speech.render("Hello there.")
    second = speech.render("Hello there.")
    assert first == second
    assert os.path.exists(first)
    assert mock_comm.call_count == 1


# --- Playback ---

@patch("scene_rehearsal.tts.split_on_silence")
def test_split_phrases_falls_back_to_whole_clip(mock_split):
    audio = AudioSegment.silent(duration=300)
    mock_split.return_value = []
    assert split_phrases(audio) == [audio]

    mock_split.return_value = [audio[:100], audio[100:]]
    assert len(split_phrases(audio)) == 2


def _speech_with_silent_audio(tmp_path, deliver=None):
    speech = EdgeSpeech(cache_dir=str(tmp_path), deliver=deliver)
    speech.render = MagicMock(return_value=str(tmp_path / "line.mp3"))
    return speech


@patch("scene_rehearsal.tts.play")
@patch("scene_rehearsal.tts.AudioSegment.from_mp3")
def test_utterance_plays_and_completes(mock_from_mp3, mock_play, tmp_path):
    mock_from_mp3.return_value = AudioSegment.silent(duration=100)
    done = threading.Event()
    speech = _speech_with_silent_audio(tmp_path)

    handle = speech.request_utterance("Hello there.", done.set)
    handle.thread.join(timeout=5)

    assert done.is_set()
    assert mock_play.called
    speech.render.assert_called_once_with("Hello there.")


@patch("scene_rehearsal.tts.play")
@patch("scene_rehearsal.tts.AudioSegment.from_mp3")
def test_completion_goes_through_deliver(mock_from_mp3, mock_play, tmp_path):
    mock_from_mp3.return_value = AudioSegment.silent(duration=100)
    delivered = []
    speech = _speech_with_silent_audio(tmp_path, deliver=delivered.append)
    callback = MagicMock()

    handle = speech.request_utterance("Hi.", callback)
    handle.thread.join(timeout=5)

    assert delivered == [callback]
    callback.assert_not_called()


@patch("scene_rehearsal.tts.play")
@patch("scene_rehearsal.tts.AudioSegment.from_mp3")
def test_stopped_utterance_never_completes(mock_from_mp3, mock_play, tmp_path):
    mock_from_mp3.return_value = AudioSegment.silent(duration=100)
    callback = MagicMock()
    speech = _speech_with_silent_audio(tmp_path)

    handle = Utterance("Hi.", callback)
    handle.stop()
    speech._speak(handle)

    callback.assert_not_called()
    mock_play.assert_not_called()


@patch("scene_rehearsal.tts.play")
@patch("scene_rehearsal.tts.AudioSegment.from_mp3")
def test_paused_utterance_waits(mock_from_mp3, mock_play, tmp_path):
    mock_from_mp3.return_value = AudioSegment.silent(duration=100)
    done = threading.Event()
    speech = _speech_with_silent_audio(tmp_path)

    handle = Utterance("Hi.", done.set)
    speech.pause(handle)
    assert handle.paused
    handle.thread = threading.Thread(target=speech._speak, args=(handle,), daemon=True)
    handle.thread.start()

    assert not done.wait(timeout=0.2)
    speech.resume(handle)
    handle.thread.join(timeout=5)
    assert done.is_set()


@patch("scene_rehearsal.tts.play")
def test_synthesis_failure_still_completes(mock_play, tmp_path, caplog):
    """A line that cannot be spoken is logged and the read-through continues."""
    done = threading.Event()
    speech = EdgeSpeech(cache_dir=str(tmp_path))
    speech.render = MagicMock(side_effect=Exception("no network"))

    handle = speech.request_utterance("Hi.", done.set)
    handle.thread.join(timeout=5)

    assert done.is_set()
    assert "Could not speak line" in caplog.text
    mock_play.assert_not_called()


def test_handle_none_is_ignored(tmp_path):
    speech = EdgeSpeech(cache_dir=str(tmp_path))
    speech.pause(None)
    speech.resume(None)
    speech.stop(None)


# --- Mute ---

def test_mute_speech_completes_via_deliver():
    delivered = []
    speech = MuteSpeech(deliver=delivered.append)
    callback = MagicMock()
    handle = speech.request_utterance("Hi.", callback)
    assert delivered == [callback]
    speech.pause(handle)
    speech.resume(handle)
    speech.stop(handle)
