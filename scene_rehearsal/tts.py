"""Speech facilities: edge-tts synthesis with pausable pydub playback."""

import asyncio
import hashlib
import logging
import os
import threading
import time

import edge_tts
from pydub import AudioSegment
from pydub.playback import play
from pydub.silence import split_on_silence

from scene_rehearsal.constants import (
    DEFAULT_VOICE,
    PHRASE_SILENCE_MS,
    POST_UTTERANCE_DELAY_MS,
    RENDER_CACHE_DIR,
    SILENCE_THRESH_OFFSET_DB,
    TTS_RATE,
    TTS_RETRY_BASE_DELAY,
    TTS_RETRY_COUNT,
)

logger = logging.getLogger(__name__)


def _call_now(callback):
    callback()


def render_path(text: str, voice: str, rate: str, cache_dir: str) -> str:
    """Cache location for a rendered line; same text, voice and rate share a file."""
    digest = hashlib.sha256(f"{voice}|{rate}|{text}".encode()).hexdigest()
    return os.path.join(cache_dir, f"{digest[:32]}.mp3")


def render_line(text: str, voice: str, rate: str, cache_dir: str) -> str:
    """Return the cached MP3 for a line, synthesizing it with edge-tts if missing.

    Audio is written to a ``.part`` file and only moved into place once it is
    non-empty, so an interrupted or failed render never poisons the cache.
    Network errors and 0-byte output are retried with exponential backoff;
    the last error is raised once the retries run out.
    """
    path = render_path(text, voice, rate, cache_dir)
    if os.path.exists(path) and os.path.getsize(path) > 0:
        logger.debug("[cache] %s", os.path.basename(path))
        return path

    os.makedirs(cache_dir, exist_ok=True)
    partial = path + ".part"
    logger.debug("Rendering %r with %s", text[:50], voice)

    last_error = None
    for attempt in range(TTS_RETRY_COUNT):
        try:
            asyncio.run(edge_tts.Communicate(text, voice, rate=rate).save(partial))
            if os.path.exists(partial) and os.path.getsize(partial) > 0:
                os.replace(partial, path)
                return path
            last_error = Exception(f"TTS produced 0-byte file for: {text[:50]}")
        except Exception as e:
            last_error = e

        if attempt < TTS_RETRY_COUNT - 1:
            delay = TTS_RETRY_BASE_DELAY * (2 ** attempt)
            logger.warning("Render attempt %d failed (%s), retrying in %.1fs", attempt + 1, last_error, delay)
            time.sleep(delay)

    if os.path.exists(partial):
        os.remove(partial)
    raise last_error


def split_phrases(audio: AudioSegment) -> list[AudioSegment]:
    """Cut audio at its pauses so playback can stop between phrases."""
    phrases = split_on_silence(
        audio,
        min_silence_len=PHRASE_SILENCE_MS,
        silence_thresh=audio.dBFS + SILENCE_THRESH_OFFSET_DB,
        keep_silence=True,
    )
    return phrases or [audio]


class Utterance:
    """Handle for one line being spoken."""

    def __init__(self, text: str, on_complete):
        self.text = text
        self.on_complete = on_complete
        self.thread = None
        self._stopped = threading.Event()
        self._running = threading.Event()
        self._running.set()

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def pause(self) -> None:
        self._running.clear()

    def resume(self) -> None:
        self._running.set()

    def stop(self) -> None:
        self._stopped.set()
        self._running.set()

    def wait_until_running(self) -> None:
        self._running.wait()


class EdgeSpeech:
    """Speak lines with an edge-tts voice on a background thread.

    Each line is rendered to an MP3 in the cache directory (reused on later
    read-throughs), then played phrase by phrase. Pause and stop take effect
    at the next phrase boundary.

    ``deliver`` receives each completion callback; hosts pass a function that
    queues it onto their own control flow. By default it is called directly
    from the playback thread.
    """

    def __init__(
        self,
        voice: str = DEFAULT_VOICE,
        rate: str = TTS_RATE,
        cache_dir: str = RENDER_CACHE_DIR,
        deliver=None,
    ):
        self.voice = voice
        self.rate = rate
        self.cache_dir = cache_dir
        self.deliver = deliver or _call_now

    def request_utterance(self, text: str, on_complete) -> Utterance:
        utterance = Utterance(text, on_complete)
        utterance.thread = threading.Thread(target=self._speak, args=(utterance,), daemon=True)
        utterance.thread.start()
        return utterance

    def pause(self, handle: Utterance | None) -> None:
        if handle is not None:
            handle.pause()

    def resume(self, handle: Utterance | None) -> None:
        if handle is not None:
            handle.resume()

    def stop(self, handle: Utterance | None) -> None:
        if handle is not None:
            handle.stop()

    def render(self, text: str) -> str:
        """Return the path of the rendered MP3 for text."""
        return render_line(text, self.voice, self.rate, self.cache_dir)

    def _speak(self, utterance: Utterance) -> None:
        try:
            audio = AudioSegment.from_mp3(self.render(utterance.text))
            audio += AudioSegment.silent(duration=POST_UTTERANCE_DELAY_MS)
            for phrase in split_phrases(audio):
                utterance.wait_until_running()
                if utterance.stopped:
                    return
                play(phrase)
        except Exception:
            # The line stays on screen; report completion so the read-through goes on.
            logger.exception("Could not speak line: %s", utterance.text[:50])

        if not utterance.stopped:
            self.deliver(utterance.on_complete)


class MuteSpeech:
    """Speak nothing: every line completes as soon as it is requested.

    Useful for reading along silently and for hosts without audio output.
    """

    def __init__(self, deliver=None):
        self.deliver = deliver or _call_now

    def request_utterance(self, text: str, on_complete) -> str:
        self.deliver(on_complete)
        return text

    def pause(self, handle) -> None:
        pass

    def resume(self, handle) -> None:
        pass

    def stop(self, handle) -> None:
        pass
