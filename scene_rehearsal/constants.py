"""All magic numbers and configuration constants."""

import os

DEFAULT_VOICE = "en-US-AriaNeural"          # edge-tts voice for machine-read lines
TTS_RATE = "+0%"                            # speech rate relative to the voice default
TTS_RETRY_COUNT = 3                         # max synthesis attempts per utterance
TTS_RETRY_BASE_DELAY = 1.0                  # seconds, base delay for exponential backoff
PHRASE_SILENCE_MS = 200                     # ms of quiet that ends a phrase; pause/stop act between phrases
SILENCE_THRESH_OFFSET_DB = -16              # dB below the clip average that counts as quiet
POST_UTTERANCE_DELAY_MS = 500               # silence appended after each spoken line
RENDER_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".cache", "scene_rehearsal")
LIBRARY_PATH = os.path.join(os.path.expanduser("~"), ".scene_rehearsal", "library.json")

NO_ROLE_LABEL = "Not Applicable"            # how older libraries stored the "no role" choice
YOUR_LINE_PROMPT = "It's your line! Press Enter to continue."
HIDDEN_LINE_MARK = "..."                    # shown for your line when hints are off

# Role colours, indexed by position among the sorted assigned speakers
PALETTE = ("dark_orange", "blue", "hot_pink", "purple", "red", "dark_cyan")
NEUTRAL_COLOR = "grey50"
HIGHLIGHT_COLOR = "yellow"

VERSION = "0.1.0"
