"""Sequencer defaults and timing constants.

Timing values are in seconds.  The gate, pause poll, and send timeout are
fixed implementation constants rather than user configuration:

- `NOTE_GATE_SECONDS`: delay between a step's note-on and its note-off
- `PAUSE_POLL_SECONDS`: how often a paused playback loop re-checks its state
- `SEND_TIMEOUT_SECONDS`: upper bound on awaiting an asynchronous sink
"""

DEFAULT_BPM = 120
DEFAULT_PATTERN_LENGTH = 16
DEFAULT_PROJECT_NAME = "New Project"

SECONDS_PER_MINUTE = 60.0

NOTE_GATE_SECONDS = 0.05
PAUSE_POLL_SECONDS = 0.05
SEND_TIMEOUT_SECONDS = 0.5

SILENT = 0
