import asyncio
import dataclasses
import enum
import functools
import inspect
import logging
import math
import time
import typing

import oscseq.config
import oscseq.constants
import oscseq.pattern
import oscseq.project
import oscseq.project_file


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class EventSink (typing.Protocol):

	"""
	Protocol for objects that receive sequencer events.

	``send`` is fire-and-forget.  It may be a coroutine function; a plain
	method is called off the event loop.  Either way the sequencer waits for
	it with a bounded timeout.
	"""

	def send (self, address: str, *args: typing.Any) -> typing.Any:

		"""Deliver one named event with its arguments."""

		...


class PlaybackMode (enum.Enum):

	"""Which patterns advance on each tick."""

	SINGLE = "single"
	ALL = "all"


@dataclasses.dataclass(frozen=True)
class PatternSnapshot:

	"""Read-only view of one pattern at the time of a snapshot."""

	index: int
	cursor: int
	notes: typing.Tuple[int, ...]
	active: bool


@dataclasses.dataclass(frozen=True)
class Snapshot:

	"""
	Read-only view of sequencer state, handed to render callbacks and dumps.
	"""

	bpm: float
	mode: PlaybackMode
	playing: bool
	paused: bool
	current_pattern_index: int
	project_name: str
	patterns: typing.Tuple[PatternSnapshot, ...]


RenderCallback = typing.Callable[[Snapshot], None]
PreviewCallback = typing.Callable[[int, int], None]


def tick_interval (bpm: float) -> float:

	"""Seconds per tick: one step per beat."""

	return oscseq.constants.SECONDS_PER_MINUTE / bpm


def remaining_interval (bpm: float, elapsed: float) -> float:

	"""
	Return how long to wait after a tick that took *elapsed* seconds.

	The wait is measured from the start of the tick, so processing cost is
	absorbed rather than added to the period.  When the tick overran, the
	result is zero and the next tick starts immediately.
	"""

	return max(0.0, tick_interval(bpm) - elapsed)


class Sequencer:

	"""
	The playback engine.

	Owns the project, the active-pattern set, the per-pattern step cursors, and
	the background playback task.  All state changes go through the coroutine
	methods below, each of which holds the lock only for the duration of the
	change itself; the lock is never held while events are sent or while the
	loop sleeps, so transport commands stay responsive during playback.
	"""

	def __init__ (
		self,
		sink: EventSink,
		initial_bpm: float = oscseq.constants.DEFAULT_BPM,
		initial_pattern_length: int = oscseq.constants.DEFAULT_PATTERN_LENGTH,
		addresses: typing.Optional[oscseq.config.AddressBook] = None,
		render_callback: typing.Optional[RenderCallback] = None,
		preview_callback: typing.Optional[PreviewCallback] = None,
		visualization_enabled: bool = False
	) -> None:

		"""Create a sequencer with a single silent pattern.

		Parameters:
			sink: Receives note and tempo events.
			initial_bpm: Starting tempo in beats per minute.
			initial_pattern_length: Number of steps in the first pattern.
			addresses: OSC address book; defaults to the standard addresses.
			render_callback: Called with a ``Snapshot`` once per tick while
				visualization is enabled.
			preview_callback: Called with ``(pattern_index, note)`` for every
				note-on, e.g. to audition notes locally.
			visualization_enabled: Initial state of the render flag.
		"""

		if not 0 < initial_bpm < math.inf:
			raise ValueError("BPM must be positive")

		self.sink = sink
		self.addresses = addresses if addresses is not None else oscseq.config.AddressBook()
		self.render_callback = render_callback
		self.preview_callback = preview_callback
		self.visualization_enabled = visualization_enabled

		self._project = oscseq.project.Project(
			patterns = [oscseq.pattern.Pattern(initial_pattern_length)],
			current_pattern_index = 0,
			bpm = initial_bpm
		)

		self._lock = asyncio.Lock()
		self._mode = PlaybackMode.SINGLE
		self._active_patterns: typing.List[int] = [0]
		self._pattern_steps: typing.Dict[int, int] = {}

		self.is_playing = False
		self.is_paused = False
		self._cancel: typing.Optional[asyncio.Event] = None
		self.task: typing.Optional[asyncio.Task] = None

		# Completed ticks since construction; diagnostic only.
		self.tick_count = 0


	# ------------------------------------------------------------------
	# Read-only accessors
	# ------------------------------------------------------------------

	@property
	def mode (self) -> PlaybackMode:

		"""The current playback mode."""

		return self._mode


	@property
	def bpm (self) -> float:

		"""The current tempo."""

		return self._project.bpm


	@property
	def current_pattern_index (self) -> int:

		"""Index of the pattern targeted by editing operations."""

		return self._project.current_pattern_index


	@property
	def pattern_count (self) -> int:

		"""Number of patterns in the project."""

		return len(self._project.patterns)


	@property
	def active_patterns (self) -> typing.List[int]:

		"""Copy of the pattern indices advanced on each tick."""

		return list(self._active_patterns)


	def get_step (self, pattern_index: int) -> int:

		"""Next step due to play for a pattern, always within its current length."""

		patterns = self._project.patterns

		if pattern_index >= len(patterns):
			return 0

		return self._pattern_steps.get(pattern_index, 0) % patterns[pattern_index].length


	def get_notes (self, pattern_index: int) -> typing.Tuple[int, ...]:

		"""Copy of a pattern's notes; raises ``IndexError`` for unknown indices."""

		return self._project.patterns[pattern_index].notes


	# ------------------------------------------------------------------
	# Transport
	# ------------------------------------------------------------------

	async def start (self) -> None:

		"""Start playback in a background task.  Does nothing if already playing."""

		async with self._lock:

			if self.is_playing:
				return

			self.is_playing = True
			self._cancel = asyncio.Event()
			self.task = asyncio.create_task(self._run_loop(self._cancel))

		logger.info("Sequencer started")


	async def stop (self) -> None:

		"""
		Stop playback and rewind every pattern to its first step.

		Safe to call when already stopped.  Returns without waiting for the
		playback task to finish; use ``close()`` for that.
		"""

		async with self._lock:

			was_playing = self.is_playing

			self.is_playing = False
			self.is_paused = False

			for key in list(self._pattern_steps):
				self._pattern_steps[key] = 0

			if self._cancel is not None:
				self._cancel.set()

		if was_playing:
			logger.info("Sequencer stopped")


	async def pause (self) -> bool:

		"""Toggle pause.  Returns the new paused state."""

		async with self._lock:
			self.is_paused = not self.is_paused
			paused = self.is_paused

		logger.info("Sequencer paused" if paused else "Sequencer resumed")

		return paused


	async def close (self) -> None:

		"""Stop playback and wait for the playback task to exit."""

		await self.stop()

		task = self.task

		if task is not None and not task.done():
			await task

		self.task = None


	# ------------------------------------------------------------------
	# Editing
	# ------------------------------------------------------------------

	def _current_pattern (self) -> oscseq.pattern.Pattern:

		"""Return the current pattern, repairing a stale index.  Caller holds the lock."""

		return self._project.ensure_current_pattern()


	def _set_active_patterns (self) -> None:

		"""Recompute the active-pattern set from the mode.  Caller holds the lock."""

		if self._mode == PlaybackMode.ALL:
			self._active_patterns = list(range(len(self._project.patterns)))
		else:
			self._active_patterns = [self._project.current_pattern_index]


	async def record_note (self, position: int, note: int) -> bool:

		"""
		Write a note into the current pattern.

		Positions outside the pattern are ignored.  Returns True when the
		note was written.
		"""

		async with self._lock:
			return self._current_pattern().set(position, note)


	async def record_notes (self, text: str) -> int:

		"""
		Write a whitespace-separated list of notes from step 0 of the current pattern.

		Writing stops at the end of the pattern.  Every token is parsed before
		anything is written, so a malformed token raises ``ValueError`` and
		leaves the pattern untouched.  Returns the number of steps written.
		"""

		notes = parse_notes(text)

		async with self._lock:

			pattern = self._current_pattern()
			count = min(len(notes), pattern.length)

			for step in range(count):
				pattern.set(step, notes[step])

		return count


	async def set_tempo (self, bpm: float) -> None:

		"""Change the tempo and announce it on the tempo address."""

		if not 0 < bpm < math.inf:
			raise ValueError("BPM must be positive")

		async with self._lock:
			self._project.bpm = bpm

		logger.info(f"BPM set to {bpm}")

		await self._send(self.addresses.tempo, bpm)


	async def set_pattern_length (self, length: int) -> None:

		"""
		Resize the current pattern, keeping its leading notes.

		The pattern's step cursor is left alone; it is read modulo the new
		length on the next tick.
		"""

		if length <= 0:
			raise ValueError("Pattern length must be positive")

		async with self._lock:
			pattern = self._current_pattern()
			self._project.patterns[self._project.current_pattern_index] = pattern.resized(length)


	async def clear_pattern (self) -> None:

		"""Silence every step of the current pattern."""

		async with self._lock:
			self._current_pattern().clear()


	async def add_pattern (self, length: int = oscseq.constants.DEFAULT_PATTERN_LENGTH) -> int:

		"""Append a silent pattern.  Returns its index; the selection is unchanged."""

		if length <= 0:
			raise ValueError("Pattern length must be positive")

		async with self._lock:
			self._project.patterns.append(oscseq.pattern.Pattern(length))
			self._set_active_patterns()
			return len(self._project.patterns) - 1


	async def copy_pattern (self) -> int:

		"""Append a copy of the current pattern with its own cursor at step 0.  Returns its index."""

		async with self._lock:
			copy = self._current_pattern().clone()
			self._project.patterns.append(copy)
			index = len(self._project.patterns) - 1
			self._pattern_steps[index] = 0
			self._set_active_patterns()
			return index


	async def next_pattern (self) -> int:

		"""Select the next pattern, wrapping around.  Returns the new index."""

		async with self._lock:
			self._current_pattern()
			self._project.current_pattern_index = (self._project.current_pattern_index + 1) % len(self._project.patterns)
			self._set_active_patterns()
			return self._project.current_pattern_index


	async def select_pattern (self, index: int) -> bool:

		"""Select a pattern by index.  Out-of-range indices are ignored; returns True on success."""

		async with self._lock:

			if index < 0 or index >= len(self._project.patterns):
				return False

			self._project.current_pattern_index = index
			self._set_active_patterns()
			return True


	async def switch_playback_mode (self, mode: typing.Optional[PlaybackMode] = None) -> PlaybackMode:

		"""Toggle between single and all modes, or set *mode* explicitly.  Returns the new mode."""

		async with self._lock:

			if mode is not None:
				self._mode = mode
			else:
				self._mode = PlaybackMode.SINGLE if self._mode == PlaybackMode.ALL else PlaybackMode.ALL

			self._current_pattern()
			self._set_active_patterns()
			new_mode = self._mode

		logger.info(f"Playback mode: {new_mode.value}")

		return new_mode


	def toggle_visualization (self) -> bool:

		"""Flip the render flag.  Returns the new value."""

		self.visualization_enabled = not self.visualization_enabled
		return self.visualization_enabled


	# ------------------------------------------------------------------
	# Project access
	# ------------------------------------------------------------------

	async def dump_state (self) -> Snapshot:

		"""Return a consistent snapshot of the current state."""

		async with self._lock:
			return self.snapshot()


	async def export_project (self) -> oscseq.project.Project:

		"""Return a copy of the project, e.g. for serialization."""

		async with self._lock:
			return self._project.clone()


	async def replace_project (self, project: oscseq.project.Project) -> None:

		"""Swap in a whole project, such as one loaded from disk."""

		async with self._lock:
			self._project = project
			self._current_pattern()
			self._set_active_patterns()

		logger.info(f"Loaded project {project.name!r} ({len(project.patterns)} patterns, {project.bpm} BPM)")


	async def save_project (self, filename: str) -> None:

		"""Save the project to *filename*.  Raises ``ProjectFileError`` on failure."""

		project = await self.export_project()
		oscseq.project_file.save_project(project, filename)


	async def load_project (self, filename: str) -> None:

		"""
		Replace the project with one read from *filename*.

		The file is read and validated before the swap, so a failure raises
		``ProjectFileError`` and leaves the current project as it was.
		"""

		project = oscseq.project_file.load_project(filename)
		await self.replace_project(project)


	def snapshot (self, paused: typing.Optional[bool] = None) -> Snapshot:

		"""Build a read-only snapshot.  Does not take the lock."""

		project = self._project
		active = set(self._active_patterns)

		return Snapshot(
			bpm = project.bpm,
			mode = self._mode,
			playing = self.is_playing,
			paused = self.is_paused if paused is None else paused,
			current_pattern_index = project.current_pattern_index,
			project_name = project.name,
			patterns = tuple(
				PatternSnapshot(
					index = i,
					cursor = self._pattern_steps.get(i, 0) % pattern.length,
					notes = pattern.notes,
					active = i in active
				)
				for i, pattern in enumerate(project.patterns)
			)
		)


	# ------------------------------------------------------------------
	# Playback loop
	# ------------------------------------------------------------------

	async def _run_loop (self, cancel: asyncio.Event) -> None:

		"""Tick until this run is cancelled or playback stops."""

		try:

			while self.is_playing and not cancel.is_set():

				if self.is_paused:
					self._render(paused=True)
					await _wait(cancel, oscseq.constants.PAUSE_POLL_SECONDS)
					continue

				tick_start = time.perf_counter()

				await self._play_step(cancel)

				elapsed = time.perf_counter() - tick_start
				remaining = remaining_interval(self._project.bpm, elapsed)

				if remaining > 0:
					await _wait(cancel, remaining)
				else:
					logger.debug(f"Tick overran its interval by {elapsed - tick_interval(self._project.bpm):.3f}s")

				self._render()

		except Exception:
			logger.exception("Playback loop failed")

			# Let a later start() launch a fresh loop.
			if cancel is self._cancel:
				self.is_playing = False

		logger.debug("Playback loop exited")


	async def _play_step (self, cancel: asyncio.Event) -> None:

		"""Play the current step of every active pattern concurrently."""

		patterns_to_play = list(self._active_patterns)

		if patterns_to_play:
			await asyncio.gather(*(self._play_pattern_step(index, cancel) for index in patterns_to_play))

		self.tick_count += 1


	async def _play_pattern_step (self, pattern_index: int, cancel: asyncio.Event) -> None:

		"""Send one pattern's current note (if any) and advance its cursor."""

		patterns = self._project.patterns

		if pattern_index >= len(patterns):
			return

		pattern = patterns[pattern_index]
		step = self._pattern_steps.get(pattern_index, 0) % pattern.length
		note = pattern.get(step)

		if note != oscseq.constants.SILENT:

			self._preview(pattern_index, note)

			await self._send(self.addresses.note_on(pattern_index), note)
			await _wait(cancel, oscseq.constants.NOTE_GATE_SECONDS)
			await self._send(self.addresses.note_off(pattern_index), note)

		# stop() has already rewound the cursors.
		if cancel.is_set():
			return

		self._pattern_steps[pattern_index] = (step + 1) % pattern.length


	async def _send (self, address: str, *args: typing.Any) -> None:

		"""
		Send an event, logging rather than raising on failure.

		Coroutine sinks are awaited directly.  Plain ``send`` methods run in
		the default executor so a blocking sink cannot stall the event loop.
		Either way the wait is bounded by ``SEND_TIMEOUT_SECONDS``; a timed-out
		executor call is abandoned, not interrupted.
		"""

		timeout = oscseq.constants.SEND_TIMEOUT_SECONDS

		try:
			if inspect.iscoroutinefunction(self.sink.send):
				result = self.sink.send(address, *args)
			else:
				loop = asyncio.get_running_loop()
				call = functools.partial(self.sink.send, address, *args)
				result = await asyncio.wait_for(loop.run_in_executor(None, call), timeout=timeout)

			if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
				await asyncio.wait_for(result, timeout=timeout)

		except asyncio.TimeoutError:
			logger.warning(f"Send to {address} timed out")

		except Exception:
			logger.exception(f"Send to {address} failed")


	def _preview (self, pattern_index: int, note: int) -> None:

		if self.preview_callback is None:
			return

		try:
			self.preview_callback(pattern_index, note)
		except Exception:
			logger.exception("Note preview failed")


	def _render (self, paused: bool = False) -> None:

		if not self.visualization_enabled or self.render_callback is None:
			return

		try:
			self.render_callback(self.snapshot(paused=paused))
		except Exception:
			logger.exception("Render callback failed")


async def _wait (cancel: asyncio.Event, timeout: float) -> None:

	"""Sleep for *timeout* seconds, returning early if *cancel* is set."""

	try:
		await asyncio.wait_for(cancel.wait(), timeout=timeout)
	except asyncio.TimeoutError:
		pass


def parse_notes (text: str) -> typing.List[int]:

	"""
	Parse whitespace-separated note values.

	Raises ``ValueError`` naming the first token that is not a non-negative
	integer.
	"""

	notes: typing.List[int] = []

	for token in text.split():

		try:
			note = int(token)
		except ValueError:
			raise ValueError(f"Invalid note value: {token!r}") from None

		if note < 0:
			raise ValueError(f"Invalid note value: {token!r}")

		notes.append(note)

	return notes
