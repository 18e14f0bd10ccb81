"""Live terminal visualization of playback.

Renders one header line plus one row per pattern, redrawn in place on every
tick while visualization is enabled.  Log messages scroll above the block
without disruption.

The block looks like::

	Mode: single | BPM: 120 | Status: PL
	!# 0:(060)[   ][064][   ]
	 # 1:[036][   ](   )[   ]

The step in parentheses is the one due to play next.  In single mode ``!``
marks the current pattern.
"""

import logging
import sys
import typing

import oscseq.sequencer


_PLAYING = "PL"
_PAUSED = "PS"


def _format_bpm (bpm: float) -> str:

	return f"{bpm:g}"


def format_snapshot (snapshot: oscseq.sequencer.Snapshot) -> typing.List[str]:

	"""Build the visualization lines for a snapshot."""

	status = _PAUSED if snapshot.paused else _PLAYING
	lines = [f"Mode: {snapshot.mode.value} | BPM: {_format_bpm(snapshot.bpm)} | Status: {status}"]

	for pattern in snapshot.patterns:

		row: typing.List[str] = []

		if snapshot.mode == oscseq.sequencer.PlaybackMode.SINGLE:
			row.append("!" if pattern.index == snapshot.current_pattern_index else " ")

		row.append(f"# {pattern.index}:")

		for step, note in enumerate(pattern.notes):
			if step == pattern.cursor:
				row.append(f"({note:03d})" if note else "(   )")
			else:
				row.append(f"[{note:03d}]" if note else "[   ]")

		lines.append("".join(row))

	return lines


def format_dump (snapshot: oscseq.sequencer.Snapshot) -> typing.List[str]:

	"""Build a plain textual dump of the project held in a snapshot."""

	lines = [
		f"Project: {snapshot.project_name}",
		f"BPM: {_format_bpm(snapshot.bpm)}  Mode: {snapshot.mode.value}  Current pattern: {snapshot.current_pattern_index}",
	]

	for pattern in snapshot.patterns:
		notes = " ".join(str(note) for note in pattern.notes)
		lines.append(f"Pattern #{pattern.index} Length: {len(pattern.notes)} Steps: [{notes}]")

	return lines


class DisplayLogHandler (logging.Handler):

	"""Logging handler that clears and redraws the visualization around log output.

	Installed by ``Display.start()`` and removed by ``Display.stop()``.
	"""

	def __init__ (self, display: "Display") -> None:

		super().__init__()
		self._display = display

	def emit (self, record: logging.LogRecord) -> None:

		"""Clear the block, write the log message, then redraw."""

		try:
			self._display.clear()

			msg = self.format(record)
			sys.stderr.write(msg + "\n")
			sys.stderr.flush()

			self._display.draw()

		except Exception:
			self.handleError(record)


class Display:

	"""Terminal renderer used as the sequencer's render callback.

	Example:
		```python
		display = Display()
		display.start()
		sequencer.render_callback = display.render
		```
	"""

	def __init__ (self) -> None:

		self._active: bool = False
		self._handler: typing.Optional[DisplayLogHandler] = None
		self._saved_handlers: typing.List[logging.Handler] = []
		self._lines: typing.List[str] = []
		self._drawn_line_count: int = 0

	@property
	def active (self) -> bool:

		return self._active

	def start (self) -> None:

		"""Install the log handler and activate the display.

		Existing root logger handlers are saved and replaced; ``stop()``
		restores them.
		"""

		if self._active:
			return

		self._active = True

		root_logger = logging.getLogger()
		self._saved_handlers = list(root_logger.handlers)
		self._handler = DisplayLogHandler(self)

		if self._saved_handlers and self._saved_handlers[0].formatter:
			self._handler.setFormatter(self._saved_handlers[0].formatter)
		else:
			self._handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

		root_logger.handlers.clear()
		root_logger.addHandler(self._handler)

	def stop (self) -> None:

		"""Clear the block and restore the original log handlers."""

		if not self._active:
			return

		self.clear()
		self._active = False

		root_logger = logging.getLogger()
		root_logger.handlers.clear()

		for handler in self._saved_handlers:
			root_logger.addHandler(handler)

		self._saved_handlers = []
		self._handler = None

	def render (self, snapshot: oscseq.sequencer.Snapshot) -> None:

		"""Rebuild the lines from *snapshot* and redraw."""

		if not self._active:
			return

		self._lines = format_snapshot(snapshot)
		self.draw()

	def draw (self) -> None:

		"""Write the current block to the terminal, overwriting the previous one."""

		if not self._active or not self._lines:
			return

		# Cursor sits on the last line with no trailing newline.
		if self._drawn_line_count > 1:
			sys.stderr.write(f"\033[{self._drawn_line_count - 1}A")

		for line in self._lines[:-1]:
			sys.stderr.write(f"\r\033[K{line}\n")

		sys.stderr.write(f"\r\033[K{self._lines[-1]}")
		sys.stderr.flush()

		self._drawn_line_count = len(self._lines)

	def clear (self) -> None:

		"""Erase the drawn block from the terminal."""

		if not self._active:
			return

		if self._drawn_line_count > 1:
			sys.stderr.write(f"\033[{self._drawn_line_count - 1}A")

			for _ in range(self._drawn_line_count):
				sys.stderr.write("\r\033[K\n")

			sys.stderr.write(f"\033[{self._drawn_line_count}A")
		else:
			sys.stderr.write("\r\033[K")

		sys.stderr.flush()
		self._drawn_line_count = 0

	def reset (self) -> None:

		"""Erase the drawn block and forget it, so later redraws show nothing."""

		self.clear()
		self._lines = []
