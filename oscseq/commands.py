"""Text commands for driving a sequencer from the console.

Each input line is a command word followed by its arguments.  Every command
also has a single-letter shortcut, so ``s`` starts playback and ``t 140``
sets the tempo.  Type ``help`` (or ``?``) for the list.

``CommandManager.execute()`` never raises for bad input: invalid arguments,
failed saves and loads, and unknown commands all come back as a message.
"""

import dataclasses
import logging
import typing

import oscseq.display
import oscseq.project_file
import oscseq.sequencer


logger = logging.getLogger(__name__)


Handler = typing.Callable[[typing.List[str]], typing.Awaitable[str]]


class CommandError (Exception):

	"""Raised by a handler when its arguments are unusable."""


@dataclasses.dataclass
class Command:

	"""A console command and the coroutine that runs it."""

	name: str
	shortcut: typing.Optional[str]
	usage: str
	description: str
	handler: Handler


def _int_arg (args: typing.List[str], position: int, label: str) -> int:

	if len(args) <= position:
		raise CommandError(f"Missing {label}")

	try:
		return int(args[position])
	except ValueError:
		raise CommandError(f"Invalid {label}: {args[position]!r}") from None


def _float_arg (args: typing.List[str], position: int, label: str) -> float:

	if len(args) <= position:
		raise CommandError(f"Missing {label}")

	try:
		return float(args[position])
	except ValueError:
		raise CommandError(f"Invalid {label}: {args[position]!r}") from None


class CommandManager:

	"""Maps command lines onto sequencer operations."""

	def __init__ (self, sequencer: oscseq.sequencer.Sequencer, default_project_file: str = "project.json") -> None:

		self._sequencer = sequencer
		self._default_project_file = default_project_file
		self.quit_requested = False

		self._commands: typing.List[Command] = [
			Command("start", "s", "start", "Start playback", self._start),
			Command("stop", "x", "stop", "Stop playback and rewind", self._stop),
			Command("pause", "p", "pause", "Pause or resume playback", self._pause),
			Command("record", "r", "record <position> <note>", "Write a note (position counts from 1)", self._record),
			Command("notes", "w", "notes <note> [note ...]", "Write notes from the first step", self._notes),
			Command("tempo", "t", "tempo <bpm>", "Set the tempo", self._tempo),
			Command("length", "l", "length <steps>", "Resize the current pattern", self._length),
			Command("clear", "c", "clear", "Silence the current pattern", self._clear),
			Command("dump", "d", "dump", "Print the project", self._dump),
			Command("save", "f", "save [file]", "Save the project", self._save),
			Command("load", "g", "load [file]", "Load a project", self._load),
			Command("next", "n", "next", "Select the next pattern", self._next),
			Command("select", "e", "select <index>", "Select a pattern by index", self._select),
			Command("add", "a", "add [steps]", "Append a silent pattern", self._add),
			Command("copy", "b", "copy", "Append a copy of the current pattern", self._copy),
			Command("mode", "m", "mode [single|all]", "Switch playback mode", self._mode),
			Command("visualize", "v", "visualize", "Toggle the live pattern view", self._visualize),
			Command("help", "?", "help", "List commands", self._help),
			Command("quit", "q", "quit", "Stop and exit", self._quit),
		]

		self._lookup: typing.Dict[str, Command] = {}

		for command in self._commands:
			self._lookup[command.name] = command
			if command.shortcut:
				self._lookup[command.shortcut] = command


	@property
	def commands (self) -> typing.List[Command]:

		return list(self._commands)


	async def execute (self, line: str) -> str:

		"""Run one command line and return the message to show the user."""

		words = line.split()

		if not words:
			return ""

		command = self._lookup.get(words[0].lower())

		if command is None:
			return f"Unknown command: {words[0]!r} (type 'help' for a list)"

		try:
			return await command.handler(words[1:])
		except CommandError as e:
			return f"{e}. Usage: {command.usage}"
		except ValueError as e:
			return f"{command.name}: {e}"


	def help_text (self) -> str:

		"""One line per command, with its shortcut."""

		lines = ["Commands:"]

		for command in self._commands:
			lines.append(f"  {command.shortcut or ' '}  {command.usage:<26} {command.description}")

		return "\n".join(lines)


	# Handlers

	async def _start (self, args: typing.List[str]) -> str:
		await self._sequencer.start()
		return "Playback started"

	async def _stop (self, args: typing.List[str]) -> str:
		await self._sequencer.stop()
		return "Playback stopped"

	async def _pause (self, args: typing.List[str]) -> str:
		paused = await self._sequencer.pause()
		return "Paused" if paused else "Resumed"

	async def _record (self, args: typing.List[str]) -> str:

		position = _int_arg(args, 0, "position")
		note = _int_arg(args, 1, "note")

		if await self._sequencer.record_note(position - 1, note):
			return f"Note {note} recorded at step {position}"

		length = len(self._sequencer.get_notes(self._sequencer.current_pattern_index))
		return f"Position out of range (1-{length})"

	async def _notes (self, args: typing.List[str]) -> str:

		if not args:
			raise CommandError("Missing notes")

		count = await self._sequencer.record_notes(" ".join(args))
		return f"{count} steps written"

	async def _tempo (self, args: typing.List[str]) -> str:

		bpm = _float_arg(args, 0, "BPM")

		if bpm.is_integer():
			bpm = int(bpm)

		await self._sequencer.set_tempo(bpm)
		return f"Tempo set to {bpm} BPM"

	async def _length (self, args: typing.List[str]) -> str:
		length = _int_arg(args, 0, "length")
		await self._sequencer.set_pattern_length(length)
		return f"Pattern {self._sequencer.current_pattern_index} is now {length} steps"

	async def _clear (self, args: typing.List[str]) -> str:
		await self._sequencer.clear_pattern()
		return f"Pattern {self._sequencer.current_pattern_index} cleared"

	async def _dump (self, args: typing.List[str]) -> str:
		snapshot = await self._sequencer.dump_state()
		return "\n".join(oscseq.display.format_dump(snapshot))

	async def _save (self, args: typing.List[str]) -> str:

		filename = args[0] if args else self._default_project_file

		try:
			await self._sequencer.save_project(filename)
		except oscseq.project_file.ProjectFileError as e:
			return str(e)

		return f"Project saved to {filename}"

	async def _load (self, args: typing.List[str]) -> str:

		filename = args[0] if args else self._default_project_file

		try:
			await self._sequencer.load_project(filename)
		except oscseq.project_file.ProjectFileError as e:
			return str(e)

		return f"Project loaded from {filename}"

	async def _next (self, args: typing.List[str]) -> str:
		index = await self._sequencer.next_pattern()
		return f"Pattern {index} selected"

	async def _select (self, args: typing.List[str]) -> str:

		index = _int_arg(args, 0, "index")

		if await self._sequencer.select_pattern(index):
			return f"Pattern {index} selected"

		return f"No pattern {index} (0-{self._sequencer.pattern_count - 1})"

	async def _add (self, args: typing.List[str]) -> str:

		if args:
			index = await self._sequencer.add_pattern(_int_arg(args, 0, "length"))
		else:
			index = await self._sequencer.add_pattern()

		return f"Pattern {index} added"

	async def _copy (self, args: typing.List[str]) -> str:
		index = await self._sequencer.copy_pattern()
		return f"Pattern {self._sequencer.current_pattern_index} copied to {index}"

	async def _mode (self, args: typing.List[str]) -> str:

		mode: typing.Optional[oscseq.sequencer.PlaybackMode] = None

		if args:
			try:
				mode = oscseq.sequencer.PlaybackMode(args[0].lower())
			except ValueError:
				raise CommandError(f"Unknown mode: {args[0]!r}") from None

		new_mode = await self._sequencer.switch_playback_mode(mode)
		return f"Playback mode: {new_mode.value}"

	async def _visualize (self, args: typing.List[str]) -> str:
		enabled = self._sequencer.toggle_visualization()
		return "Visualization on" if enabled else "Visualization off"

	async def _help (self, args: typing.List[str]) -> str:
		return self.help_text()

	async def _quit (self, args: typing.List[str]) -> str:
		self.quit_requested = True
		return "Bye"
