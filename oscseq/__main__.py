import argparse
import asyncio
import logging
import signal
import sys
import threading
import typing

import oscseq.commands
import oscseq.config
import oscseq.display
import oscseq.osc
import oscseq.preview
import oscseq.sequencer


logger = logging.getLogger(__name__)


class LineReader:

	"""
	Daemon thread that forwards stdin lines to an asyncio queue.

	``None`` is queued at end of input.  A daemon thread is used so a pending
	``readline()`` never holds up interpreter exit.
	"""

	def __init__ (self, loop: asyncio.AbstractEventLoop) -> None:

		self.queue: asyncio.Queue[typing.Optional[str]] = asyncio.Queue()
		self._loop = loop
		self._thread = threading.Thread(
			target = self._read,
			name   = "oscseq-line-reader",
			daemon = True,
		)

	def start (self) -> None:

		self._thread.start()

	def _read (self) -> None:

		for line in sys.stdin:
			self._loop.call_soon_threadsafe(self.queue.put_nowait, line)

		self._loop.call_soon_threadsafe(self.queue.put_nowait, None)


def parse_args (argv: typing.Optional[typing.List[str]] = None) -> argparse.Namespace:

	parser = argparse.ArgumentParser(prog="oscseq", description="Interactive OSC step sequencer.")

	parser.add_argument("host", nargs="?", help="OSC target host (overrides config)")
	parser.add_argument("port", nargs="?", type=int, help="OSC target port (overrides config)")
	parser.add_argument("--config", default="config.yaml", help="Settings file (default: config.yaml)")
	parser.add_argument("--bpm", type=float, help="Initial tempo")
	parser.add_argument("--length", type=int, help="Initial pattern length")
	parser.add_argument("--visualize", action="store_true", help="Start with the live pattern view on")
	parser.add_argument("--preview", metavar="DEVICE", help="Mirror notes to this MIDI output")

	return parser.parse_args(argv)


def build_settings (args: argparse.Namespace) -> oscseq.config.Settings:

	"""Load the settings file and apply command-line overrides."""

	settings = oscseq.config.load_config(args.config)

	if args.host:
		settings.host = args.host
	if args.port is not None:
		settings.port = args.port
	if args.bpm is not None:
		settings.bpm = args.bpm
	if args.length is not None:
		settings.pattern_length = args.length
	if args.visualize:
		settings.visualization = True
	if args.preview:
		settings.preview_device = args.preview

	settings.validate()

	return settings


def show_response (display: oscseq.display.Display, sequencer: oscseq.sequencer.Sequencer, text: str) -> None:

	"""Print a console message above the pattern view, dropping the view once visualization is off."""

	if sequencer.visualization_enabled:
		display.clear()
	else:
		display.reset()

	print(text, flush=True)
	display.draw()


async def run (settings: oscseq.config.Settings) -> None:

	"""Run the sequencer and the command console until quit, end of input, or a signal."""

	sink = oscseq.osc.OscSink(settings.host, settings.port)
	sink.open()

	display = oscseq.display.Display()

	preview: typing.Optional[oscseq.preview.MidiPreview] = None

	if settings.preview_device:
		preview = oscseq.preview.MidiPreview(settings.preview_device)
		if not preview.open():
			logger.warning("MIDI preview disabled")
			preview = None

	sequencer = oscseq.sequencer.Sequencer(
		sink = sink,
		initial_bpm = settings.bpm,
		initial_pattern_length = settings.pattern_length,
		addresses = settings.addresses,
		render_callback = display.render,
		preview_callback = preview,
		visualization_enabled = settings.visualization
	)

	manager = oscseq.commands.CommandManager(sequencer)

	def _print (text: str) -> None:
		show_response(display, sequencer, text)

	loop = asyncio.get_running_loop()
	stop_event = asyncio.Event()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, stop_event.set)

	reader = LineReader(loop)
	reader.start()
	display.start()

	_print(manager.help_text())

	stop_wait = asyncio.create_task(stop_event.wait())

	try:

		while not manager.quit_requested:

			next_line = asyncio.create_task(reader.queue.get())

			await asyncio.wait([next_line, stop_wait], return_when=asyncio.FIRST_COMPLETED)

			if stop_event.is_set():
				next_line.cancel()
				break

			line = next_line.result()

			if line is None:
				break

			response = await manager.execute(line)

			if response:
				_print(response)

	finally:
		stop_wait.cancel()
		await sequencer.close()
		display.stop()

		if preview is not None:
			preview.close()

		sink.close()


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point for the oscseq application.
	"""

	args = parse_args(argv)

	logging.basicConfig(level=logging.INFO)

	try:
		settings = build_settings(args)
	except oscseq.config.ConfigError as e:
		logger.error(str(e))
		return 1

	logging.getLogger().setLevel(settings.log_level.upper())

	logger.info("oscseq starting...")

	asyncio.run(run(settings))

	return 0


if __name__ == "__main__":
	sys.exit(main())
