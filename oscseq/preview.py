"""Local MIDI preview of sequenced notes.

Useful for auditioning a pattern without the OSC receiver running: each
note-on the sequencer sends is mirrored as a short MIDI note on a local output
port.  Enable it with ``--preview DEVICE`` or ``preview.device`` in
``config.yaml``.
"""

import asyncio
import logging
import typing

import mido

import oscseq.constants


logger = logging.getLogger(__name__)

MIDI_NOTE_MAX = 127
PREVIEW_VELOCITY = 100


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI output device.

	If `device_name` is provided, attempts to open that specific device.
	Otherwise the only available device is used; with none or several
	available, nothing is opened (the sequencer runs in the background, so
	there is no prompt).

	Returns:
		A tuple of (device_name, midi_out_object) or (None, None).
	"""

	try:
		outputs = mido.get_output_names()
		logger.info(f"Available MIDI outputs: {outputs}")

		if not outputs:
			logger.error("No MIDI output devices found.")
			return None, None

		if device_name is not None:

			if device_name not in outputs:
				logger.error(
					f"MIDI output device '{device_name}' not found. "
					f"Available devices: {outputs}"
				)
				return None, None

			midi_out = mido.open_output(device_name)
			logger.info(f"Opened MIDI output: {device_name}")
			return device_name, midi_out

		if len(outputs) == 1:
			midi_out = mido.open_output(outputs[0])
			logger.info(f"One MIDI output found - using '{outputs[0]}'")
			return outputs[0], midi_out

		logger.error(f"Several MIDI outputs found; name one to preview on: {outputs}")
		return None, None

	except Exception as e:
		logger.error(f"Failed to open MIDI output: {e}")
		return None, None


class MidiPreview:

	"""Preview callback that plays each sequenced note on a MIDI output."""

	def __init__ (self, device_name: typing.Optional[str] = None, channel: int = 9) -> None:

		"""
		Parameters:
			device_name: MIDI output port name; when omitted the only
				available port is used.
			channel: MIDI channel (0-15) for preview notes.  Defaults to the
				General MIDI drum channel.
		"""

		self.device_name = device_name
		self.channel = channel
		self.midi_out: typing.Any = None


	def open (self) -> bool:

		"""Open the output port.  Returns False when no port could be opened."""

		device_name, midi_out = select_output_device(self.device_name)

		if midi_out is None:
			return False

		self.device_name = device_name
		self.midi_out = midi_out
		return True


	def close (self) -> None:

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None


	def __call__ (self, pattern_index: int, note: int) -> None:

		"""Play *note*; the note-off follows after the sequencer gate time."""

		if self.midi_out is None:
			return

		if note > MIDI_NOTE_MAX:
			logger.debug(f"Pattern {pattern_index}: note {note} is outside the MIDI range, not previewed")
			return

		try:
			self.midi_out.send(mido.Message('note_on', channel=self.channel, note=note, velocity=PREVIEW_VELOCITY))
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")
			return

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			self._note_off(note)
			return

		loop.call_later(oscseq.constants.NOTE_GATE_SECONDS, self._note_off, note)


	def _note_off (self, note: int) -> None:

		if self.midi_out is None:
			return

		try:
			self.midi_out.send(mido.Message('note_off', channel=self.channel, note=note, velocity=0))
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")
