import typing

import mido
import pytest

import oscseq.constants


class RecordingSink:

	"""Event sink that records every message it is sent."""

	def __init__ (self) -> None:

		self.messages: typing.List[typing.Tuple[str, typing.Tuple[typing.Any, ...]]] = []

	def send (self, address: str, *args: typing.Any) -> None:

		"""Record the message."""

		self.messages.append((address, args))

	def addresses (self) -> typing.List[str]:

		"""Addresses in the order they were sent."""

		return [address for address, _ in self.messages]


class FailingSink:

	"""Event sink that raises on every send."""

	def __init__ (self) -> None:

		self.attempts = 0

	def send (self, address: str, *args: typing.Any) -> None:

		"""Count the attempt, then fail."""

		self.attempts += 1
		raise OSError("network unreachable")


class FakeMidiOut:

	"""Minimal MIDI output stub that keeps sent messages."""

	def __init__ (self) -> None:

		self.sent: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Keep the outgoing MIDI message."""

		self.sent.append(message)

	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	return FakeMidiOut()


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def sink () -> RecordingSink:

	"""A fresh recording sink."""

	return RecordingSink()


@pytest.fixture
def short_gate (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Shrink the note gate and pause poll so playback tests run quickly."""

	monkeypatch.setattr(oscseq.constants, "NOTE_GATE_SECONDS", 0.001)
	monkeypatch.setattr(oscseq.constants, "PAUSE_POLL_SECONDS", 0.005)


@pytest.fixture
def failing_sink () -> FailingSink:

	"""A sink whose every send raises."""

	return FailingSink()
