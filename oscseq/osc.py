"""OSC output for sequencer events.

``OscSink`` is the default event sink: every note and tempo event becomes a
single UDP OSC message sent to a target host/port (default 127.0.0.1:9000).

Sent Events
───────────
- ``/pattern<N>/noteon <int>``: Step of pattern N starts a note
- ``/pattern<N>/noteoff <int>``: The same note ends after the gate time
- ``/global/tempo <number>``: On tempo change

Addresses come from ``oscseq.config.AddressBook`` and can be changed in
``config.yaml``.
"""

import logging
import typing

import pythonosc.udp_client


logger = logging.getLogger(__name__)


class OscSink:

	"""UDP OSC client implementing the sequencer's event sink protocol."""

	def __init__ (self, host: str = "127.0.0.1", port: int = 9000) -> None:

		self._host = host
		self._port = port
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None


	@property
	def target (self) -> typing.Tuple[str, int]:

		"""The (host, port) messages are sent to."""

		return self._host, self._port


	def open (self) -> None:

		"""Create the UDP client."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._host, self._port)

		logger.info(f"OSC sending to {self._host}:{self._port}")


	def close (self) -> None:

		"""Drop the UDP client; later sends are ignored."""

		if self._client is not None:
			self._client = None
			logger.info("OSC output closed")


	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message."""

		if self._client:
			try:
				self._client.send_message(address, list(args))
			except Exception as e:
				logger.warning(f"OSC send error: {e}")
