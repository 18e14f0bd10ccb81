"""Application settings and the OSC address book.

Settings are read from a YAML file (``config.yaml`` by default).  Every key is
optional; anything missing falls back to the defaults below.

```yaml
osc:
  host: 127.0.0.1
  port: 9000
  addresses:
    pattern_noteon: /pattern{index}/noteon
sequencer:
  bpm: 120
  pattern_length: 16
display:
  visualization: false
preview:
  device: null
logging:
  level: INFO
```

Per-pattern addresses are templates containing ``{index}``, which is replaced
with the pattern index when a step is sent.
"""

import dataclasses
import logging
import math
import os
import typing

import yaml

import oscseq.constants


logger = logging.getLogger(__name__)


DEFAULT_ADDRESSES: typing.Dict[str, str] = {
	"noteon": "/synth/noteon",
	"noteoff": "/synth/noteoff",
	"tempo": "/global/tempo",
	"pattern": "/global/pattern",
	"pattern_noteon": "/pattern{index}/noteon",
	"pattern_noteoff": "/pattern{index}/noteoff",
}


class ConfigError (Exception):

	"""Raised when a settings file cannot be read or holds invalid values."""


class AddressBook:

	"""
	Named OSC addresses used when sending events.

	The book always starts from the defaults; entries can be added, renamed,
	re-pointed or removed at runtime.
	"""

	def __init__ (self, addresses: typing.Optional[typing.Dict[str, str]] = None) -> None:

		self._addresses: typing.Dict[str, str] = dict(DEFAULT_ADDRESSES)

		if addresses:
			self._addresses.update(addresses)


	def get (self, key: str) -> str:

		"""Return the address for *key*; raises ``KeyError`` when missing."""

		return self._addresses[key]


	def add (self, key: str, address: str) -> bool:

		"""Add a new entry.  Returns False if *key* already exists."""

		if key in self._addresses:
			return False

		self._addresses[key] = address
		return True


	def remove (self, key: str) -> bool:

		"""Remove an entry.  Returns False if *key* does not exist."""

		if key not in self._addresses:
			return False

		del self._addresses[key]
		return True


	def edit (self, old_key: str, new_key: str, address: str) -> bool:

		"""
		Rename and/or re-point an entry.

		Returns False when *old_key* is missing or when *new_key* already
		names a different entry.
		"""

		if old_key not in self._addresses:
			return False

		if old_key != new_key:

			if new_key in self._addresses:
				return False

			del self._addresses[old_key]

		self._addresses[new_key] = address
		return True


	def as_dict (self) -> typing.Dict[str, str]:

		"""Return a copy of all entries."""

		return dict(self._addresses)


	def note_on (self, pattern_index: int) -> str:

		"""Note-on address for a pattern."""

		return self._addresses["pattern_noteon"].format(index=pattern_index)


	def note_off (self, pattern_index: int) -> str:

		"""Note-off address for a pattern."""

		return self._addresses["pattern_noteoff"].format(index=pattern_index)


	@property
	def tempo (self) -> str:

		"""Address for tempo change events."""

		return self._addresses["tempo"]


@dataclasses.dataclass
class Settings:

	"""Runtime settings for the sequencer application."""

	host: str = "127.0.0.1"
	port: int = 9000
	bpm: float = oscseq.constants.DEFAULT_BPM
	pattern_length: int = oscseq.constants.DEFAULT_PATTERN_LENGTH
	visualization: bool = False
	preview_device: typing.Optional[str] = None
	log_level: str = "INFO"
	addresses: AddressBook = dataclasses.field(default_factory=AddressBook)


	def validate (self) -> None:

		"""Raise ``ConfigError`` if any value is out of range."""

		if not 0 < self.port < 65536:
			raise ConfigError(f"OSC port out of range: {self.port}")

		if not 0 < self.bpm < math.inf:
			raise ConfigError(f"BPM must be a positive finite number, got {self.bpm}")

		if self.pattern_length <= 0:
			raise ConfigError(f"Pattern length must be positive, got {self.pattern_length}")

		if logging.getLevelName(self.log_level.upper()) not in (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL):
			raise ConfigError(f"Unknown log level: {self.log_level}")


	def to_dict (self) -> typing.Dict[str, typing.Any]:

		"""Convert to the nested YAML layout."""

		return {
			"osc": {
				"host": self.host,
				"port": self.port,
				"addresses": self.addresses.as_dict(),
			},
			"sequencer": {
				"bpm": self.bpm,
				"pattern_length": self.pattern_length,
			},
			"display": {
				"visualization": self.visualization,
			},
			"preview": {
				"device": self.preview_device,
			},
			"logging": {
				"level": self.log_level,
			},
		}


	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "Settings":

		"""Build settings from the nested YAML layout, filling in defaults."""

		osc = data.get("osc") or {}
		sequencer = data.get("sequencer") or {}
		display = data.get("display") or {}
		preview = data.get("preview") or {}
		log = data.get("logging") or {}

		defaults = cls()

		try:
			settings = cls(
				host = str(osc.get("host", defaults.host)),
				port = int(osc.get("port", defaults.port)),
				bpm = float(sequencer.get("bpm", defaults.bpm)),
				pattern_length = int(sequencer.get("pattern_length", defaults.pattern_length)),
				visualization = bool(display.get("visualization", defaults.visualization)),
				preview_device = preview.get("device", defaults.preview_device),
				log_level = str(log.get("level", defaults.log_level)),
				addresses = AddressBook(osc.get("addresses") or {})
			)
		except (AttributeError, TypeError, ValueError) as e:
			raise ConfigError(f"Invalid settings: {e}") from e

		settings.validate()

		return settings


def load_config (config_path: str = 'config.yaml') -> Settings:

	"""
	Load settings from a YAML file.

	A missing file is not an error: defaults are returned and a warning is
	logged.  Unparseable YAML or invalid values raise ``ConfigError``.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Settings()

	try:
		with open(config_path, 'r') as f:
			data = yaml.safe_load(f)
	except (OSError, yaml.YAMLError) as e:
		raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

	if data is None:
		return Settings()

	if not isinstance(data, dict):
		raise ConfigError(f"Config file {config_path} must contain a mapping")

	return Settings.from_dict(data)


def save_config (settings: Settings, config_path: str = 'config.yaml') -> None:

	"""Write settings (including the address book) to a YAML file."""

	try:
		with open(config_path, 'w') as f:
			yaml.safe_dump(settings.to_dict(), f, sort_keys=False)
	except OSError as e:
		raise ConfigError(f"Failed to write config file {config_path}: {e}") from e

	logger.info(f"Saved settings to {config_path}")
