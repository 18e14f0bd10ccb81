import dataclasses
import math
import typing

import oscseq.constants
import oscseq.pattern


@dataclasses.dataclass
class Project:

	"""
	An ordered set of patterns plus the global tempo and the editing selection.

	Pattern order is stable: a pattern's position in ``patterns`` is its index
	everywhere else in the sequencer (cursor table, OSC addresses, display).
	"""

	name: str = oscseq.constants.DEFAULT_PROJECT_NAME
	patterns: typing.List[oscseq.pattern.Pattern] = dataclasses.field(default_factory=list)
	current_pattern_index: int = 0
	bpm: float = oscseq.constants.DEFAULT_BPM


	def __post_init__ (self) -> None:

		if not 0 < self.bpm < math.inf:
			raise ValueError(f"BPM must be a positive finite number, got {self.bpm}")

		if self.current_pattern_index < 0:
			raise ValueError("Current pattern index cannot be negative")


	def ensure_current_pattern (self, default_length: int = oscseq.constants.DEFAULT_PATTERN_LENGTH) -> oscseq.pattern.Pattern:

		"""
		Return the current pattern, growing the pattern list until the index is valid.
		"""

		while len(self.patterns) <= self.current_pattern_index:
			self.patterns.append(oscseq.pattern.Pattern(default_length))

		return self.patterns[self.current_pattern_index]


	def clone (self) -> "Project":

		"""Return a deep copy that shares no patterns with this project."""

		return Project(
			name = self.name,
			patterns = [pattern.clone() for pattern in self.patterns],
			current_pattern_index = self.current_pattern_index,
			bpm = self.bpm
		)


	def to_dict (self) -> typing.Dict[str, typing.Any]:

		"""Convert to the persisted project layout."""

		return {
			"name": self.name,
			"bpm": self.bpm,
			"current_pattern_index": self.current_pattern_index,
			"patterns": [{"notes": list(pattern.notes)} for pattern in self.patterns],
		}


	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "Project":

		"""
		Build a project from the persisted layout.

		Raises ``ValueError`` (or ``TypeError`` / ``KeyError`` for structurally
		wrong input) when the data cannot describe a valid project.
		"""

		patterns: typing.List[oscseq.pattern.Pattern] = []

		for entry in data.get("patterns", []):

			notes = entry["notes"]

			if not isinstance(notes, list):
				raise TypeError(f"Pattern notes must be a list, got {type(notes).__name__}")

			patterns.append(oscseq.pattern.Pattern.from_notes(notes))

		return cls(
			name = str(data.get("name", oscseq.constants.DEFAULT_PROJECT_NAME)),
			patterns = patterns,
			current_pattern_index = int(data.get("current_pattern_index", 0)),
			bpm = float(data.get("bpm", oscseq.constants.DEFAULT_BPM))
		)
