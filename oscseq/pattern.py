import typing

import oscseq.constants


class Pattern:

	"""
	A fixed-length loop of note values, one per step.

	A value of ``0`` is a silent step; any other value is passed through to the
	event sink unchanged.
	"""

	def __init__ (self, length: int = oscseq.constants.DEFAULT_PATTERN_LENGTH) -> None:

		"""
		Create a pattern of *length* silent steps.
		"""

		if length <= 0:
			raise ValueError("Pattern length must be positive")

		self._notes: typing.List[int] = [oscseq.constants.SILENT] * length


	@classmethod
	def from_notes (cls, notes: typing.Iterable[int]) -> "Pattern":

		"""
		Build a pattern whose length and contents are taken from *notes*.
		"""

		values = list(notes)

		if any(isinstance(note, bool) or not isinstance(note, int) for note in values):
			raise TypeError("Note values must be integers")

		if any(note < 0 for note in values):
			raise ValueError("Note values cannot be negative")

		pattern = cls(len(values))
		pattern._notes = values

		return pattern


	@property
	def length (self) -> int:

		"""Number of steps; fixed for the lifetime of the pattern."""

		return len(self._notes)


	@property
	def notes (self) -> typing.Tuple[int, ...]:

		"""Read-only copy of the step values."""

		return tuple(self._notes)


	def get (self, step: int) -> int:

		"""
		Return the note at *step*, wrapping indices beyond the pattern length.
		"""

		return self._notes[step % len(self._notes)]


	def set (self, step: int, note: int) -> bool:

		"""
		Write *note* at *step*.

		Positions outside ``[0, length)`` are ignored.  Returns True when the
		note was written.
		"""

		if note < 0:
			raise ValueError("Note values cannot be negative")

		if step < 0 or step >= len(self._notes):
			return False

		self._notes[step] = note
		return True


	def clear (self) -> None:

		"""Silence every step in place."""

		for i in range(len(self._notes)):
			self._notes[i] = oscseq.constants.SILENT


	def resized (self, length: int) -> "Pattern":

		"""
		Return a new pattern of *length* steps.

		Leading notes are copied up to the shorter of the two lengths; any
		remaining steps in the new pattern are silent.
		"""

		pattern = Pattern(length)
		keep = min(length, len(self._notes))
		pattern._notes[:keep] = self._notes[:keep]

		return pattern


	def clone (self) -> "Pattern":

		"""Return an independent copy of this pattern."""

		return Pattern.from_notes(self._notes)


	def is_silent (self) -> bool:

		"""True when no step holds a note."""

		return not any(self._notes)


	def __eq__ (self, other: object) -> bool:

		if not isinstance(other, Pattern):
			return NotImplemented

		return self._notes == other._notes


	def __repr__ (self) -> str:

		return f"Pattern({self._notes!r})"
