import asyncio
import os

import pytest

import oscseq.pattern
import oscseq.project
import oscseq.project_file
import oscseq.sequencer

from oscseq.sequencer import PlaybackMode


def _make_sequencer (sink, length: int = 4, bpm: float = 120) -> oscseq.sequencer.Sequencer:

	"""Create a sequencer with one silent pattern."""

	return oscseq.sequencer.Sequencer(sink, initial_bpm=bpm, initial_pattern_length=length)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def test_initial_state (sink) -> None:

	seq = _make_sequencer(sink, length=8, bpm=100)

	assert seq.pattern_count == 1
	assert seq.get_notes(0) == (0,) * 8
	assert seq.bpm == 100
	assert seq.mode == PlaybackMode.SINGLE
	assert seq.active_patterns == [0]
	assert seq.is_playing is False
	assert seq.is_paused is False


@pytest.mark.parametrize("bpm", [0, -5, float("nan"), float("inf")])
def test_rejects_invalid_initial_bpm (sink, bpm: float) -> None:

	with pytest.raises(ValueError):
		_make_sequencer(sink, bpm=bpm)


def test_sink_satisfies_protocol (sink) -> None:

	assert isinstance(sink, oscseq.sequencer.EventSink)


# ---------------------------------------------------------------------------
# Note entry
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_record_note_in_range (sink) -> None:

	seq = _make_sequencer(sink)

	assert await seq.record_note(2, 64) is True
	assert seq.get_notes(0) == (0, 0, 64, 0)


@pytest.mark.asyncio
@pytest.mark.parametrize("position", [-1, 4, 99])
async def test_record_note_out_of_range_is_noop (sink, position: int) -> None:

	seq = _make_sequencer(sink)

	assert await seq.record_note(position, 64) is False
	assert seq.get_notes(0) == (0, 0, 0, 0)


@pytest.mark.asyncio
async def test_record_note_repairs_stale_selection (sink) -> None:

	"""A selection past the end of the pattern list grows the list before writing."""

	seq = _make_sequencer(sink)
	seq._project.current_pattern_index = 2

	assert await seq.record_note(0, 60) is True
	assert seq.pattern_count == 3
	assert seq.get_notes(2)[0] == 60


@pytest.mark.asyncio
async def test_record_notes_writes_from_first_step (sink) -> None:

	seq = _make_sequencer(sink)

	assert await seq.record_notes("60 0 64") == 3
	assert seq.get_notes(0) == (60, 0, 64, 0)


@pytest.mark.asyncio
async def test_record_notes_stops_at_pattern_length (sink) -> None:

	seq = _make_sequencer(sink)

	assert await seq.record_notes("1 2 3 4 5 6") == 4
	assert seq.get_notes(0) == (1, 2, 3, 4)


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["60 x 64", "60 -1", "60 6.5"])
async def test_record_notes_malformed_writes_nothing (sink, text: str) -> None:

	"""A bad token anywhere rejects the whole write."""

	seq = _make_sequencer(sink)
	await seq.record_note(3, 36)

	with pytest.raises(ValueError):
		await seq.record_notes(text)

	assert seq.get_notes(0) == (0, 0, 0, 36)


def test_parse_notes () -> None:

	assert oscseq.sequencer.parse_notes("  60\t0\n64  ") == [60, 0, 64]
	assert oscseq.sequencer.parse_notes("") == []

	with pytest.raises(ValueError, match="'abc'"):
		oscseq.sequencer.parse_notes("1 abc 2")


# ---------------------------------------------------------------------------
# Tempo
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_set_tempo_sends_tempo_event (sink) -> None:

	seq = _make_sequencer(sink)

	await seq.set_tempo(140)

	assert seq.bpm == 140
	assert sink.messages == [("/global/tempo", (140,))]


@pytest.mark.asyncio
@pytest.mark.parametrize("bpm", [0, -10, float("nan"), float("inf")])
async def test_set_tempo_rejects_invalid (sink, bpm: float) -> None:

	seq = _make_sequencer(sink)

	with pytest.raises(ValueError):
		await seq.set_tempo(bpm)

	assert seq.bpm == 120
	assert sink.messages == []


@pytest.mark.asyncio
async def test_set_tempo_uses_configured_address (sink) -> None:

	seq = _make_sequencer(sink)
	seq.addresses.edit("tempo", "tempo", "/clock/bpm")

	await seq.set_tempo(90)

	assert sink.messages == [("/clock/bpm", (90,))]


# ---------------------------------------------------------------------------
# Pattern editing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_set_pattern_length_shrink_keeps_prefix (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.record_notes("1 2 3 4")

	await seq.set_pattern_length(2)

	assert seq.get_notes(0) == (1, 2)


@pytest.mark.asyncio
async def test_set_pattern_length_grow_pads_silence (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.record_notes("1 2 3 4")

	await seq.set_pattern_length(6)

	assert seq.get_notes(0) == (1, 2, 3, 4, 0, 0)


@pytest.mark.asyncio
async def test_set_pattern_length_rejects_non_positive (sink) -> None:

	seq = _make_sequencer(sink)

	with pytest.raises(ValueError):
		await seq.set_pattern_length(0)

	assert len(seq.get_notes(0)) == 4


@pytest.mark.asyncio
async def test_stale_cursor_wraps_after_shrink (sink) -> None:

	"""A cursor past the new end is read modulo the new length."""

	seq = _make_sequencer(sink, length=8)
	seq._pattern_steps[0] = 7

	await seq.set_pattern_length(3)

	assert seq.get_step(0) == 7 % 3
	assert seq._pattern_steps[0] == 7


@pytest.mark.asyncio
async def test_clear_pattern (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.record_notes("60 61 62 63")

	await seq.clear_pattern()

	assert seq.get_notes(0) == (0, 0, 0, 0)


@pytest.mark.asyncio
async def test_add_pattern_keeps_selection (sink) -> None:

	seq = _make_sequencer(sink)

	index = await seq.add_pattern(8)

	assert index == 1
	assert seq.pattern_count == 2
	assert seq.get_notes(1) == (0,) * 8
	assert seq.current_pattern_index == 0
	assert seq.active_patterns == [0]


@pytest.mark.asyncio
async def test_add_pattern_joins_all_mode (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.switch_playback_mode(PlaybackMode.ALL)

	await seq.add_pattern(8)

	assert seq.active_patterns == [0, 1]


@pytest.mark.asyncio
async def test_add_pattern_rejects_non_positive (sink) -> None:

	seq = _make_sequencer(sink)

	with pytest.raises(ValueError):
		await seq.add_pattern(0)


@pytest.mark.asyncio
async def test_copy_pattern_clones_current (sink) -> None:

	"""Copying a one-pattern project yields an identical second pattern with its cursor at 0."""

	seq = _make_sequencer(sink)
	await seq.record_notes("60 0 64 0")
	seq._pattern_steps[0] = 2

	index = await seq.copy_pattern()

	assert index == 1
	assert seq.pattern_count == 2
	assert seq.get_notes(1) == seq.get_notes(0) == (60, 0, 64, 0)
	assert seq._pattern_steps[1] == 0
	assert seq.get_step(0) == 2

	await seq.record_note(0, 1)

	assert seq.get_notes(1)[0] == 60


@pytest.mark.asyncio
async def test_next_pattern_wraps (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.add_pattern(4)
	await seq.add_pattern(4)

	assert await seq.next_pattern() == 1
	assert seq.active_patterns == [1]
	assert await seq.next_pattern() == 2
	assert await seq.next_pattern() == 0
	assert seq.active_patterns == [0]


@pytest.mark.asyncio
async def test_next_pattern_in_all_mode_keeps_all_active (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.add_pattern(4)
	await seq.switch_playback_mode(PlaybackMode.ALL)

	await seq.next_pattern()

	assert seq.current_pattern_index == 1
	assert seq.active_patterns == [0, 1]


@pytest.mark.asyncio
async def test_select_pattern (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.add_pattern(4)

	assert await seq.select_pattern(1) is True
	assert seq.current_pattern_index == 1
	assert seq.active_patterns == [1]

	assert await seq.select_pattern(2) is False
	assert await seq.select_pattern(-1) is False
	assert seq.current_pattern_index == 1


# ---------------------------------------------------------------------------
# Playback mode
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_all_mode_activates_every_pattern (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.add_pattern(4)
	await seq.add_pattern(4)
	await seq.select_pattern(1)

	assert await seq.switch_playback_mode(PlaybackMode.ALL) == PlaybackMode.ALL
	assert seq.active_patterns == [0, 1, 2]

	assert await seq.switch_playback_mode(PlaybackMode.SINGLE) == PlaybackMode.SINGLE
	assert seq.active_patterns == [1]


@pytest.mark.asyncio
async def test_switch_playback_mode_toggles (sink) -> None:

	seq = _make_sequencer(sink)

	assert await seq.switch_playback_mode() == PlaybackMode.ALL
	assert await seq.switch_playback_mode() == PlaybackMode.SINGLE


def test_toggle_visualization (sink) -> None:

	seq = _make_sequencer(sink)

	assert seq.toggle_visualization() is True
	assert seq.visualization_enabled is True
	assert seq.toggle_visualization() is False


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_start_twice_launches_one_loop (sink) -> None:

	seq = _make_sequencer(sink, bpm=1)

	await seq.start()
	first_task = seq.task
	await seq.start()

	assert seq.task is first_task
	assert seq.is_playing is True

	await seq.close()


@pytest.mark.asyncio
async def test_stop_when_stopped_changes_nothing (sink) -> None:

	seq = _make_sequencer(sink)
	before = seq.snapshot()

	await seq.stop()

	assert seq.snapshot() == before
	assert seq.task is None
	assert sink.messages == []


@pytest.mark.asyncio
async def test_stop_resets_every_cursor (sink) -> None:

	seq = _make_sequencer(sink, bpm=1)
	await seq.add_pattern(4)
	seq._pattern_steps.update({0: 3, 1: 2})

	await seq.start()
	await seq.stop()

	assert seq.is_playing is False
	assert seq._pattern_steps == {0: 0, 1: 0}

	await seq.close()


@pytest.mark.asyncio
async def test_stop_while_paused (sink) -> None:

	seq = _make_sequencer(sink, bpm=1)
	seq._pattern_steps[0] = 3

	await seq.start()
	assert await seq.pause() is True

	await seq.stop()

	assert seq.is_playing is False
	assert seq.is_paused is False
	assert seq._pattern_steps[0] == 0

	await seq.close()


@pytest.mark.asyncio
async def test_pause_toggles (sink) -> None:

	seq = _make_sequencer(sink)

	assert await seq.pause() is True
	assert seq.is_paused is True
	assert await seq.pause() is False
	assert seq.is_paused is False


@pytest.mark.asyncio
async def test_stop_is_prompt_during_long_interval (sink) -> None:

	"""Stopping does not wait out the tick interval."""

	seq = _make_sequencer(sink, bpm=1)

	await seq.start()
	await asyncio.sleep(0.01)
	await seq.stop()

	await asyncio.wait_for(seq.task, timeout=1.0)

	assert seq.task.done()


@pytest.mark.asyncio
async def test_restart_after_stop_runs_new_loop (sink) -> None:

	seq = _make_sequencer(sink, bpm=1)

	await seq.start()
	first_task = seq.task
	await seq.stop()
	await seq.start()

	assert seq.task is not first_task
	assert seq.is_playing is True

	await asyncio.wait_for(first_task, timeout=1.0)
	assert not seq.task.done()

	await seq.close()
	assert seq.task is None


# ---------------------------------------------------------------------------
# Snapshots and projects
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_dump_state (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.record_notes("60 0 64 0")
	await seq.add_pattern(2)
	seq._pattern_steps[0] = 5

	snapshot = await seq.dump_state()

	assert snapshot.bpm == 120
	assert snapshot.mode == PlaybackMode.SINGLE
	assert snapshot.playing is False
	assert snapshot.paused is False
	assert snapshot.current_pattern_index == 0
	assert snapshot.project_name == "New Project"
	assert len(snapshot.patterns) == 2
	assert snapshot.patterns[0].notes == (60, 0, 64, 0)
	assert snapshot.patterns[0].cursor == 1
	assert snapshot.patterns[0].active is True
	assert snapshot.patterns[1].active is False


@pytest.mark.asyncio
async def test_export_project_is_a_copy (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.record_note(0, 60)

	project = await seq.export_project()
	project.patterns[0].set(0, 1)

	assert seq.get_notes(0)[0] == 60


@pytest.mark.asyncio
async def test_replace_project_recomputes_active_set (sink) -> None:

	seq = _make_sequencer(sink)
	await seq.switch_playback_mode(PlaybackMode.ALL)

	project = oscseq.project.Project(
		name = "Loaded",
		patterns = [oscseq.pattern.Pattern(2), oscseq.pattern.Pattern(3), oscseq.pattern.Pattern(4)],
		current_pattern_index = 1,
		bpm = 95
	)

	await seq.replace_project(project)

	assert seq.bpm == 95
	assert seq.pattern_count == 3
	assert seq.active_patterns == [0, 1, 2]


@pytest.mark.asyncio
async def test_save_and_load_project (sink, tmp_path) -> None:

	seq = _make_sequencer(sink)
	await seq.record_notes("60 0 64 0")
	await seq.copy_pattern()
	await seq.set_tempo(135)

	filename = os.path.join(tmp_path, "song.json")
	await seq.save_project(filename)

	other = _make_sequencer(sink, length=16)
	await other.load_project(filename)

	assert other.pattern_count == 2
	assert other.get_notes(1) == (60, 0, 64, 0)
	assert other.bpm == 135


@pytest.mark.asyncio
async def test_failed_load_leaves_project_unchanged (sink, tmp_path) -> None:

	seq = _make_sequencer(sink)
	await seq.record_notes("60 0 64 0")

	broken = os.path.join(tmp_path, "broken.json")

	with open(broken, "w") as f:
		f.write("{not json")

	with pytest.raises(oscseq.project_file.ProjectFileError):
		await seq.load_project(broken)

	with pytest.raises(oscseq.project_file.ProjectFileError):
		await seq.load_project(os.path.join(tmp_path, "missing.json"))

	assert seq.get_notes(0) == (60, 0, 64, 0)
	assert seq.pattern_count == 1
