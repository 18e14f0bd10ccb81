"""
oscseq - an interactive OSC step sequencer.

oscseq holds one or more fixed-length note patterns, advances them in
lockstep at a tunable tempo, and sends a note-on/note-off pair over OSC for
every step that holds a note.  Patterns can be edited, resized, copied,
switched, and saved while playback continues.

- **Single or all.** Play only the selected pattern, or every pattern at
  once, each with its own step cursor so patterns of different lengths
  drift against each other as polyrhythms.
- **Drift-compensated clock.** Each tick waits out only what is left of its
  interval after the notes have been sent, so the tempo does not sag under
  load.
- **Responsive transport.** Start, stop, and pause never wait on the
  playback loop.
- **Pluggable output.** Anything with a ``send(address, *args)`` method can
  replace the OSC sink; a MIDI preview and a live terminal view plug into
  the same loop.

Minimal example:

    ```python
    import asyncio
    import oscseq

    async def main ():
        sink = oscseq.OscSink("127.0.0.1", 9000)
        sink.open()

        seq = oscseq.Sequencer(sink, initial_bpm=120, initial_pattern_length=4)
        await seq.record_notes("60 0 64 0")
        await seq.start()
        await asyncio.sleep(8)
        await seq.close()

    asyncio.run(main())
    ```

Or run the console: ``python -m oscseq 127.0.0.1 9000``.

Package-level exports: ``Sequencer``, ``PlaybackMode``, ``Pattern``, ``Project``, ``OscSink``.
"""

import oscseq.osc
import oscseq.pattern
import oscseq.project
import oscseq.sequencer


Sequencer = oscseq.sequencer.Sequencer
PlaybackMode = oscseq.sequencer.PlaybackMode
Pattern = oscseq.pattern.Pattern
Project = oscseq.project.Project
OscSink = oscseq.osc.OscSink
