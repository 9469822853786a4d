"""Conversions between frequency, MIDI note number, note name and cents.

Pure functions with no state; safe to call from the audio thread or the readout.
A4 = MIDI 69 = 440 Hz is the fixed reference.
"""

import math

from sing_tuner.config import A4_FREQUENCY, A4_MIDI
from sing_tuner.protocol import PitchEstimate

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

MIDI_RANGE = range(36, 73)
"""Reference keyboard offered for pitch practice: C2 (36) to C5 (72), inclusive."""

NO_NOTE = "--"


def midi_note_for_frequency(frequency: float) -> int:
    """Nearest equal-tempered MIDI note for a frequency in Hz.

    Raises:
        ValueError: if the frequency is not positive
    """
    if frequency <= 0:
        raise ValueError(f"frequency must be positive: {frequency}")
    return int(round(A4_MIDI + 12 * math.log2(frequency / A4_FREQUENCY)))


def frequency_for_midi_note(midi_note: int) -> float:
    return A4_FREQUENCY * 2.0 ** ((midi_note - A4_MIDI) / 12.0)


def note_name_for_midi_note(midi_note: int) -> str:
    """Display name such as "A4". Octave numbering follows scientific pitch (C4 = MIDI 60)."""
    # floor semantics keep negative notes in C-1 and below
    return f"{NOTE_NAMES[midi_note % 12]}{midi_note // 12 - 1}"


def note_name_for_frequency(frequency: float) -> str:
    """Name of the nearest note, or "--" for a non-positive frequency."""
    if frequency <= 0:
        return NO_NOTE
    return note_name_for_midi_note(midi_note_for_frequency(frequency))


def cents(actual_frequency: float, midi_note: int) -> float:
    """Signed deviation of a frequency from the perfect pitch of a note, in cents."""
    return 1200.0 * math.log2(actual_frequency / frequency_for_midi_note(midi_note))


def estimate_for_frequency(frequency: float) -> PitchEstimate:
    """Map a detected frequency onto its nearest note."""
    frequency = float(frequency)
    midi_note = midi_note_for_frequency(frequency)
    return PitchEstimate(
        frequency_hz=frequency,
        midi_note=midi_note,
        note_name=note_name_for_midi_note(midi_note),
        cents_deviation=cents(frequency, midi_note),
    )
