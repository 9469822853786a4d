"""
Data contracts exchanged between sample source -> detector -> controller -> consumer.

SampleSource (consumed):
- sample_rate: float
    - Description: Rate in Hz at which the source captures samples.
    - Valid: > 0. A source reporting 0 (no device) must not be started.
- channel_count: int
    - Description: Number of channels the source captures before mono mixdown.
    - Valid: > 0.
- start(on_samples): begins delivering (samples, sample_rate) on the source's own thread.
- stop(): stops delivering. Must be safe to call more than once.

DetectorConfig:
- min_frequency, max_frequency: float
    - Description: Band in Hz the detector reports (human voice, e.g. 80..1000).
    - Invariant: 0 < min_frequency < max_frequency, both finite.
- correlation_threshold: float
    - Description: Raw (not energy-normalized) autocorrelation a peak must exceed.
    - Valid: any finite number.

PitchEstimate (exposed):
- frequency_hz: float, finite and > 0
- midi_note: int
- note_name: str, e.g. "A4"
- cents_deviation: float, signed, finite. Nominally -50..+50 but not clamped.
- is_in_tune: derived, abs(cents_deviation) <= IN_TUNE_CENTS

Validation functions are intentionally minimal and cheap (type checks and simple range checks).
They raise on violations so contract drift is noticed immediately.
"""

import math
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from sing_tuner.config import CORRELATION_THRESHOLD, IN_TUNE_CENTS, MAX_FREQUENCY, MIN_FREQUENCY

SampleCallback = Callable[[Sequence[float], float], None]


class SampleSource(Protocol):
    """Anything that, once started, repeatedly calls back with (samples, sample_rate) until stopped."""

    @property
    def sample_rate(self) -> float: ...

    @property
    def channel_count(self) -> int: ...

    def start(self, on_samples: SampleCallback) -> None: ...

    def stop(self) -> None: ...


def _is_number(x):
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def validate_detector_config_or_raise(min_frequency, max_frequency, correlation_threshold) -> None:
    """Validate detector settings and raise on any violation.

    Raises:
        TypeError: if a field is not numeric
        ValueError: if the bounds are non-positive, non-finite or out of order
    """
    for name, value in (
        ("min_frequency", min_frequency),
        ("max_frequency", max_frequency),
        ("correlation_threshold", correlation_threshold),
    ):
        if not _is_number(value):
            raise TypeError(f"config: '{name}' must be numeric")
        if not math.isfinite(value):
            raise ValueError(f"config: '{name}' must be finite: {value}")

    if min_frequency <= 0:
        raise ValueError(f"config: 'min_frequency' must be positive: {min_frequency}")
    if min_frequency >= max_frequency:
        raise ValueError(
            f"config: 'min_frequency' ({min_frequency}) must be below 'max_frequency' ({max_frequency})"
        )


def validate_estimate_or_raise(frequency_hz, midi_note, note_name, cents_deviation) -> None:
    """Validate a pitch estimate and raise on any structural or range violation.

    Raises:
        TypeError: if a field has the wrong type
        ValueError: if a field's value is out of the allowed range
    """
    if not _is_number(frequency_hz):
        raise TypeError("estimate: 'frequency_hz' must be numeric")
    if not (math.isfinite(frequency_hz) and frequency_hz > 0):
        raise ValueError(f"estimate: 'frequency_hz' must be finite and positive: {frequency_hz}")

    if not isinstance(midi_note, int) or isinstance(midi_note, bool):
        raise TypeError("estimate: 'midi_note' must be an int")

    if not isinstance(note_name, str):
        raise TypeError("estimate: 'note_name' must be a str")
    if not note_name:
        raise ValueError("estimate: 'note_name' must not be empty")

    if not _is_number(cents_deviation):
        raise TypeError("estimate: 'cents_deviation' must be numeric")
    if not math.isfinite(cents_deviation):
        raise ValueError(f"estimate: 'cents_deviation' must be finite: {cents_deviation}")


@dataclass(frozen=True)
class DetectorConfig:
    min_frequency: float = MIN_FREQUENCY
    max_frequency: float = MAX_FREQUENCY
    correlation_threshold: float = CORRELATION_THRESHOLD

    def __post_init__(self):
        validate_detector_config_or_raise(self.min_frequency, self.max_frequency, self.correlation_threshold)


@dataclass(frozen=True)
class PitchEstimate:
    """One buffer's pitch. Immutable, so it is published by swapping the reference."""

    frequency_hz: float
    midi_note: int
    note_name: str
    cents_deviation: float

    def __post_init__(self):
        validate_estimate_or_raise(self.frequency_hz, self.midi_note, self.note_name, self.cents_deviation)

    @property
    def is_in_tune(self) -> bool:
        return abs(self.cents_deviation) <= IN_TUNE_CENTS
