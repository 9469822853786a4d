import math
import threading
from typing import Optional

import numpy as np

from sing_tuner.config import CHUNK, RATE, TONE_AMPLITUDE
from sing_tuner.notes import frequency_for_midi_note
from sing_tuner.protocol import SampleCallback


class ToneSource:
    def __init__(
        self,
        frequency: float,
        sample_rate: float = RATE,
        chunk: int = CHUNK,
        amplitude: float = TONE_AMPLITUDE,
        realtime: bool = True,
    ):
        """Reference sine tone delivered like a capture device would deliver microphone input.

        Buffers are produced on a daemon thread, paced to wall-clock time when realtime is
        True (one buffer every chunk / sample_rate seconds) or as fast as possible otherwise.
        The phase carries over between buffers so consecutive buffers join without a click.

        The same numpy array is refilled for every delivery: consumers that keep a
        reference instead of copying see it change under them.

        Args:
            frequency: Tone frequency in Hz.
            sample_rate: Sample rate in Hz.
            chunk: Samples per delivered buffer.
            amplitude: Peak amplitude (0.3 leaves headroom below clipping).
            realtime: Pace deliveries to the buffer duration.
        """
        self.frequency = float(frequency)
        self._sample_rate = float(sample_rate)
        self.chunk = chunk
        self.amplitude = amplitude
        self.realtime = realtime

        self.phase = 0.0
        self.phase_increment = 2.0 * math.pi * self.frequency / self._sample_rate if self._sample_rate > 0 else 0.0
        self.buffer = np.zeros(chunk, dtype=np.float32)
        self.buffers_sent = 0

        self._stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @classmethod
    def for_midi_note(cls, midi_note: int, **kwargs) -> "ToneSource":
        return cls(frequency_for_midi_note(midi_note), **kwargs)

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @property
    def channel_count(self) -> int:
        return 1

    @property
    def running(self) -> bool:
        return self.thread is not None and not self._stop_event.is_set()

    def fill(self) -> np.ndarray:
        """Renders the next chunk into the shared buffer and advances the phase."""
        steps = self.phase + self.phase_increment * np.arange(self.chunk)
        self.buffer[:] = self.amplitude * np.sin(steps)
        self.phase = (self.phase + self.phase_increment * self.chunk) % (2.0 * math.pi)
        return self.buffer

    def start(self, on_samples: SampleCallback) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self.thread = threading.Thread(target=self._produce, args=(on_samples,), daemon=True)
        self.thread.start()

    def _produce(self, on_samples: SampleCallback) -> None:
        period = self.chunk / self._sample_rate if self.realtime else 0.0
        while not self._stop_event.is_set():
            on_samples(self.fill(), self._sample_rate)
            self.buffers_sent += 1
            # Event.wait doubles as the pacing sleep and returns early on stop()
            self._stop_event.wait(period)

    def stop(self) -> None:
        if self.thread is None:
            return
        self._stop_event.set()
        if self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        self.thread = None
