import threading
import time
from typing import Callable, Optional, Sequence

import numpy as np

from sing_tuner.notes import estimate_for_frequency
from sing_tuner.protocol import PitchEstimate, SampleSource

from .debug_monitor import DebugMonitor
from .detector import AutocorrelationDetector

EstimateListener = Callable[[Optional[PitchEstimate]], None]


class PitchStreamController:
    def __init__(
        self,
        detector: Optional[AutocorrelationDetector] = None,
        monitor: Optional[DebugMonitor] = None,
    ):
        """Runs the detector on every buffer a sample source delivers and publishes the latest estimate.

        Two states: idle and detecting. Buffers arrive on the source's thread; each one is
        copied, detected and mapped to a note on that thread, then published by replacing
        a single reference. Readers (a UI loop, the terminal readout) poll `latest` without
        taking a lock, or register a listener to be pushed every new estimate.

        A buffer that yields no pitch leaves the previous estimate in place; only stop()
        clears it.

        Args:
            detector: Detector to run on each buffer. Defaults to the voice band.
            monitor: Optional DebugMonitor fed with timing and results of every buffer.
        """
        self.detector = detector if detector is not None else AutocorrelationDetector()
        self.monitor = monitor

        self._source: Optional[SampleSource] = None
        self._estimate: Optional[PitchEstimate] = None
        self._listeners: list[EstimateListener] = []

        # Guards the estimate swap and the session counter only; never held while detecting
        self._publish_lock = threading.Lock()
        self._session = 0

    @property
    def is_detecting(self) -> bool:
        return self._source is not None

    @property
    def latest(self) -> Optional[PitchEstimate]:
        """Most recent estimate, or None before the first detection and after stop()."""
        return self._estimate

    def add_listener(self, listener: EstimateListener) -> None:
        """Registers a callback run on the producer thread with each new estimate (None on clear)."""
        with self._publish_lock:
            self._listeners = self._listeners + [listener]

    def remove_listener(self, listener: EstimateListener) -> None:
        with self._publish_lock:
            self._listeners = [fn for fn in self._listeners if fn != listener]

    def start(self, source: SampleSource) -> bool:
        """Attaches to a source and begins detecting.

        Returns:
            False (staying idle) when the source reports no usable format; True once
            detecting. Calling it while already detecting does not attach a second time.

        Raises:
            Whatever source.start raises; the controller is left idle.
        """
        if self.is_detecting:
            return True

        if not (source.sample_rate > 0 and source.channel_count > 0):
            print(
                f"[PitchStream] Invalid input format (rate={source.sample_rate}, "
                f"channels={source.channel_count}) - no input device?"
            )
            return False

        with self._publish_lock:
            self._session += 1
            session = self._session
        self._source = source

        def on_samples(samples: Sequence[float], sample_rate: float) -> None:
            self._process(samples, sample_rate, session)

        try:
            source.start(on_samples)
        except Exception:
            with self._publish_lock:
                self._session += 1
            self._source = None
            raise
        return True

    def stop(self) -> None:
        """Detaches from the source and clears the estimate. Safe to call in any state."""
        with self._publish_lock:
            # Bumping the session makes any buffer still in flight drop its result
            self._session += 1
            source, self._source = self._source, None
            cleared = self._estimate is not None
            self._estimate = None
            listeners = self._listeners

        if source is not None:
            source.stop()
        if cleared:
            self._notify(listeners, None)

    def handle_samples(self, samples: Sequence[float], sample_rate: float) -> Optional[PitchEstimate]:
        """Runs one buffer through the pipeline as if the attached source had delivered it.

        Also works while idle (publishing regardless of state), which makes it the seam
        for feeding recorded audio or tests without a device.

        Returns:
            The estimate for this buffer, or None when nothing was detected.
        """
        with self._publish_lock:
            session = self._session
        return self._process(samples, sample_rate, session)

    def _process(self, samples: Sequence[float], sample_rate: float, session: int) -> Optional[PitchEstimate]:
        t_start = time.perf_counter()

        # Copy before returning control: the producer may reuse its buffer immediately
        buffer = np.array(samples, dtype=np.float64, copy=True).reshape(-1)

        frequency = self.detector.detect(buffer, sample_rate)
        estimate = estimate_for_frequency(frequency) if frequency is not None else None

        if self.monitor is not None:
            frame_time_ms = (time.perf_counter() - t_start) * 1000.0
            self.monitor.update(frame_time_ms, estimate, buffer, sample_rate)

        if estimate is not None:
            self._publish(estimate, session)
        return estimate

    def _publish(self, estimate: PitchEstimate, session: int) -> None:
        with self._publish_lock:
            if session != self._session:
                return
            self._estimate = estimate
            listeners = self._listeners

        self._notify(listeners, estimate)

    @staticmethod
    def _notify(listeners: list[EstimateListener], estimate: Optional[PitchEstimate]) -> None:
        # Runs on the producer thread: a failing listener must not end the capture loop
        for listener in listeners:
            try:
                listener(estimate)
            except Exception as e:
                print(f"[PitchStream] Listener error: {e!r}")
