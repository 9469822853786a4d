"""
Debug monitoring and performance tracking for the pitch engine.

Tracks FPS, detection latency against the real-time budget, input level and
detection rate, printing summaries every 2 seconds and logging discrete events.
"""

import time
from collections import deque
from typing import Optional

import numpy as np

from sing_tuner.protocol import PitchEstimate

SILENCE_DB = -40.0  # dB level considered as silence


class DebugMonitor:
    """
    Real-time monitor for detector performance and input health.

    Prints a summary line every N seconds with the following metrics:
    - FPS: Buffers processed per second.
    - Latency: Average detection time in ms, with the peak in this window.
    - Budget: Buffers whose detection took longer than the audio they hold
      (any non-zero count means the producer is falling behind).
    - Input: Input signal level in dB (detect clipping or silence).
    - Silence: Percentage of buffers below -40dB.
    - Detect: Percentage of buffers that produced an estimate.
    - Note: Last published note and cents.

    Discrete events (OVERRUN, CLIP, NOTE) are logged when enable_event_logging=True.
    """

    def __init__(self, summary_interval: float = 2.0, enable_event_logging: bool = False):
        """
        Initializes the debug monitor.

        Args:
            summary_interval: Seconds between printing summary statistics.
            enable_event_logging: Whether to log discrete events (OVERRUN, CLIP, NOTE).
        """
        self.summary_interval = summary_interval
        self.enable_event_logging = enable_event_logging
        self.start_time = time.time()
        self.last_summary_time = self.start_time

        # Performance tracking
        self.frame_times = deque(maxlen=256)  # Rolling buffer of detection times in ms
        self.overrun_count = 0

        # Audio health
        self.input_db = -180.0
        self.silence_count = 0
        self.clip_count = 0

        # Detection quality
        self.frame_count = 0
        self.detected_count = 0
        self.last_note: Optional[str] = None
        self.last_cents = 0.0

        self.summaries_printed = 0

    def update(
        self,
        frame_time_ms: float,
        estimate: Optional[PitchEstimate],
        raw_audio: np.ndarray,
        sample_rate: float,
    ) -> None:
        """
        Updates monitor with the results from one buffer.

        Args:
            frame_time_ms: Time to detect this buffer in milliseconds.
            estimate: The estimate for this buffer, or None when nothing was detected.
            raw_audio: The (copied) samples of this buffer.
            sample_rate: Sample rate of the buffer, used for the real-time budget.
        """
        self.frame_count += 1
        self.frame_times.append(frame_time_ms)

        budget_ms = len(raw_audio) / sample_rate * 1000.0 if sample_rate > 0 else 0.0
        if frame_time_ms > budget_ms:
            self.overrun_count += 1
            self.log_event("OVERRUN", f"{frame_time_ms:.1f}ms > {budget_ms:.1f}ms budget")

        # Audio health: input RMS
        input_rms = float(np.sqrt(np.mean(raw_audio**2))) if len(raw_audio) else 0.0
        self.input_db = 20 * np.log10(max(input_rms, 1e-9))
        if self.input_db < SILENCE_DB:
            self.silence_count += 1
        if len(raw_audio) and float(np.max(np.abs(raw_audio))) >= 0.999:
            self.clip_count += 1
            self.log_event("CLIP", f"Input {self.input_db:.1f}dB")

        if estimate is not None:
            self.detected_count += 1
            if estimate.note_name != self.last_note:
                self.log_event("NOTE", f"{estimate.note_name} {estimate.frequency_hz:.1f}Hz")
            self.last_note = estimate.note_name
            self.last_cents = estimate.cents_deviation

        # Print summary if interval elapsed
        if time.time() - self.last_summary_time >= self.summary_interval:
            self._print_summary()
            self.last_summary_time = time.time()

    def log_event(self, event_type: str, message: str) -> None:
        """
        Logs a discrete event (only if enabled).

        Args:
            event_type: Category of event (e.g., "OVERRUN", "CLIP", "NOTE").
            message: Event details.
        """
        if not self.enable_event_logging:
            return
        elapsed = time.time() - self.start_time
        print(f"[{elapsed:05.1f}s] {event_type:8s} | {message}")

    def _print_summary(self) -> None:
        elapsed_total = time.time() - self.start_time
        minutes = int(elapsed_total // 60)
        seconds = int(elapsed_total % 60)
        time_str = f"{minutes:02d}:{seconds:02d}"

        if self.frame_times:
            window = time.time() - self.last_summary_time
            fps = self.frame_count / window if window > 0 else 0.0
            avg_latency = np.mean(self.frame_times)
            max_latency = np.max(self.frame_times)
        else:
            fps = 0.0
            avg_latency = 0.0
            max_latency = 0.0

        detect_rate = self.detected_count / self.frame_count * 100 if self.frame_count else 0.0
        silence_rate = self.silence_count / self.frame_count * 100 if self.frame_count else 0.0

        status = "OK"
        if self.overrun_count:
            status = "⚠ OVERRUN"
        elif self.clip_count:
            status = "⚠ CLIP"
        elif self.input_db < SILENCE_DB:
            status = "⚠ SILENCE"

        note = f"{self.last_note} {self.last_cents:+.0f}c" if self.last_note else "--"

        summary = (
            f"[{time_str}] FPS: {fps:5.1f} | "
            f"Latency: {avg_latency:5.1f}ms (max {max_latency:5.1f}ms) | "
            f"Budget: {self.overrun_count} over | "
            f"Input: {self.input_db:6.1f}dB | "
            f"Silence: {silence_rate:5.1f}% | "
            f"Detect: {detect_rate:5.1f}% | "
            f"Note: {note} | "
            f"Status: {status}"
        )

        print(summary)
        self.summaries_printed += 1

        # Reset counters for next interval
        self.frame_count = 0
        self.detected_count = 0
        self.overrun_count = 0
        self.silence_count = 0
        self.clip_count = 0
