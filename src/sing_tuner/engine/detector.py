import math
from typing import Optional

import numpy as np
import numpy.typing as npt

from sing_tuner.protocol import DetectorConfig, validate_detector_config_or_raise


class AutocorrelationDetector:
    def __init__(self, config: Optional[DetectorConfig] = None):
        """Time-domain autocorrelation pitch detector for a single buffer.

        Slides the buffer against itself over the lags of the configured band and
        takes the strongest local maximum as the period. No FFT and no state is kept
        between buffers, so one instance can serve any number of threads.

        The correlation is raw (not divided by buffer energy): the threshold acts as
        a loudness gate as well as a periodicity gate.

        Args:
            config: Frequency band and correlation threshold. Defaults to the voice
                band from config.py.

        Raises:
            ValueError: if the band is empty or non-positive.

        Example:
            >>> detector = AutocorrelationDetector()
            >>> frequency = detector.detect(samples, 44100.0)  # None for silence
        """
        self.config = config if config is not None else DetectorConfig()
        validate_detector_config_or_raise(
            self.config.min_frequency, self.config.max_frequency, self.config.correlation_threshold
        )

    def lag_bounds(self, sample_rate: float) -> tuple[int, int]:
        """(min_lag, max_lag) in samples for the configured band at this sample rate."""
        min_lag = int(math.floor(sample_rate / self.config.max_frequency))
        max_lag = int(math.floor(sample_rate / self.config.min_frequency))
        return min_lag, max_lag

    def autocorrelate(
        self, samples: npt.ArrayLike, sample_rate: float
    ) -> Optional[tuple[int, npt.NDArray[np.float64]]]:
        """Raw autocorrelation for every lag in [min_lag, max_lag).

        Returns:
            (min_lag, corr) where corr[i] belongs to lag min_lag + i, or None when the
            buffer cannot hold two periods of the lowest frequency.
        """
        x = np.asarray(samples, dtype=np.float64).reshape(-1)
        n = len(x)
        if n == 0 or not (math.isfinite(sample_rate) and sample_rate > 0):
            return None

        min_lag, max_lag = self.lag_bounds(sample_rate)
        if not (min_lag < max_lag and max_lag < n // 2):
            return None

        # Hot path: one dot product per lag, O((max_lag - min_lag) * n)
        corr = np.empty(max_lag - min_lag, dtype=np.float64)
        for i, lag in enumerate(range(min_lag, max_lag)):
            corr[i] = np.dot(x[: n - lag], x[lag:])
        return min_lag, corr

    @staticmethod
    def select_peak(corr: npt.NDArray[np.float64]) -> tuple[int, float]:
        """Index and value of the winning correlation peak.

        Scans left to right (increasing lag). A strict local maximum replaces the
        best so far only when strictly greater, so on ties the lower lag (higher
        frequency) is kept. The best starts at (0, 0.0): non-positive peaks never
        win, and index 0 is returned when nothing qualifies.
        """
        best_index = 0
        best_value = 0.0
        if len(corr) < 3:
            return best_index, best_value

        inner = corr[1:-1]
        is_peak = (inner > corr[:-2]) & (inner > corr[2:])
        for i in np.flatnonzero(is_peak) + 1:
            if corr[i] > best_value:
                best_value = float(corr[i])
                best_index = int(i)
        return best_index, best_value

    def detect(self, samples: npt.ArrayLike, sample_rate: float) -> Optional[float]:
        """Estimate the fundamental frequency of one buffer.

        Returns:
            Frequency in Hz, or None for silence, noise, a too-short buffer or a
            result outside the configured band. Never raises for bad audio.
        """
        result = self.autocorrelate(samples, sample_rate)
        if result is None:
            return None
        min_lag, corr = result

        index, peak = self.select_peak(corr)
        if min_lag + index <= 0:
            return None

        # Exclusive gate: a peak exactly at the threshold is treated as noise
        if not peak > self.config.correlation_threshold:
            return None

        frequency = self._refine(corr, index, min_lag, sample_rate)

        if not (self.config.min_frequency <= frequency <= self.config.max_frequency):
            return None
        return frequency

    @staticmethod
    def _refine(corr, index: int, min_lag: int, sample_rate: float) -> float:
        """Parabolic interpolation of the peak position between integer lags."""
        best_lag = min_lag + index
        if not (0 < index < len(corr) - 1):
            return sample_rate / best_lag

        y0 = float(corr[index - 1])
        y1 = float(corr[index])
        y2 = float(corr[index + 1])

        denom = 2.0 * (y0 - 2.0 * y1 + y2)
        if denom == 0:
            return sample_rate / best_lag

        refined_lag = best_lag + (y0 - y2) / denom
        return sample_rate / refined_lag
