# ============================================================================
# AUDIO STREAM CONFIGURATION
# ============================================================================

CHUNK = 4096
"""
Number of audio samples per buffer (single detection unit).

Impact on Latency:
  - Latency (ms) = CHUNK / RATE * 1000
  - 4096 @ 44.1kHz = 92.9ms per estimate (comfortable for a tuner readout)
  - 2048 @ 44.1kHz = 46.4ms (snappier, but see the lag limit below)

Impact on Detection:
  - The detector needs two full periods of the lowest frequency in one buffer:
    sample_rate / MIN_FREQUENCY must stay below CHUNK // 2
  - 80 Hz @ 44.1kHz needs a lag of 551 samples, so CHUNK must exceed 1102
  - Cost grows with CHUNK * (number of lags), roughly 2M multiply-adds at 4096

Watch Out For:
  - 1024 @ 44.1kHz is too short for 80 Hz and every buffer reports "no pitch"
  - Larger chunks smear fast note changes into one estimate
"""

CHANNELS = 2
"""
Channels requested from the input device (stereo, averaged to mono before detection).

Only an upper bound: the stream opens with min(CHANNELS, device channels), so a
mono microphone is read as-is.
"""

# ============================================================================
# SAMPLE RATE CONFIGURATION
# ============================================================================

RATE = 44100
"""
Sample rate in Hz of the synthetic reference tone.

Standard Options:
  - 44100 Hz: CD quality, default for most built-in microphones
  - 48000 Hz: USB interfaces and video gear

Watch Out For:
  - The microphone source always uses the device default rate instead; a
    forced mismatch causes silent input or distortion
  - Lag bounds scale with the rate: 48 kHz moves 80 Hz to lag 600
"""

# ============================================================================
# DETECTOR CONFIGURATION
# ============================================================================

MIN_FREQUENCY = 80.0
"""
Lowest frequency in Hz the detector reports (~E2, bottom of a bass voice).

Sets max_lag = RATE / MIN_FREQUENCY, which dominates the cost per buffer.
"""

MAX_FREQUENCY = 1000.0
"""
Highest frequency in Hz the detector reports (~B5, top of a soprano voice).

Sets min_lag = RATE / MAX_FREQUENCY. Raising it above ~1.5 kHz starts to let
sibilants and harmonics through as pitches.
"""

CORRELATION_THRESHOLD = 0.1
"""
Minimum raw autocorrelation peak accepted as a pitch (exclusive: the peak must exceed it).

The correlation is NOT normalized by buffer energy, so this behaves like a
loudness gate:
  - A sine of amplitude 0.3 over 4096 samples peaks around 160
  - Quiet room noise typically stays well below 0.1
  - Halving the input level quarters the peak

Watch Out For:
  - Very quiet microphones may never cross it; raise input gain rather than
    dropping this to 0 (then any periodic hum is reported)
"""

# ============================================================================
# PITCH REFERENCE
# ============================================================================

A4_FREQUENCY = 440.0
"""Concert pitch reference in Hz."""

A4_MIDI = 69
"""MIDI note number of A4."""

IN_TUNE_CENTS = 10.0
"""
Largest absolute deviation in cents still shown as "In Tune" (inclusive).

10 cents is about the smallest error a trained ear hears on a sustained note.
"""

TONE_AMPLITUDE = 0.3
"""Peak amplitude of the synthetic reference tone (leaves headroom below clipping)."""

# ============================================================================
# READOUT CONFIGURATION
# ============================================================================

POLL_INTERVAL = 0.05
"""
Seconds between readout refreshes in the terminal tuner (20 Hz).

Faster than the estimate rate (~11 Hz at CHUNK=4096) so no estimate is missed
on screen; the controller is read without blocking so polling is cheap.
"""
