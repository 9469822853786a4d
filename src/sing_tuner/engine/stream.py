import threading
from typing import Optional

import numpy as np
import numpy.typing as npt
import pyaudio

from sing_tuner.config import CHANNELS, CHUNK
from sing_tuner.protocol import SampleCallback

FORMAT = pyaudio.paFloat32


class MicrophoneSource:
    def __init__(self, chunk: int = CHUNK):
        """Default input device, read on a background thread and delivered as mono float32 buffers.

        The device format is queried up front so the controller can refuse to start
        on a machine without a microphone (channel_count == 0) before any stream opens.
        """
        self.chunk = chunk
        self.p = pyaudio.PyAudio()
        self.stream = None
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._on_samples: Optional[SampleCallback] = None

        try:
            info = self.p.get_default_input_device_info()
        except OSError:
            # no input device at all
            info = {"defaultSampleRate": 0.0, "maxInputChannels": 0}
        self._sample_rate = float(info["defaultSampleRate"])
        self._channels = min(CHANNELS, int(info["maxInputChannels"]))

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @property
    def channel_count(self) -> int:
        return self._channels

    def start(self, on_samples: SampleCallback) -> None:
        """Opens the input stream and starts the capture thread."""
        if self.running:
            return
        self.stream = self.p.open(
            format=FORMAT,
            channels=self._channels,
            rate=int(self._sample_rate),
            input=True,
            frames_per_buffer=self.chunk,
        )
        self._on_samples = on_samples
        self.running = True
        self._stop_event = threading.Event()
        self.thread = threading.Thread(target=self._capture, args=(self.stream, self._stop_event), daemon=True)
        self.thread.start()

    def read(self) -> npt.NDArray[np.float32]:
        """Reads a chunk of audio and returns it as a mono float32 array."""
        return self._read(self.stream)

    def _read(self, stream) -> npt.NDArray[np.float32]:
        raw_data = stream.read(
            self.chunk, exception_on_overflow=False
        )  # a dropped frame is better than a delayed frame
        audio_array = np.frombuffer(raw_data, dtype=np.float32)
        if self._channels > 1:
            return audio_array.reshape(-1, self._channels).mean(axis=1, dtype=np.float32)
        return audio_array

    def _capture(self, stream, stop_event: threading.Event) -> None:
        # The capture thread owns the stream it was started with and closes it on exit,
        # so stop() never closes a stream that is still inside read()
        try:
            while not stop_event.is_set():
                samples = self._read(stream)
                if stop_event.is_set():
                    break
                self._on_samples(samples, self._sample_rate)
        finally:
            stream.stop_stream()
            stream.close()

    def stop(self) -> None:
        """Stops the capture thread; the thread closes the stream. The PyAudio handle stays open for a restart."""
        if not self.running:
            return
        self.running = False
        self._stop_event.set()
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        self.thread = None
        self.stream = None

    def close(self):
        self.stop()
        self.p.terminate()
