import threading

import numpy as np
import pytest

from audio_utils import FakeSource, generate_silence, generate_sine_wave, wait_for
from sing_tuner.engine.controller import PitchStreamController
from sing_tuner.engine.debug_monitor import DebugMonitor
from sing_tuner.engine.detector import AutocorrelationDetector
from sing_tuner.engine.tone import ToneSource


class RecordingDetector(AutocorrelationDetector):
    """Keeps a reference to every buffer it is handed."""

    def __init__(self):
        super().__init__()
        self.seen = []

    def detect(self, samples, sample_rate):
        self.seen.append(samples)
        return super().detect(samples, sample_rate)


class BlockingDetector(AutocorrelationDetector):
    """Parks inside detect() until released, to hold a buffer in flight."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def detect(self, samples, sample_rate):
        self.entered.set()
        self.release.wait(5.0)
        return super().detect(samples, sample_rate)


@pytest.fixture
def controller():
    return PitchStreamController()


class TestLifecycle:
    def test_starts_idle(self, controller):
        assert not controller.is_detecting
        assert controller.latest is None

    def test_start_and_stop(self, controller):
        source = FakeSource()
        assert controller.start(source) is True
        assert controller.is_detecting
        assert source.start_calls == 1

        controller.stop()
        assert not controller.is_detecting
        assert source.stop_calls == 1

    @pytest.mark.parametrize("sample_rate, channels", [(0.0, 1), (44100.0, 0), (-1.0, 2)])
    def test_invalid_source_format_stays_idle(self, controller, sample_rate, channels):
        source = FakeSource(sample_rate=sample_rate, channel_count=channels)
        assert controller.start(source) is False
        assert not controller.is_detecting
        assert source.start_calls == 0

    def test_repeated_start_does_not_attach_twice(self, controller):
        source = FakeSource()
        controller.start(source)
        assert controller.start(source) is True
        assert controller.start(FakeSource()) is True
        assert source.start_calls == 1

    def test_stop_is_idempotent(self, controller):
        controller.stop()
        controller.stop()
        assert not controller.is_detecting

        source = FakeSource()
        controller.start(source)
        controller.stop()
        controller.stop()
        assert source.stop_calls == 1

    def test_restart_after_stop(self, controller):
        source = FakeSource()
        controller.start(source)
        controller.stop()
        assert controller.start(source) is True
        assert source.start_calls == 2
        source.deliver(generate_sine_wave(440.0))
        assert controller.latest.note_name == "A4"

    def test_failing_source_leaves_controller_idle(self, controller):
        source = FakeSource(fail_on_start=True)
        with pytest.raises(OSError):
            controller.start(source)
        assert not controller.is_detecting
        assert controller.start(FakeSource()) is True


class TestPublishing:
    def test_delivered_sine_is_published(self, controller):
        source = FakeSource()
        controller.start(source)
        source.deliver(generate_sine_wave(440.0))

        estimate = controller.latest
        assert estimate is not None
        assert estimate.note_name == "A4"
        assert estimate.midi_note == 69
        assert abs(estimate.cents_deviation) < 5.0
        assert estimate.is_in_tune

    def test_failed_detection_holds_previous_estimate(self, controller):
        source = FakeSource()
        controller.start(source)
        source.deliver(generate_sine_wave(440.0))
        first = controller.latest

        source.deliver(generate_silence())
        source.deliver(generate_sine_wave(440.0, 512))
        assert controller.latest is first

    def test_new_estimate_replaces_old(self, controller):
        source = FakeSource()
        controller.start(source)
        source.deliver(generate_sine_wave(440.0))
        source.deliver(generate_sine_wave(261.63))
        assert controller.latest.note_name == "C4"

    def test_stop_clears_estimate(self, controller):
        source = FakeSource()
        controller.start(source)
        source.deliver(generate_sine_wave(440.0))
        controller.stop()
        assert controller.latest is None

    def test_silence_never_publishes(self, controller):
        source = FakeSource()
        controller.start(source)
        for _ in range(3):
            source.deliver(generate_silence())
        assert controller.latest is None

    def test_handle_samples_without_source(self, controller):
        estimate = controller.handle_samples(generate_sine_wave(523.25), 44100.0)
        assert estimate.note_name == "C5"
        assert controller.latest is estimate
        assert controller.handle_samples(generate_silence(), 44100.0) is None

    def test_samples_are_copied_before_detection(self):
        detector = RecordingDetector()
        controller = PitchStreamController(detector=detector)
        source = FakeSource()
        controller.start(source)

        driver_buffer = generate_sine_wave(440.0)
        source.deliver(driver_buffer)
        driver_buffer[:] = 0.0  # the driver reuses its memory

        assert len(detector.seen) == 1
        assert detector.seen[0] is not driver_buffer
        assert np.any(detector.seen[0] != 0.0)
        assert controller.latest.note_name == "A4"

    def test_in_flight_buffer_is_not_published_after_stop(self):
        detector = BlockingDetector()
        controller = PitchStreamController(detector=detector)
        source = FakeSource()
        controller.start(source)
        callback = source.callback

        producer = threading.Thread(target=callback, args=(generate_sine_wave(440.0), 44100.0))
        producer.start()
        assert detector.entered.wait(5.0)

        controller.stop()
        detector.release.set()
        producer.join(5.0)

        assert not producer.is_alive()
        assert controller.latest is None


class TestListeners:
    def test_listener_receives_estimates_and_clear(self, controller):
        received = []
        controller.add_listener(received.append)
        source = FakeSource()
        controller.start(source)

        source.deliver(generate_sine_wave(440.0))
        source.deliver(generate_silence())
        controller.stop()

        assert len(received) == 2
        assert received[0].note_name == "A4"
        assert received[1] is None

    def test_no_clear_notification_when_nothing_published(self, controller):
        received = []
        controller.add_listener(received.append)
        controller.start(FakeSource())
        controller.stop()
        assert received == []

    def test_failing_listener_does_not_stop_other_listeners(self, controller, capsys):
        def broken(estimate):
            raise RuntimeError("display went away")

        received = []
        controller.add_listener(broken)
        controller.add_listener(received.append)
        source = FakeSource()
        controller.start(source)

        source.deliver(generate_sine_wave(440.0))
        controller.stop()

        assert len(received) == 2
        assert received[0].note_name == "A4"
        assert received[1] is None
        assert "[PitchStream] Listener error" in capsys.readouterr().out

    def test_tone_keeps_flowing_after_listener_raises(self, controller):
        calls = []

        def broken(estimate):
            calls.append(estimate)
            raise RuntimeError("display went away")

        source = ToneSource(440.0, realtime=False)
        controller.add_listener(broken)
        controller.start(source)
        try:
            assert wait_for(lambda: len(calls) >= 3), "Producer thread stopped after the first listener error"
            assert source.running
            assert source.thread.is_alive()
            assert source.buffers_sent >= 3
            assert controller.is_detecting
        finally:
            controller.stop()

    def test_removed_listener_is_not_called(self, controller):
        received = []
        controller.add_listener(received.append)
        controller.remove_listener(received.append)
        controller.handle_samples(generate_sine_wave(440.0), 44100.0)
        assert received == []


class TestMonitoring:
    def test_monitor_sees_every_buffer(self):
        monitor = DebugMonitor(summary_interval=3600.0)
        controller = PitchStreamController(monitor=monitor)
        source = FakeSource()
        controller.start(source)

        source.deliver(generate_sine_wave(440.0))
        source.deliver(generate_silence())

        assert monitor.frame_count == 2
        assert monitor.detected_count == 1
        assert monitor.last_note == "A4"
        assert len(monitor.frame_times) == 2


class TestWithToneSource:
    def test_reference_tone_end_to_end(self, controller):
        source = ToneSource.for_midi_note(60, realtime=False)
        published = threading.Event()
        controller.add_listener(lambda estimate: estimate is not None and published.set())

        assert controller.start(source)
        try:
            assert published.wait(5.0), "No estimate published from the tone source"
            assert controller.latest.note_name == "C4"
            assert controller.latest.is_in_tune
        finally:
            controller.stop()

        assert not source.running
        assert controller.latest is None

    def test_realtime_tone_is_paced(self, controller):
        source = ToneSource(440.0, chunk=4096)
        controller.start(source)
        try:
            assert wait_for(lambda: controller.latest is not None)
        finally:
            controller.stop()
        # ~93ms per buffer: far fewer than an unpaced loop would produce
        assert source.buffers_sent < 100
