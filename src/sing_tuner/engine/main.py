import argparse
import time

from sing_tuner.config import MAX_FREQUENCY, MIN_FREQUENCY, POLL_INTERVAL
from sing_tuner.display.cli import render

from .controller import PitchStreamController
from .debug_monitor import DebugMonitor
from .tone import ToneSource


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="sing-tuner", description="Live pitch readout for singers.")
    parser.add_argument("--tone", type=float, metavar="HZ", help="analyze a synthetic sine tone instead of the microphone")
    parser.add_argument("--debug", action="store_true", help="print performance summaries and events")
    return parser.parse_args(argv)


def run_tuner(argv=None):
    args = _parse_args(argv)

    if args.tone is not None:
        source = ToneSource(args.tone)
    else:
        # PortAudio is only needed for live input
        from .stream import MicrophoneSource

        source = MicrophoneSource()

    monitor = DebugMonitor(summary_interval=2.0, enable_event_logging=True) if args.debug else None
    controller = PitchStreamController(monitor=monitor)

    if not controller.start(source):
        print("Could not start pitch detection: the input reports no usable audio format.")
        if hasattr(source, "close"):
            source.close()
        return 1

    print(f"Tuner Active. Listening at {source.sample_rate:.0f} Hz for {MIN_FREQUENCY:.0f}-{MAX_FREQUENCY:.0f} Hz.")

    try:
        while True:
            render(controller.latest)
            time.sleep(POLL_INTERVAL)
    except KeyboardInterrupt:
        print("\nShutting down tuner...")
    finally:
        controller.stop()
        if hasattr(source, "close"):
            source.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(run_tuner())
