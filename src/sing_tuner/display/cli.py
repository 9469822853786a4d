import sys
from typing import Optional

from sing_tuner.protocol import PitchEstimate

WAITING = "waiting"
IN_TUNE = "In Tune"


def format_cents(estimate: PitchEstimate) -> str:
    """Returns "In Tune" inside the tolerance, otherwise signed whole cents such as "+19 cents"."""
    if estimate.is_in_tune:
        return IN_TUNE
    sign = "+" if estimate.cents_deviation > 0 else ""
    return f"{sign}{int(estimate.cents_deviation)} cents"


def describe(estimate: Optional[PitchEstimate]) -> str:
    """One-line readout. No estimate is shown as waiting, never as an error."""
    if estimate is None:
        return WAITING
    return f"{estimate.note_name:<4s} {estimate.frequency_hz:7.1f} Hz | {format_cents(estimate)}"


def render(estimate: Optional[PitchEstimate], stream=None) -> str:
    """Rewrites the current terminal line with the readout and returns the text written."""
    stream = stream if stream is not None else sys.stdout
    marker = "[ OK ]" if estimate is not None and estimate.is_in_tune else "      "

    # \r = Go to start of line, \033[K = clear to the right (ANSI Escape)
    output = f"\r{marker} {describe(estimate)}\033[K"
    stream.write(output)
    stream.flush()
    return output
