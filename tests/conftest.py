import pytest

from sing_tuner.engine.detector import AutocorrelationDetector


@pytest.fixture
def sr():
    return 44100


@pytest.fixture
def detector():
    return AutocorrelationDetector()
