"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from reactive_led.config import Config


@pytest.fixture
def config() -> Config:
    """Default render session, gamma off so sent bytes equal the quantized buffer."""
    return Config(software_gamma_correction=False)


@pytest.fixture
def small_config() -> Config:
    """Tiny strip and FFT, quick to reason about frame by frame."""
    return Config(
        device_ip="127.0.0.1",
        n_points=4,
        n_fft_bins=16,
        n_mel_bands=6,
        software_gamma_correction=False,
    )


@pytest.fixture
def sine_wave():
    """
    Generate a 1 kHz sine at 44.1 kHz.

    Returns:
        Function taking the number of samples and returning the signal.
    """

    def make(n: int, frequency: float = 1000.0, rate: int = 44100, amplitude: float = 0.5) -> np.ndarray:
        t = np.arange(n) / rate
        return amplitude * np.sin(2 * np.pi * frequency * t)

    return make


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class RecordingLink:
    """Stands in for LedLink: records every frame instead of sending it."""

    def __init__(self, fail: bool = False):
        self.dest = ("127.0.0.1", 7777)
        self.fail = fail
        self.frames = []

    def update(self, pixels, pixels_prev) -> int:
        if self.fail:
            raise OSError("network unreachable")
        changed = int(np.any(pixels != pixels_prev, axis=1).sum())
        self.frames.append((pixels.copy(), pixels_prev.copy()))
        return changed * 4

    def close(self) -> None:
        pass


@pytest.fixture
def link() -> RecordingLink:
    return RecordingLink()
