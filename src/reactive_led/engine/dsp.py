"""
Mel-spectrum processing and the LED strip visualizations.

To add a new transform:
  1. write a `_visualize_<name>(self, display_buffer)` method that reads
     `self.mel` and writes the full (n_points, 3) buffer in place
  2. add a member to `Preset`
  3. map the member to the method in `Dsp.apply_transform`
"""

import enum
import logging

import numpy as np
import numpy.typing as npt

from reactive_led.config import PRESET_NAMES, Config
from reactive_led.engine.filters import ExpFilter1D, ExpFilter2D
from reactive_led.engine.kernels import correlate1d, gaussian_kernel
from reactive_led.engine.melbank import MelBank, create_mel_bank
from reactive_led.engine.spectrum import SpectrumAnalyzer

log = logging.getLogger(__name__)

GAIN_FLOOR = 1e-9  # Minimum divisor for gain normalization, the filters decay toward zero on silence
SCROLL_DECAY = 0.98  # Brightness kept by a row each time it scrolls one pixel outward
POWER_SCALE = 0.9  # Exponent applied to band energies before averaging into bar heights


class Preset(enum.Enum):
    SCROLL = "scroll"
    POWER = "power"
    SPECTRUM = "spectrum"

    @classmethod
    def from_name(cls, name: str) -> "Preset":
        """Parses a preset name, accepting the GUI labels Rolling/Power/Frequency too."""
        key = name.strip().lower()
        if key not in PRESET_NAMES:
            raise ValueError(f"unknown preset '{name}', expected one of {[p.value for p in cls]}")
        return cls(PRESET_NAMES[key])


class Dsp:
    """Owns every filter, kernel, the mel bank and the FFT plan of a render session.

    Per frame the caller runs exec_rfft -> get_mel_repr -> gain_and_smooth and
    then apply_transform with the selected preset. Filters persist across
    preset switches.

    Filter directions (rise applies when the new value is above the state):
      - mel_gain: slow rise, fast decay; tracks the floor of the squared mel energy
      - mel_smoothing: medium rise, fast decay; removes frame-to-frame flicker
      - gain: fast rise, very slow decay; peak follower normalizing the transforms
      - p_filt: fast rise, slow decay; bars jump up and sink back
      - common_mode: fast rise, slow decay; baseline removed from the red channel
      - r_filt / b_filt: slow rise, faster decay on the red and blue spectrum channels
    """

    def __init__(self, config: Config, alpha_rise: float = 0.01, alpha_decay: float = 0.99):
        """
        Args:
            config: Render session parameters, validated by the caller.
            alpha_rise: Rise rate of the mel gain tracker used by gain_and_smooth.
            alpha_decay: Decay rate of the mel gain tracker used by gain_and_smooth.
        """
        self.config = config
        self.n_points = config.n_points
        self.half = (config.n_points + 1) // 2
        n_mel = config.n_mel_bands

        # Mel band normalization
        self.mel_gain = ExpFilter1D(n_mel, 0.01, alpha_rise, alpha_decay)
        self.mel_smoothing = ExpFilter1D(n_mel, 0.01, 0.5, 0.99)
        self.mel = np.zeros(n_mel)

        # Scroll / power
        self.gain = ExpFilter1D(n_mel, 0.01, 0.99, 0.001)
        self.p_filt = ExpFilter2D(self.half, 1.0, 0.99, 0.1)

        # Spectrum
        self.common_mode = ExpFilter1D(self.half, 0.01, 0.99, 0.01)
        self.r_filt = ExpFilter1D(self.half, 0.01, 0.2, 0.99)
        self.b_filt = ExpFilter1D(self.half, 0.01, 0.1, 0.5)
        self.prev_spectrum = np.zeros(self.half)

        self.kernel_narrow = gaussian_kernel(0.2, 0, 1)
        self.kernel_wide = gaussian_kernel(0.4, 0, 1)

        self.fft = SpectrumAnalyzer(config.n_fft_bins)
        self.mel_bank = self._build_mel_bank(config.min_frequency, config.max_frequency)

    def _build_mel_bank(self, min_freq_hz: float, max_freq_hz: float) -> MelBank:
        return create_mel_bank(
            self.config.mic_rate,
            self.fft.n_bins,
            self.config.n_mel_bands,
            min_freq_hz,
            max_freq_hz,
        )

    def rebuild_mel_bank(self, min_freq_hz: float, max_freq_hz: float) -> None:
        """Moves the mel band range. The band count and every filter shape stay the same."""
        if not (0 <= min_freq_hz < max_freq_hz <= self.config.mic_rate / 2):
            raise ValueError(
                f"frequency range must satisfy 0 <= min < max <= {self.config.mic_rate / 2}: "
                f"{min_freq_hz}..{max_freq_hz}"
            )
        self.mel_bank = self._build_mel_bank(min_freq_hz, max_freq_hz)
        log.info("Mel bank rebuilt for %.0f..%.0f Hz", min_freq_hz, max_freq_hz)

    def exec_rfft(self, buffer: npt.ArrayLike) -> npt.NDArray[np.float64]:
        return self.fft.exec_rfft(buffer)

    def get_mel_repr(self, spectrum: npt.ArrayLike) -> npt.NDArray[np.float64]:
        return self.mel_bank.project(spectrum)

    def gain_and_smooth(self, mel: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Normalizes the mel vector by its tracked energy and smooths it over time.

        The result is kept in `self.mel`, the input of every transform.
        """
        mel = np.asarray(mel, dtype=np.float64) ** 2.0
        self.mel_gain.update(correlate1d(mel, self.kernel_narrow))
        mel = mel / np.maximum(self.mel_gain.current, GAIN_FLOOR)
        self.mel = self.mel_smoothing.update(mel).copy()
        return self.mel

    def process(self, history: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """FFT, mel projection and gain/smoothing of one rolling history window."""
        return self.gain_and_smooth(self.get_mel_repr(self.exec_rfft(history)))

    def apply_transform(self, preset: Preset, display_buffer: npt.NDArray[np.float64]) -> None:
        """Runs the selected visualization, writing the (n_points, 3) display buffer in place."""
        if display_buffer.shape != (self.n_points, 3):
            raise ValueError(f"display buffer must be ({self.n_points}, 3), got {display_buffer.shape}")
        if preset is Preset.SCROLL:
            self._visualize_scroll(display_buffer)
        elif preset is Preset.POWER:
            self._visualize_power(display_buffer)
        elif preset is Preset.SPECTRUM:
            self._visualize_spectrum(display_buffer)
        else:
            raise ValueError(f"unknown preset {preset!r}")

    def _mirror(self, half: np.ndarray) -> np.ndarray:
        """Reversed half followed by the half; an odd strip shares its center pixel."""
        odd = self.n_points % 2
        return np.concatenate((half[odd:][::-1], half), axis=0)

    def _bands(self, y: np.ndarray) -> list[np.ndarray]:
        """Bass, mid and treble thirds of a mel vector."""
        n = len(y)
        return [y[: n // 3], y[n // 3 : 2 * n // 3], y[2 * n // 3 :]]

    def _visualize_scroll(self, display_buffer: np.ndarray) -> None:
        """New colors appear at the center and scroll outward while fading."""
        y = self.mel**2.0
        self.gain.update(y)
        y = y / np.maximum(self.gain.current, GAIN_FLOOR) * 255.0

        # The right half of the strip holds the scroll state, row 0 at the center
        half = display_buffer[self.n_points - self.half :].copy()
        half[1:] = half[:-1]
        half *= SCROLL_DECAY
        half = correlate1d(half, self.kernel_narrow, axis=0)

        half[0] = [np.max(band) for band in self._bands(y)]
        display_buffer[:] = self._mirror(half)

    def _visualize_power(self, display_buffer: np.ndarray) -> None:
        """VU-meter bars growing from the center, one per color channel."""
        y = self.mel.copy()
        self.gain.update(y)
        y = y / np.maximum(self.gain.current, GAIN_FLOOR) * float(max(self.n_points // 2 - 1, 0))

        half = np.zeros((self.half, 3))
        for channel, band in enumerate(self._bands(y)):
            height = int(np.mean(band**POWER_SCALE))
            half[:height, channel] = 255.0

        self.p_filt.update(half)
        half = np.round(self.p_filt.current)
        half = correlate1d(half, self.kernel_wide, axis=0)
        display_buffer[:] = self._mirror(half)

    def _visualize_spectrum(self, display_buffer: np.ndarray) -> None:
        """Mel bands spread over the half strip: red above the baseline, green on change, blue on energy."""
        y = np.interp(
            np.linspace(0.0, 1.0, self.half),
            np.linspace(0.0, 1.0, len(self.mel)),
            self.mel,
        )
        self.common_mode.update(y)
        diff = y - self.prev_spectrum
        self.prev_spectrum = y.copy()

        r = self.r_filt.update(y - self.common_mode.current)
        g = np.abs(diff)
        b = self.b_filt.update(y)

        half = np.column_stack((r, g, b)) * 255.0
        display_buffer[:] = self._mirror(half)
