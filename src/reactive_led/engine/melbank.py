from dataclasses import dataclass

import librosa
import numpy as np
import numpy.typing as npt


def hertz_to_mel(hertz):
    """Converts Hz to the mel scale: 2595 * log10(1 + f / 700)."""
    return librosa.hz_to_mel(hertz, htk=True)


def mel_to_hertz(mel):
    """Converts mel back to Hz: 700 * (10^(m / 2595) - 1)."""
    return librosa.mel_to_hz(mel, htk=True)


@dataclass(frozen=True)
class MelBank:
    """Projection from a linear FFT magnitude spectrum onto mel bands.

    Attributes:
        x: Center frequencies (Hz) of the FFT bins, linearly spaced from 0 to mic_rate / 2.
        y: (n_mel_bands, n_fft_bins) matrix of triangular filters over x.
        edges: n_mel_bands + 2 band edges in Hz; band i spans edges[i]..edges[i + 2] and peaks at edges[i + 1].
    """

    x: npt.NDArray[np.float64]
    y: npt.NDArray[np.float64]
    edges: npt.NDArray[np.float64]

    def project(self, spectrum: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Mel representation of a magnitude spectrum (y . spectrum)."""
        return self.y.dot(spectrum)


def create_mel_bank(
    mic_rate: int,
    n_fft_bins: int,
    n_mel_bands: int,
    min_freq_hz: float,
    max_freq_hz: float,
) -> MelBank:
    """Builds a triangular mel filterbank.

    Band edges are spaced evenly on the mel scale between min_freq_hz and
    max_freq_hz. Each band rises linearly from its lower edge to its center
    and falls back to zero at its upper edge.

    Args:
        mic_rate: Sampling rate of the microphone in Hz.
        n_fft_bins: Number of points on the linear frequency axis (FFT bins).
        n_mel_bands: Number of triangular filters.
        min_freq_hz: Lower edge of the first band.
        max_freq_hz: Upper edge of the last band.
    """
    if not (0 <= min_freq_hz < max_freq_hz):
        raise ValueError(f"melbank: invalid frequency range {min_freq_hz}..{max_freq_hz}")
    if n_fft_bins < 2 or n_mel_bands < 1:
        raise ValueError(f"melbank: need n_fft_bins >= 2 and n_mel_bands >= 1, got {n_fft_bins}, {n_mel_bands}")

    mel_min = hertz_to_mel(min_freq_hz)
    mel_max = hertz_to_mel(max_freq_hz)
    edges = mel_to_hertz(np.linspace(mel_min, mel_max, n_mel_bands + 2))

    x = np.linspace(0.0, mic_rate / 2.0, n_fft_bins)

    lower = edges[:-2, None]
    center = edges[1:-1, None]
    upper = edges[2:, None]
    rising = (x - lower) / (center - lower)
    falling = (upper - x) / (upper - center)
    y = np.where(
        (x >= lower) & (x <= center),
        rising,
        np.where((x > center) & (x <= upper), falling, 0.0),
    )
    return MelBank(x=x, y=y, edges=edges)
