import numpy as np
import numpy.typing as npt
import scipy.fft


class SpectrumAnalyzer:
    """Forward FFT of a fixed size, returning magnitudes of the non-negative frequencies."""

    def __init__(self, fft_size: int, workers: int = 1):
        if fft_size < 1:
            raise ValueError(f"spectrum: fft_size must be positive, got {fft_size}")
        self.fft_size = fft_size
        self.workers = workers

    @property
    def n_bins(self) -> int:
        """Length of the returned spectrum, Nyquist included for even sizes."""
        return self.fft_size // 2 + 1

    def exec_rfft(self, buffer: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Magnitude spectrum of a real buffer, bins 0..=len // 2.

        Args:
            buffer: Time-domain samples, exactly fft_size of them.
        """
        buffer = np.asarray(buffer, dtype=np.float64)
        if buffer.shape != (self.fft_size,):
            raise ValueError(f"spectrum: expected {self.fft_size} samples, got shape {buffer.shape}")
        return np.abs(scipy.fft.rfft(buffer, workers=self.workers))
