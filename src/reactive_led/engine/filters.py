import numpy as np
import numpy.typing as npt


def exp_filter_update(current: np.ndarray, new: np.ndarray, alpha_rise: float, alpha_decay: float) -> None:
    """Elementwise asymmetric exponential filter step, updating `current` in place.

    Each element picks its own rate: alpha_rise where the new value is above
    the current one, alpha_decay otherwise.
    """
    if current.shape != np.shape(new):
        raise ValueError(f"filter: shape mismatch, state {current.shape} vs update {np.shape(new)}")
    delta = new - current
    current += np.where(delta > 0.0, alpha_rise, alpha_decay) * delta


class _ExpFilter:
    def __init__(self, shape, init: float, alpha_rise: float, alpha_decay: float):
        if not (0.0 < alpha_rise <= 1.0 and 0.0 < alpha_decay <= 1.0):
            raise ValueError(f"filter: rates must be in (0, 1], got rise={alpha_rise} decay={alpha_decay}")
        self.current = np.full(shape, init, dtype=np.float64)
        self.alpha_rise = alpha_rise
        self.alpha_decay = alpha_decay

    def update(self, new: np.ndarray) -> npt.NDArray[np.float64]:
        exp_filter_update(self.current, np.asarray(new, dtype=np.float64), self.alpha_rise, self.alpha_decay)
        return self.current

    @property
    def shape(self) -> tuple[int, ...]:
        return self.current.shape


class ExpFilter1D(_ExpFilter):
    """Asymmetric exponential smoother over a vector (one value per band or pixel).

    Example:
        >>> gain = ExpFilter1D(24, init=0.01, alpha_rise=0.99, alpha_decay=0.001)
        >>> for mel in frames:
        ...     normalized = mel / gain.update(mel)
    """

    def __init__(self, size: int, init: float, alpha_rise: float, alpha_decay: float):
        super().__init__((size,), init, alpha_rise, alpha_decay)


class ExpFilter2D(_ExpFilter):
    """Asymmetric exponential smoother over a (rows, 3) RGB buffer."""

    def __init__(self, rows: int, init: float, alpha_rise: float, alpha_decay: float, channels: int = 3):
        super().__init__((rows, channels), init, alpha_rise, alpha_decay)
