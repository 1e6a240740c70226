import numpy as np
import numpy.typing as npt
import scipy.ndimage


def gaussian_kernel(sigma: float, order: int = 0, radius: int = 1) -> npt.NDArray[np.float64]:
    """Discrete Gaussian kernel (or its `order`-th derivative) of length 2 * radius + 1.

    Order 0 is normalized to sum to 1. Higher orders multiply the normalized
    Gaussian by the polynomial q(x) obtained by applying the raising operator
    q -> q' - x * q / sigma^2 `order` times, starting from q = 1.

    Args:
        sigma: Standard deviation in samples, must be positive.
        order: Derivative order, 0 for plain smoothing.
        radius: Half width of the kernel in samples.

    Example:
        >>> gaussian_kernel(0.2, 0, 1)
        array([3.72662540e-06, 9.99992547e-01, 3.72662540e-06])
    """
    if sigma <= 0:
        raise ValueError(f"kernel: sigma must be positive, got {sigma}")
    if order < 0 or radius < 0:
        raise ValueError(f"kernel: order and radius must be non-negative, got order={order} radius={radius}")

    exponent_range = np.arange(order + 1)
    sigma2 = sigma * sigma
    x = np.arange(-radius, radius + 1)
    phi_x = np.exp(-0.5 / sigma2 * x**2)
    phi_x = phi_x / phi_x.sum()

    if order == 0:
        return phi_x

    # q holds the polynomial coefficients, lowest power first. Each step
    # differentiates (D) and subtracts x * q / sigma^2 (P).
    q = np.zeros(order + 1)
    q[0] = 1.0
    D = np.diag(exponent_range[1:], 1)
    P = np.diag(np.ones(order) / -sigma2, -1)
    Q_deriv = D + P
    for _ in range(order):
        q = Q_deriv.dot(q)
    q = (x[:, None] ** exponent_range).dot(q)
    return q * phi_x


def correlate1d(array: npt.ArrayLike, kernel: npt.ArrayLike, axis: int = -1) -> npt.NDArray[np.float64]:
    """Correlates `array` with `kernel` along one axis using mirrored edges.

    Edges are extended by reflecting the array's own samples (d c b a | a b c d | d c b a).
    The kernel is anchored at len(kernel) // 2: the left edge is padded with
    len(kernel) // 2 samples, the right edge with one fewer for even-length
    kernels. The output has the same shape as the input.

    Args:
        array: 1-D vector or 2-D matrix.
        kernel: 1-D weights. Kernels longer than the axis keep reflecting back and forth.
        axis: Axis to correlate along.
    """
    array = np.asarray(array, dtype=np.float64)
    kernel = np.asarray(kernel, dtype=np.float64)
    if kernel.ndim != 1 or len(kernel) == 0:
        raise ValueError(f"kernel: expected a non-empty 1-D kernel, got shape {kernel.shape}")
    return scipy.ndimage.correlate1d(array, kernel, axis=axis, mode="reflect")
