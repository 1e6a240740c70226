"""
Protocol for UDP datagrams exchanged between engine -> LED controller (ESP8266).

Payload: a flat sequence of 4-byte records, one per pixel that changed since
the previous frame.

    |i|r|g|b|
    - i (0 to 255): Index of LED to change (zero-based)
    - r (0 to 255): Red value of LED
    - g (0 to 255): Green value of LED
    - b (0 to 255): Blue value of LED

A frame with more than MAX_PIXELS_PER_PACKET changed pixels is split into
several datagrams. There are no sequence numbers and no acknowledgements:
a lost datagram leaves stale pixels that a later frame's diff corrects.

Validation functions are intentionally minimal (length and range checks).
They raise on violations so protocol drift is noticed immediately.
"""

import numpy as np
import numpy.typing as npt

RECORD_SIZE = 4
MAX_PIXELS_PER_PACKET = 126
MAX_PACKET_SIZE = RECORD_SIZE * MAX_PIXELS_PER_PACKET  # 504 bytes, stays below any MTU

# One index byte per record
MAX_POINTS = 256

GAMMA = 2.2

GAMMA_TABLE: npt.NDArray[np.uint8] = np.round(255.0 * (np.arange(256) / 255.0) ** GAMMA).astype(np.uint8)
"""Perceptual brightness correction, indexed by the linear byte value."""


def apply_gamma(pixels: npt.NDArray[np.uint8]) -> None:
    """Remaps every byte of the pixel buffer through GAMMA_TABLE, in place."""
    pixels[...] = GAMMA_TABLE[pixels]


def encode_diff(pixels: npt.NDArray[np.uint8], pixels_prev: npt.NDArray[np.uint8]) -> bytes:
    """Builds the flat |i|r|g|b| buffer for every row that differs from the previous frame.

    Args:
        pixels: New (n_points, 3) uint8 buffer.
        pixels_prev: Buffer sent on the previous frame, same shape.

    Returns:
        The concatenated records, empty if nothing changed.
    """
    if pixels.shape != pixels_prev.shape:
        raise ValueError(f"protocol: pixel buffer shapes differ: {pixels.shape} != {pixels_prev.shape}")
    if pixels.shape[0] > MAX_POINTS:
        raise ValueError(f"protocol: at most {MAX_POINTS} pixels are addressable, got {pixels.shape[0]}")

    changed = np.flatnonzero(np.any(pixels != pixels_prev, axis=1))
    records = np.empty((len(changed), RECORD_SIZE), dtype=np.uint8)
    records[:, 0] = changed
    records[:, 1:] = pixels[changed]
    return records.tobytes()


def split_datagrams(buffer: bytes) -> list[bytes]:
    """Splits an encoded buffer into datagrams of at most MAX_PIXELS_PER_PACKET records."""
    return [buffer[i : i + MAX_PACKET_SIZE] for i in range(0, len(buffer), MAX_PACKET_SIZE)]


def is_structurally_valid(payload: bytes) -> bool:
    """Fast boolean structural check (no exceptions)."""
    return 0 < len(payload) <= MAX_PACKET_SIZE and len(payload) % RECORD_SIZE == 0


def validate_datagram_or_raise(payload: bytes, n_points: int = MAX_POINTS) -> None:
    """Validate a received datagram and raise on any structural or range violation.

    Raises:
        TypeError: if the payload is not a bytes-like object
        ValueError: if the size is not a whole number of records, too large, or an index is out of range
    """
    if not isinstance(payload, (bytes, bytearray, memoryview)):
        raise TypeError("protocol: datagram must be bytes")

    size = len(payload)
    if size == 0:
        raise ValueError("protocol: empty datagram")
    if size % RECORD_SIZE:
        raise ValueError(f"protocol: datagram size {size} is not a multiple of {RECORD_SIZE}")
    if size > MAX_PACKET_SIZE:
        raise ValueError(f"protocol: datagram size {size} exceeds {MAX_PACKET_SIZE}")

    indices = np.frombuffer(payload, dtype=np.uint8)[::RECORD_SIZE]
    if indices.max() >= n_points:
        raise ValueError(f"protocol: pixel index {int(indices.max())} out of range (0..{n_points - 1})")


def decode_datagram(payload: bytes) -> npt.NDArray[np.uint8]:
    """Unpacks a datagram into an (n_records, 4) array of |i|r|g|b| rows."""
    return np.frombuffer(payload, dtype=np.uint8).reshape(-1, RECORD_SIZE)
