import logging
import socket

import numpy as np
import numpy.typing as npt

from reactive_led.config import Config
from reactive_led.protocol import apply_gamma, encode_diff, split_datagrams

log = logging.getLogger(__name__)


class LedLink:
    """UDP connection to the ESP8266 driving the strip.

    Only pixels that changed since the previous frame are sent, as |i|r|g|b|
    records split over datagrams of at most 126 records. The socket is created
    once and reused for the whole session; there is no send timeout.
    """

    def __init__(self, config: Config):
        self.dest = (config.device_ip, config.device_port)
        self.gamma_correction = config.software_gamma_correction
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.packets_sent = 0

    def create_send_buffer(self, pixels: npt.NDArray[np.uint8], pixels_prev: npt.NDArray[np.uint8]) -> bytes:
        """The flat |i|r|g|b| buffer for every changed pixel."""
        return encode_diff(pixels, pixels_prev)

    def update(self, pixels: npt.NDArray[np.uint8], pixels_prev: npt.NDArray[np.uint8]) -> int:
        """Sends the pixels that differ from the previous frame.

        When gamma correction is enabled `pixels` is remapped in place, so the
        caller keeps the corrected buffer as the next frame's `pixels_prev`.

        Args:
            pixels: New (n_points, 3) uint8 buffer.
            pixels_prev: Corrected buffer sent on the previous frame.

        Returns:
            Total number of bytes sent, 0 when nothing changed.

        Raises:
            OSError: if a datagram cannot be sent.
        """
        if self.gamma_correction:
            apply_gamma(pixels)

        sent = 0
        for datagram in split_datagrams(self.create_send_buffer(pixels, pixels_prev)):
            sent += self.sock.sendto(datagram, self.dest)
            self.packets_sent += 1
        return sent

    def close(self) -> None:
        """Closes the UDP socket."""
        self.sock.close()
