import errno
import logging
import socket

import numpy as np

from reactive_led.protocol import MAX_PACKET_SIZE, decode_datagram, validate_datagram_or_raise

log = logging.getLogger(__name__)


class StripReceiver:
    def __init__(self, n_points: int = 255, ip: str = "127.0.0.1", port: int = 7777):
        """
        Emulates the ESP8266 end of the link: applies |i|r|g|b| datagrams to a local strip.
        The strip keeps its last color for pixels that are not updated.
        """
        self.ip = ip
        self.port = port
        self.n_points = n_points
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.setblocking(False)

        self.pixels = np.zeros((n_points, 3), dtype=np.uint8)
        self.rejected = 0
        self._is_bound = False

    def bind(self):
        """Binds the socket to the address. Call this once before receiving."""
        self.sock.bind((self.ip, self.port))
        self.port = self.sock.getsockname()[1]
        self._is_bound = True
        log.info("Receiver bound to %s:%d", self.ip, self.port)

    def apply_datagram(self, payload: bytes) -> int:
        """
        Writes the records of one datagram into the strip.

        Returns:
            Number of pixels updated, 0 if the datagram was rejected.
        """
        try:
            validate_datagram_or_raise(payload, self.n_points)
        except (TypeError, ValueError) as e:
            self.rejected += 1
            log.warning("Rejected datagram: %s", e)
            return 0
        records = decode_datagram(payload)
        self.pixels[records[:, 0]] = records[:, 1:]
        return len(records)

    def wait_for_packet(self, timeout: float = 1.0):
        """
        Blocks until a datagram arrives and applies it.
        Returns the strip, or None on timeout.
        """
        if not self._is_bound:
            self.bind()
        self.sock.settimeout(timeout)
        try:
            data, _ = self.sock.recvfrom(MAX_PACKET_SIZE + 1)
        except socket.timeout:
            return None
        finally:
            self.sock.setblocking(False)
        self.apply_datagram(data)
        return self.pixels

    def get_latest(self):
        """
        Non-blocking fetch. Applies every queued datagram, in order, and returns the strip.
        """
        if not self._is_bound:
            self.bind()

        # Datagrams of one frame carry different pixels, so all of them are applied
        while True:
            try:
                data, _ = self.sock.recvfrom(MAX_PACKET_SIZE + 1)
            except BlockingIOError:
                break
            except socket.error as e:
                if e.args[0] in (errno.EAGAIN, errno.EWOULDBLOCK):
                    break
                raise
            self.apply_datagram(data)

        return self.pixels

    def close(self):
        """Closes the socket."""
        self.sock.close()
