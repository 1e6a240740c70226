import json
import logging
import socket
import threading

from reactive_led.engine.dsp import Preset

log = logging.getLogger(__name__)


class CommandListener:
    """Listens for JSON control messages from a remote UI and forwards them to the renderer.

    Accepted messages:
        {"preset": "power"}
        {"min_frequency": 200, "max_frequency": 8000}
    """

    def __init__(self, renderer, ip: str = "127.0.0.1", port: int = 7778):
        self.renderer = renderer
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind((ip, port))
        self.address = self.sock.getsockname()
        self.running = True
        self.thread = threading.Thread(target=self._listen, daemon=True)
        self.thread.start()

    def _listen(self) -> None:
        self.sock.settimeout(0.1)  # Allow thread to exit gracefully
        while self.running:
            try:
                msg, _ = self.sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                break  # socket closed
            try:
                self.handle(json.loads(msg.decode()))
            except (UnicodeDecodeError, json.JSONDecodeError, TypeError, ValueError) as e:
                log.warning("Ignoring malformed command %r: %s", msg[:64], e)

    def handle(self, updates: dict) -> None:
        """Applies one decoded command."""
        if not isinstance(updates, dict):
            raise TypeError("command must be a JSON object")
        if "preset" in updates:
            self.renderer.select_preset(Preset.from_name(str(updates["preset"])))
        if "min_frequency" in updates or "max_frequency" in updates:
            current = self.renderer.dsp.mel_bank.edges
            lo = float(updates.get("min_frequency", current[0]))
            hi = float(updates.get("max_frequency", current[-1]))
            self.renderer.set_frequency_range(lo, hi)

    def close(self) -> None:
        """Stops the listener thread and closes the socket."""
        self.running = False
        self.thread.join(timeout=1.0)
        self.sock.close()
