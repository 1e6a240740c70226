import logging
from typing import Callable

import numpy as np
import numpy.typing as npt
import pyaudio

from reactive_led.config import Config

log = logging.getLogger(__name__)

FRAMES_PER_BUFFER = 512
"""Hardware buffer size; sets the audio callback cadence (512 @ 44.1kHz = 11.6ms)."""


class AudioStream:
    """Mono float32 microphone input from the default device, pushed to a callback.

    The callback runs on PortAudio's thread and must finish well within one
    buffer period. If it raises, the stream aborts and `on_error` is called.
    """

    def __init__(
        self,
        config: Config,
        on_samples: Callable[[npt.NDArray[np.float64]], object],
        on_error: Callable[[], None] | None = None,
        frames_per_buffer: int = FRAMES_PER_BUFFER,
    ):
        self.on_samples = on_samples
        self.on_error = on_error
        self.failed = False
        self.p = pyaudio.PyAudio()
        try:
            self.stream = self.p.open(
                format=pyaudio.paFloat32,
                channels=1,
                rate=config.mic_rate,
                input=True,
                frames_per_buffer=frames_per_buffer,
                stream_callback=self._callback,
                start=False,
            )
        except OSError:
            self.p.terminate()
            raise
        log.info("Audio input opened: 1 channel, %d Hz, float32", config.mic_rate)

    def _callback(self, in_data, frame_count, time_info, status):
        if status:
            # a dropped frame is better than a delayed frame
            log.debug("Audio status flags: %s", status)
        samples = np.frombuffer(in_data, dtype=np.float32).astype(np.float64)
        try:
            self.on_samples(samples)
        except Exception:
            log.exception("Render callback failed, stopping the audio stream")
            self.failed = True
            if self.on_error is not None:
                self.on_error()
            return None, pyaudio.paAbort
        return None, pyaudio.paContinue

    def start(self) -> None:
        self.stream.start_stream()

    def close(self) -> None:
        if self.stream.is_active():
            self.stream.stop_stream()
        self.stream.close()
        self.p.terminate()
