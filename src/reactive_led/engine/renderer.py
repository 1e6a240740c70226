import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, NamedTuple

import numpy as np
import numpy.typing as npt

from reactive_led.config import Config
from reactive_led.engine.channel import LatestSlot
from reactive_led.engine.debug_monitor import DebugMonitor
from reactive_led.engine.dsp import Dsp, Preset
from reactive_led.engine.transmitter import LedLink

log = logging.getLogger(__name__)


# --- Control messages (UI / command listener -> render thread) ---


@dataclass(frozen=True)
class SelectPreset:
    preset: Preset


@dataclass(frozen=True)
class SetFrequencyRange:
    min_frequency: float
    max_frequency: float


class Vertex(NamedTuple):
    """One LED as drawn by the preview: position in [-1, 1] clip space, color in bytes."""

    position: tuple[float, float]
    color: tuple[int, int, int]


def quantize(display_values: npt.NDArray[np.float64]) -> npt.NDArray[np.uint8]:
    """Clamps float intensities to [0, 255] and truncates them to bytes."""
    return np.clip(display_values, 0.0, 255.0).astype(np.uint8)


def make_vertices(pixels: npt.NDArray[np.uint8]) -> list[Vertex]:
    """Lays the strip out left to right, height following the mean channel intensity."""
    n = len(pixels)
    xs = np.linspace(-1.0, 1.0, n) if n > 1 else np.zeros(1)
    ys = pixels.mean(axis=1) / 127.5 - 1.0
    return [
        Vertex((float(x), float(y)), (int(r), int(g), int(b)))
        for x, y, (r, g, b) in zip(xs, ys, pixels)
    ]


class RollingHistory:
    """Fixed-size window of the most recent audio samples, newest at the end."""

    def __init__(self, size: int):
        self.samples = np.zeros(size, dtype=np.float64)

    def push(self, chunk: npt.ArrayLike) -> None:
        chunk = np.asarray(chunk, dtype=np.float64).ravel()
        n = len(chunk)
        if n == 0:
            return
        if n >= len(self.samples):
            self.samples[:] = chunk[-len(self.samples) :]
        else:
            self.samples[:-n] = self.samples[n:]
            self.samples[-n:] = chunk

    @property
    def volume(self) -> float:
        """Peak absolute amplitude in the window."""
        return float(np.max(np.abs(self.samples)))


class RenderState:
    """Display state shared between the render thread and outside readers.

    `lock` is held for one frame's read-modify-write only, never across the UDP send.
    """

    def __init__(self, config: Config, preset: Preset = Preset.SCROLL):
        self.display_values = np.zeros((config.n_points, 3), dtype=np.float64)
        self.send_buffer = np.zeros((config.n_points, 3), dtype=np.uint8)
        self.selected_preset = preset
        self.lock = threading.Lock()

    def snapshot(self) -> tuple[Preset, npt.NDArray[np.uint8]]:
        """Copy of the selected preset and the last buffer sent to the strip."""
        with self.lock:
            return self.selected_preset, self.send_buffer.copy()


class Renderer:
    """Turns the live audio stream into LED frames at a fixed frame rate.

    Every audio callback feeds the rolling history. A frame is rendered only
    once more than 1/fps seconds elapsed since the previous one: FFT, mel
    projection, gain/smoothing, the selected transform, quantization and the
    differential UDP update.
    """

    def __init__(
        self,
        config: Config,
        link: LedLink,
        state: RenderState | None = None,
        dsp: Dsp | None = None,
        snapshots: LatestSlot | None = None,
        monitor: DebugMonitor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.link = link
        self.state = state or RenderState(config, Preset.from_name(config.preset))
        self.dsp = dsp or Dsp(config)
        self.snapshots = snapshots
        self.monitor = monitor
        self.clock = clock

        self.history = RollingHistory(config.n_fft_bins)
        self.controls: queue.Queue = queue.Queue()
        self.frame_duration = 1.0 / config.fps
        self.last_render: float | None = None  # render on the first callback
        self.frames_rendered = 0
        self.frames_dropped = 0

    # --- Control surface, callable from any thread ---

    def select_preset(self, preset: Preset) -> None:
        self.controls.put(SelectPreset(preset))

    def set_frequency_range(self, min_frequency: float, max_frequency: float) -> None:
        self.controls.put(SetFrequencyRange(min_frequency, max_frequency))

    def _drain_controls(self) -> None:
        while True:
            try:
                msg = self.controls.get_nowait()
            except queue.Empty:
                return
            if isinstance(msg, SelectPreset):
                with self.state.lock:
                    self.state.selected_preset = msg.preset
                log.info("Preset selected: %s", msg.preset.value)
            elif isinstance(msg, SetFrequencyRange):
                try:
                    self.dsp.rebuild_mel_bank(msg.min_frequency, msg.max_frequency)
                except ValueError as e:
                    log.warning("Ignoring frequency range: %s", e)
            else:
                log.warning("Ignoring unknown control message %r", msg)

    # --- Audio callback ---

    def on_audio(self, samples: npt.ArrayLike) -> bool:
        """Feeds one chunk of mono samples. Returns True if a frame was rendered."""
        self.history.push(samples)

        now = self.clock()
        if self.last_render is not None and now - self.last_render <= self.frame_duration:
            return False
        self.last_render = now
        self.render_frame()
        return True

    def render_frame(self) -> int:
        """Renders and sends one frame from the current history.

        Returns:
            Bytes sent, 0 when nothing changed or the frame was dropped.
        """
        t_start = time.perf_counter()
        self._drain_controls()

        volume = self.history.volume
        with self.state.lock:
            display = self.state.display_values
            if volume < self.config.min_volume_threshold:
                display.fill(0.0)
            else:
                self.dsp.process(self.history.samples)
                self.dsp.apply_transform(self.state.selected_preset, display)
            pixels = quantize(display)
            pixels_prev = self.state.send_buffer.copy()

        try:
            sent = self.link.update(pixels, pixels_prev)
        except OSError as e:
            # The previous buffer stays, so the next frame's diff retransmits these pixels
            self.frames_dropped += 1
            log.warning("Dropped frame, UDP send failed: %s", e)
            sent = 0
        else:
            with self.state.lock:
                self.state.send_buffer = pixels
            self.frames_rendered += 1
            if self.snapshots is not None:
                self.snapshots.publish(make_vertices(pixels))

        if self.monitor is not None:
            frame_time_ms = (time.perf_counter() - t_start) * 1000.0
            self.monitor.update(frame_time_ms, sent, volume, dropped=self.frames_dropped)
        return sent

    def main_loop(self, stop: threading.Event, stream_factory: Callable) -> None:
        """Streams audio into the renderer until `stop` is set.

        Args:
            stop: One-shot stop signal, set from a signal handler or the GUI.
            stream_factory: Called as stream_factory(config, on_samples, on_error),
                returns an opened audio stream with start() and close().
        """
        stream = stream_factory(self.config, self.on_audio, stop.set)
        try:
            stream.start()
            log.info("Rendering at %d FPS to %s:%d", self.config.fps, *self.link.dest)
            stop.wait()
        finally:
            stream.close()
        if stream.failed:
            raise RuntimeError("audio callback failed, see the log for the traceback")
