"""
Performance tracking for the render loop.

Tracks frame rate, render latency, network traffic and input level,
logging a summary line every few seconds.
"""

import logging
import time
from collections import deque
from typing import Callable

import numpy as np

log = logging.getLogger(__name__)


class DebugMonitor:
    """
    Real-time monitor for render performance.

    Logs a summary line every N seconds with the following metrics:
    - FPS: Frames rendered per second in this window.
    - Latency: Average render time in ms, with peak in this window.
    - Net: Bytes sent per second and frames dropped on send errors.
    - Input: Peak level of the rolling history in dBFS (detect clipping or silence).
    """

    def __init__(self, summary_interval: float = 2.0, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            summary_interval: Seconds between summary lines.
            clock: Time source, replaceable in tests.
        """
        self.summary_interval = summary_interval
        self.clock = clock
        self.last_summary_time = clock()

        self.frame_times = deque(maxlen=256)  # ms
        self.frame_count = 0
        self.bytes_sent = 0
        self.input_peak = 0.0
        self.dropped = 0
        self.summaries = 0

    def update(self, frame_time_ms: float, bytes_sent: int, volume: float, dropped: int = 0) -> None:
        """
        Records one rendered frame.

        Args:
            frame_time_ms: Time spent rendering and sending the frame.
            bytes_sent: UDP payload bytes sent for the frame.
            volume: Peak absolute amplitude of the rolling history.
            dropped: Total frames dropped so far.
        """
        self.frame_count += 1
        self.frame_times.append(frame_time_ms)
        self.bytes_sent += bytes_sent
        self.input_peak = max(self.input_peak, volume)
        self.dropped = dropped

        now = self.clock()
        if now - self.last_summary_time >= self.summary_interval:
            self._log_summary(now - self.last_summary_time)
            self.last_summary_time = now

    def _log_summary(self, elapsed: float) -> None:
        fps = self.frame_count / elapsed if elapsed > 0 else 0.0
        avg_latency = float(np.mean(self.frame_times)) if self.frame_times else 0.0
        max_latency = float(np.max(self.frame_times)) if self.frame_times else 0.0
        input_db = 20 * np.log10(max(self.input_peak, 1e-10))

        status = "OK"
        if input_db > -1:
            status = "CLIP"
        elif input_db < -60:
            status = "SILENCE"

        log.info(
            "FPS: %5.1f | Latency: %5.2fms (max %5.2fms) | Net: %7.0f B/s, dropped %d | Input: %6.1fdB | Status: %s",
            fps,
            avg_latency,
            max_latency,
            self.bytes_sent / elapsed if elapsed > 0 else 0.0,
            self.dropped,
            input_db,
            status,
        )
        self.summaries += 1

        # Reset counters for next interval
        self.frame_count = 0
        self.bytes_sent = 0
        self.input_peak = 0.0
        self.frame_times.clear()
