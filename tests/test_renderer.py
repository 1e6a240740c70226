"""Tests for the render loop: frame gating, controls, snapshots and send errors."""

import dataclasses
import threading

import numpy as np
import pytest

from reactive_led.engine.channel import LatestSlot
from reactive_led.engine.debug_monitor import DebugMonitor
from reactive_led.engine.dsp import Preset
from reactive_led.engine.renderer import RenderState, Renderer, RollingHistory, make_vertices, quantize


@pytest.fixture
def renderer(config, link, clock):
    return Renderer(config, link, clock=clock)


class TestHelpers:
    def test_quantize_clamps_and_truncates(self):
        out = quantize(np.array([[-5.0, 0.9, 254.7], [255.0, 300.0, 12.5]]))
        assert out.dtype == np.uint8
        np.testing.assert_array_equal(out, [[0, 0, 254], [255, 255, 12]])

    def test_rolling_history(self):
        history = RollingHistory(4)
        history.push([1.0, 2.0])
        np.testing.assert_array_equal(history.samples, [0.0, 0.0, 1.0, 2.0])
        history.push([3.0, -4.0, 5.0])
        np.testing.assert_array_equal(history.samples, [2.0, 3.0, -4.0, 5.0])
        assert history.volume == 5.0
        history.push(np.arange(10.0))
        np.testing.assert_array_equal(history.samples, [6.0, 7.0, 8.0, 9.0])

    def test_make_vertices(self):
        pixels = np.array([[0, 0, 0], [255, 255, 255]], dtype=np.uint8)
        vertices = make_vertices(pixels)
        assert [v.position for v in vertices] == [(-1.0, -1.0), (1.0, 1.0)]
        assert vertices[1].color == (255, 255, 255)

    def test_state_snapshot_is_a_copy(self, config):
        state = RenderState(config, Preset.POWER)
        preset, pixels = state.snapshot()
        pixels[0] = 9
        assert preset is Preset.POWER
        assert not state.send_buffer.any()


class TestFrameGating:
    def test_first_callback_renders(self, renderer, sine_wave, config):
        assert renderer.on_audio(sine_wave(512)) is True
        assert renderer.frames_rendered == 1

    def test_renders_only_after_frame_duration(self, renderer, clock, sine_wave):
        chunk = sine_wave(512)
        renderer.on_audio(chunk)
        clock.advance(0.4 / 60)
        assert renderer.on_audio(chunk) is False
        clock.advance(0.4 / 60)
        assert renderer.on_audio(chunk) is False
        clock.advance(0.3 / 60)
        assert renderer.on_audio(chunk) is True
        assert renderer.frames_rendered == 2

    def test_history_fed_on_every_callback(self, renderer, clock, config):
        renderer.on_audio(np.zeros(8))
        renderer.on_audio(np.ones(4))
        np.testing.assert_array_equal(renderer.history.samples[-4:], np.ones(4))
        assert len(renderer.history.samples) == config.n_fft_bins


class TestRenderFrame:
    def test_sends_previous_buffer_as_reference(self, renderer, link, clock, sine_wave):
        for _ in range(3):
            renderer.on_audio(sine_wave(512))
            clock.advance(1.0)
        assert len(link.frames) == 3
        np.testing.assert_array_equal(link.frames[1][1], link.frames[0][0])
        np.testing.assert_array_equal(link.frames[2][1], link.frames[1][0])

    def test_power_goes_dark_on_zero_audio(self, small_config, link, clock):
        """Zero input through the whole pipeline, silence gate off, fades the bars to black."""
        config = dataclasses.replace(small_config, preset="power", min_volume_threshold=0.0)
        renderer = Renderer(config, link, clock=clock)
        for _ in range(10):
            assert renderer.on_audio(np.zeros(config.n_fft_bins)) is True
            clock.advance(1.0)

        assert renderer.frames_rendered == 10
        np.testing.assert_array_equal(renderer.state.send_buffer, np.zeros((4, 3), dtype=np.uint8))
        np.testing.assert_array_equal(link.frames[-1][0], np.zeros((4, 3), dtype=np.uint8))

    def test_silence_gate_blanks_display(self, renderer, link):
        renderer.state.display_values[:] = 200.0
        renderer.history.push(np.full(24, 1e-9))
        renderer.render_frame()
        assert not link.frames[-1][0].any()
        assert not renderer.state.display_values.any()

    def test_send_error_drops_frame_and_keeps_previous(self, renderer, link, sine_wave):
        renderer.on_audio(sine_wave(512))
        kept = renderer.state.send_buffer.copy()
        link.fail = True
        renderer.history.push(sine_wave(512, frequency=3000.0))
        assert renderer.render_frame() == 0
        assert renderer.frames_dropped == 1
        np.testing.assert_array_equal(renderer.state.send_buffer, kept)

    def test_send_buffer_is_uint8(self, renderer, sine_wave, config):
        renderer.on_audio(sine_wave(512))
        assert renderer.state.send_buffer.dtype == np.uint8
        assert renderer.state.send_buffer.shape == (config.n_points, 3)

    def test_monitor_receives_frames(self, config, link, clock, sine_wave):
        monitor = DebugMonitor(summary_interval=100.0, clock=clock)
        renderer = Renderer(config, link, monitor=monitor, clock=clock)
        renderer.on_audio(sine_wave(512))
        assert monitor.frame_count == 1
        assert monitor.input_peak == pytest.approx(np.max(np.abs(renderer.history.samples)))


class TestControls:
    def test_select_preset_applies_on_next_frame(self, renderer, sine_wave):
        renderer.select_preset(Preset.SPECTRUM)
        assert renderer.state.selected_preset is Preset.SCROLL
        renderer.on_audio(sine_wave(512))
        assert renderer.state.selected_preset is Preset.SPECTRUM

    def test_initial_preset_from_config(self, config, link):
        renderer = Renderer(dataclasses.replace(config, preset="power"), link)
        assert renderer.state.selected_preset is Preset.POWER

    def test_frequency_range_rebuilds_mel_bank(self, renderer, sine_wave):
        renderer.set_frequency_range(300, 5000)
        renderer.on_audio(sine_wave(512))
        assert renderer.dsp.mel_bank.edges[0] == pytest.approx(300.0)
        assert renderer.dsp.mel_bank.edges[-1] == pytest.approx(5000.0)

    def test_bad_frequency_range_is_ignored(self, renderer, sine_wave):
        before = renderer.dsp.mel_bank
        renderer.set_frequency_range(5000, 300)
        renderer.on_audio(sine_wave(512))
        assert renderer.dsp.mel_bank is before
        assert renderer.frames_rendered == 1


class TestSnapshots:
    def test_latest_frame_published(self, config, link, clock, sine_wave):
        slot = LatestSlot()
        renderer = Renderer(config, link, snapshots=slot, clock=clock)
        for _ in range(3):
            renderer.on_audio(sine_wave(512))
            clock.advance(1.0)
        vertices = slot.take()
        assert len(vertices) == config.n_points
        assert slot.dropped == 2
        colors = np.array([v.color for v in vertices], dtype=np.uint8)
        np.testing.assert_array_equal(colors, renderer.state.send_buffer)


class FakeStream:
    def __init__(self, config, on_samples, on_error):
        self.on_samples = on_samples
        self.on_error = on_error
        self.failed = False
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def close(self):
        self.closed = True


class TestMainLoop:
    def test_runs_until_stop(self, renderer):
        stop = threading.Event()
        streams = []

        def factory(*args):
            streams.append(FakeStream(*args))
            return streams[-1]

        thread = threading.Thread(target=renderer.main_loop, args=(stop, factory))
        thread.start()
        stop.set()
        thread.join(timeout=2.0)
        assert not thread.is_alive()
        assert streams[0].started and streams[0].closed

    def test_failed_stream_raises(self, renderer):
        stop = threading.Event()

        def factory(*args):
            stream = FakeStream(*args)
            stream.failed = True
            stream.on_error()
            return stream

        with pytest.raises(RuntimeError):
            renderer.main_loop(stop, factory)
