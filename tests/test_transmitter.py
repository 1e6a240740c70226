"""Loopback tests for the UDP link and the strip receiver."""

import dataclasses

import numpy as np
import pytest

from reactive_led.engine.transmitter import LedLink
from reactive_led.protocol import GAMMA_TABLE
from reactive_led.visualization.receiver import StripReceiver


@pytest.fixture
def receiver():
    rx = StripReceiver(n_points=255, ip="127.0.0.1", port=0)
    rx.bind()
    yield rx
    rx.close()


@pytest.fixture
def make_link(config, receiver):
    links = []

    def make(**overrides):
        cfg = dataclasses.replace(config, device_ip="127.0.0.1", device_port=receiver.port, **overrides)
        link = LedLink(cfg)
        links.append(link)
        return link

    yield make
    for link in links:
        link.close()


def drain(receiver, expected_datagrams):
    for _ in range(expected_datagrams):
        assert receiver.wait_for_packet(timeout=2.0) is not None
    return receiver.get_latest()


class TestLedLink:
    def test_nothing_sent_when_unchanged(self, make_link):
        link = make_link()
        pixels = np.zeros((255, 3), dtype=np.uint8)
        assert link.update(pixels, pixels.copy()) == 0
        assert link.packets_sent == 0

    def test_changed_pixels_reach_receiver(self, make_link, receiver):
        link = make_link()
        prev = np.zeros((255, 3), dtype=np.uint8)
        pixels = prev.copy()
        changed = [0, 17, 128, 254]
        pixels[changed] = [[255, 0, 0], [0, 255, 0], [0, 0, 255], [9, 9, 9]]

        assert link.update(pixels, prev) == 16
        strip = drain(receiver, 1)
        np.testing.assert_array_equal(strip, pixels)

    def test_full_strip_split_over_three_datagrams(self, make_link, receiver):
        link = make_link()
        prev = np.zeros((255, 3), dtype=np.uint8)
        pixels = np.full((255, 3), 77, dtype=np.uint8)

        assert link.update(pixels, prev) == 255 * 4
        assert link.packets_sent == 3
        np.testing.assert_array_equal(drain(receiver, 3), pixels)

    def test_gamma_applied_in_place(self, make_link, receiver):
        link = make_link(software_gamma_correction=True)
        prev = np.zeros((255, 3), dtype=np.uint8)
        pixels = prev.copy()
        pixels[5] = (128, 64, 255)

        link.update(pixels, prev)
        expected = [GAMMA_TABLE[128], GAMMA_TABLE[64], 255]
        np.testing.assert_array_equal(pixels[5], expected)
        np.testing.assert_array_equal(drain(receiver, 1)[5], expected)

    def test_create_send_buffer(self, make_link):
        link = make_link()
        prev = np.zeros((255, 3), dtype=np.uint8)
        pixels = prev.copy()
        pixels[3] = (1, 2, 3)
        assert link.create_send_buffer(pixels, prev) == bytes([3, 1, 2, 3])


class TestStripReceiver:
    def test_unchanged_pixels_keep_their_color(self, receiver):
        receiver.apply_datagram(bytes([1, 10, 20, 30, 2, 40, 50, 60]))
        receiver.apply_datagram(bytes([2, 0, 0, 0]))
        np.testing.assert_array_equal(receiver.pixels[1], [10, 20, 30])
        np.testing.assert_array_equal(receiver.pixels[2], [0, 0, 0])

    @pytest.mark.parametrize("payload", [b"", b"\x01\x02\x03", bytes([255, 1, 1, 1])])
    def test_rejects_malformed(self, receiver, payload):
        assert receiver.apply_datagram(payload) == 0
        assert receiver.rejected == 1
        assert not receiver.pixels.any()

    def test_timeout_returns_none(self, receiver):
        assert receiver.wait_for_packet(timeout=0.05) is None
