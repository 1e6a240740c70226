"""Tests for the preview window's frequency sliders."""

import pygame

from reactive_led.config import Config
from reactive_led.visualization.preview import SLIDER_STEP_HZ, FrequencySliders


def test_start_positions_clamped_to_range():
    sliders = FrequencySliders(Config())
    assert sliders.low == 200
    assert sliders.high == 12000


def test_keys_move_sliders():
    sliders = FrequencySliders(Config())
    assert sliders.handle(pygame.K_RIGHT)
    assert sliders.low == 200 + SLIDER_STEP_HZ
    assert sliders.handle(pygame.K_DOWN)
    assert sliders.high == 12000 - SLIDER_STEP_HZ
    assert not sliders.handle(pygame.K_a)


def test_sliders_never_cross_or_leave_range():
    sliders = FrequencySliders(Config(min_frequency=200, max_frequency=600))
    for _ in range(20):
        sliders.handle(pygame.K_LEFT)
        sliders.handle(pygame.K_UP)
    assert (sliders.low, sliders.high) == (200, 600)
    for _ in range(20):
        sliders.handle(pygame.K_RIGHT)
    assert sliders.low == sliders.high - SLIDER_STEP_HZ
    for _ in range(20):
        sliders.handle(pygame.K_DOWN)
    assert sliders.high > sliders.low
