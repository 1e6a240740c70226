import threading

import pygame

from reactive_led.config import Config
from reactive_led.engine.channel import LatestSlot
from reactive_led.engine.dsp import Preset

LOGICAL_RESOLUTION: tuple[int, int] = (1200, 400)
SLIDER_STEP_HZ = 100

PRESET_KEYS = {
    pygame.K_1: Preset.SCROLL,
    pygame.K_2: Preset.POWER,
    pygame.K_3: Preset.SPECTRUM,
}


class FrequencySliders:
    """Lower/upper frequency bounds adjusted with the arrow keys."""

    def __init__(self, config: Config):
        self.min_v = config.min_frequency
        self.max_v = config.max_frequency
        self.low = min(max(config.left_slider_start, self.min_v), self.max_v - SLIDER_STEP_HZ)
        self.high = max(min(config.right_slider_start, self.max_v), self.low + SLIDER_STEP_HZ)

    def handle(self, key: int) -> bool:
        """
        Moves a slider. Left/Right move the lower bound, Down/Up the upper bound.

        Returns:
            True if a slider moved.
        """
        if key == pygame.K_LEFT:
            self.low = max(self.min_v, self.low - SLIDER_STEP_HZ)
        elif key == pygame.K_RIGHT:
            self.low = min(self.high - SLIDER_STEP_HZ, self.low + SLIDER_STEP_HZ)
        elif key == pygame.K_DOWN:
            self.high = max(self.low + SLIDER_STEP_HZ, self.high - SLIDER_STEP_HZ)
        elif key == pygame.K_UP:
            self.high = min(self.max_v, self.high + SLIDER_STEP_HZ)
        else:
            return False
        return True

    def __str__(self) -> str:
        return f"[</>] Low: {self.low:.0f} Hz   [v/^] High: {self.high:.0f} Hz"


class StripPreview:
    """Pygame window drawing the frames the renderer sends to the strip.

    Runs on the main thread. Frames arrive through a LatestSlot, so a slow
    window only ever sees the newest one. Preset and slider changes are sent
    back to the renderer as control messages.
    """

    def __init__(self, config: Config, renderer, snapshots: LatestSlot, stop: threading.Event):
        self.config = config
        self.renderer = renderer
        self.snapshots = snapshots
        self.stop = stop
        self.sliders = FrequencySliders(config)
        self.preset = Preset.from_name(config.preset)
        self.vertices = []
        self.slider_moved = False

    def handle_events(self) -> bool:
        """Handle quitting, preset keys and sliders. Returns False to quit."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    return False
                if event.key in PRESET_KEYS:
                    self.preset = PRESET_KEYS[event.key]
                    self.renderer.select_preset(self.preset)
                elif self.sliders.handle(event.key):
                    self.slider_moved = True
            if event.type == pygame.KEYUP and self.slider_moved:
                # Rebuild the mel bank once the key is released, not on every repeat
                self.slider_moved = False
                self.renderer.set_frequency_range(self.sliders.low, self.sliders.high)
        return True

    def draw(self, screen: pygame.Surface, font: pygame.font.Font) -> None:
        screen.fill((10, 10, 10))
        width, height = screen.get_size()
        strip_h = height - 80

        if self.vertices:
            led_w = max(width / len(self.vertices), 1.0)
            for vertex in self.vertices:
                x, y = vertex.position
                px = (x + 1.0) / 2.0 * (width - led_w)
                bar_h = max(int((y + 1.0) / 2.0 * strip_h), 2)
                pygame.draw.rect(screen, vertex.color, (int(px), 10 + strip_h - bar_h, int(led_w) + 1, bar_h))

        hud = f"[1/2/3] Preset: {self.preset.value}   {self.sliders}   [ESC] quit"
        screen.blit(font.render(hud, True, (220, 220, 220)), (15, height - 50))

    def run(self, title: str = "Audio Reactive LED Strip"):
        """Centralized execution loop. Returns when the window closes or `stop` is set."""
        pygame.init()
        pygame.display.set_caption(title)
        screen = pygame.display.set_mode(LOGICAL_RESOLUTION, pygame.RESIZABLE)
        font = pygame.font.SysFont("monospace", 16, bold=True)
        clock = pygame.time.Clock()

        try:
            while not self.stop.is_set():
                if not self.handle_events():
                    break
                vertices = self.snapshots.take()
                if vertices is not None:
                    self.vertices = vertices
                self.draw(screen, font)
                pygame.display.flip()
                clock.tick(self.config.fps)
        finally:
            self.stop.set()
            pygame.quit()
