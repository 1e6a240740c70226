import dataclasses
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)

# ============================================================================
# NETWORK CONFIGURATION
# ============================================================================

DEVICE_IP = "192.168.0.150"
"""
IP address of the ESP8266 driving the LED strip.

Watch Out For:
  - DHCP may hand the controller a new address after a router reboot,
    reserve the address or the strip silently stops updating
  - Use 127.0.0.1 together with the strip receiver to test without hardware
"""

DEVICE_PORT = 7777
"""
UDP port the LED controller listens on.

Data sent: 4-byte records |i|r|g|b| for every pixel that changed
Size: at most 126 records (504 bytes) per datagram, more datagrams if needed
"""

COMMAND_PORT = 7778
"""
Port where the engine listens for JSON control messages (preset, frequency range).

Commands sent: {"preset": "power"} or {"min_frequency": 200, "max_frequency": 8000}
Frequency: Only on user changes (< 10 Hz typical)
"""

SOFTWARE_GAMMA_CORRECTION = True
"""
Remap every byte through the gamma table before sending.

LEDs respond linearly to duty cycle, eyes do not. Turn this off if the
controller firmware already does its own gamma correction.
"""

# ============================================================================
# STRIP CONFIGURATION
# ============================================================================

N_POINTS = 255
"""
Number of LEDs on the strip.

Hard Limit:
  - 256, the wire protocol addresses pixels with a single byte
  - Visualizations are computed for half the strip and mirrored around the center
"""

# ============================================================================
# AUDIO CONFIGURATION
# ============================================================================

MIC_RATE = 44100
"""
Sampling frequency of the microphone in Hz.

Watch Out For:
  - Mismatch between config and device default causes silent input or distortion
  - MAX_FREQUENCY must stay at or below MIC_RATE / 2 (Nyquist)
"""

FPS = 60
"""
Target render rate. Audio callbacks arrive at a cadence set by the hardware
buffer size; a frame is only rendered once 1/FPS seconds have elapsed.

Impact:
  - Higher FPS = more UDP traffic, smoother animation
  - The ESP8266 comfortably handles 60 FPS for 255 pixels
"""

MIN_FREQUENCY = 200
"""Frequencies below this value (Hz) are ignored by the mel filterbank."""

MAX_FREQUENCY = 12000
"""Frequencies above this value (Hz) are ignored by the mel filterbank."""

N_FFT_BINS = 24
"""
Size of the rolling audio history and of the FFT, in samples.

The spectrum has N_FFT_BINS // 2 + 1 bins spread from 0 Hz to MIC_RATE / 2.
Small values react quickly but give a coarse spectrum. Powers of two (or
small-prime products) keep the FFT fast.
"""

N_MEL_BANDS = 24
"""
Number of mel filterbank outputs.

The bands are split in three equal groups (bass/mid/treble) that drive
the red, green and blue channels, so this must be at least 3.
"""

N_ROLLING_HISTORY = 2
"""
Ignored. Accepted so older config files still load.

The rolling window and the FFT are both sized by N_FFT_BINS.
"""

MIN_VOLUME_THRESHOLD = 1e-7
"""No music visualization displayed if recorded audio volume below threshold."""

# ============================================================================
# GUI CONFIGURATION
# ============================================================================

USE_GUI = False
"""Open the pygame preview window next to the engine."""

LEFT_SLIDER_START = 200
"""Initial position (Hz) of the lower frequency slider in the preview."""

RIGHT_SLIDER_START = 20000
"""Initial position (Hz) of the upper frequency slider in the preview."""

PRESET = "scroll"
"""
Visualization shown at startup.

One of PRESET_NAMES. The preview labels Rolling/Power/Frequency (and
"energy" for power) are accepted as aliases.
"""

PRESET_NAMES = {
    "scroll": "scroll",
    "power": "power",
    "spectrum": "spectrum",
    "rolling": "scroll",
    "frequency": "spectrum",
    "energy": "power",
}
"""Accepted preset names, mapped to the canonical one."""

DEFAULT_CONFIG_PATH = ".config/audio-reactive-led-strip/config.toml"
"""Config file location, relative to the home directory."""


@dataclass(frozen=True)
class Config:
    """Render session parameters. Loaded once at startup and read-only afterwards."""

    device_ip: str = DEVICE_IP
    device_port: int = DEVICE_PORT
    command_port: int = COMMAND_PORT
    use_gui: bool = USE_GUI
    software_gamma_correction: bool = SOFTWARE_GAMMA_CORRECTION
    n_points: int = N_POINTS
    mic_rate: int = MIC_RATE
    fps: int = FPS
    min_frequency: float = MIN_FREQUENCY
    max_frequency: float = MAX_FREQUENCY
    n_fft_bins: int = N_FFT_BINS
    n_mel_bands: int = N_MEL_BANDS
    n_rolling_history: int = N_ROLLING_HISTORY
    min_volume_threshold: float = MIN_VOLUME_THRESHOLD
    left_slider_start: int = LEFT_SLIDER_START
    right_slider_start: int = RIGHT_SLIDER_START
    preset: str = PRESET

    def validate(self) -> "Config":
        """Raise ValueError if the parameters cannot drive a render session.

        Returns:
            The config itself, so it can be chained after construction.
        """
        if not (0 < self.device_port < 65536):
            raise ValueError(f"config: 'device_port' out of range (1..65535): {self.device_port}")
        if not (0 < self.command_port < 65536):
            raise ValueError(f"config: 'command_port' out of range (1..65535): {self.command_port}")
        if not (0 < self.n_points <= 256):
            raise ValueError(f"config: 'n_points' out of range (1..256): {self.n_points}")
        if self.fps <= 0:
            raise ValueError(f"config: 'fps' must be positive: {self.fps}")
        if self.n_fft_bins < 2:
            raise ValueError(f"config: 'n_fft_bins' must be at least 2: {self.n_fft_bins}")
        if self.n_mel_bands < 3:
            raise ValueError(f"config: 'n_mel_bands' must be at least 3: {self.n_mel_bands}")
        if self.preset.strip().lower() not in PRESET_NAMES:
            raise ValueError(f"config: unknown 'preset' {self.preset!r}, expected one of {sorted(PRESET_NAMES)}")
        if not (0 <= self.min_frequency < self.max_frequency):
            raise ValueError(
                f"config: frequency range must satisfy 0 <= min < max: {self.min_frequency}..{self.max_frequency}"
            )
        if self.max_frequency > self.mic_rate / 2:
            raise ValueError(
                f"config: 'max_frequency' above Nyquist ({self.mic_rate / 2}): {self.max_frequency}"
            )
        return self

    def merge_with_args(self, args) -> "Config":
        """Returns a copy with the command line overrides applied."""
        overrides = {"use_gui": self.use_gui or bool(getattr(args, "use_gui", False))}
        for name in ("device_ip", "device_port", "preset"):
            value = getattr(args, name, None)
            if value is not None:
                overrides[name] = value
        return dataclasses.replace(self, **overrides)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH, use_home_dir: bool = True) -> Config:
    """Loads a TOML config file, falling back to the defaults on any problem.

    Keys missing from the file keep their default value. A missing or
    malformed file is not fatal: a warning is logged and Config() is returned.

    Args:
        path: Path of the TOML file.
        use_home_dir: Resolve the path relative to the user's home directory.
    """
    path = Path(path)
    if use_home_dir:
        path = Path.home() / path

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        log.warning("Could not open path %s, loading default config", path)
        return Config()
    except OSError as e:
        log.warning("Could not read config due to an error: %s. Loading default config instead", e)
        return Config()
    except tomllib.TOMLDecodeError as e:
        log.warning("Error parsing config toml: %s. Loading default config instead", e)
        return Config()

    known = {f.name: f.type for f in dataclasses.fields(Config)}
    unknown = set(data) - set(known)
    if unknown:
        log.warning("Unknown config keys %s in %s. Loading default config instead", sorted(unknown), path)
        return Config()

    for key, value in data.items():
        expected = known[key]
        # TOML integers are accepted where a float is expected
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            continue
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            log.warning(
                "Config key '%s' must be %s, got %r. Loading default config instead", key, expected.__name__, value
            )
            return Config()

    try:
        return Config(**data).validate()
    except ValueError as e:
        log.warning("Invalid config: %s. Loading default config instead", e)
        return Config()
