"""Tests for the engine entry point argument handling."""

from reactive_led.config import Config
from reactive_led.engine.main import parse_args, run_engine


def test_parse_args_defaults():
    args = parse_args([])
    assert args.device_ip is None
    assert args.device_port is None
    assert args.use_gui is False
    assert args.config is None


def test_parse_args_short_flags():
    args = parse_args(["-d", "10.0.0.2", "-p", "9999", "-g", "--preset", "power"])
    merged = Config().merge_with_args(args)
    assert (merged.device_ip, merged.device_port, merged.use_gui, merged.preset) == ("10.0.0.2", 9999, True, "power")


def test_invalid_override_exits_with_error(tmp_path):
    assert run_engine(["-c", str(tmp_path / "missing.toml"), "-p", "0"]) == 1
