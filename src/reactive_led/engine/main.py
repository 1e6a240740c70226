import argparse
import logging
import signal
import sys
import threading

from reactive_led.config import DEFAULT_CONFIG_PATH, load_config
from reactive_led.engine.channel import LatestSlot
from reactive_led.engine.command_listener import CommandListener
from reactive_led.engine.debug_monitor import DebugMonitor
from reactive_led.engine.renderer import Renderer
from reactive_led.engine.stream import AudioStream
from reactive_led.engine.transmitter import LedLink
from reactive_led.logging_utils import configure_logging

log = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audio reactive LED strip engine")
    parser.add_argument("-d", "--device-ip", help="IP address of the LED controller")
    parser.add_argument("-p", "--device-port", type=int, help="UDP port of the LED controller")
    parser.add_argument("-g", "--use-gui", action="store_true", help="open the pygame preview window")
    parser.add_argument("-c", "--config", default=None, help="TOML config file (default ~/%s)" % DEFAULT_CONFIG_PATH)
    parser.add_argument("--preset", choices=["scroll", "power", "spectrum"], help="initial visualization")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--debug", action="store_true", help="log performance summaries every 2 seconds")
    return parser.parse_args(argv)


def run_engine(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    if args.config is None:
        config = load_config(DEFAULT_CONFIG_PATH, use_home_dir=True)
    else:
        config = load_config(args.config, use_home_dir=False)
    config = config.merge_with_args(args)
    try:
        config.validate()
    except ValueError as e:
        log.error("Invalid configuration: %s", e)
        return 1

    try:
        link = LedLink(config)
    except OSError as e:
        log.error("Could not open the UDP socket: %s", e)
        return 1

    snapshots = LatestSlot() if config.use_gui else None
    monitor = DebugMonitor(summary_interval=2.0) if args.debug else None
    renderer = Renderer(config, link, snapshots=snapshots, monitor=monitor)

    try:
        command_listener = CommandListener(renderer, port=config.command_port)
    except OSError as e:
        log.error("Could not listen for commands on port %d: %s", config.command_port, e)
        link.close()
        return 1

    stop = threading.Event()
    errors: list[BaseException] = []

    def handle_sigint(signum, frame):
        log.info("Ctrl+C received, signaling stop")
        stop.set()

    signal.signal(signal.SIGINT, handle_sigint)

    def render():
        try:
            renderer.main_loop(stop, AudioStream)
        except OSError as e:
            # No usable input device
            errors.append(e)
            stop.set()
        except Exception as e:
            log.exception("Render loop crashed")
            errors.append(e)
            stop.set()

    log.info(
        "Engine active. Listening for commands on %d, sending to %s:%d.",
        config.command_port,
        config.device_ip,
        config.device_port,
    )
    render_thread = threading.Thread(target=render, name="render")
    render_thread.start()
    try:
        if config.use_gui:
            from reactive_led.visualization.preview import StripPreview

            StripPreview(config, renderer, snapshots, stop).run()
        else:
            while not stop.wait(0.5):
                pass
    finally:
        stop.set()
        render_thread.join()
        command_listener.close()
        link.close()
        log.info("Shutting down engine...")

    if errors:
        log.error("Engine stopped: %s", errors[0])
        return 1
    return 0


def main() -> None:
    sys.exit(run_engine())


if __name__ == "__main__":
    main()
