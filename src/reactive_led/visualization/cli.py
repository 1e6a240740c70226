import argparse
import sys

from reactive_led.logging_utils import configure_logging
from reactive_led.visualization.receiver import StripReceiver


def render_strip(pixels, width: int = 120) -> str:
    """One terminal line of ANSI truecolor blocks, downsampled to `width` cells."""
    n = len(pixels)
    cells = min(width, n)
    out = []
    for i in range(cells):
        r, g, b = pixels[i * n // cells]
        out.append(f"\033[48;2;{r};{g};{b}m ")
    return "".join(out) + "\033[0m"


def run(argv=None):
    """Command-line LED strip emulator using the StripReceiver."""
    parser = argparse.ArgumentParser(description="Terminal emulator for the LED strip controller")
    parser.add_argument("--ip", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=7777)
    parser.add_argument("-n", "--n-points", type=int, default=255)
    parser.add_argument("--width", type=int, default=120, help="terminal cells used for the strip")
    args = parser.parse_args(argv)
    configure_logging("INFO")

    rx = StripReceiver(n_points=args.n_points, ip=args.ip, port=args.port)
    rx.bind()

    print("\n" + "=" * 60)
    print(" LED STRIP EMULATOR ".center(60, "="))
    print("=" * 60 + "\n")

    try:
        while True:
            # Blocks until the next datagram, then folds in anything else queued
            if rx.wait_for_packet(timeout=1.0) is None:
                continue
            pixels = rx.get_latest()

            # \r  = Go to start of line
            # \033[K = Clear everything from cursor to the right (ANSI Escape)
            sys.stdout.write("\r" + render_strip(pixels, args.width) + "\033[K")
            sys.stdout.flush()

    except KeyboardInterrupt:
        print("\n\nEmulator stopped by user.")
    finally:
        rx.close()


if __name__ == "__main__":
    run()
