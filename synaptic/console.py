"""Colored operator output and logging setup."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


# ANSI color codes
class Color:
    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    CYAN = '\033[36m'
    GRAY = '\033[90m'


def configure_logging(level: str = "info", verbose: bool = False) -> None:
    """Configure root logging. Diagnostics go to stderr, status lines to stdout."""
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stderr)


class Console:
    """Prints the info/success/warning/error status lines operators read."""

    def __init__(self, color_enabled: bool = True):
        self.color_enabled = color_enabled

    def _colorize(self, text: str, color: str) -> str:
        if not self.color_enabled:
            return text
        return f"{color}{text}{Color.RESET}"

    def line(self, message: str = "") -> None:
        print(message, flush=True)

    def info(self, message: str) -> None:
        self.line(self._colorize(f"ℹ️  {message}", Color.BLUE))

    def success(self, message: str) -> None:
        self.line(self._colorize(f"✅ {message}", Color.GREEN))

    def warning(self, message: str) -> None:
        self.line(self._colorize(f"⚠️  {message}", Color.YELLOW))

    def error(self, message: str) -> None:
        self.line(self._colorize(f"❌ {message}", Color.RED))

    def heading(self, message: str) -> None:
        self.line(self._colorize(message, Color.CYAN + Color.BOLD))

    def confirm(self, prompt: str, assume_yes: bool = False) -> bool:
        """Ask a y/N question. Anything but y/yes, and a closed stdin, is no."""
        if assume_yes:
            self.line(self._colorize(f"{prompt} (auto-confirmed with --yes)", Color.GRAY))
            return True
        self.warning(f"{prompt} (y/N)")
        try:
            answer = input().strip().lower()
        except (EOFError, KeyboardInterrupt):
            return False
        return answer in ('y', 'yes')
