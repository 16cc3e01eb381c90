import logging
import sys
import os


class ColoredFormatter(logging.Formatter):
    """Formatter that colours log levels and tags each line with its module"""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',    # cyan
        'INFO': '\033[32m',     # green
        'WARNING': '\033[33m',  # yellow
        'ERROR': '\033[31m',    # red
        'CRITICAL': '\033[35m', # magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[90m'

    def __init__(self, use_colors=True, show_module=False):
        super().__init__()
        self.use_colors = use_colors and self._supports_color()
        self.show_module = show_module

    def _supports_color(self):
        """Check if stderr is a colour-capable terminal"""
        return (
            hasattr(sys.stderr, "isatty") and sys.stderr.isatty() and
            os.environ.get('TERM') != 'dumb' and
            os.environ.get('NO_COLOR') is None
        )

    def format(self, record):
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if self.use_colors:
            level_color = self.COLORS.get(record.levelname, '')
            level_name = f"{level_color}{self.BOLD}{record.levelname:<8}{self.RESET}"
            timestamp = f"{self.DIM}{self.formatTime(record, '%H:%M:%S')}{self.RESET}"
            module = f" {self.DIM}[{record.name}]{self.RESET}" if self.show_module else ""
            return f"{timestamp} {level_name}{module} {message}"

        module = f" - {record.name}" if self.show_module else ""
        return f"{self.formatTime(record, '%Y-%m-%d %H:%M:%S')} - {record.levelname}{module} - {message}"


def setup_logging(verbose=False, no_color=False):
    """Route all attestor logging to stderr, DEBUG when verbose"""
    logger = logging.getLogger()

    # remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter(use_colors=not no_color, show_module=verbose))

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    # keep HTTP client chatter out of verbose output
    for noisy in ('urllib3', 'web3'):
        logging.getLogger(noisy).setLevel(logging.INFO if verbose else logging.WARNING)

    return logger
