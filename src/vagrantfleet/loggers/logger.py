import logging
import sys

BLACK, RED, GREEN, YELLOW, BLUE, MAGENTA, CYAN, WHITE = range(8)

# ansi escape sequences, foreground colours are 30 + colour
RESET_SEQ = "\033[0m"
COLOR_SEQ = "\033[1;%dm"
BOLD_SEQ = "\033[1m"

LEVEL_COLORS = {
    'DEBUG': BLUE,
    'INFO': GREEN,
    'WARNING': YELLOW,
    'ERROR': RED,
    'CRITICAL': MAGENTA,
}

FORMAT = (
    "[%(asctime)s %(levelname)-18s "
    "$BOLD%(filename)s{%(lineno)d}$RESET:%(funcName)s()] "
    "%(message)s"
)


def expand_markers(message: str, use_color: bool = True) -> str:
    """
    Replace the $RESET and $BOLD markers in a format string.
    """
    if use_color:
        return message.replace("$RESET", RESET_SEQ).replace("$BOLD", BOLD_SEQ)
    return message.replace("$RESET", "").replace("$BOLD", "")


class ColoredFormatter(logging.Formatter):
    """
    Formatter that paints the level name of a record
    """
    def __init__(self, fmt: str, use_color: bool = True):
        super().__init__(expand_markers(fmt, use_color))
        self.use_color = use_color

    def format(self, record):
        levelname = record.levelname
        if self.use_color and levelname in LEVEL_COLORS:
            record.levelname = (
                COLOR_SEQ % (30 + LEVEL_COLORS[levelname]) + levelname + RESET_SEQ
            )
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def set_verbosity(verbose: bool) -> None:
    """
    Switch the package logger between info and debug output.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


logger = logging.getLogger('vagrantfleet')
logger.setLevel(logging.INFO)

# configure only once, re-imports must not stack handlers
if not logger.handlers:
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(ColoredFormatter(FORMAT, use_color=sys.stdout.isatty()))
    logger.addHandler(ch)
    logger.propagate = False
