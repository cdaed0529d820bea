import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Libraries that log per glyph or per chunk at INFO/DEBUG.
NOISY_LOGGERS = ("PIL", "fontTools")


def setup_logging(log_level: str = "INFO", stream=None):
    """
    Configure the root logger for the command-line tools.

    Output goes to `stream` (stderr by default) so that img2ascii can keep
    stdout for the rendered text. Pillow and fontTools stay at WARNING
    unless DEBUG is asked for. Calling this again replaces the handler.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(stream if stream is not None else sys.stderr)],
        force=True,
    )
    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
