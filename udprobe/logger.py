import logging
import sys

SIMPLE_FORMAT = "%(levelname)s: %(message)s"
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(level="INFO", stream=None):
    """
    Configure the package logger once.

    Args:
        level: logging level name (DEBUG, INFO, WARNING, ...)
        stream: where records go, stderr by default so verdict lines on
            stdout stay clean

    Returns:
        the "udprobe" logger
    """
    logger = logging.getLogger("udprobe")
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logger.setLevel(numeric_level)

    # Avoid duplicate handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    fmt = DETAILED_FORMAT if numeric_level <= logging.DEBUG else SIMPLE_FORMAT
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
