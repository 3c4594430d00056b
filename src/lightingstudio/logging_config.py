"""
Logging Configuration
Sets up the global logger for the application.
"""
import logging
import sys
from typing import Optional, Union

# Third-party loggers that are too chatty at DEBUG level
_NOISY_LOGGERS = ("urllib3", "requests")


def parse_level(level: Union[int, str]) -> int:
    """
    Accepts 'debug', 'INFO', 20, ... and returns the numeric logging level.

    Raises:
        ValueError: If the name is not a known logging level.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configures the logger of the 'lightingstudio' namespace.

    Args:
        level: Logging level (e.g. logging.DEBUG or "debug")
        log_file: Optional path to save logs to a file.
    """
    level = parse_level(level)
    logger = logging.getLogger("lightingstudio")
    logger.setLevel(level)

    # Avoid duplicate handlers when the window is re-created in the same process
    if logger.hasHandlers():
        logger.handlers.clear()

    # Time - Module - Level - Message
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.info(f"Logging initialized (level={logging.getLevelName(level)}).")
