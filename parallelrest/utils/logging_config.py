import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "[%(levelname)s] %(threadName)s %(name)s - %(message)s"

# Connection pool chatter from requests' transport
_NOISY_LOGGERS = ("urllib3", "urllib3.connectionpool")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    quiet_transport: bool = True,
) -> None:
    """
    Configure logging for parallelrest scripts.

    Parameters
    ----------
    level:
        Logging level name (e.g., "INFO", "DEBUG"). Unknown names fall back
        to INFO.
    log_file:
        Optional path to log output. When not provided, logs go to stderr.
    quiet_transport:
        Keep urllib3 at WARNING even when `level` is DEBUG.
    """

    logging_level = getattr(logging, level.upper(), logging.INFO)
    log_kwargs = {
        "level": logging_level,
        "format": LOG_FORMAT,
    }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        log_kwargs["filename"] = log_file

    logging.basicConfig(**log_kwargs)

    if quiet_transport:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(logging_level, logging.WARNING))
