import logging
from datetime import datetime
from extractor.core.config import LOGS_DIR
from pythonjsonlogger.json import JsonFormatter


def setup_job_logger(job_id: str) -> logging.Logger:
    """Setup a logger for a specific extraction job."""
    logger = logging.getLogger(f"job_{job_id}")
    if not logger.handlers:  # Only add handler if none exists
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = LOGS_DIR / f"job_{job_id}_{timestamp}.log"

        logger.setLevel(logging.INFO)
        logger.propagate = False

        # create a json formatter for structured logging
        formatter = JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
        # Add file handler
        fh = logging.FileHandler(log_file)
        fh.setLevel(logging.INFO)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

        # Add console handler
        ch = logging.StreamHandler()
        ch.setLevel(logging.INFO)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    return logger


def release_job_logger(job_id: str) -> None:
    """Close the handlers of a finished job's logger and unregister it."""
    logger = logging.Logger.manager.loggerDict.pop(f"job_{job_id}", None)
    if not isinstance(logger, logging.Logger):
        return
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger with JSON output on the console."""
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())
