import logging
from pathlib import Path
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

from quizfeed.core.config import LOGS_DIR

# Parent of the per-run loggers; must not be a logging.PlaceHolder
JOB_LOGGERS = logging.getLogger("quizfeed.job")


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure process-wide logging for the service."""
    handlers = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))

    logging.basicConfig(
        level=level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
    )


def setup_job_logger(job_key: str) -> logging.Logger:
    """Setup a logger for a single pipeline invocation."""
    safe_name = "".join(c if c.isalnum() or c == "-" else "_" for c in job_key)
    logger = logging.getLogger(f"{JOB_LOGGERS.name}.{safe_name}")
    if not logger.handlers:  # Only add handler if none exists
        logger.setLevel(logging.INFO)
        # create a json formatter for structured logging
        formatter = JsonFormatter('%(asctime)s - %(levelname)s - %(message)s')

        fh = logging.FileHandler(LOGS_DIR / f"job_{safe_name}.log")
        fh.setLevel(logging.INFO)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(logging.INFO)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

        # JSON lines only, the root handlers use the plain format
        logger.propagate = False

    return logger


def release_job_logger(logger: logging.Logger) -> None:
    """Close the handlers opened by setup_job_logger and forget the logger."""
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    # Run keys are single-use
    logging.Logger.manager.loggerDict.pop(logger.name, None)
