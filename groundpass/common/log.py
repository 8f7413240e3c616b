import logging.config
from pathlib import Path

from groundpass.base.config import LogConfig

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(config: LogConfig = None, console: bool = True) -> Path:
    """Configure the root logger with a rotating file handler and, optionally, a console handler.

    Returns: path of the log file
    """
    if config is None:
        config = LogConfig()
    log_dir = Path(config.root_log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / config.log_file_name

    handlers = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "default",
            "filename": str(log_path),
            "maxBytes": config.max_log_size,
            "backupCount": config.backup_count,
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stderr",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": handlers,
            "root": {"level": config.log_level, "handlers": list(handlers)},
        }
    )
    return log_path
