"""日志配置"""
import logging
import os
from logging.handlers import RotatingFileHandler

from threat_monitor.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    """获取日志记录器 (handlers come from setup_logging on the root logger)"""
    settings = get_settings()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.log_level.upper()))
    return logger


def setup_logging(log_dir: str = "logs") -> None:
    """Console plus rotating file handler (10MB * 5 backups)."""
    settings = get_settings()
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "threat_monitor.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        handlers=[console_handler, file_handler],
    )
