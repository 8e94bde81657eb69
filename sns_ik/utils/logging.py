"""
日志工具
所有模块通过 get_logger 获取 sns_ik 命名空间下的 logger；库本身不安装 handler，由命令行入口调用 setup_logging
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "sns_ik"


def setup_logging(level: str = "INFO",
                  log_file: Optional[str] = None,
                  log_dir: str = "logs") -> logging.Logger:
    """
    为 sns_ik 命名空间安装控制台（及可选的文件）输出

    :param level: 日志级别（DEBUG, INFO, WARNING, ERROR）
    :param log_file: 可选的日志文件名前缀，为None时只输出到控制台
    :param log_dir: 日志文件目录
    :return: sns_ik 根 logger
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))

    if root_logger.handlers:
        return root_logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    ))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = log_path / f"{log_file}_{timestamp}.log"

        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root_logger.addHandler(file_handler)
        root_logger.info(f"Logging to file: {file_path}")

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    获取 sns_ik 命名空间下的子 logger

    :param name: 组件名（如 "chain_config", "velocity_ik"）
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
