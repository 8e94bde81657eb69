"""
工具函数：日志
"""

from .logging import setup_logging, get_logger

__all__ = [
    'setup_logging',
    'get_logger'
]
