#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
日志配置

- setup_colored_logging: 控制台彩色输出，可选同时写入文件（文件中不带颜色）
- setup_logging: 使用配置中 logging 段的 dictConfig 配置
"""

import os
import sys
import logging
import logging.config
from copy import deepcopy
from typing import Any, Dict, Optional, Union


class Colors:
    """ANSI颜色代码"""
    RESET = "\033[0m"
    BOLD = "\033[1m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BRIGHT_BLACK = "\033[90m"

    BG_RED = "\033[41m"


class ColoredFormatter(logging.Formatter):
    """按日志级别给整行着色"""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.BRIGHT_BLACK,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BG_RED + Colors.WHITE + Colors.BOLD,
    }

    def __init__(self, fmt: str = None, datefmt: str = None, use_colors: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.use_colors:
            return message

        # 调用方可以通过 extra={'color_override': ...} 指定颜色
        color = getattr(record, 'color_override', None) or self.LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{Colors.RESET}"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_colored_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    fmt: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt: str = '%Y-%m-%d %H:%M:%S',
    use_colors: Optional[bool] = None
) -> logging.Logger:
    """
    设置彩色日志

    Args:
        level: 日志级别，可以是 logging.INFO 或 'INFO'
        log_file: 日志文件路径，为 None 时不输出到文件
        fmt: 日志格式
        datefmt: 日期格式
        use_colors: 是否着色，默认仅在 stdout 是终端时着色

    Returns:
        根日志记录器
    """
    level = _resolve_level(level)
    if use_colors is None:
        use_colors = sys.stdout.isatty()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(fmt=fmt, datefmt=datefmt, use_colors=use_colors))
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        root_logger.addHandler(file_handler)

    return root_logger


def setup_logging(log_config: Optional[Dict[str, Any]], debug: bool = False) -> bool:
    """
    使用配置中的 logging 段（dictConfig 格式）配置日志

    没有 logging 段或配置无效时退回 setup_colored_logging。

    Args:
        log_config: dictConfig 字典
        debug: 调试模式，控制台处理器改为 DEBUG 级别

    Returns:
        是否使用了 dictConfig 配置
    """
    default_level = logging.DEBUG if debug else logging.INFO

    if not log_config:
        setup_colored_logging(level=default_level)
        return False

    log_config = deepcopy(log_config)
    handlers = log_config.get('handlers') or {}

    try:
        # 确保日志目录存在
        for handler in handlers.values():
            filename = handler.get('filename')
            if filename:
                os.makedirs(os.path.dirname(os.path.abspath(filename)), exist_ok=True)

        if debug and 'console' in handlers:
            handlers['console']['level'] = 'DEBUG'

        logging.config.dictConfig(log_config)
        return True
    except (OSError, ValueError, TypeError, AttributeError) as e:
        setup_colored_logging(level=default_level)
        logging.getLogger(__name__).error(f"日志配置失败，使用默认配置: {e}")
        return False
