#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
日志模块
"""

from guidestore.utils.logging.colored_logger import (
    Colors,
    ColoredFormatter,
    setup_colored_logging,
    setup_logging,
)

__all__ = [
    'Colors',
    'ColoredFormatter',
    'setup_colored_logging',
    'setup_logging',
]
