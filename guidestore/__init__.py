#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
guidestore - 安装指南目录的嵌入式文档存储
"""

__version__ = '1.0.0'
