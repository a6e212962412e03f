#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
配置加载模块
"""

from guidestore.utils.config.config_loader import (
    expand_env_vars,
    get_config,
    get_project_root,
    load_all_yaml_files,
    load_config_directory,
    load_yaml_file,
    merge_configs,
)

__all__ = [
    'expand_env_vars',
    'get_config',
    'get_project_root',
    'load_all_yaml_files',
    'load_config_directory',
    'load_yaml_file',
    'merge_configs',
]
