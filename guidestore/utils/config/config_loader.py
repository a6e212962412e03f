#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
YAML 配置加载

config 目录的组织方式：
- main.yaml 的 imports 列表按顺序列出要合并的文件，main.yaml 自身最后合并
- 没有 main.yaml 时按文件名字母序合并目录里的所有 yaml
- 字符串中的 ${VAR} 用环境变量替换，未设置的变量保留原样
"""

import os
import re
import logging
from copy import deepcopy
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')
CONFIG_DIR_ENV = 'GUIDESTORE_CONFIG_DIR'


def get_project_root() -> str:
    """项目根目录（guidestore 包的上一级）"""
    # __file__ = guidestore/utils/config/config_loader.py
    return os.path.abspath(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
    )


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    深度合并配置字典，两边都是字典的键递归合并，其余直接覆盖

    Returns:
        新的字典，不修改入参
    """
    result = deepcopy(base_config)

    for key, value in override_config.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def expand_env_vars(value: Any) -> Any:
    """递归替换字符串、字典、列表中的 ${VAR_NAME}"""
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(lambda m: os.getenv(m.group(1), m.group(0)), value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def load_yaml_file(file_path: str) -> Dict[str, Any]:
    """
    加载单个 YAML 文件

    文件不存在或格式错误时记录日志并返回空字典。
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as file:
            content = yaml.safe_load(file) or {}
    except FileNotFoundError:
        logger.warning(f"配置文件不存在: {file_path}")
        return {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"加载配置文件时出错: {file_path}: {e}")
        return {}

    if not isinstance(content, dict):
        logger.warning(f"配置文件顶层不是映射，已忽略: {file_path}")
        return {}

    logger.debug(f"配置文件已加载: {file_path}")
    return expand_env_vars(content)


def load_all_yaml_files(config_dir: str) -> Dict[str, Any]:
    """按文件名字母序合并目录中的所有 yaml 文件"""
    merged_config: Dict[str, Any] = {}

    yaml_files = sorted(
        f for f in os.listdir(config_dir) if f.endswith('.yaml') or f.endswith('.yml')
    )
    for yaml_file in yaml_files:
        merged_config = merge_configs(merged_config, load_yaml_file(os.path.join(config_dir, yaml_file)))

    return merged_config


def load_config_directory(config_dir: str) -> Dict[str, Any]:
    """
    加载配置目录

    Args:
        config_dir: 配置目录路径

    Returns:
        合并后的配置，不含 imports 字段
    """
    main_config_path = os.path.join(config_dir, 'main.yaml')
    if not os.path.exists(main_config_path):
        logger.debug(f"{config_dir} 中没有 main.yaml，按字母顺序加载所有 yaml 文件")
        return load_all_yaml_files(config_dir)

    main_config = load_yaml_file(main_config_path)
    imports = main_config.pop('imports', None) or []

    final_config: Dict[str, Any] = {}
    for import_file in imports:
        import_path = os.path.join(config_dir, import_file)
        if os.path.exists(import_path):
            final_config = merge_configs(final_config, load_yaml_file(import_path))
        else:
            logger.warning(f"导入的配置文件不存在: {import_path}")

    return merge_configs(final_config, main_config)


def get_config(
    config_path: Optional[str] = None,
    default_config: Optional[Dict[str, Any]] = None,
    env_file: Optional[str] = None
) -> Dict[str, Any]:
    """
    加载配置

    查找顺序: config_path 参数 > 环境变量 GUIDESTORE_CONFIG_DIR > <项目根目录>/config。
    路径可以是目录，也可以是单个 yaml 文件。

    Args:
        config_path: 配置文件或目录
        default_config: 默认配置，被加载的内容覆盖
        env_file: .env 文件路径，默认 <项目根目录>/.env，不存在时跳过

    Returns:
        合并后的配置字典
    """
    env_path = env_file or os.path.join(get_project_root(), '.env')
    if os.path.exists(env_path):
        load_dotenv(env_path)

    config = deepcopy(default_config or {})
    path = config_path or os.getenv(CONFIG_DIR_ENV) or os.path.join(get_project_root(), 'config')

    if os.path.isdir(path):
        config = merge_configs(config, load_config_directory(path))
    elif os.path.isfile(path):
        config = merge_configs(config, load_yaml_file(path))
    else:
        logger.warning(f"未找到配置文件或目录，使用默认配置: {path}")

    return config
