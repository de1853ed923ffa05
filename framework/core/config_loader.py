# -*- coding: utf-8 -*-
"""
config_loader.py
----------------
统一加载项目配置，提供全局可用的配置字典，以及 mock 引擎使用的强类型配置。

设计要点：
1. 配置文件统一放在 configs 目录下（config.yaml + config_<env>.yaml）；
2. 环境由 env 字段或环境变量 UI_AUTOMATION_ENV 决定；
3. get_config() 懒加载 + 缓存，全局只读一次文件；
4. get_mock_settings() 把 mock 节点转换成 MockSettings，并在这里做一次校验，
   避免非法配置在拦截回调里才暴露出来。
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional

import yaml

# 项目根目录（当前文件 -> framework/core -> 项目根）
PROJECT_ROOT = os.path.dirname(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)
CONFIG_DIR = os.path.join(PROJECT_ROOT, "configs")


def _load_yaml_file(file_path: str) -> Dict[str, Any]:
    """
    读取 YAML 文件并返回字典。

    :param file_path: YAML 配置文件的绝对路径
    :return: 解析后的字典，空文件返回 {}
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"配置文件不存在: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"配置文件顶层必须是字典: {file_path}")
    return data


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    递归合并两个字典，override 中的值覆盖 base 中的同名键，返回新字典。
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    获取合并后的全局配置（单例）。

    1. 加载 configs/config.yaml 作为默认配置；
    2. 环境变量 UI_AUTOMATION_ENV 覆盖 env 字段（方便 CI 外部控制）；
    3. env 不是 default 且存在 config_<env>.yaml 时，递归合并进来。
    """
    config = _load_yaml_file(os.path.join(CONFIG_DIR, "config.yaml"))

    env_from_env = os.getenv("UI_AUTOMATION_ENV")
    if env_from_env:
        config["env"] = env_from_env

    env_name = config.get("env")
    if env_name and env_name != "default":
        env_config_path = os.path.join(CONFIG_DIR, f"config_{env_name}.yaml")
        if os.path.exists(env_config_path):
            config = _merge_dicts(config, _load_yaml_file(env_config_path))

    return config


@dataclass(frozen=True)
class MockSettings:
    """
    mock 引擎配置。

    属性：
        poll_interval_ms: wait_for_count 的轮询间隔（毫秒）
        wait_timeout_ms: wait_for_count 默认超时（毫秒）
        slow_delay_ms: mock_slow 默认延迟（毫秒）
        replace_existing: 重复注册同一 id 时是否静默替换
        log_requests: 是否在创建 NetworkMocker 时自动开启请求日志
    """

    poll_interval_ms: int = 100
    wait_timeout_ms: int = 10000
    slow_delay_ms: int = 5000
    replace_existing: bool = True
    log_requests: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval_ms <= 0:
            raise ValueError(f"mock.poll_interval_ms 必须大于 0，当前值: {self.poll_interval_ms}")
        if self.wait_timeout_ms < 0:
            raise ValueError(f"mock.wait_timeout_ms 不能为负数，当前值: {self.wait_timeout_ms}")
        if self.slow_delay_ms < 0:
            raise ValueError(f"mock.slow_delay_ms 不能为负数，当前值: {self.slow_delay_ms}")

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "MockSettings":
        """
        从配置字典的 mock 节点构建 MockSettings，缺失的字段使用默认值。

        :param config: 完整配置字典，None 表示使用 get_config()
        """
        if config is None:
            config = get_config()
        mock_cfg = config.get("mock") or {}

        defaults = cls()
        return cls(
            poll_interval_ms=int(mock_cfg.get("poll_interval_ms", defaults.poll_interval_ms)),
            wait_timeout_ms=int(mock_cfg.get("wait_timeout_ms", defaults.wait_timeout_ms)),
            slow_delay_ms=int(mock_cfg.get("slow_delay_ms", defaults.slow_delay_ms)),
            replace_existing=bool(mock_cfg.get("replace_existing", defaults.replace_existing)),
            log_requests=bool(mock_cfg.get("log_requests", defaults.log_requests)),
        )


@lru_cache(maxsize=1)
def get_mock_settings() -> MockSettings:
    """对外暴露的 mock 配置获取函数（基于 get_config() 缓存结果）。"""
    return MockSettings.from_config(get_config())
