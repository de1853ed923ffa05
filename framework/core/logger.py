# -*- coding: utf-8 -*-
"""
logger.py
---------
统一日志封装模块。

设计要点：
1. 使用 loguru，控制台 + 文件（按天切割）双输出；
2. 日志目录、级别从配置文件 report 节点读取；
3. 对外只暴露 get_logger()，各模块在顶部 logger = get_logger() 即可。
"""

import os
from functools import lru_cache

from loguru import logger

from framework.core.config_loader import get_config


@lru_cache(maxsize=1)
def get_logger():
    """
    获取全局日志记录器（loguru.logger），只初始化一次，避免重复添加 handler。
    """
    report_config = get_config().get("report", {})
    log_dir = report_config.get("log_dir", "reports/logs")
    level = report_config.get("log_level", "INFO")

    os.makedirs(log_dir, exist_ok=True)

    logger.remove()

    # 控制台：每次输出时再取 sys.stdout，兼容 pytest 的输出捕获
    logger.add(sink=lambda msg: print(msg, end=""), level=level, enqueue=True)

    logger.add(
        os.path.join(log_dir, "network_mock_{time:YYYYMMDD}.log"),
        rotation="00:00",
        retention="10 days",
        encoding="utf-8",
        level=level,
        enqueue=True,
    )

    return logger
