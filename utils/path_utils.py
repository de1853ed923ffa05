# -*- coding: utf-8 -*-
"""
path_utils.py
-------------
失败用例附件（截图 / trace / mock 命中快照）的输出路径。
"""

import os
from datetime import datetime

from framework.core.config_loader import get_config


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _artifact_path(dir_key: str, default_dir: str, test_name: str, suffix: str) -> str:
    """
    生成 <目录>/<用例名>_<时间戳><后缀>，目录取配置 report.<dir_key>。
    """
    report_cfg = get_config().get("report", {})
    target_dir = report_cfg.get(dir_key, default_dir)
    ensure_dir(target_dir)

    # 参数化用例名里带 [] 和 /，替换掉避免生成非法路径
    safe_name = test_name.replace("/", "_").replace("[", "_").replace("]", "")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return os.path.join(target_dir, f"{safe_name}_{timestamp}{suffix}")


def get_screenshot_path(test_name: str) -> str:
    return _artifact_path("screenshot_dir", "reports/screenshots", test_name, ".png")


def get_trace_path(test_name: str) -> str:
    return _artifact_path("trace_dir", "reports/traces", test_name, ".zip")


def get_mock_report_path(test_name: str) -> str:
    """mock 规则与命中次数快照（JSON）的保存路径。"""
    return _artifact_path("mock_report_dir", "reports/mocks", test_name, ".json")
