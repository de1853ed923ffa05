"""
全局 Pytest 配置与钩子：
1. 注册 fixtures 模块；
2. 失败用例自动截图 + 导出 trace；
3. 失败用例保存 mock 规则与命中次数快照，排查“mock 没命中”类问题；
4. 以上附件挂到 pytest-html 报告中。
"""

import json
from pathlib import Path
from typing import Any

import pytest
import pytest_html
from playwright.sync_api import Page

from framework.core.logger import get_logger
from utils.path_utils import get_mock_report_path, get_screenshot_path, get_trace_path

logger = get_logger()

pytest_plugins = [
    "framework.fixtures.browser_fixtures",  # config / playwright_instance / browser / page
    "framework.fixtures.mock_fixtures",  # mock_settings / network_mock
]

REPORT_ROOT = Path("reports")


def _relative_to_report(path: str) -> str:
    """报告在 reports 目录下，附件路径转成相对路径，HTML 里才能直接引用。"""
    rel = Path(path)
    try:
        rel = rel.relative_to(REPORT_ROOT)
    except ValueError:
        pass
    return rel.as_posix()


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[Any]) -> None:
    """
    用例执行阶段（call）失败时：
    - 保存 network_mock 的规则 / 命中次数快照；
    - 对真实浏览器页面截图并导出 trace；
    - 把附件作为 extras 挂到 pytest-html 报告。
    """
    outcome = yield
    report = outcome.get_result()

    if report.when != "call":
        return

    extras = getattr(report, "extras", [])

    if report.failed:
        logger.error(f"[失败] 用例失败，收集附件: {report.nodeid}")
        funcargs = getattr(item, "funcargs", {})

        # ===== 1. mock 命中快照 =====
        mocker = funcargs.get("network_mock")
        if mocker is not None:
            summary = mocker.summary()
            mock_report_path = get_mock_report_path(item.name)
            try:
                with open(mock_report_path, "w", encoding="utf-8") as f:
                    json.dump(summary, f, ensure_ascii=False, indent=2)
                logger.error(f"[Mock] 已保存 mock 命中快照: {mock_report_path}")
                extras.append(pytest_html.extras.json(summary, name="mock 命中快照"))
            except Exception as e:  # noqa: BLE001
                logger.error(f"[Mock] 保存 mock 命中快照时发生异常: {e}")

        # ===== 2. 截图 + trace（只针对真实浏览器页面） =====
        page = funcargs.get("page")
        if isinstance(page, Page):
            screenshot_path = get_screenshot_path(item.name)
            try:
                page.screenshot(path=screenshot_path, full_page=True)
                logger.error(f"[截图] 已保存失败截图: {screenshot_path}")
                extras.append(
                    pytest_html.extras.image(
                        _relative_to_report(screenshot_path), mime_type="image/png"
                    )
                )
            except Exception as e:  # noqa: BLE001
                logger.error(f"[截图失败] 保存截图时发生异常: {e}")

            trace_path = get_trace_path(item.name)
            try:
                page.context.tracing.stop(path=trace_path)
                logger.error(f"[Tracing] 已保存失败 trace 文件: {trace_path}")
                extras.append(
                    pytest_html.extras.html(
                        f'<a href="{_relative_to_report(trace_path)}" target="_blank">'
                        f"下载 Playwright trace</a>"
                    )
                )
            except Exception as e:  # noqa: BLE001
                logger.error(f"[Tracing] 保存 trace 时发生异常: {e}")

    report.extras = extras
