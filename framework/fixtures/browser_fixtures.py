"""
browser_fixtures.py
-------------------
与 Playwright 浏览器相关的 pytest fixture。

设计要点：
1. session 级别的 Playwright 实例，避免重复启动底层服务；
2. 每个用例 function 级别创建 browser/context/page，mock 路由随 context 一起销毁；
3. browser 类型、headless 等从配置中读取；
4. 当前环境没有安装浏览器内核时，依赖浏览器的用例直接 skip，
   不影响不依赖浏览器的单元测试。
"""
import os
import time
from typing import Generator

import pytest
from playwright.sync_api import Browser, BrowserContext, Error as PlaywrightError, Page, sync_playwright

from framework.core.config_loader import get_config
from framework.core.logger import get_logger

logger = get_logger()

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")


@pytest.fixture(scope="session")
def config() -> dict:
    """
    session 级别的配置 fixture，整个测试进程只读取一次配置文件。
    """
    cfg = get_config()
    logger.info(f"[配置] 当前环境: {cfg.get('env')}")
    return cfg


@pytest.fixture(scope="session")
def playwright_instance():
    """
    session 级别的 Playwright 实例。
    """
    logger.info("[Playwright] 启动 Playwright 服务")
    with sync_playwright() as playwright:
        yield playwright
    logger.info("[Playwright] 关闭 Playwright 服务")


@pytest.fixture(scope="function")
def browser(playwright_instance, config) -> Generator[Browser, None, None]:
    """
    function 级别的 Browser fixture，每个用例独立一个 Browser 实例。

    :param playwright_instance: session 级别的 Playwright 实例
    :param config: 配置字典
    """
    browser_config = config.get("browser", {})
    browser_type = browser_config.get("type", "chromium")
    headless = browser_config.get("headless", True)
    slow_mo = browser_config.get("slow_mo", 0)

    if browser_type not in SUPPORTED_BROWSERS:
        raise ValueError(f"不支持的浏览器类型: {browser_type}")

    logger.info(
        f"[Browser] 启动浏览器: type={browser_type}, headless={headless}, slow_mo={slow_mo}"
    )

    try:
        browser = getattr(playwright_instance, browser_type).launch(
            headless=headless, slow_mo=slow_mo
        )
    except PlaywrightError as e:
        # 典型原因：没有执行 playwright install
        pytest.skip(f"浏览器无法启动，跳过浏览器用例: {e}")

    yield browser

    logger.info("[Browser] 关闭浏览器实例")
    browser.close()


@pytest.fixture(scope="function")
def page(browser: Browser, config: dict) -> Generator[Page, None, None]:
    """
    function 级别的 Page fixture。

    1. 每个用例新建独立的 BrowserContext 和 Page；
    2. 为每个用例启动 tracing，失败时由 conftest 中的 hook 导出 trace；
    3. UI_RECORD_HAR=true 时记录 HAR，方便对照 mock 前后的真实请求。
    """
    base_url = config.get("app", {}).get("base_url", "")
    logger.info(f"[Context] 创建浏览器上下文, base_url={base_url}")

    context_args: dict = {"base_url": base_url}

    if os.getenv("UI_RECORD_HAR", "false").lower() == "true":
        har_dir = config.get("report", {}).get("har_dir", "reports/har")
        os.makedirs(har_dir, exist_ok=True)
        context_args["record_har_path"] = os.path.join(har_dir, f"har_{int(time.time() * 1000)}.har")
        context_args["record_har_mode"] = "minimal"
        logger.info(f"[Context] 启用 HAR 记录, 文件: {context_args['record_har_path']}")

    context: BrowserContext = browser.new_context(**context_args)
    context.tracing.start(screenshots=True, snapshots=True, sources=True)

    page: Page = context.new_page()

    default_timeout = config.get("timeout", {}).get("medium", 5000)
    context.set_default_timeout(default_timeout)
    page.set_default_timeout(default_timeout)

    yield page

    logger.info("[Context] 关闭浏览器上下文")
    try:
        context.tracing.stop()
    except Exception as e:  # noqa: BLE001
        logger.warning(f"[Tracing] 停止 tracing 时发生异常（可能已提前停止）: {e}")

    context.close()
