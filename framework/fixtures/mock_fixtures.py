"""
mock_fixtures.py
----------------
网络 mock 相关的 pytest fixture。

network_mock 与 page 一一对应：
- 依赖 page fixture，保证在 context 关闭之前先 teardown，卸载全部路由；
- 每个用例一个全新的 NetworkMocker，规则和计数不会跨用例泄漏。
"""

from typing import Generator

import pytest
from playwright.sync_api import Page

from framework.core.config_loader import MockSettings, get_mock_settings
from framework.core.logger import get_logger
from utils.network_utils import NetworkMocker

logger = get_logger()


@pytest.fixture(scope="session")
def mock_settings() -> MockSettings:
    """session 级别的 mock 配置（来自 configs 中的 mock 节点）。"""
    settings = get_mock_settings()
    logger.info(f"[Mock] 当前 mock 配置: {settings}")
    return settings


@pytest.fixture(scope="function")
def network_mock(page: Page, mock_settings: MockSettings) -> Generator[NetworkMocker, None, None]:
    """
    function 级别的 NetworkMocker。

    用法：
        def test_xxx(page, network_mock):
            network_mock.mock_auth(success=False)
            ...
    """
    mocker = NetworkMocker(page, settings=mock_settings)
    yield mocker

    logger.info(f"[Mock] 用例结束，释放 mock: {mocker.summary()}")
    try:
        mocker.dispose()
    except Exception as e:  # noqa: BLE001
        logger.warning(f"[Mock] 释放 NetworkMocker 时发生异常: {e}")
