# -*- coding: utf-8 -*-
"""
SynchronizationWaiter 用例：按时命中、超时时带回真实计数、页面关闭时中止。
"""

import re

import pytest

from framework.core.exceptions import MockTimeoutError, WaitAbortedError
from framework.mock.models import MockRule, ResponseSpec
from framework.mock.registry import RuleRegistry
from framework.mock.waiter import SynchronizationWaiter

URL = "http://mock.local/api/ping"


@pytest.fixture
def registry(stub_page, fixed_synthesizer) -> RuleRegistry:
    registry = RuleRegistry(stub_page, synthesizer=fixed_synthesizer)
    registry.register("ping", MockRule(url=re.compile(r"/api/ping"), response=ResponseSpec(body={})))
    return registry


@pytest.fixture
def waiter(registry, stub_page) -> SynchronizationWaiter:
    return SynchronizationWaiter(
        registry.counter,
        sleep=stub_page.wait_for_timeout,
        poll_interval_ms=100,
        clock=stub_page.clock,
        is_disposed=lambda: stub_page.closed,
    )


def test_returns_immediately_when_already_satisfied(waiter, stub_page):
    stub_page.send("GET", URL)

    assert waiter.wait_for_count("ping", 1, 1000) == 1
    assert stub_page.sleeps == []


def test_waits_until_expected_count(waiter, stub_page):
    stub_page.schedule_request(200, "GET", URL)
    stub_page.schedule_request(420, "GET", URL)

    assert waiter.wait_for_count("ping", 2, 1000) == 2
    assert stub_page.now_ms <= 500
    assert all(slice_ms <= 100 for slice_ms in stub_page.sleeps)


def test_timeout_reports_observed_count(waiter, stub_page):
    stub_page.schedule_request(100, "GET", URL)

    with pytest.raises(MockTimeoutError) as exc_info:
        waiter.wait_for_count("ping", 2, 1000)

    error = exc_info.value
    assert isinstance(error, TimeoutError)
    assert (error.rule_id, error.expected, error.observed) == ("ping", 2, 1)
    assert stub_page.now_ms == pytest.approx(1000)


def test_request_just_before_deadline_is_counted(waiter, stub_page):
    stub_page.schedule_request(950, "GET", URL)

    with pytest.raises(MockTimeoutError) as exc_info:
        waiter.wait_for_count("ping", 3, 1000)

    assert exc_info.value.observed == 1


def test_unknown_rule_times_out_with_zero(waiter):
    with pytest.raises(MockTimeoutError) as exc_info:
        waiter.wait_for_count("missing", 1, 300)

    assert exc_info.value.observed == 0


def test_page_close_aborts_wait(waiter, stub_page):
    stub_page.schedule_close(300)

    with pytest.raises(WaitAbortedError):
        waiter.wait_for_count("ping", 1, 5000)

    assert stub_page.now_ms == pytest.approx(300)


def test_disposed_before_wait_aborts_immediately(waiter, stub_page):
    stub_page.close()

    with pytest.raises(WaitAbortedError):
        waiter.wait_for_count("ping", 1, 5000)


def test_invalid_arguments(registry, stub_page, waiter):
    with pytest.raises(ValueError):
        waiter.wait_for_count("ping", 1, -1)
    with pytest.raises(ValueError):
        SynchronizationWaiter(registry.counter, sleep=stub_page.wait_for_timeout, poll_interval_ms=0)
