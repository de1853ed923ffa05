# -*- coding: utf-8 -*-
"""
RuleRegistry 用例：注册 / 覆盖 / 移除 / 清空，以及 URL 模式重叠时的优先级。
"""

import re

import pytest

from framework.core.exceptions import RegistrationConflictError, UnknownRuleError
from framework.mock.models import MockRule, ResponseSpec
from framework.mock.registry import RuleRegistry

API_URL = "http://mock.local/api/items"


def _rule(body, url=re.compile(r"/api/items"), **kwargs) -> MockRule:
    return MockRule(url=url, response=ResponseSpec(body=body), **kwargs)


@pytest.fixture
def registry(stub_page, fixed_synthesizer) -> RuleRegistry:
    return RuleRegistry(stub_page, synthesizer=fixed_synthesizer)


def test_register_installs_hook_and_fulfills(registry, stub_page):
    rule = registry.register("items", _rule({"v": 1}))

    response = stub_page.send("GET", API_URL)

    assert rule.rule_id == "items"
    assert response.mocked and response.json() == {"v": 1}
    assert registry.counter.get("items") == 1
    assert registry.get("items") is rule


def test_reregister_replaces_rule_and_resets_count(registry, stub_page):
    registry.register("items", _rule({"v": 1}))
    stub_page.send("GET", API_URL)

    registry.register("items", _rule({"v": 2}))

    assert registry.counter.get("items") == 0
    assert len(stub_page.routes) == 1
    assert stub_page.send("GET", API_URL).json() == {"v": 2}
    assert registry.counter.get("items") == 1


def test_reregister_with_replace_false_raises(registry):
    registry.register("items", _rule({"v": 1}))

    with pytest.raises(RegistrationConflictError):
        registry.register("items", _rule({"v": 2}), replace=False)


def test_strict_registry_rejects_duplicates_by_default(stub_page):
    registry = RuleRegistry(stub_page, replace_existing=False)
    registry.register("items", _rule({"v": 1}))

    with pytest.raises(RegistrationConflictError):
        registry.register("items", _rule({"v": 2}))
    # 显式 replace=True 仍然可以覆盖
    registry.register("items", _rule({"v": 3}), replace=True)


def test_remove_unknown_id_is_noop(registry):
    assert registry.remove("missing") is False


def test_remove_only_uninstalls_own_hook(registry, stub_page):
    pattern = re.compile(r"/api/items")
    registry.register("a", _rule({"from": "a"}, url=pattern, method="POST"))
    registry.register("b", _rule({"from": "b"}, url=pattern, method="GET"))

    assert registry.remove("b") is True

    assert "b" not in registry
    assert registry.counter.get("b") == 0
    assert stub_page.send("POST", API_URL).json() == {"from": "a"}
    assert stub_page.send("GET", API_URL).mocked is False


def test_clear_restores_pass_through(registry, stub_page):
    registry.register("a", _rule({"from": "a"}))
    registry.register("b", _rule({"from": "b"}, url=re.compile(r"/api/other")))
    stub_page.send("GET", API_URL)

    registry.clear()

    assert len(registry) == 0
    assert stub_page.routes == []
    assert stub_page.send("GET", API_URL).mocked is False
    assert registry.counter.get("a") == 0


def test_get_unknown_rule_raises(registry):
    with pytest.raises(UnknownRuleError):
        registry.get("missing")


def test_overlapping_patterns_most_recent_registration_wins(registry, stub_page):
    registry.register("broad", _rule({"from": "broad"}, url=re.compile(r"/api/")))
    registry.register("narrow", _rule({"from": "narrow"}))

    assert stub_page.send("GET", API_URL).json() == {"from": "narrow"}

    registry.remove("narrow")
    assert stub_page.send("GET", API_URL).json() == {"from": "broad"}


def test_declined_request_falls_back_to_older_rule(registry, stub_page):
    registry.register("broad", _rule({"from": "broad"}, url=re.compile(r"/api/")))
    registry.register("narrow", _rule({"from": "narrow"}, times=1))

    assert stub_page.send("GET", API_URL).json() == {"from": "narrow"}
    # narrow 预算耗尽后 fallback 到更早注册的 broad
    assert stub_page.send("GET", API_URL).json() == {"from": "broad"}
    assert registry.counter.snapshot() == {"broad": 1, "narrow": 1}


def test_empty_rule_id_is_rejected(registry):
    with pytest.raises(ValueError):
        registry.register("", _rule({}))


def test_is_active_tracks_exact_rule_object(registry):
    first = registry.register("items", _rule({"v": 1}))
    second = registry.register("items", _rule({"v": 2}))

    assert registry.is_active(second)
    assert not registry.is_active(first)


def test_reregistering_same_object_starts_new_registration(registry):
    first = registry.register("items", _rule({"v": 1}))
    second = registry.register("items", first)

    assert second is not first
    assert second == first
    assert registry.is_active(second)
    assert not registry.is_active(first)
