"""
Tests for the action registry.
"""

import pytest

from sudo_gate.application.default_rules import core_rules, default_rules, network_rules
from sudo_gate.application.registry import ActionRegistry
from sudo_gate.domain.errors import DuplicateRuleError, RegistryFrozenError
from sudo_gate.domain.rules import AsyncRpcMatcher, Rule
from sudo_gate.domain.value_objects import InboundRequest, Surface


def _rule(rule_id: str, action: str = "x", category: str = "custom") -> Rule:
    return Rule(id=rule_id, label=rule_id, category=category, async_rpc=AsyncRpcMatcher(action))


def test_rules_are_built_once_and_frozen():
    registry = ActionRegistry([_rule("a")])
    first = registry.rules()
    assert registry.frozen
    assert registry.rules() is first

    with pytest.raises(RegistryFrozenError):
        registry.register_rule(_rule("b"))
    with pytest.raises(RegistryFrozenError):
        registry.register_extension(lambda rules: rules)


def test_reset_allows_more_registrations():
    registry = ActionRegistry([_rule("a")])
    registry.rules()
    registry.reset()
    registry.register_rule(_rule("b", "y"))
    assert [r.id for r in registry.rules()] == ["a", "b"]


def test_duplicate_ids_are_rejected():
    registry = ActionRegistry([_rule("a")])
    registry.register_rule(_rule("a", "other"))
    with pytest.raises(DuplicateRuleError):
        registry.rules()


def test_extensions_can_drop_and_add_rules():
    registry = ActionRegistry([_rule("a"), _rule("b", "y")])
    registry.register_extension(lambda rules: [r for r in rules if r.id != "a"])
    registry.register_extension(lambda rules: rules + [_rule("c", "z")])
    assert [r.id for r in registry.rules()] == ["b", "c"]


def test_extension_producing_non_rule_is_rejected():
    registry = ActionRegistry([_rule("a")])
    registry.register_extension(lambda rules: rules + ["not a rule"])
    with pytest.raises(TypeError):
        registry.rules()


def test_first_matching_rule_wins():
    registry = ActionRegistry([_rule("first", "same"), _rule("second", "same")])
    match = registry.match(Surface.ASYNC_RPC, InboundRequest(body={"action": "same"}))
    assert match.id == "first"


def test_views():
    registry = ActionRegistry(default_rules())
    assert registry.find("plugin.delete").category == "plugins"
    assert registry.find("missing") is None
    assert {r.id for r in registry.rules_by_category("themes")} == {
        "theme.switch",
        "theme.delete",
        "theme.install",
        "theme.update",
    }
    assert registry.categories() == [
        "plugins",
        "themes",
        "users",
        "editors",
        "options",
        "updates",
        "tools",
    ]


def test_default_rule_ids_are_unique():
    ids = [r.id for r in default_rules(include_network=True)]
    assert len(ids) == len(set(ids))
    assert len(core_rules()) == 21
    assert len(network_rules()) == 9
