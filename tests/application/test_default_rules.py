"""
Tests for the built-in rule table.
"""

import pytest

from sudo_gate.application.default_rules import CriticalOptionsPresent, default_rules
from sudo_gate.application.registry import ActionRegistry
from sudo_gate.domain.value_objects import InboundRequest, Surface


@pytest.fixture
def full_registry():
    return ActionRegistry(default_rules(include_network=True))


def _admin(page, method="GET", query=None, body=None, network=False):
    return InboundRequest(
        method=method,
        page=page,
        query=query or {},
        body=body or {},
        is_network_admin=network,
    )


@pytest.mark.parametrize(
    "request_, rule_id",
    [
        (_admin("plugins.php", query={"action": "activate", "plugin": "a/a.php"}), "plugin.activate"),
        (_admin("plugins.php", "POST", body={"action": "-1", "action2": "deactivate-selected"}), "plugin.deactivate"),
        (_admin("plugins.php", "POST", body={"action": "delete-selected"}), "plugin.delete"),
        (_admin("themes.php", query={"action": "activate"}), "theme.switch"),
        (_admin("users.php", "POST", body={"action": "dodelete"}), "user.delete"),
        (_admin("users.php", query={"action": "-1", "changeit": "Change", "new_role": "editor"}), "user.promote"),
        (_admin("user-edit.php", "POST", body={"action": "update", "role": "administrator"}), "user.promote_profile"),
        (_admin("profile.php", "POST", body={"action": "update", "pass1": "new"}), "user.change_password"),
        (_admin("options.php", "POST", body={"action": "update", "admin_email": "x@y"}), "options.critical"),
        (_admin("options.php", "POST", body={"action": "update", "option_page": "sudo-gate-settings"}), "options.sudo_gate"),
        (_admin("export.php", query={"download": "true"}), "tools.export"),
        (_admin("sites.php", query={"action": "deleteblog"}), "network.site_delete"),
        (_admin("themes.php", query={"action": "enable"}, network=True), "network.theme_enable"),
    ],
)
def test_interactive_rules(full_registry, request_, rule_id):
    rule = full_registry.match(Surface.INTERACTIVE, request_)
    assert rule is not None
    assert rule.id == rule_id


@pytest.mark.parametrize(
    "request_",
    [
        _admin("plugins.php"),
        _admin("users.php", query={"action": "-1"}),
        _admin("profile.php", "POST", body={"action": "update", "first_name": "A"}),
        _admin("options.php", "POST", body={"action": "update", "blogname": "x"}),
        _admin("export.php"),
        _admin("themes.php", query={"action": "enable"}, network=False),
        _admin("users.php", "GET", query={"action": "delete"}),
    ],
)
def test_benign_requests_do_not_match(full_registry, request_):
    assert full_registry.match(Surface.INTERACTIVE, request_) is None


@pytest.mark.parametrize(
    "method, path, params, rule_id",
    [
        ("DELETE", "/wp/v2/plugins/akismet", {}, "plugin.delete"),
        ("POST", "/wp/v2/plugins", {"slug": "x"}, "plugin.install"),
        ("POST", "/wp/v2/users", {}, "user.create"),
        ("PUT", "/wp/v2/users/3", {"roles": ["administrator"]}, "user.promote"),
        ("PATCH", "/wp/v2/users/me", {"password": "x"}, "user.change_password"),
        ("POST", "/wp/v2/settings", {"siteurl": "https://evil"}, "options.critical"),
        ("POST", "/wp/v2/users/me/application-passwords", {}, "auth.app_password"),
    ],
)
def test_api_rules(full_registry, method, path, params, rule_id):
    request = InboundRequest(method=method, path=path, body=params)
    assert full_registry.match(Surface.API, request).id == rule_id


def test_api_reads_are_not_gated(full_registry):
    request = InboundRequest(method="GET", path="/wp/v2/users/3")
    assert full_registry.match(Surface.API, request) is None
    request = InboundRequest(method="POST", path="/wp/v2/settings", body={"title": "x"})
    assert full_registry.match(Surface.API, request) is None


def test_async_rpc_rules(full_registry):
    request = InboundRequest(method="POST", body={"action": "delete-plugin"})
    assert full_registry.match(Surface.ASYNC_RPC, request).id == "plugin.delete"
    assert full_registry.match(Surface.ASYNC_RPC, InboundRequest(body={"action": "heartbeat"})) is None


def test_critical_options_are_configurable():
    predicate = CriticalOptionsPresent(("blogname",), body_only=True)
    assert predicate(InboundRequest(body={"blogname": "x"}))
    assert not predicate(InboundRequest(query={"blogname": "x"}))
    assert CriticalOptionsPresent(("blogname",), body_only=False)(
        InboundRequest(query={"blogname": "x"})
    )
