"""
Tests for sensitive-operation rules and surface matchers.
"""

import pytest

from sudo_gate.domain.rules import (
    ANY_METHOD,
    ApiMatcher,
    AsyncRpcMatcher,
    InteractiveMatcher,
    Rule,
)
from sudo_gate.domain.value_objects import InboundRequest, Surface


def test_rule_requires_id():
    with pytest.raises(ValueError):
        Rule(id="", label="x", category="c", async_rpc=AsyncRpcMatcher("x"))


def test_rule_requires_a_non_empty_matcher():
    with pytest.raises(ValueError):
        Rule(id="x", label="x", category="c")

    with pytest.raises(ValueError):
        Rule(
            id="x",
            label="x",
            category="c",
            interactive=InteractiveMatcher((), ()),
            api=ApiMatcher("", ()),
        )


def test_interactive_matcher_normalizes_inputs():
    matcher = InteractiveMatcher("plugins.php", "activate", "post")
    assert matcher.pages == ("plugins.php",)
    assert matcher.actions == ("activate",)
    assert matcher.method == "POST"


def test_interactive_matcher_matches_page_action_and_method():
    matcher = InteractiveMatcher("users.php", ("delete", "dodelete"), "POST")

    assert matcher.matches(
        InboundRequest(method="POST", page="users.php", body={"action": "dodelete"})
    )
    assert not matcher.matches(
        InboundRequest(method="GET", page="users.php", query={"action": "delete"})
    )
    assert not matcher.matches(
        InboundRequest(method="POST", page="plugins.php", body={"action": "delete"})
    )


def test_interactive_matcher_any_method():
    matcher = InteractiveMatcher("themes.php", "delete", ANY_METHOD)
    assert matcher.matches(InboundRequest(method="GET", page="themes.php", query={"action": "delete"}))
    assert matcher.matches(InboundRequest(method="POST", page="themes.php", body={"action": "delete"}))


def test_raising_predicate_counts_as_match():
    def broken(request):
        raise RuntimeError("boom")

    matcher = InteractiveMatcher("options.php", "update", "POST", broken)
    assert matcher.matches(
        InboundRequest(method="POST", page="options.php", body={"action": "update"})
    )


def test_predicate_narrows_match():
    matcher = InteractiveMatcher(
        "profile.php", "update", "POST", lambda r: bool(r.body.get("pass1"))
    )
    request = InboundRequest(method="POST", page="profile.php", body={"action": "update"})
    assert not matcher.matches(request)


def test_async_rpc_matcher_uses_action_param():
    matcher = AsyncRpcMatcher(("delete-plugin", "install-plugin"))
    assert matcher.matches(InboundRequest(body={"action": "delete-plugin"}))
    assert not matcher.matches(InboundRequest(body={"action": "heartbeat"}))


def test_api_matcher_route_and_methods():
    matcher = ApiMatcher(r"^/wp/v2/users/\d+$", ("put", "PATCH"))
    assert matcher.methods == ("PUT", "PATCH")
    assert matcher.matches(InboundRequest(method="PUT", path="/wp/v2/users/5"))
    assert not matcher.matches(InboundRequest(method="GET", path="/wp/v2/users/5"))
    assert not matcher.matches(InboundRequest(method="PUT", path="/wp/v2/users/me"))


def test_rule_surfaces_and_matcher_for():
    rule = Rule(
        id="plugin.delete",
        label="Delete plugin",
        category="plugins",
        interactive=InteractiveMatcher("plugins.php", "delete-selected", "POST"),
        async_rpc=AsyncRpcMatcher("delete-plugin"),
    )
    assert rule.surfaces == (Surface.INTERACTIVE, Surface.ASYNC_RPC)
    assert rule.matcher_for(Surface.API) is None
    assert not rule.matches(Surface.API, InboundRequest(method="DELETE"))
    assert not rule.matches(Surface.CLI, InboundRequest())
    assert rule.matches(Surface.ASYNC_RPC, InboundRequest(body={"action": "delete-plugin"}))
