"""
Tests for the framework-neutral transport helpers.
"""

import json

import pytest

from sudo_gate.application.results import ReplayInstruction
from sudo_gate.contrib.transport import (
    TransportSettings,
    build_request,
    build_runtime,
    collapse_pairs,
    page_from_path,
    parse_body,
    parse_query,
    render_replay_form,
    resolve_path,
    wants_html,
)


@pytest.fixture
def settings():
    return TransportSettings()


def test_settings_from_mapping():
    assert TransportSettings.from_mapping(None) == TransportSettings()

    custom = TransportSettings.from_mapping(
        {"api_prefix": "/api", "async_rpc_pages": ["rpc"], "graphql_route": ""}
    )
    assert custom.api_prefix == "/api"
    assert custom.async_rpc_pages == ("rpc",)
    assert custom.graphql_route == "/graphql"


@pytest.mark.parametrize(
    "path, page",
    [
        ("/wp-admin/plugins.php", "plugins.php"),
        ("/wp-admin/network/sites.php", "sites.php"),
        ("/sudo/challenge/", "challenge"),
        ("/", ""),
    ],
)
def test_page_from_path(path, page):
    assert page_from_path(path) == page


def test_collapse_pairs():
    pairs = [("a", "1"), ("a", "2"), ("ids[]", "3"), ("ids[]", "4")]
    assert collapse_pairs(pairs) == {"a": "2", "ids[]": ["3", "4"]}


def test_parse_query_keeps_blank_values():
    assert parse_query("action=&x=1") == {"action": "", "x": "1"}


def test_parse_body():
    assert parse_body("application/json", b'{"a": {"b": 1}}') == {"a": {"b": 1}}
    assert parse_body("application/merge-patch+json; charset=utf-8", b'{"a": 1}') == {"a": 1}
    assert parse_body("application/json", b"[1, 2]") == {}
    assert parse_body("application/json", b"{broken") == {}
    assert parse_body(
        "application/x-www-form-urlencoded", b"action=dodelete&users%5B%5D=3&users%5B%5D=4"
    ) == {"action": "dodelete", "users[]": ["3", "4"]}
    assert parse_body("text/xml", b"<methodCall/>") == {}
    assert parse_body(None, b"") == {}


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/wp-json/wp/v2/plugins/hello", ("/wp/v2/plugins/hello", True)),
        ("/wp-json", ("/", True)),
        ("/graphql", ("/graphql", True)),
        ("/graphql/", ("/graphql/", True)),
        ("/wp-jsonx/foo", ("/wp-jsonx/foo", False)),
        ("/wp-admin/plugins.php", ("/wp-admin/plugins.php", False)),
    ],
)
def test_resolve_path(settings, path, expected):
    assert resolve_path(settings, path) == expected


def test_build_runtime(settings):
    assert build_runtime(settings, "/wp-admin/plugins.php").is_interactive
    assert build_runtime(settings, "/wp-admin/admin-ajax.php").is_async_rpc
    assert build_runtime(settings, "/xmlrpc.php").is_legacy_rpc
    api = build_runtime(settings, "/wp-json/wp/v2/users/3")
    assert api.is_api and not api.is_interactive


def test_build_request(settings):
    request = build_request(
        settings,
        method="post",
        path="/wp-admin/network/themes.php",
        query={"action": "enable"},
        body={},
        headers={"Accept": "text/html"},
        cookies={"sudo_token": "t"},
        url="/wp-admin/network/themes.php?action=enable",
        raw_body=b"raw",
    )

    assert request.verb == "POST"
    assert request.page == "themes.php"
    assert request.is_network_admin
    assert request.raw_body == "raw"
    assert request.header("accept") == "text/html"


def test_build_request_strips_api_prefix(settings):
    request = build_request(
        settings,
        method="DELETE",
        path="/wp-json/wp/v2/plugins/hello",
        query={},
        body={},
        headers={},
        cookies={},
        url="/wp-json/wp/v2/plugins/hello",
    )
    assert request.path == "/wp/v2/plugins/hello"
    assert not request.is_network_admin


def test_render_replay_form_escapes_values():
    replay = ReplayInstruction(
        rule_id="options.critical",
        method="POST",
        url="/wp-admin/options.php?a=1&b=2",
        body={"blogname": '"><script>x</script>', "ids[]": ["1", "2"]},
    )

    page = render_replay_form(replay)

    assert 'action="/wp-admin/options.php?a=1&amp;b=2"' in page
    assert "<script>x</script>" not in page
    assert "&quot;&gt;&lt;script&gt;" in page
    assert page.count('name="ids[]"') == 2
    assert 'method="post"' in page


def test_wants_html():
    assert wants_html("text/html,application/xhtml+xml")
    assert not wants_html("application/json")
    assert not wants_html(None)
