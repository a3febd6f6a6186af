"""
Framework-neutral pieces shared by the FastAPI and Django adapters.

Both adapters turn their native request into an ``InboundRequest`` plus a
``RuntimeContext`` with the same rules, so a given URL lands on the same
surface whichever framework serves it.
"""

import html
import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import parse_qsl

from sudo_gate.application.results import ReplayInstruction
from sudo_gate.domain.value_objects import InboundRequest, RuntimeContext


@dataclass(frozen=True)
class TransportSettings:
    """
    How URLs map onto surfaces.

    ``api_prefix`` is stripped before API route patterns are matched, so
    ``/wp-json/wp/v2/plugins`` is matched as ``/wp/v2/plugins``.
    """

    api_prefix: str = "/wp-json"
    async_rpc_pages: tuple[str, ...] = ("admin-ajax.php",)
    legacy_rpc_pages: tuple[str, ...] = ("xmlrpc.php",)
    graphql_route: str = "/graphql"
    network_segment: str = "/network/"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "TransportSettings":
        if not data:
            return cls()
        values = {}
        for key in ("api_prefix", "graphql_route", "network_segment"):
            if data.get(key):
                values[key] = str(data[key])
        for key in ("async_rpc_pages", "legacy_rpc_pages"):
            if data.get(key):
                values[key] = tuple(data[key])
        return cls(**values)


def page_from_path(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def collapse_pairs(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """
    Fold decoded form pairs into a dict.

    ``name[]`` keys accumulate into a list; any other repeated key keeps
    its last value.
    """
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key.endswith("[]"):
            result.setdefault(key, []).append(value)
        else:
            result[key] = value
    return result


def parse_query(query_string: str) -> dict[str, Any]:
    return collapse_pairs(parse_qsl(query_string, keep_blank_values=True))


def parse_body(content_type: Optional[str], raw: bytes) -> dict[str, Any]:
    """Decode a JSON or urlencoded body. Other encodings parse to nothing."""
    if not raw:
        return {}
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    text = raw.decode("utf-8", errors="replace")

    if media_type == "application/json" or media_type.endswith("+json"):
        try:
            data = json.loads(text)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    if media_type == "application/x-www-form-urlencoded":
        return parse_query(text)

    return {}


def resolve_path(settings: TransportSettings, path: str) -> tuple[str, bool]:
    """Return the path API rules see and whether the request is an API call."""
    prefix = settings.api_prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        return path[len(prefix):] or "/", True
    if path.rstrip("/") == settings.graphql_route.rstrip("/"):
        return path, True
    return path, False


def build_runtime(settings: TransportSettings, path: str) -> RuntimeContext:
    page = page_from_path(path)
    _, is_api = resolve_path(settings, path)
    is_legacy = page in settings.legacy_rpc_pages
    is_async = page in settings.async_rpc_pages
    return RuntimeContext(
        is_legacy_rpc=is_legacy,
        is_async_rpc=is_async,
        is_api=is_api,
        is_interactive=not (is_legacy or is_async or is_api),
    )


def build_request(
    settings: TransportSettings,
    *,
    method: str,
    path: str,
    query: Mapping[str, Any],
    body: Mapping[str, Any],
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    url: str,
    raw_body: bytes = b"",
) -> InboundRequest:
    api_path, _ = resolve_path(settings, path)
    return InboundRequest(
        method=method,
        path=api_path,
        page=page_from_path(path),
        query=dict(query),
        body=dict(body),
        headers=dict(headers),
        cookies=dict(cookies),
        url=url,
        raw_body=raw_body.decode("utf-8", errors="replace"),
        is_network_admin=settings.network_segment in path,
    )


def render_replay_form(replay: ReplayInstruction) -> str:
    """Self-submitting form that re-issues a stashed non-GET request."""
    inputs = "\n".join(
        f'  <input type="hidden" name="{html.escape(name)}" value="{html.escape(value)}">'
        for name, value in replay.fields
    )
    return (
        "<!DOCTYPE html>\n<html><body>\n"
        f'<form id="sudo-replay" method="post" action="{html.escape(replay.url)}">\n'
        f"{inputs}\n"
        '  <noscript><button type="submit">Continue</button></noscript>\n'
        "</form>\n"
        '<script>document.getElementById("sudo-replay").submit();</script>\n'
        "</body></html>"
    )


def wants_html(accept: Optional[str]) -> bool:
    return "text/html" in (accept or "")
