"""
Built-in sensitive-operation rules.

The table covers plugin, theme, user, file-editor, option, core-update and
export operations of a PHP-style admin host. Network (multi-site) rules are
opt-in. Predicates narrow broad handlers, e.g. the profile form is only
sensitive when it carries a new password or a role.
"""

from dataclasses import dataclass
from typing import Iterable

from sudo_gate.application.config import DEFAULT_CRITICAL_OPTIONS, SETTINGS_PAGE
from sudo_gate.domain.rules import (
    ANY_METHOD,
    ApiMatcher,
    AsyncRpcMatcher,
    InteractiveMatcher,
    Rule,
)
from sudo_gate.domain.value_objects import InboundRequest


# ═══════════════════════════════════════════════════════════════
# PREDICATES
# ═══════════════════════════════════════════════════════════════


def _filled(value) -> bool:
    return value is not None and value != ""


def promote_requested(request: InboundRequest) -> bool:
    # The "Change role to..." dropdown sends changeit + new_role, not action=promote
    if request.param("action") == "promote":
        return True
    return (
        request.param("changeit") is not None
        and request.param("new_role") is not None
    )


def role_submitted(request: InboundRequest) -> bool:
    return _filled(request.body.get("role"))


def password_submitted(request: InboundRequest) -> bool:
    return _filled(request.body.get("pass1")) or _filled(request.body.get("pass2"))


def roles_param_present(request: InboundRequest) -> bool:
    return "roles" in request.params


def password_param_present(request: InboundRequest) -> bool:
    return "password" in request.params


def approval_submitted(request: InboundRequest) -> bool:
    return request.body.get("approve") is not None


def settings_page_submitted(request: InboundRequest) -> bool:
    return str(request.body.get("option_page", "")).strip() == SETTINGS_PAGE


def download_requested(request: InboundRequest) -> bool:
    return "download" in request.query


def in_network_admin(request: InboundRequest) -> bool:
    return request.is_network_admin


def super_admin_change(request: InboundRequest) -> bool:
    if not request.is_network_admin:
        return False
    return (
        request.body.get("super_admin") is not None
        or request.body.get("noconfirmation") is not None
    )


@dataclass(frozen=True)
class CriticalOptionsPresent:
    """
    True when the request writes any of the named options.

    With ``body_only`` the option must be a form field (interactive
    surface); otherwise any request parameter counts (API surface).
    """

    names: tuple[str, ...] = DEFAULT_CRITICAL_OPTIONS
    body_only: bool = True

    def __call__(self, request: InboundRequest) -> bool:
        source = request.body if self.body_only else request.params
        return any(name in source for name in self.names)


# ═══════════════════════════════════════════════════════════════
# RULE TABLE
# ═══════════════════════════════════════════════════════════════

PLUGIN_ROUTE = r"^/wp/v2/plugins/[^/]+$"


def core_rules(critical_options: Iterable[str] = DEFAULT_CRITICAL_OPTIONS) -> list[Rule]:
    critical = tuple(critical_options)
    return [
        # Plugins
        Rule(
            id="plugin.activate",
            label="Activate plugin",
            category="plugins",
            interactive=InteractiveMatcher(
                "plugins.php", ("activate", "activate-selected"), ANY_METHOD
            ),
            api=ApiMatcher(PLUGIN_ROUTE, ("PUT", "PATCH")),
        ),
        Rule(
            id="plugin.deactivate",
            label="Deactivate plugin",
            category="plugins",
            interactive=InteractiveMatcher(
                "plugins.php", ("deactivate", "deactivate-selected"), ANY_METHOD
            ),
            api=ApiMatcher(PLUGIN_ROUTE, ("PUT", "PATCH")),
        ),
        Rule(
            id="plugin.delete",
            label="Delete plugin",
            category="plugins",
            interactive=InteractiveMatcher("plugins.php", "delete-selected", "POST"),
            async_rpc=AsyncRpcMatcher("delete-plugin"),
            api=ApiMatcher(PLUGIN_ROUTE, "DELETE"),
        ),
        Rule(
            id="plugin.install",
            label="Install plugin",
            category="plugins",
            interactive=InteractiveMatcher("update.php", "install-plugin", ANY_METHOD),
            async_rpc=AsyncRpcMatcher("install-plugin"),
            api=ApiMatcher(r"^/wp/v2/plugins$", "POST"),
        ),
        Rule(
            id="plugin.update",
            label="Update plugin",
            category="plugins",
            interactive=InteractiveMatcher(
                ("update.php", "plugins.php"),
                ("upgrade-plugin", "update-selected"),
                ANY_METHOD,
            ),
            async_rpc=AsyncRpcMatcher("update-plugin"),
        ),
        # Themes
        Rule(
            id="theme.switch",
            label="Switch theme",
            category="themes",
            interactive=InteractiveMatcher("themes.php", "activate", "GET"),
        ),
        Rule(
            id="theme.delete",
            label="Delete theme",
            category="themes",
            interactive=InteractiveMatcher("themes.php", "delete", ANY_METHOD),
            async_rpc=AsyncRpcMatcher("delete-theme"),
        ),
        Rule(
            id="theme.install",
            label="Install theme",
            category="themes",
            interactive=InteractiveMatcher("update.php", "install-theme", ANY_METHOD),
            async_rpc=AsyncRpcMatcher("install-theme"),
        ),
        Rule(
            id="theme.update",
            label="Update theme",
            category="themes",
            interactive=InteractiveMatcher(
                ("update.php", "themes.php"), "upgrade-theme", ANY_METHOD
            ),
            async_rpc=AsyncRpcMatcher("update-theme"),
        ),
        # Users
        Rule(
            id="user.delete",
            label="Delete user",
            category="users",
            interactive=InteractiveMatcher("users.php", ("delete", "dodelete"), "POST"),
            api=ApiMatcher(r"^/wp/v2/users/\d+$", "DELETE"),
        ),
        Rule(
            id="user.promote",
            label="Change user role",
            category="users",
            interactive=InteractiveMatcher(
                "users.php", ("promote", "-1"), ANY_METHOD, promote_requested
            ),
            api=ApiMatcher(
                r"^/wp/v2/users/\d+$", ("PUT", "PATCH"), roles_param_present
            ),
        ),
        Rule(
            id="user.promote_profile",
            label="Change user role",
            category="users",
            interactive=InteractiveMatcher(
                "user-edit.php", "update", "POST", role_submitted
            ),
        ),
        Rule(
            id="user.change_password",
            label="Change password",
            category="users",
            interactive=InteractiveMatcher(
                ("profile.php", "user-edit.php"), "update", "POST", password_submitted
            ),
            api=ApiMatcher(
                r"^/wp/v2/users/(?:\d+|me)$", ("PUT", "PATCH"), password_param_present
            ),
        ),
        Rule(
            id="user.create",
            label="Create new user",
            category="users",
            interactive=InteractiveMatcher(
                "user-new.php", ("createuser", "adduser"), "POST"
            ),
            api=ApiMatcher(r"^/wp/v2/users$", "POST"),
        ),
        Rule(
            id="auth.app_password",
            label="Create application password",
            category="users",
            interactive=InteractiveMatcher(
                "authorize-application.php",
                "authorize_application_password",
                "POST",
                approval_submitted,
            ),
            api=ApiMatcher(
                r"^/wp/v2/users/(?:\d+|me)/application-passwords$", "POST"
            ),
        ),
        # File editors
        Rule(
            id="editor.plugin",
            label="Edit plugin file",
            category="editors",
            interactive=InteractiveMatcher("plugin-editor.php", "update", "POST"),
            async_rpc=AsyncRpcMatcher("edit-theme-plugin-file"),
        ),
        Rule(
            id="editor.theme",
            label="Edit theme file",
            category="editors",
            interactive=InteractiveMatcher("theme-editor.php", "update", "POST"),
            async_rpc=AsyncRpcMatcher("edit-theme-plugin-file"),
        ),
        # Options
        Rule(
            id="options.critical",
            label="Change critical site setting",
            category="options",
            interactive=InteractiveMatcher(
                ("options.php", "options-general.php"),
                "update",
                "POST",
                CriticalOptionsPresent(critical, body_only=True),
            ),
            api=ApiMatcher(
                r"^/wp/v2/settings$",
                ("PUT", "PATCH", "POST"),
                CriticalOptionsPresent(critical, body_only=False),
            ),
        ),
        Rule(
            id="options.sudo_gate",
            label="Change sudo gate settings",
            category="options",
            interactive=InteractiveMatcher(
                "options.php", "update", "POST", settings_page_submitted
            ),
        ),
        # Core updates
        Rule(
            id="core.update",
            label="Update core",
            category="updates",
            interactive=InteractiveMatcher(
                "update-core.php", ("do-core-upgrade", "do-core-reinstall"), "POST"
            ),
        ),
        # Tools
        Rule(
            id="tools.export",
            label="Export site data",
            category="tools",
            interactive=InteractiveMatcher("export.php", "", "GET", download_requested),
        ),
    ]


def network_rules() -> list[Rule]:
    """Rules that only exist in the multi-site network admin."""
    return [
        Rule(
            id="network.theme_enable",
            label="Network enable theme",
            category="themes",
            interactive=InteractiveMatcher(
                "themes.php", ("enable", "enable-selected"), ANY_METHOD, in_network_admin
            ),
        ),
        Rule(
            id="network.theme_disable",
            label="Network disable theme",
            category="themes",
            interactive=InteractiveMatcher(
                "themes.php",
                ("disable", "disable-selected"),
                ANY_METHOD,
                in_network_admin,
            ),
        ),
        Rule(
            id="network.site_delete",
            label="Delete site",
            category="sites",
            interactive=InteractiveMatcher("sites.php", "deleteblog", "GET"),
        ),
        Rule(
            id="network.site_deactivate",
            label="Deactivate site",
            category="sites",
            interactive=InteractiveMatcher("sites.php", "deactivateblog", "GET"),
        ),
        Rule(
            id="network.site_spam",
            label="Mark site as spam",
            category="sites",
            interactive=InteractiveMatcher("sites.php", "spamblog", "GET"),
        ),
        Rule(
            id="network.site_archive",
            label="Archive site",
            category="sites",
            interactive=InteractiveMatcher("sites.php", "archiveblog", "GET"),
        ),
        Rule(
            id="network.super_admin",
            label="Grant or revoke super admin",
            category="users",
            interactive=InteractiveMatcher(
                "user-edit.php", "update", "POST", super_admin_change
            ),
        ),
        Rule(
            id="network.settings",
            label="Change network settings",
            category="options",
            interactive=InteractiveMatcher("settings.php", "", "POST", in_network_admin),
        ),
        # Network settings forms post to edit.php?action=<slug>
        Rule(
            id="network.sudo_gate",
            label="Change sudo gate settings",
            category="options",
            interactive=InteractiveMatcher("edit.php", "sudo_gate_settings", "POST"),
        ),
    ]


def default_rules(
    critical_options: Iterable[str] = DEFAULT_CRITICAL_OPTIONS,
    include_network: bool = False,
) -> list[Rule]:
    rules = core_rules(critical_options)
    if include_network:
        rules.extend(network_rules())
    return rules
