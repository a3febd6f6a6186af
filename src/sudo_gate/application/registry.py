"""
Action registry: the effective set of sensitive-operation rules.

Rules and extensions are registered during startup composition. The first
call to ``rules()`` builds the effective rule set, checks it and freezes
it; later registrations raise ``RegistryFrozenError`` until ``reset()``.
"""

import logging
from typing import Callable, Iterable, Optional

from sudo_gate.domain.errors import DuplicateRuleError, RegistryFrozenError
from sudo_gate.domain.rules import Rule
from sudo_gate.domain.value_objects import InboundRequest, Surface

logger = logging.getLogger(__name__)

# Receives the rules built so far, returns the rules to keep
RuleExtension = Callable[[list[Rule]], Iterable[Rule]]


class ActionRegistry:
    def __init__(self, base_rules: Optional[Iterable[Rule]] = None):
        self._base: list[Rule] = list(base_rules or [])
        self._registered: list[Rule] = []
        self._extensions: list[RuleExtension] = []
        self._cached: Optional[tuple[Rule, ...]] = None

    @property
    def frozen(self) -> bool:
        return self._cached is not None

    def register_rule(self, rule: Rule) -> None:
        if self.frozen:
            raise RegistryFrozenError()
        self._registered.append(rule)

    def register_extension(self, extension: RuleExtension) -> None:
        """
        Register a function that may add, drop or replace rules.

        Extensions run in registration order when the rule set is built.
        """
        if self.frozen:
            raise RegistryFrozenError()
        self._extensions.append(extension)

    def rules(self) -> tuple[Rule, ...]:
        """Effective rule set; built once, then cached."""
        if self._cached is None:
            self._cached = self._build()
        return self._cached

    def reset(self) -> None:
        """Drop the cached rule set so it is rebuilt on next use."""
        self._cached = None

    def _build(self) -> tuple[Rule, ...]:
        rules = self._base + self._registered
        for extension in self._extensions:
            rules = list(extension(list(rules)))

        seen: set[str] = set()
        for rule in rules:
            if not isinstance(rule, Rule):
                raise TypeError(f"Extension produced a non-rule: {rule!r}")
            if rule.id in seen:
                raise DuplicateRuleError(rule.id)
            seen.add(rule.id)

        logger.debug(f"Built rule set with {len(rules)} rules")
        return tuple(rules)

    # ── Views ───────────────────────────────────────────────────

    def find(self, rule_id: str) -> Optional[Rule]:
        for rule in self.rules():
            if rule.id == rule_id:
                return rule
        return None

    def rules_by_category(self, category: str) -> list[Rule]:
        return [rule for rule in self.rules() if rule.category == category]

    def categories(self) -> list[str]:
        """Distinct categories in first-seen order."""
        return list(dict.fromkeys(rule.category for rule in self.rules()))

    def match(self, surface: Surface, request: InboundRequest) -> Optional[Rule]:
        """First rule, in registration order, matching the request on a surface."""
        for rule in self.rules():
            if rule.matches(surface, request):
                return rule
        return None
