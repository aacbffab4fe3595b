"""Rule-based transaction categorization.

Automation rules are stored outside this package (one row per rule with a
match type, a pattern, a priority and an active flag). This module decides
whether a single rule matches a description, and :class:`RuleEvaluator`
applies a whole rule set with first-match-wins semantics.

Match types:
  * contains / starts_with / ends_with / exact: case-insensitive text
    comparison. The pattern may list alternatives separated by ``|``
    (``"netflix|hulu"``); blank alternatives are ignored.
  * regex: the whole pattern is compiled case-insensitively. A pattern that
    does not compile never matches.

Rules are evaluated by ascending ``priority`` (lower first), ties broken by
rule name so the ordering is stable between runs.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .constants import UNCATEGORIZED
from .models import AutomationRule, Category, ParsedTransaction, RuleMatch, RuleType

logger = logging.getLogger(__name__)


def _alternatives(pattern: str) -> List[str]:
    return [p.strip().lower() for p in pattern.split("|") if p.strip()]


def _contains(description: str, pattern: str) -> bool:
    text = description.lower()
    return any(p in text for p in _alternatives(pattern))


def _starts_with(description: str, pattern: str) -> bool:
    text = description.lower()
    return any(text.startswith(p) for p in _alternatives(pattern))


def _ends_with(description: str, pattern: str) -> bool:
    text = description.lower()
    return any(text.endswith(p) for p in _alternatives(pattern))


def _exact(description: str, pattern: str) -> bool:
    text = description.lower()
    return any(text == p for p in _alternatives(pattern))


def compile_rule_pattern(pattern: str) -> Optional[Pattern]:
    """Compile a regex rule pattern, or None when it is invalid."""
    if not pattern or not pattern.strip():
        return None
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        logger.debug("ignoring invalid rule regex %r", pattern)
        return None


def _regex(description: str, pattern: str) -> bool:
    compiled = compile_rule_pattern(pattern)
    return bool(compiled and compiled.search(description))


MATCH_STRATEGIES: Dict[RuleType, Callable[[str, str], bool]] = {
    RuleType.CONTAINS: _contains,
    RuleType.STARTS_WITH: _starts_with,
    RuleType.ENDS_WITH: _ends_with,
    RuleType.EXACT: _exact,
    RuleType.REGEX: _regex,
}


def matches_rule(rule: AutomationRule, description: str) -> bool:
    """Return True when ``rule`` matches ``description``."""
    if not description or not rule.pattern:
        return False
    strategy = MATCH_STRATEGIES.get(RuleType(rule.type))
    return bool(strategy and strategy(description, rule.pattern))


def order_rules(rules: Iterable[AutomationRule]) -> List[AutomationRule]:
    """Active rules in evaluation order."""
    return sorted((r for r in rules if r.is_active), key=lambda r: (r.priority, r.name))


class RuleEvaluator:
    """First-match-wins evaluation of an ordered rule set.

    The rule list is snapshotted at construction; regex rules are compiled
    once per evaluator.
    """

    def __init__(self, rules: Iterable[AutomationRule], categories: Iterable[Category] = ()):
        self.rules = order_rules(rules)
        self._categories = {c.id: c.name for c in categories}
        self._compiled: Dict[int, Optional[Pattern]] = {
            i: compile_rule_pattern(r.pattern) for i, r in enumerate(self.rules) if r.type == RuleType.REGEX
        }

    def _matches(self, idx: int, rule: AutomationRule, description: str) -> bool:
        if rule.type == RuleType.REGEX:
            compiled = self._compiled.get(idx)
            return bool(compiled and compiled.search(description))
        return matches_rule(rule, description)

    def first_match(self, description: str) -> Optional[AutomationRule]:
        if not description or not description.strip():
            return None
        for idx, rule in enumerate(self.rules):
            if self._matches(idx, rule, description):
                return rule
        return None

    def match(self, description: str) -> Optional[RuleMatch]:
        rule = self.first_match(description)
        if rule is None:
            return None
        return RuleMatch(
            category_id=rule.category_id,
            category_name=self._categories.get(rule.category_id, UNCATEGORIZED),
        )

    __call__ = match

    def categorize(self, transactions: Iterable[ParsedTransaction]) -> List[ParsedTransaction]:
        """Return copies of ``transactions`` with matched categories filled in.

        A rule match replaces whatever category the source file carried.
        """
        out: List[ParsedTransaction] = []
        for txn in transactions:
            matched = self.match(txn.description)
            if matched is None:
                out.append(txn)
            else:
                out.append(
                    txn.model_copy(
                        update={"category_id": matched.category_id, "category_name": matched.category_name}
                    )
                )
        return out


def find_matching_category(
    description: str,
    rules: Sequence[AutomationRule],
    categories: Sequence[Category] = (),
) -> Optional[RuleMatch]:
    return RuleEvaluator(rules, categories).match(description)


def load_rules_file(path: str) -> Tuple[List[AutomationRule], List[Category]]:
    """Load rules and categories from a JSON file.

    File format::

        {"categories": [{"id": "c1", "name": "Streaming"}],
         "rules": [{"name": "netflix", "category_id": "c1",
                    "type": "contains", "pattern": "netflix", "priority": 1}]}

    A bare list is read as the rules with no categories. Invalid entries are
    skipped with a warning.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        data = {"rules": data}
    rules: List[AutomationRule] = []
    for item in data.get("rules") or []:
        try:
            rules.append(AutomationRule.model_validate(item))
        except ValueError as exc:
            logger.warning("skipping invalid rule %r: %s", item, exc)
    categories: List[Category] = []
    for item in data.get("categories") or []:
        try:
            categories.append(Category.model_validate(item))
        except ValueError as exc:
            logger.warning("skipping invalid category %r: %s", item, exc)
    return rules, categories


__all__ = [
    "MATCH_STRATEGIES",
    "RuleEvaluator",
    "compile_rule_pattern",
    "find_matching_category",
    "load_rules_file",
    "matches_rule",
    "order_rules",
]
