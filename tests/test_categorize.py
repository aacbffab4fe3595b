import json

import pytest

from statement_import.categorize import (
    RuleEvaluator,
    find_matching_category,
    load_rules_file,
    matches_rule,
    order_rules,
)
from statement_import.models import AutomationRule, Category, ParsedTransaction, RuleMatch


def rule(type_, pattern, **kw):
    return AutomationRule(type=type_, pattern=pattern, **kw)


@pytest.mark.parametrize(
    "type_,pattern,description,expected",
    [
        ("contains", "netflix", "NETFLIX.COM 123", True),
        ("contains", "spotify", "NETFLIX.COM 123", False),
        ("contains", "hulu|netflix", "Netflix monthly", True),
        ("contains", "| |hulu", "Netflix monthly", False),
        ("starts_with", "uber", "Uber Eats 55", True),
        ("starts_with", "eats", "Uber Eats 55", False),
        ("ends_with", "ltd", "ACME LTD", True),
        ("exact", "rent", "RENT", True),
        ("exact", "rent", "Rent June", False),
        ("regex", r"^uber\s+eats", "UBER  EATS 99", True),
        ("regex", r"net|hulu", "hulu plus", True),
        ("regex", r"\d{4}$", "card 1234", True),
    ],
)
def test_matches_rule(type_, pattern, description, expected):
    assert matches_rule(rule(type_, pattern), description) is expected


@pytest.mark.parametrize("pattern", ["([", "*abc", "(?P<x", ""])
def test_invalid_regex_never_matches(pattern):
    assert matches_rule(rule("regex", pattern), "anything ([ *abc") is False


def test_blank_description_never_matches():
    assert matches_rule(rule("contains", "a"), "") is False
    assert RuleEvaluator([rule("regex", ".*", category_id="c")]).match("   ") is None


def test_first_match_by_priority_then_name():
    rules = [
        rule("contains", "coffee", name="b-coffee", category_id="cafe", priority=5),
        rule("contains", "coffee", name="a-coffee", category_id="drinks", priority=5),
        rule("contains", "starbucks", name="z", category_id="chains", priority=1),
        rule("contains", "coffee", name="inactive", category_id="never", priority=0, is_active=False),
    ]
    categories = [Category(id="cafe", name="Cafe"), Category(id="drinks", name="Drinks")]
    evaluator = RuleEvaluator(rules, categories)
    assert [r.name for r in evaluator.rules] == ["z", "a-coffee", "b-coffee"]
    assert evaluator.match("Coffee house") == RuleMatch(category_id="drinks", category_name="Drinks")
    assert evaluator.match("STARBUCKS coffee").category_id == "chains"
    assert evaluator.match("STARBUCKS coffee").category_name == "Uncategorized"
    assert evaluator.match("tea") is None


def test_order_rules_is_stable():
    rules = [rule("contains", "x", name=n, priority=p) for n, p in [("b", 1), ("a", 1), ("c", 0)]]
    assert [r.name for r in order_rules(rules)] == ["c", "a", "b"]


def test_invalid_regex_does_not_stop_later_rules():
    rules = [
        rule("regex", "([", name="broken", category_id="x", priority=0),
        rule("contains", "gym", name="gym", category_id="health", priority=1),
    ]
    assert find_matching_category("City GYM", rules).category_id == "health"


def test_categorize_overrides_existing_category():
    txns = [
        ParsedTransaction(date="2024-01-01", description="Netflix", amount=10, type="expense", category_name="Bills"),
        ParsedTransaction(date="2024-01-01", description="Bakery", amount=3, type="expense", category_name="Food"),
    ]
    evaluator = RuleEvaluator([rule("contains", "netflix", category_id="s")], [Category(id="s", name="Streaming")])
    netflix, bakery = evaluator.categorize(txns)
    assert (netflix.category_id, netflix.category_name) == ("s", "Streaming")
    assert bakery.category_name == "Food"


def test_load_rules_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps(
            {
                "categories": [{"id": "s", "name": "Streaming"}, {"name": "missing id"}],
                "rules": [
                    {"name": "netflix", "category_id": "s", "type": "contains", "pattern": "netflix"},
                    {"name": "bad type", "category_id": "s", "type": "fuzzy", "pattern": "x"},
                ],
            }
        ),
        encoding="utf-8",
    )
    rules, categories = load_rules_file(str(path))
    assert [r.name for r in rules] == ["netflix"]
    assert categories == [Category(id="s", name="Streaming")]


def test_load_rules_file_accepts_bare_list(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([{"type": "exact", "pattern": "rent", "category_id": "home"}]), encoding="utf-8")
    rules, categories = load_rules_file(str(path))
    assert rules[0].type == "exact"
    assert categories == []
