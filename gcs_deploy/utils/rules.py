"""
Include / exclude / priority rule matching.

A rule is one of:

- a compiled regular expression: matches when ``pattern.search(name)`` hits
- a callable: matches when ``rule(name)`` is truthy
- a list or tuple of rules: matches when every member matches
- a string: compiled to a regular expression and searched

Rules are compiled once by ``compile_rule`` so a malformed option fails when
the plugin is constructed, not halfway through an upload.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Union

from gcs_deploy.errors import InvalidRuleError


@dataclass(frozen=True)
class PatternRule:
    pattern: re.Pattern

    def matches(self, subject: str) -> bool:
        return self.pattern.search(subject) is not None


@dataclass(frozen=True)
class PredicateRule:
    predicate: Callable[[str], Any]

    def matches(self, subject: str) -> bool:
        return bool(self.predicate(subject))


@dataclass(frozen=True)
class AllRule:
    rules: Tuple["Rule", ...]

    def matches(self, subject: str) -> bool:
        return all(rule.matches(subject) for rule in self.rules)


@dataclass(frozen=True)
class LiteralRule:
    source: str

    def matches(self, subject: str) -> bool:
        return re.search(self.source, subject) is not None


Rule = Union[PatternRule, PredicateRule, AllRule, LiteralRule]
RULE_TYPES = (PatternRule, PredicateRule, AllRule, LiteralRule)


def compile_rule(spec: Any) -> Rule:
    """
    Turn a user-supplied rule spec into a Rule.

    Raises:
        InvalidRuleError: If the value is not a regex, callable, string or list
    """
    if isinstance(spec, RULE_TYPES):
        return spec
    if isinstance(spec, re.Pattern):
        return PatternRule(spec)
    if isinstance(spec, str):
        try:
            re.compile(spec)
        except re.error as e:
            raise InvalidRuleError(spec) from e
        return LiteralRule(spec)
    if isinstance(spec, (list, tuple)):
        return AllRule(tuple(compile_rule(member) for member in spec))
    if callable(spec):
        return PredicateRule(spec)
    raise InvalidRuleError(spec)


def matches_rule(rule: Any, subject: str) -> bool:
    """
    Evaluate a rule (compiled or raw spec) against a subject string.

    Example:
        >>> matches_rule(re.compile(r"\\.js$"), "app.js")
        True
        >>> matches_rule([r"^static/", lambda name: name.endswith(".css")], "static/a.css")
        True
    """
    return compile_rule(rule).matches(subject)
