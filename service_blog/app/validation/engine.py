"""
Rule evaluation engine for submitted input.
"""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from email_validator import validate_email, EmailNotValidError

from shared.logging import get_logger
from shared.errors import StoreError, ValidationFailure
from shared.metrics import MetricsCollector
from ..persistence.query_builder import QueryBuilder, coerce_int
from .rules import RuleSpec, RulesInput, ValidationResult, parse_rules

_NUMERIC = re.compile(r"\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*")
_INTEGER = re.compile(r"\s*[+-]?(0|[1-9]\d*)\s*")
_ALPHA = re.compile(r"[A-Za-z]+")
_ALPHA_NUM = re.compile(r"[A-Za-z0-9]+")
_ALPHA_DASH = re.compile(r"[A-Za-z0-9_-]+")
_DELIMITED_PATTERN = re.compile(r"^/(?P<body>.*)/(?P<flags>[imsx]*)$", re.DOTALL)
_PATTERN_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}

Checker = Callable[[str, str, RuleSpec, Mapping[str, Any]], List[str]]


def is_empty(value: Any) -> bool:
    """``None``, ``""`` and empty collections are empty; ``"0"`` is not."""
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    return False


def compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Compile a pattern, accepting ``/body/flags`` delimited form."""
    match = _DELIMITED_PATTERN.match(pattern)
    if not match:
        return re.compile(pattern)
    flags = 0
    for flag in match.group("flags"):
        flags |= _PATTERN_FLAGS[flag]
    return re.compile(match.group("body"), flags)


def password_violations(password: str) -> List[str]:
    """Every unmet password requirement, in a fixed order."""
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long.")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter.")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter.")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number.")
    if not re.search(r"[^A-Za-z0-9]", password):
        errors.append("Password must contain at least one special character.")
    return errors


class RuleEngine:
    """Evaluates parsed rule sets against one input mapping.

    For each field, rules run in declared order and the first failing
    rule ends that field's evaluation; other fields are unaffected. Rules
    other than ``required`` pass on empty values, and unknown rule names
    pass silently.
    """

    def __init__(self, store: Optional[QueryBuilder] = None, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("blog.validation.rule_engine")
        self._result = ValidationResult()
        self._checkers: Dict[str, Checker] = {
            "email": self._check_email,
            "min": self._check_min,
            "max": self._check_max,
            "numeric": self._check_numeric,
            "integer": self._check_integer,
            "alpha": self._check_alpha,
            "alpha_num": self._check_alpha_num,
            "alpha_dash": self._check_alpha_dash,
            "url": self._check_url,
            "confirmed": self._check_confirmed,
            "unique": self._check_unique,
            "exists": self._check_exists,
            "in": self._check_in,
            "regex": self._check_regex,
            "password": self._check_password,
        }

    def validate(self, data: Mapping[str, Any], rules: RulesInput) -> ValidationResult:
        """Validate ``data`` and return a fresh result."""
        rule_set = parse_rules(rules)
        result = ValidationResult()

        for field_name, field_rules in rule_set:
            value = data.get(field_name)
            for rule in field_rules:
                messages = self._apply(field_name, value, rule, data)
                if messages:
                    for message in messages:
                        result.add(field_name, message)
                    break

        self._result = result
        if result.errors:
            self.logger.info("Validation failed", fields=sorted(result.errors))
            if self.metrics:
                self.metrics.record_validation_failures(result.errors)
        return result

    def passes(self, data: Mapping[str, Any], rules: RulesInput) -> bool:
        return self.validate(data, rules).valid

    def validate_or_raise(self, data: Mapping[str, Any], rules: RulesInput) -> ValidationResult:
        """Validate and raise ValidationFailure when anything failed."""
        result = self.validate(data, rules)
        if not result.valid:
            raise ValidationFailure(result.errors)
        return result

    def get_errors(self) -> Dict[str, List[str]]:
        return self._result.errors

    def get_first_error(self, field_name: Optional[str] = None) -> Optional[str]:
        return self._result.first(field_name)

    def has_errors(self) -> bool:
        return not self._result.valid

    def _apply(self, field_name: str, value: Any, rule: RuleSpec, data: Mapping[str, Any]) -> List[str]:
        if rule.name == "required":
            if is_empty(value):
                return [f"The {field_name} field is required."]
            return []

        checker = self._checkers.get(rule.name)
        if checker is None:
            self.logger.debug("Unknown rule ignored", rule=rule.name, field=field_name)
            return []

        if is_empty(value):
            return []

        return checker(field_name, str(value), rule, data)

    def _check_email(self, field_name, value, rule, data) -> List[str]:
        try:
            validate_email(value, check_deliverability=False, globally_deliverable=False)
        except EmailNotValidError:
            return [f"The {field_name} must be a valid email address."]
        return []

    def _check_min(self, field_name, value, rule, data) -> List[str]:
        min_length = coerce_int(rule.param(0, "0"))
        if len(value) < min_length:
            return [f"The {field_name} must be at least {min_length} characters."]
        return []

    def _check_max(self, field_name, value, rule, data) -> List[str]:
        max_length = coerce_int(rule.param(0, "255"))
        if len(value) > max_length:
            return [f"The {field_name} may not be greater than {max_length} characters."]
        return []

    def _check_numeric(self, field_name, value, rule, data) -> List[str]:
        if not _NUMERIC.fullmatch(value):
            return [f"The {field_name} must be a number."]
        return []

    def _check_integer(self, field_name, value, rule, data) -> List[str]:
        if not _INTEGER.fullmatch(value):
            return [f"The {field_name} must be an integer."]
        return []

    def _check_alpha(self, field_name, value, rule, data) -> List[str]:
        if not _ALPHA.fullmatch(value):
            return [f"The {field_name} may only contain letters."]
        return []

    def _check_alpha_num(self, field_name, value, rule, data) -> List[str]:
        if not _ALPHA_NUM.fullmatch(value):
            return [f"The {field_name} may only contain letters and numbers."]
        return []

    def _check_alpha_dash(self, field_name, value, rule, data) -> List[str]:
        if not _ALPHA_DASH.fullmatch(value):
            return [f"The {field_name} may only contain letters, numbers, dashes, and underscores."]
        return []

    def _check_url(self, field_name, value, rule, data) -> List[str]:
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc or any(c.isspace() for c in value):
            return [f"The {field_name} must be a valid URL."]
        return []

    def _check_confirmed(self, field_name, value, rule, data) -> List[str]:
        confirmation = data.get(f"{field_name}_confirmation")
        if confirmation is None or str(confirmation) != value:
            return [f"The {field_name} confirmation does not match."]
        return []

    def _check_unique(self, field_name, value, rule, data) -> List[str]:
        table = rule.param(0)
        if not table:
            return []
        if self._row_exists(table, rule.param(1, field_name), value):
            return [f"The {field_name} has already been taken."]
        return []

    def _check_exists(self, field_name, value, rule, data) -> List[str]:
        table = rule.param(0)
        if not table:
            return []
        if not self._row_exists(table, rule.param(1, field_name), value):
            return [f"The selected {field_name} is invalid."]
        return []

    def _check_in(self, field_name, value, rule, data) -> List[str]:
        if value not in rule.params:
            return [f"The selected {field_name} is invalid."]
        return []

    def _check_regex(self, field_name, value, rule, data) -> List[str]:
        pattern = rule.param(0)
        if not pattern:
            return []
        try:
            matched = compile_pattern(pattern).search(value)
        except re.error as e:
            self.logger.error("Invalid validation pattern", field=field_name, error=str(e))
            matched = None
        if not matched:
            return [f"The {field_name} format is invalid."]
        return []

    def _check_password(self, field_name, value, rule, data) -> List[str]:
        return password_violations(value)

    def _row_exists(self, table: str, column: str, value: str) -> bool:
        """True when a row has ``column == value``; False on any store failure."""
        if self.store is None:
            self.logger.warning("No store configured for lookup rule", table=table)
            return False
        try:
            return self.store.count(table, {column: value}) > 0
        except StoreError as e:
            self.logger.warning("Lookup rule failed open", table=table, column=column, error=str(e))
            return False


def validate(data: Mapping[str, Any], rules: RulesInput, store: Optional[QueryBuilder] = None) -> Dict[str, Any]:
    """One-shot validation returning ``{"valid": bool, "errors": {...}}``."""
    result = RuleEngine(store).validate(data, rules)
    return {"valid": result.valid, "errors": result.errors}
