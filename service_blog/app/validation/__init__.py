"""
Input validation package.

- rules: RuleSpec/ValidationRuleSet models, the rule-spec parser and ValidationResult.
- engine: RuleEngine evaluating parsed rule sets, plus the one-shot ``validate`` helper.
- sanitizer: scalar sanitizers and anti-forgery tokens.
- uploads: uploaded file constraints.
"""

from .rules import RuleSpec, ValidationRuleSet, ValidationResult, parse_rules
from .engine import RuleEngine, validate

__all__ = [
    "RuleSpec",
    "ValidationRuleSet",
    "ValidationResult",
    "parse_rules",
    "RuleEngine",
    "validate",
]
