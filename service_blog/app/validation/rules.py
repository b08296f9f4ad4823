"""
Validation rule data models and the rule-spec parser.

Rule specs are strings such as ``"required|min:8|max:255"``: ``|``
separates rules, the first ``:`` separates a rule name from its
parameters, and ``,`` separates parameters. ``regex`` keeps everything
after its first ``:`` as a single pattern.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class RuleSpec:
    """One named rule with its string parameters."""
    name: str
    params: Tuple[str, ...] = ()

    def param(self, index: int, default: Optional[str] = None) -> Optional[str]:
        return self.params[index] if len(self.params) > index else default


@dataclass(frozen=True)
class ValidationRuleSet:
    """Ordered field -> rules mapping; immutable once parsed."""
    fields: Tuple[Tuple[str, Tuple[RuleSpec, ...]], ...] = ()

    def __iter__(self) -> Iterator[Tuple[str, Tuple[RuleSpec, ...]]]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def rules_for(self, field_name: str) -> Tuple[RuleSpec, ...]:
        for name, rules in self.fields:
            if name == field_name:
                return rules
        return ()

    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]


RawRules = Union[str, Sequence[str]]
RulesInput = Union[ValidationRuleSet, Mapping[str, RawRules]]


def parse_rule(rule: str) -> RuleSpec:
    """Parse a single ``name[:p1,p2,...]`` token."""
    name, sep, rest = rule.strip().partition(":")
    name = name.strip()
    if not sep:
        return RuleSpec(name)
    if name == "regex":
        return RuleSpec(name, (rest,))
    return RuleSpec(name, tuple(rest.split(",")))


def _split_rules(spec: str) -> List[str]:
    # A regex pattern may itself contain "|"; once a regex rule starts,
    # the rest of the string belongs to it.
    parts: List[str] = []
    remaining = spec
    while remaining:
        if remaining.lstrip().startswith("regex:"):
            parts.append(remaining)
            break
        head, sep, remaining = remaining.partition("|")
        parts.append(head)
        if not sep:
            break
    return [p for p in parts if p.strip()]


def parse_rules(rules: RulesInput) -> ValidationRuleSet:
    """Parse ``{field: "rule|rule:param"}`` into a ValidationRuleSet.

    A field's rules may also be given as a list of rule tokens, which is
    the only way to put ``|`` inside a non-final regex. Already-parsed
    sets are returned unchanged.
    """
    if isinstance(rules, ValidationRuleSet):
        return rules

    parsed = []
    for field_name, spec in rules.items():
        tokens = _split_rules(spec) if isinstance(spec, str) else list(spec)
        parsed.append((field_name, tuple(parse_rule(token) for token in tokens)))
    return ValidationRuleSet(tuple(parsed))


@dataclass
class ValidationResult:
    """Field -> messages; an empty result is the only valid result."""
    errors: Dict[str, List[str]] = field(default_factory=dict)

    def add(self, field_name: str, message: str):
        self.errors.setdefault(field_name, []).append(message)

    @property
    def valid(self) -> bool:
        return not self.errors

    def first(self, field_name: Optional[str] = None) -> Optional[str]:
        if field_name is not None:
            messages = self.errors.get(field_name)
            return messages[0] if messages else None
        for messages in self.errors.values():
            return messages[0]
        return None
