"""Rule engine for config-driven validation of imported rows.

Built-in rules enforce the minimal posting contract; an import may add more
through its ``validation_rules`` object. Evaluation returns human-readable
violations and never touches the record.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .errors import ImportRowError
from .pipelines.normalization import POSTING_COMPANY, POSTING_CONSULTANCY, NormalizedRecord, field_value

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("title", "description", "location")


class RuleType(str, Enum):
    """Rule types."""
    REQUIRED = "required"
    MAX_LENGTH = "maxLength"
    MIN_LENGTH = "minLength"
    ALLOWED_VALUES = "allowedValues"
    PATTERN = "pattern"
    ORDERED_RANGE = "orderedRange"


class RecordValidationError(ImportRowError):
    """Raised when a row violates one or more rules."""

    def __init__(self, violations: list[str]) -> None:
        super().__init__("; ".join(violations), details=violations)
        self.violations = violations


class InvalidRuleConfig(ValueError):
    """Raised when an import's validation-rule overrides are malformed."""
    pass


@dataclass
class RuleConfig:
    """Configuration for a single rule."""
    id: str
    type: RuleType
    column: str
    params: dict[str, Any] = field(default_factory=dict)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not value
    return False


def _values(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def default_rules() -> list[RuleConfig]:
    """Rules every import row must satisfy."""
    rules = [RuleConfig(id=f"required_{c}", type=RuleType.REQUIRED, column=c) for c in REQUIRED_COLUMNS]
    rules.append(RuleConfig(
        id="posting_type",
        type=RuleType.ALLOWED_VALUES,
        column="postingType",
        params={"values": [POSTING_COMPANY, POSTING_CONSULTANCY]},
    ))
    rules.append(RuleConfig(
        id="salary_range",
        type=RuleType.ORDERED_RANGE,
        column="salaryMin",
        params={"upper": "salaryMax"},
    ))
    rules.append(RuleConfig(
        id="experience_range",
        type=RuleType.ORDERED_RANGE,
        column="experienceMin",
        params={"upper": "experienceMax"},
    ))
    return rules


def rules_from_overrides(overrides: Mapping[str, Any] | None) -> list[RuleConfig]:
    """Build extra rules from an import's ``validation_rules`` object.

    Raises:
        InvalidRuleConfig: If an override has the wrong shape or a bad regex
    """
    rules: list[RuleConfig] = []
    if not overrides:
        return rules
    if not isinstance(overrides, Mapping):
        raise InvalidRuleConfig("validation rules must be an object")

    for key, entry in overrides.items():
        try:
            rule_type = RuleType(key)
        except ValueError:
            logger.warning(f"Ignoring unknown validation rule: {key}")
            continue
        if rule_type == RuleType.ORDERED_RANGE:
            logger.warning("Ignoring orderedRange override; it is built in")
            continue

        if rule_type == RuleType.REQUIRED:
            if not isinstance(entry, (list, tuple)):
                raise InvalidRuleConfig("'required' must be a list of column names")
            rules.extend(
                RuleConfig(id=f"required_{c}", type=rule_type, column=str(c)) for c in entry
            )
            continue

        if not isinstance(entry, Mapping):
            raise InvalidRuleConfig(f"'{key}' must map column names to values")
        for column, param in entry.items():
            rules.append(_build_rule(rule_type, str(column), param))

    return rules


def _build_rule(rule_type: RuleType, column: str, param: Any) -> RuleConfig:
    rule_id = f"{rule_type.value}_{column}"
    if rule_type in (RuleType.MAX_LENGTH, RuleType.MIN_LENGTH):
        if isinstance(param, bool) or not isinstance(param, int) or param < 0:
            raise InvalidRuleConfig(f"{rule_type.value}.{column} must be a non-negative integer")
        return RuleConfig(id=rule_id, type=rule_type, column=column, params={"limit": param})
    if rule_type == RuleType.ALLOWED_VALUES:
        if not isinstance(param, (list, tuple)) or not param:
            raise InvalidRuleConfig(f"allowedValues.{column} must be a non-empty list")
        return RuleConfig(id=rule_id, type=rule_type, column=column, params={"values": list(param)})
    try:
        compiled = re.compile(str(param))
    except re.error as e:
        raise InvalidRuleConfig(f"pattern.{column} is not a valid regular expression: {e}") from e
    return RuleConfig(id=rule_id, type=rule_type, column=column, params={"regex": compiled})


class RuleEngine:
    """Config-driven rule engine for import rows."""

    def __init__(self, rules: list[RuleConfig]):
        """Initialize rule engine.

        Args:
            rules: List of RuleConfig objects
        """
        self.rules = rules
        logger.debug(f"Initialized rule engine with {len(rules)} rules")

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, Any] | None) -> RuleEngine:
        """Built-in rules followed by the import's own."""
        return cls(default_rules() + rules_from_overrides(overrides))

    def validate(self, record: NormalizedRecord) -> list[str]:
        """Evaluate every rule; an empty list means the record is valid."""
        violations: list[str] = []
        for rule in self.rules:
            message = self._evaluate_rule(rule, record)
            if message and message not in violations:
                violations.append(message)
        return violations

    def check(self, record: NormalizedRecord) -> None:
        """Raise ``RecordValidationError`` when ``validate`` reports anything."""
        violations = self.validate(record)
        if violations:
            raise RecordValidationError(violations)

    def _evaluate_rule(self, rule: RuleConfig, record: NormalizedRecord) -> str | None:
        value = field_value(record, rule.column)

        if rule.type == RuleType.REQUIRED:
            return f"{rule.column} is required" if _is_blank(value) else None

        if _is_blank(value):
            # Optional columns are only checked when filled in
            return None

        if rule.type == RuleType.MAX_LENGTH:
            limit = rule.params["limit"]
            if any(len(str(v)) > limit for v in _values(value)):
                return f"{rule.column} must be at most {limit} characters"
        elif rule.type == RuleType.MIN_LENGTH:
            limit = rule.params["limit"]
            if any(len(str(v)) < limit for v in _values(value)):
                return f"{rule.column} must be at least {limit} characters"
        elif rule.type == RuleType.ALLOWED_VALUES:
            allowed = rule.params["values"]
            rejected = [v for v in _values(value) if v not in allowed]
            if rejected:
                return f"{rule.column} must be one of: {', '.join(map(str, allowed))}"
        elif rule.type == RuleType.PATTERN:
            regex = rule.params["regex"]
            if any(not regex.search(str(v)) for v in _values(value)):
                return f"{rule.column} has an invalid format"
        elif rule.type == RuleType.ORDERED_RANGE:
            upper_column = rule.params["upper"]
            upper = field_value(record, upper_column)
            if upper is not None and value > upper:
                return f"{rule.column} cannot be greater than {upper_column}"
        return None
