"""
Validation of rule trees against field configuration.
Computes a validity entry for every rule and group before formatting.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .models import (
    Field, FieldsInput, Node, Path, Rule, normalize_fields,
)
from .operators import Operator
from .values import is_empty_value, to_array


# Reason codes
UNKNOWN_FIELD = "unknown_field"
UNKNOWN_OPERATOR = "unknown_operator"
OPERATOR_NOT_ALLOWED = "operator_not_allowed"
EMPTY_VALUE = "empty_value"
EMPTY_GROUP = "empty_group"
INVALID_CHILDREN = "invalid_children"
FIELD_VALIDATOR = "field_validator"


@dataclass
class ValidationResult:
    """Validity of one rule or group."""
    valid: bool
    reasons: List[Any] = field(default_factory=list)

    def __bool__(self):
        return self.valid


def _as_result(outcome: Any) -> ValidationResult:
    """Normalize what a field validator callback returns."""
    if isinstance(outcome, ValidationResult):
        return outcome
    if isinstance(outcome, Mapping):
        return ValidationResult(bool(outcome.get("valid", False)), list(outcome.get("reasons", [])))
    if outcome:
        return ValidationResult(True)
    return ValidationResult(False, [FIELD_VALIDATOR])


class QueryValidator:
    """
    Validates rule trees against field configuration.

    Rules:
    - field must be configured (when any fields are configured)
    - operator must be canonical and allowed by the field's operator list
    - value-taking operators need a non-empty value (both bounds for ranges)
    - the field's own validator callback, if any, must accept the rule

    Groups need at least one enabled child unless allow_empty_groups is set,
    and under strict mode every enabled child must be valid. Disabled nodes
    are always reported valid.
    """

    def __init__(self,
                 fields: FieldsInput = None,
                 strict: bool = True,
                 allow_empty_groups: bool = False):
        """
        Initialize validator.

        Args:
            fields: Field configuration (None = any field accepted)
            strict: Groups are invalid when any enabled child is invalid
            allow_empty_groups: Treat groups without enabled children as valid
        """
        self.fields: Dict[str, Field] = normalize_fields(fields)
        self.strict = strict
        self.allow_empty_groups = allow_empty_groups
        self.logger = logging.getLogger(__name__)

    def validate(self, query: Node) -> Dict[Path, ValidationResult]:
        """
        Validate a tree.

        Args:
            query: Root group or rule (standard or interleaved)

        Returns:
            Mapping from node path to ValidationResult. Paths index the
            group's rules list, so interleaved paths skip combinator slots.
        """
        results: Dict[Path, ValidationResult] = {}
        self._validate_node(query, (), results)
        invalid = sum(1 for result in results.values() if not result.valid)
        self.logger.debug(f"Validated {len(results)} nodes, {invalid} invalid")
        return results

    def is_valid(self, query: Node) -> bool:
        return self.validate(query)[()].valid

    def _validate_node(self, node: Node, path: Path,
                       results: Dict[Path, ValidationResult]) -> ValidationResult:
        if isinstance(node, Rule):
            result = ValidationResult(True) if node.disabled else self.validate_rule(node)
        else:
            result = self._validate_group(node, path, results)
        results[path] = result
        return result

    def _validate_group(self, group: Any, path: Path,
                        results: Dict[Path, ValidationResult]) -> ValidationResult:
        if group.disabled:
            return ValidationResult(True)

        enabled = 0
        children_valid = True
        for index, child in enumerate(group.rules):
            if isinstance(child, str):
                continue
            child_result = self._validate_node(child, path + (index,), results)
            if child.disabled:
                continue
            enabled += 1
            children_valid = children_valid and child_result.valid

        reasons = []
        if not enabled and not self.allow_empty_groups:
            reasons.append(EMPTY_GROUP)
        if self.strict and not children_valid:
            reasons.append(INVALID_CHILDREN)
        return ValidationResult(not reasons, reasons)

    def validate_rule(self, rule: Rule) -> ValidationResult:
        """Validate a single rule, ignoring its disabled flag."""
        reasons = []
        field_data = self.fields.get(rule.field)
        if self.fields and field_data is None:
            reasons.append(UNKNOWN_FIELD)

        operator = Operator.from_string(rule.operator)
        if operator is None:
            reasons.append(UNKNOWN_OPERATOR)
        else:
            if field_data is not None and not field_data.allows_operator(operator.value):
                reasons.append(OPERATOR_NOT_ALLOWED)
            if self._missing_value(rule, operator):
                reasons.append(EMPTY_VALUE)

        if reasons:
            return ValidationResult(False, reasons)

        if field_data is not None and field_data.validator is not None:
            return _as_result(field_data.validator(rule))
        return ValidationResult(True)

    def _missing_value(self, rule: Rule, operator: Operator) -> bool:
        if not operator.takes_value:
            return False
        if operator.is_membership:
            return not to_array(rule.value)
        if operator.is_range:
            bounds = to_array(rule.value, retain_empty_strings=True)[:2]
            return len(bounds) < 2 or any(is_empty_value(b) for b in bounds)
        if isinstance(rule.value, (list, tuple)):
            return not rule.value
        return is_empty_value(rule.value)

    @classmethod
    def create_default(cls, fields: FieldsInput = None) -> 'QueryValidator':
        """Create a lenient validator: empty groups allowed, invalid children tolerated."""
        return cls(fields=fields, strict=False, allow_empty_groups=True)

    @classmethod
    def create_strict(cls, fields: FieldsInput) -> 'QueryValidator':
        """Create a strict validator requiring configured fields."""
        return cls(fields=fields, strict=True, allow_empty_groups=False)


def validate_query(query: Node, fields: FieldsInput = None,
                   strict: bool = True,
                   allow_empty_groups: bool = False) -> Dict[Path, ValidationResult]:
    """Validate a tree; see QueryValidator."""
    return QueryValidator(fields, strict=strict, allow_empty_groups=allow_empty_groups).validate(query)
