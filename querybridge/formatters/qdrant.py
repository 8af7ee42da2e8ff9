"""
Qdrant backend for rule trees.
Converts rule trees to Qdrant Filter objects.
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from qdrant_client.models import (
    FieldCondition, Filter, IsNullCondition, MatchAny, MatchText, MatchValue,
    PayloadField, Range,
)

from ..config import FormatOptions
from ..exceptions import UnsupportedOperatorError, UnsupportedValueError
from ..models import Rule, RuleGroup
from ..operators import Operator
from ..values import coerce_value, is_real_number, to_array
from .base import FormatContext, QueryFormatter, RuleMeta, processed_bounds, uses_value_processor


class QdrantFormatter(QueryFormatter):
    """
    Converts rule trees to Qdrant Filter objects.

    Rules become FieldConditions under must / must_not; "or" groups become
    should clauses and negated groups are nested under must_not.
    """

    dialect = "qdrant"
    fallback_expression = None

    def __init__(self, payload_prefix: Optional[str] = None,
                 root_fields: Optional[Iterable[str]] = None):
        """
        Initialize Qdrant formatter.

        Args:
            payload_prefix: Prefix for fields stored under a nested payload key
            root_fields: Fields that live at the payload root (no prefix)
        """
        super().__init__()
        self.payload_prefix = payload_prefix
        self.root_fields: Set[str] = set(root_fields or ())

    def finalize(self, output: Any, context: FormatContext) -> Optional[Filter]:
        if self.is_empty_output(output):
            return self.get_fallback(context)
        return Filter(**output)

    def default_rule_processor(self, rule: Rule, options: FormatOptions,
                               meta: Optional[RuleMeta] = None) -> Dict[str, List[Any]]:
        operator = Operator.from_string(rule.operator)
        key = self._get_field_key(rule.field)
        parse_numbers = options.parse_numbers

        if rule.value_source == "field":
            raise UnsupportedValueError(
                f"qdrant cannot compare field '{rule.field}' against another field"
            )

        negated = operator in (
            Operator.NE, Operator.NOT_IN, Operator.NOT_BETWEEN,
            Operator.NOT_NULL, Operator.DOES_NOT_CONTAIN,
        )
        processed = uses_value_processor(rule, operator, options)
        value = options.value_processor(rule, options) if processed else rule.value

        if operator in (Operator.EQ, Operator.NE):
            value = value if processed else coerce_value(value, parse_numbers)
            if isinstance(value, float):
                base = FieldCondition(key=key, range=Range(gte=value, lte=value))
            else:
                base = FieldCondition(key=key, match=MatchValue(value=value))

        elif operator in (Operator.LT, Operator.GT, Operator.LTE, Operator.GTE):
            number = self._number(rule, value, parse_numbers)
            bound = {Operator.LT: "lt", Operator.GT: "gt",
                     Operator.LTE: "lte", Operator.GTE: "gte"}[operator]
            base = FieldCondition(key=key, range=Range(**{bound: number}))

        elif operator.is_membership:
            if processed and isinstance(value, (list, tuple)):
                values = list(value)
            else:
                values = [coerce_value(v, parse_numbers) for v in to_array(value)]
            if not values:
                return {}
            if any(isinstance(v, float) for v in values):
                raise UnsupportedValueError(f"qdrant cannot match '{rule.field}' against floats")
            base = FieldCondition(key=key, match=MatchAny(any=values))

        elif operator.is_range:
            bounds = processed_bounds(value)
            if bounds is None:
                return {}
            low, high = [self._number(rule, b, parse_numbers) for b in bounds]
            base = FieldCondition(key=key, range=Range(gte=low, lte=high))

        elif operator.is_null_check:
            base = IsNullCondition(is_null=PayloadField(key=key))

        elif operator in (Operator.CONTAINS, Operator.DOES_NOT_CONTAIN):
            base = FieldCondition(key=key, match=MatchText(text=str(value)))

        else:
            raise UnsupportedOperatorError(rule.operator, self.dialect, meta.path if meta else None)

        if negated:
            return {'must_not': [base]}
        return {'must': [base]}

    def combine(self, group: RuleGroup, parts: List[Dict[str, List[Any]]],
                context: FormatContext, is_root: bool) -> Dict[str, List[Any]]:
        must: List[Any] = []
        should: List[Any] = []
        must_not: List[Any] = []
        combinator = group.combinator.lower()

        if combinator == "and":
            # Flat parts merge; anything carrying its own should clause nests.
            for part in parts:
                if 'should' in part:
                    must.append(Filter(**part))
                else:
                    must.extend(part.get('must', []))
                    must_not.extend(part.get('must_not', []))

        elif combinator == "or":
            # Each branch becomes one should entry.
            for part in parts:
                if list(part) == ['must'] and len(part['must']) == 1:
                    should.append(part['must'][0])
                else:
                    should.append(Filter(**part))

        else:
            raise UnsupportedOperatorError(group.combinator, self.dialect)

        result: Dict[str, List[Any]] = {}
        if must:
            result['must'] = must
        if should:
            result['should'] = should
        if must_not:
            result['must_not'] = must_not

        if group.negated:
            return {'must_not': [Filter(**result)]}
        return result

    def _number(self, rule: Rule, value: Any, parse_numbers: Any) -> Any:
        number = coerce_value(value, parse_numbers)
        if not is_real_number(number):
            raise UnsupportedValueError(
                f"qdrant ranges need numbers, got {value!r} for '{rule.field}'"
            )
        return number

    def _get_field_key(self, field: str) -> str:
        """
        Get the Qdrant payload key for a field name.
        Adds the payload prefix for non-root fields.
        """
        if not self.payload_prefix or field in self.root_fields:
            return field
        return f"{self.payload_prefix}.{field}"
