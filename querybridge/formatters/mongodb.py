"""
MongoDB query document formatter.
"""

import re
from typing import Any, Dict, List, Optional

from ..config import FormatOptions
from ..exceptions import UnsupportedOperatorError, UnsupportedValueError
from ..models import Rule, RuleGroup
from ..operators import NEGATED_TEXT_OPERATORS, Operator, map_operator
from ..values import coerce_value, is_empty_value, to_array
from .base import (
    FormatContext, QueryFormatter, RuleMeta, is_empty_processed, processed_bounds,
    uses_value_processor,
)


COMBINATORS = {"and": "$and", "or": "$or", "nor": "$nor"}


def regex_pattern(operator: Operator, value: Any) -> str:
    """Anchored, escaped pattern for the text-match operators."""
    escaped = re.escape(str(value))
    if operator in (Operator.BEGINS_WITH, Operator.DOES_NOT_BEGIN_WITH):
        return f"^{escaped}"
    if operator in (Operator.ENDS_WITH, Operator.DOES_NOT_END_WITH):
        return f"{escaped}$"
    return escaped


def _field_comparison(rule: Rule, operator: Operator) -> Dict[str, Any]:
    left = f"${rule.field}"
    if operator.is_membership:
        expr = {"$in": [left, [f"${name}" for name in to_array(rule.value)]]}
        return {"$expr": {"$not": [expr]} if operator is Operator.NOT_IN else expr}
    if operator.is_range:
        names = to_array(rule.value, retain_empty_strings=True)[:2]
        if len(names) < 2 or any(is_empty_value(n) for n in names):
            return {}
        low, high = f"${names[0]}", f"${names[1]}"
        if operator is Operator.BETWEEN:
            return {"$expr": {"$and": [{"$gte": [left, low]}, {"$lte": [left, high]}]}}
        return {"$expr": {"$or": [{"$lt": [left, low]}, {"$gt": [left, high]}]}}
    if operator.is_text_match:
        raise UnsupportedValueError(
            f"mongodb cannot compare '{rule.field}' {operator.value} against another field"
        )
    return {"$expr": {map_operator(operator, "mongodb"): [left, f"${rule.value}"]}}


def default_rule_processor_mongodb(rule: Rule, options: FormatOptions,
                                   meta: Optional[RuleMeta] = None) -> Dict[str, Any]:
    """MongoDB filter document for one rule; {} when there is nothing to emit."""
    operator = Operator.from_string(rule.operator)
    mongo_operator = map_operator(operator, "mongodb")
    parse_numbers = options.parse_numbers
    field = rule.field

    if rule.value_source == "field":
        return _field_comparison(rule, operator)

    if operator is Operator.NULL:
        return {field: None}
    if operator is Operator.NOT_NULL:
        return {field: {"$ne": None}}

    processed = uses_value_processor(rule, operator, options)
    override = options.value_processor(rule, options) if processed else None

    if operator.is_membership:
        if processed:
            if is_empty_processed(override):
                return {}
            return {field: {mongo_operator: override}}
        items = [coerce_value(v, parse_numbers) for v in to_array(rule.value)]
        if not items:
            return {}
        return {field: {mongo_operator: items}}

    if operator.is_range:
        if processed:
            bounds = processed_bounds(override)
            if bounds is None:
                return {}
            low, high = bounds
        else:
            bounds = to_array(rule.value, retain_empty_strings=True)[:2]
            if len(bounds) < 2 or any(is_empty_value(b) for b in bounds):
                return {}
            low, high = [coerce_value(b, parse_numbers) for b in bounds]
        if operator is Operator.BETWEEN:
            return {field: {"$gte": low, "$lte": high}}
        return {"$or": [{field: {"$lt": low}}, {field: {"$gt": high}}]}

    if operator.is_text_match:
        pattern = override if processed else regex_pattern(operator, rule.value)
        regex = {"$regex": pattern}
        if operator in NEGATED_TEXT_OPERATORS:
            return {field: {"$not": regex}}
        return {field: regex}

    value = override if processed else coerce_value(rule.value, parse_numbers)
    return {field: {mongo_operator: value}}


class MongoDBFormatter(QueryFormatter):
    """
    Converts rule trees to MongoDB query documents.
    """

    dialect = "mongodb"
    fallback_expression = {"$and": [{"$expr": True}]}

    def default_rule_processor(self, rule: Rule, options: FormatOptions,
                               meta: RuleMeta) -> Dict[str, Any]:
        return default_rule_processor_mongodb(rule, options, meta)

    def combine(self, group: RuleGroup, parts: List[Any], context: FormatContext,
                is_root: bool) -> Dict[str, Any]:
        combinator = COMBINATORS.get(group.combinator.lower())
        if combinator is None:
            raise UnsupportedOperatorError(group.combinator, self.dialect)
        document = {combinator: parts}
        if group.negated:
            return {"$nor": [document]}
        return document
