"""
Natural-language formatter, e.g. "age is between 18 and 65, and name starts with 'J'".
"""

from typing import Any, List, Optional

from ..config import FormatOptions
from ..models import Rule, RuleGroup
from ..operators import Operator, map_operator
from ..values import coerce_value, escape_quotes, is_empty_value, is_real_number, to_array
from .base import (
    FormatContext, QueryFormatter, RuleMeta, is_empty_processed, processed_bounds,
    uses_value_processor,
)


def _label(name: str, options: FormatOptions) -> str:
    field_data = options.fields.get(name) if options.fields else None
    return field_data.display_label if field_data is not None else name


def _describe(rule: Rule, value: Any, options: FormatOptions, coerce: bool = True) -> str:
    if rule.value_source == "field":
        return _label(str(value), options)
    if coerce:
        value = coerce_value(value, options.parse_numbers)
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_real_number(value):
        return str(value)
    return f"'{escape_quotes(value)}'"


def default_rule_processor_natural_language(rule: Rule, options: FormatOptions,
                                            meta: Optional[RuleMeta] = None) -> str:
    operator = Operator.from_string(rule.operator)
    phrase = map_operator(operator, "natural_language")
    subject = _label(rule.field, options)

    if operator.is_null_check:
        return f"{subject} {phrase}"

    processed = uses_value_processor(rule, operator, options)
    override = options.value_processor(rule, options) if processed else None

    if operator.is_membership:
        if processed:
            if is_empty_processed(override):
                return ""
            return f"{subject} {phrase} {override}"
        items = [_describe(rule, v, options) for v in to_array(rule.value)]
        if not items:
            return ""
        return f"{subject} {phrase} ({', '.join(items)})"

    if operator.is_range:
        if processed:
            bounds = processed_bounds(override)
            if bounds is None:
                return ""
            low, high = bounds
        else:
            bounds = to_array(rule.value, retain_empty_strings=True)[:2]
            if len(bounds) < 2 or any(is_empty_value(b) for b in bounds):
                return ""
            low, high = [_describe(rule, b, options) for b in bounds]
        return f"{subject} {phrase} {low} and {high}"

    if processed:
        return f"{subject} {phrase} {override}"
    value = rule.value
    if operator.is_text_match and rule.value_source != "field":
        value = str(value)
    return f"{subject} {phrase} {_describe(rule, value, options, coerce=not operator.is_text_match)}"


class NaturalLanguageFormatter(QueryFormatter):
    """
    Converts rule trees to an English sentence.
    """

    dialect = "natural_language"
    fallback_expression = "1 is 1"

    def default_rule_processor(self, rule: Rule, options: FormatOptions, meta: RuleMeta) -> str:
        return default_rule_processor_natural_language(rule, options, meta)

    def combine(self, group: RuleGroup, parts: List[str], context: FormatContext,
                is_root: bool) -> str:
        sentence = f", {group.combinator.lower()} ".join(parts)
        if group.negated:
            return f"not ({sentence})"
        if is_root:
            return sentence
        return f"({sentence})"
