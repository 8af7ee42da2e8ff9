"""
Common Expression Language (CEL) formatter.

Also the base for the SpEL formatter, which differs only in literal syntax,
connectives and the membership form.
"""

from typing import Any, List, Optional

from ..config import FormatOptions
from ..exceptions import UnsupportedOperatorError
from ..models import Rule, RuleGroup
from ..operators import NEGATED_TEXT_OPERATORS, Operator, map_operator
from ..values import (
    NUMERIC_REGEX, escape_backslash_string, is_empty_value, parse_number,
    should_render_as_number, to_array,
)
from .base import (
    FormatContext, QueryFormatter, RuleMeta, is_empty_processed, processed_bounds,
    uses_value_processor,
)


class CELFormatter(QueryFormatter):
    """
    Converts rule trees to CEL expressions.
    """

    dialect = "cel"
    fallback_expression = "1 == 1"
    connectives = {"and": "&&", "or": "||"}
    negation = "!"

    def literal(self, value: Any, options: FormatOptions) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if should_render_as_number(value, options.parse_numbers):
            if isinstance(value, str) and NUMERIC_REGEX.match(value):
                return value.strip()
            return str(parse_number(value, options.parse_numbers))
        return self.quote_string(value)

    def quote_string(self, value: Any) -> str:
        return '"' + escape_backslash_string(value, '"') + '"'

    def operand(self, rule: Rule, value: Any, options: FormatOptions) -> str:
        if rule.value_source == "field":
            return str(value)
        return self.literal(value, options)

    def list_literal(self, items: List[str]) -> str:
        return f"[{', '.join(items)}]"

    def membership(self, field: str, items: str, negated: bool) -> str:
        expression = f"{field} in {items}"
        return f"!({expression})" if negated else expression

    def default_rule_processor(self, rule: Rule, options: FormatOptions,
                               meta: Optional[RuleMeta] = None) -> str:
        operator = Operator.from_string(rule.operator)
        token = map_operator(operator, self.dialect)
        field = rule.field
        and_, or_ = self.connectives["and"], self.connectives["or"]

        if operator is Operator.NULL:
            return f"{field} == null"
        if operator is Operator.NOT_NULL:
            return f"{field} != null"

        processed = uses_value_processor(rule, operator, options)
        override = options.value_processor(rule, options) if processed else None

        if operator.is_membership:
            if processed:
                if is_empty_processed(override):
                    return ""
                items = str(override)
            else:
                values = [self.operand(rule, v, options) for v in to_array(rule.value)]
                if not values:
                    return ""
                items = self.list_literal(values)
            return self.membership(field, items, operator is Operator.NOT_IN)

        if operator.is_range:
            if processed:
                bounds = processed_bounds(override)
                if bounds is None:
                    return ""
                low, high = [str(b) for b in bounds]
            else:
                bounds = to_array(rule.value, retain_empty_strings=True)[:2]
                if len(bounds) < 2 or any(is_empty_value(b) for b in bounds):
                    return ""
                low, high = [self.operand(rule, b, options) for b in bounds]
            if operator is Operator.BETWEEN:
                return f"({field} >= {low} {and_} {field} <= {high})"
            return f"({field} < {low} {or_} {field} > {high})"

        if processed:
            value = str(override)
        elif operator.is_text_match and rule.value_source != "field":
            # String methods take string arguments whatever the number policy
            value = self.quote_string(rule.value)
        else:
            value = self.operand(rule, rule.value, options)

        if operator.is_text_match:
            call = f"{field}.{token}({value})"
            return f"{self.negation}{call}" if operator in NEGATED_TEXT_OPERATORS else call

        return f"{field} {token} {value}"

    def combine(self, group: RuleGroup, parts: List[str], context: FormatContext,
                is_root: bool) -> str:
        connective = self.connectives.get(group.combinator.lower())
        if connective is None:
            raise UnsupportedOperatorError(group.combinator, self.dialect)
        expression = f" {connective} ".join(parts)
        if group.negated:
            return f"{self.negation}({expression})"
        if is_root:
            return expression
        return f"({expression})"
