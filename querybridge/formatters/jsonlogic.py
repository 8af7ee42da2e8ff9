"""
JsonLogic formatter.

"startsWith" and "endsWith" are not core JsonLogic operations; consumers
register them as custom operations.
"""

from typing import Any, Dict, List, Optional

from ..config import FormatOptions
from ..exceptions import UnsupportedOperatorError
from ..models import Rule, RuleGroup
from ..operators import NEGATED_TEXT_OPERATORS, Operator, map_operator
from ..values import coerce_value, is_empty_value, to_array
from .base import (
    FormatContext, QueryFormatter, RuleMeta, is_empty_processed, processed_bounds,
    uses_value_processor,
)


COMBINATORS = {"and": "and", "or": "or"}

_NEGATED = {Operator.NOT_IN, Operator.NOT_BETWEEN} | NEGATED_TEXT_OPERATORS


def _var(name: str) -> Dict[str, str]:
    return {"var": name}


def default_rule_processor_jsonlogic(rule: Rule, options: FormatOptions,
                                     meta: Optional[RuleMeta] = None) -> Any:
    """JsonLogic rule for one rule; None when there is nothing to emit."""
    operator = Operator.from_string(rule.operator)
    logic_operator = map_operator(operator, "jsonlogic")
    parse_numbers = options.parse_numbers
    by_field = rule.value_source == "field"
    processed = uses_value_processor(rule, operator, options)
    override = options.value_processor(rule, options) if processed else None

    def operand(value: Any) -> Any:
        return _var(value) if by_field else coerce_value(value, parse_numbers)

    if operator.is_null_check:
        expression = {logic_operator: [_var(rule.field), None]}
    elif operator.is_membership:
        if processed:
            if is_empty_processed(override):
                return None
            items = override
        else:
            items = [operand(v) for v in to_array(rule.value)]
            if not items:
                return None
        expression = {"in": [_var(rule.field), items]}
    elif operator.is_range:
        if processed:
            bounds = processed_bounds(override)
            if bounds is None:
                return None
        else:
            bounds = to_array(rule.value, retain_empty_strings=True)[:2]
            if len(bounds) < 2 or any(is_empty_value(b) for b in bounds):
                return None
            bounds = [operand(b) for b in bounds]
        expression = {"<=": [bounds[0], _var(rule.field), bounds[1]]}
    else:
        if processed:
            value = override
        elif operator.is_text_match and not by_field:
            # Substring tests take string operands
            value = rule.value if isinstance(rule.value, str) else str(rule.value)
        else:
            value = operand(rule.value)
        if operator in (Operator.CONTAINS, Operator.DOES_NOT_CONTAIN):
            expression = {"in": [value, _var(rule.field)]}
        else:
            expression = {logic_operator: [_var(rule.field), value]}

    if operator in _NEGATED:
        return {"!": expression}
    return expression


class JsonLogicFormatter(QueryFormatter):
    """
    Converts rule trees to JsonLogic rules.
    """

    dialect = "jsonlogic"
    fallback_expression = False

    def default_rule_processor(self, rule: Rule, options: FormatOptions, meta: RuleMeta) -> Any:
        return default_rule_processor_jsonlogic(rule, options, meta)

    def is_empty_output(self, output: Any) -> bool:
        return output is None or output == {}

    def combine(self, group: RuleGroup, parts: List[Any], context: FormatContext,
                is_root: bool) -> Dict[str, Any]:
        combinator = COMBINATORS.get(group.combinator.lower())
        if combinator is None:
            raise UnsupportedOperatorError(group.combinator, self.dialect)
        expression = {combinator: parts}
        if group.negated:
            return {"!": expression}
        return expression
