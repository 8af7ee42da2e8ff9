"""
SQL formatters: plain SQL, positional/numbered parameters and named parameters.

Plain SQL inlines literals produced by the value processor. The
parameterized variants bind values instead; every placeholder consumes one
slot of the per-call ParamCounter in depth-first order, so placeholder N in
the emitted text always binds params[N-1].
"""

import re
from dataclasses import replace
from typing import Any, Dict, List, NamedTuple, Optional, Union

from ..config import FormatOptions
from ..exceptions import InvalidOptionError
from ..models import Rule, RuleGroup
from ..operators import Operator, map_operator
from ..values import (
    NUMERIC_REGEX, coerce_value, escape_quotes, is_empty_value, parse_number,
    should_render_as_number, to_array,
)
from .base import (
    FormatContext, QueryFormatter, RuleMeta, make_named_param_generator, quote_field,
)


class ParameterizedSQL(NamedTuple):
    """Result of the parameterized formats: unpacks as (sql, params)."""
    sql: str
    params: Union[List[Any], Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {"sql": self.sql, "params": self.params}


# Whole-literal single quotes; inner escaped quotes are left as they are
_QUOTED_LITERAL = re.compile(r"^'.*'$")


def _unquote(value: Any) -> Any:
    """Strip one pair of outer single quotes from a processed literal."""
    if isinstance(value, str) and _QUOTED_LITERAL.match(value):
        return value[1:-1]
    return value


def _like_pattern(operator: Operator, value: Any) -> str:
    if operator in (Operator.BEGINS_WITH, Operator.DOES_NOT_BEGIN_WITH):
        return f"{value}%"
    if operator in (Operator.ENDS_WITH, Operator.DOES_NOT_END_WITH):
        return f"%{value}"
    return f"%{value}%"


def _concat(parts: List[str], concat_operator: str) -> str:
    if concat_operator.strip().upper() == "CONCAT":
        return f"CONCAT({', '.join(parts)})"
    return f" {concat_operator} ".join(parts)


def sql_literal(value: Any, parse_numbers: Any) -> str:
    """Render one scalar as an SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if should_render_as_number(value, parse_numbers):
        if isinstance(value, str) and NUMERIC_REGEX.match(value):
            return value.strip()
        return str(parse_number(value, parse_numbers))
    return f"'{escape_quotes(value)}'"


def _field_sourced_value(rule: Rule, operator: Optional[Operator], options: FormatOptions) -> str:
    if operator is not None and operator.is_membership:
        names = to_array(rule.value)
        return f"({', '.join(quote_field(n, options) for n in names)})" if names else ""
    if operator is not None and operator.is_range:
        names = to_array(rule.value, retain_empty_strings=True)[:2]
        if len(names) < 2 or any(is_empty_value(n) for n in names):
            return ""
        return f"{quote_field(names[0], options)} and {quote_field(names[1], options)}"
    if operator is not None and operator.is_text_match:
        other = quote_field(rule.value, options)
        if operator in (Operator.BEGINS_WITH, Operator.DOES_NOT_BEGIN_WITH):
            return _concat([other, "'%'"], options.concat_operator)
        if operator in (Operator.ENDS_WITH, Operator.DOES_NOT_END_WITH):
            return _concat(["'%'", other], options.concat_operator)
        return _concat(["'%'", other, "'%'"], options.concat_operator)
    return quote_field(rule.value, options)


def default_value_processor(rule: Rule, options: FormatOptions) -> str:
    """
    Render a rule's value as an SQL literal (or field reference).

    Multi-value operators with no usable operands render as "" so callers can
    skip the rule instead of emitting "in ()" or a one-sided range.
    """
    operator = Operator.from_string(rule.operator)
    parse_numbers = options.parse_numbers

    if rule.value_source == "field":
        return _field_sourced_value(rule, operator, options)
    if operator is not None and operator.is_null_check:
        return ""
    if operator is not None and operator.is_membership:
        items = to_array(rule.value)
        if not items:
            return ""
        return f"({', '.join(sql_literal(v, parse_numbers) for v in items)})"
    if operator is not None and operator.is_range:
        bounds = to_array(rule.value, retain_empty_strings=True)[:2]
        if len(bounds) < 2 or any(is_empty_value(b) for b in bounds):
            return ""
        return f"{sql_literal(bounds[0], parse_numbers)} and {sql_literal(bounds[1], parse_numbers)}"
    if operator is not None and operator.is_text_match:
        return f"'{escape_quotes(_like_pattern(operator, rule.value))}'"
    return sql_literal(rule.value, parse_numbers)


def _value_for(rule: Rule, options: FormatOptions) -> str:
    processor = options.value_processor or default_value_processor
    return processor(rule, options)


def default_rule_processor_sql(rule: Rule, options: FormatOptions,
                               meta: Optional[RuleMeta] = None) -> str:
    """Plain SQL clause for one rule; "" when the rule has nothing to emit."""
    operator = Operator.from_string(rule.operator)
    sql_operator = map_operator(rule.operator, "sql")
    field_ref = quote_field(rule.field, options)

    if operator.is_null_check:
        return f"{field_ref} {sql_operator}"

    value = _value_for(rule, options)
    if (operator.is_membership or operator.is_range) and not value:
        return ""
    return f"{field_ref} {sql_operator} {value}".strip()


def default_rule_processor_parameterized(rule: Rule, options: FormatOptions,
                                         meta: Optional[RuleMeta] = None) -> ParameterizedSQL:
    """
    Parameterized clause for one rule.

    Positional mode ("parameterized") returns a list of params and uses "?" or
    numbered placeholders continuing from meta.processed_params. Named mode
    ("parameterized_named") mints one name per bound value through
    options.get_next_named_param.
    """
    parameterized = options.format == "parameterized"
    processed = meta.processed_params if meta is not None else 0
    prefix = options.param_prefix
    params: List[Any] = []
    named: Dict[str, Any] = {}

    def finalize(sql: str) -> ParameterizedSQL:
        return ParameterizedSQL(sql, params if parameterized else named)

    def placeholder(offset: int) -> str:
        if options.numbered_params:
            return f"{prefix}{processed + offset}"
        return "?"

    def bind_named(value: Any) -> str:
        if options.get_next_named_param is None:
            raise InvalidOptionError("Named parameters require get_next_named_param")
        name = options.get_next_named_param(rule.field)
        named[f"{prefix if options.params_keep_prefix else ''}{name}"] = value
        return f"{prefix}{name}"

    operator = Operator.from_string(rule.operator)
    sql_operator = map_operator(rule.operator, options.format)
    field_ref = quote_field(rule.field, options)
    value = _value_for(rule, options)
    parse_numbers = options.parse_numbers

    if (operator.is_membership or operator.is_range) and not value:
        return finalize("")
    if operator.is_null_check:
        return finalize(f"{field_ref} {sql_operator}")
    if rule.value_source == "field":
        return finalize(f"{field_ref} {sql_operator} {value}".strip())

    if operator.is_membership:
        items = [coerce_value(v, parse_numbers) for v in to_array(rule.value)]
        if parameterized:
            params.extend(items)
            tokens = [placeholder(i + 1) for i in range(len(items))]
        else:
            tokens = [bind_named(v) for v in items]
        return finalize(f"{field_ref} {sql_operator} ({', '.join(tokens)})")

    if operator.is_range:
        bounds = to_array(rule.value, retain_empty_strings=True)[:2]
        bounds += [None] * (2 - len(bounds))
        first, second = [None if is_empty_value(b) else coerce_value(b, parse_numbers) for b in bounds]
        if parameterized:
            params.extend([first, second])
            return finalize(f"{field_ref} {sql_operator} {placeholder(1)} and {placeholder(2)}")
        first_name = bind_named(first)
        second_name = bind_named(second)
        return finalize(f"{field_ref} {sql_operator} {first_name} and {second_name}")

    param_value = rule.value
    if operator.is_text_match:
        # Bind the LIKE pattern, wildcards included
        param_value = _unquote(value)
    elif isinstance(rule.value, str):
        if should_render_as_number(rule.value, parse_numbers):
            param_value = parse_number(rule.value, parse_numbers)
        else:
            param_value = _unquote(value)

    token = placeholder(1) if parameterized else None
    if parameterized:
        params.append(param_value)
    else:
        token = bind_named(param_value)
    return finalize(f"{field_ref} {sql_operator} {token}".strip())


class SQLFormatter(QueryFormatter):
    """
    Plain SQL WHERE clause with inlined literals.
    """

    dialect = "sql"
    fallback_expression = "(1 = 1)"

    def default_rule_processor(self, rule: Rule, options: FormatOptions, meta: RuleMeta) -> str:
        return default_rule_processor_sql(rule, options, meta)

    def combine(self, group: RuleGroup, parts: List[str], context: FormatContext,
                is_root: bool) -> str:
        clause = f" {group.combinator} ".join(parts)
        return f"{'NOT ' if group.negated else ''}({clause})"


class ParameterizedSQLFormatter(SQLFormatter):
    """
    SQL with positional ("?" or numbered) placeholders and a params list.
    """

    dialect = "parameterized"

    def create_context(self, options: FormatOptions) -> FormatContext:
        if options.get_next_named_param is None:
            options = replace(options, get_next_named_param=make_named_param_generator())
        return FormatContext(options=options)

    def default_rule_processor(self, rule: Rule, options: FormatOptions,
                               meta: RuleMeta) -> ParameterizedSQL:
        return default_rule_processor_parameterized(rule, options, meta)

    def collect(self, result: Any, context: FormatContext) -> str:
        if isinstance(result, str):
            return result
        if isinstance(result, dict):
            sql, params = result.get("sql", ""), result.get("params", [])
        else:
            sql, params = result
        if isinstance(params, dict):
            for key, value in params.items():
                if key in context.named_params:
                    raise InvalidOptionError(f"Duplicate parameter name: {key}")
                context.named_params[key] = value
            context.counter.advance(len(params))
        else:
            context.params.extend(params)
            context.counter.advance(len(params))
        return sql

    def finalize(self, output: Any, context: FormatContext) -> ParameterizedSQL:
        sql = super().finalize(output, context)
        if self.dialect == "parameterized_named":
            return ParameterizedSQL(sql, context.named_params)
        return ParameterizedSQL(sql, context.params)


class NamedParameterSQLFormatter(ParameterizedSQLFormatter):
    """
    SQL with named placeholders (":field_1") and a params mapping.
    """

    dialect = "parameterized_named"
