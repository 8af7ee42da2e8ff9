"""
Formatters: canonical rule tree -> dialect output.

Example usage:
    from querybridge.formatters import format_query

    sql, params = format_query(query, "parameterized", parse_numbers=True)
"""

import json
import logging
from typing import Any, Dict, Mapping, Type, Union

from ..config import FormatOptions
from ..models import InterleavedRuleGroup, Rule, RuleGroup, query_from_dict
from .base import (
    FormatContext, ParamCounter, QueryFormatter, RuleMeta, make_named_param_generator,
)
from .cel import CELFormatter
from .jsonlogic import JsonLogicFormatter, default_rule_processor_jsonlogic
from .mongodb import MongoDBFormatter, default_rule_processor_mongodb
from .natural_language import NaturalLanguageFormatter, default_rule_processor_natural_language
from .qdrant import QdrantFormatter
from .spel import SpELFormatter
from .sql import (
    NamedParameterSQLFormatter, ParameterizedSQL, ParameterizedSQLFormatter, SQLFormatter,
    default_rule_processor_parameterized, default_rule_processor_sql, default_value_processor,
)

logger = logging.getLogger(__name__)

FORMATTERS: Dict[str, Type[QueryFormatter]] = {
    "sql": SQLFormatter,
    "parameterized": ParameterizedSQLFormatter,
    "parameterized_named": NamedParameterSQLFormatter,
    "mongodb": MongoDBFormatter,
    "jsonlogic": JsonLogicFormatter,
    "cel": CELFormatter,
    "spel": SpELFormatter,
    "natural_language": NaturalLanguageFormatter,
    "qdrant": QdrantFormatter,
}


def get_formatter(dialect: str) -> QueryFormatter:
    """Create a formatter for a dialect name."""
    return FORMATTERS[dialect]()


def format_query(query: Union[Rule, RuleGroup, InterleavedRuleGroup, Mapping[str, Any]],
                 format: Union[None, str, FormatOptions, Mapping[str, Any]] = None,
                 **overrides) -> Any:
    """
    Format a rule tree in the requested dialect.

    Args:
        query: Root group, single rule, or the equivalent dict
        format: Format name, FormatOptions, or an options dict
        **overrides: Individual FormatOptions fields

    Returns:
        str for sql/cel/spel/natural_language/json, ParameterizedSQL for the
        parameterized formats, dict for mongodb/jsonlogic, Filter for qdrant

    Raises:
        UnsupportedOperatorError: A rule uses an operator the dialect cannot express
        UnknownFieldError: A rule names a field missing from options.fields
    """
    options = FormatOptions.build(format, **overrides).resolve()
    if isinstance(query, Mapping):
        query = query_from_dict(query)

    if options.format in ("json", "json_without_ids"):
        return json.dumps(query.to_dict(include_ids=options.format == "json"), indent=2)

    logger.debug(f"Formatting query as {options.format}")
    return get_formatter(options.format).format(query, options)


__all__ = [
    'format_query',
    'get_formatter',
    'FORMATTERS',

    # Formatters
    'QueryFormatter',
    'SQLFormatter',
    'ParameterizedSQLFormatter',
    'NamedParameterSQLFormatter',
    'MongoDBFormatter',
    'JsonLogicFormatter',
    'CELFormatter',
    'SpELFormatter',
    'NaturalLanguageFormatter',
    'QdrantFormatter',

    # Processors and helpers
    'default_value_processor',
    'default_rule_processor_sql',
    'default_rule_processor_parameterized',
    'default_rule_processor_mongodb',
    'default_rule_processor_jsonlogic',
    'default_rule_processor_natural_language',
    'make_named_param_generator',
    'FormatContext',
    'ParamCounter',
    'ParameterizedSQL',
    'RuleMeta',
]
