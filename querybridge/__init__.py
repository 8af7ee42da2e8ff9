"""
querybridge: translate rule trees to and from query dialects.

Example usage:
    from querybridge import Rule, RuleGroup, format_query, parse_query

    query = RuleGroup("and", [
        Rule("age", "between", "18,65"),
        Rule("status", "in", ["active", "pending"]),
    ])

    sql, params = format_query(query, "parameterized", parse_numbers=True)
    # sql == "(age between ? and ? and status in (?, ?))"
    # params == [18, 65, "active", "pending"]

    tree = parse_query("a = 1 AND (b = 2 OR c = 3)", "sql")
"""

from .models import (
    Field,
    InterleavedRuleGroup,
    Rule,
    RuleGroup,
    find_path,
    query_from_dict,
    to_interleaved,
    to_standard,
    walk,
)
from .operators import Operator, map_operator, unmap_operator
from .values import ParseNumbers, is_numeric_string, parse_number, to_array
from .config import Config, FormatOptions, ParseOptions
from .validation import QueryValidator, ValidationResult, validate_query
from .formatters import ParameterizedSQL, format_query
from .parsers import parse_query
from .exceptions import (
    ConfigurationError,
    InvalidOptionError,
    InvalidTreeError,
    QueryBridgeError,
    QueryParseError,
    UnknownFieldError,
    UnrepresentableOperatorError,
    UnsupportedOperatorError,
    UnsupportedValueError,
)

__version__ = "1.0.0"

__all__ = [
    # Entry points
    "format_query",
    "parse_query",
    "validate_query",

    # Tree model
    "Rule",
    "RuleGroup",
    "InterleavedRuleGroup",
    "Field",
    "to_standard",
    "to_interleaved",
    "query_from_dict",
    "find_path",
    "walk",

    # Operators and values
    "Operator",
    "map_operator",
    "unmap_operator",
    "ParseNumbers",
    "parse_number",
    "is_numeric_string",
    "to_array",

    # Options
    "Config",
    "FormatOptions",
    "ParseOptions",
    "ParameterizedSQL",

    # Validation
    "QueryValidator",
    "ValidationResult",

    # Errors
    "QueryBridgeError",
    "ConfigurationError",
    "UnknownFieldError",
    "UnsupportedOperatorError",
    "InvalidOptionError",
    "UnrepresentableOperatorError",
    "UnsupportedValueError",
    "InvalidTreeError",
    "QueryParseError",
]
