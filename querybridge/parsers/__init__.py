"""
Parsers: dialect input -> canonical rule tree.

Example usage:
    from querybridge.parsers import parse_query

    tree = parse_query("a = 1 AND (b = 2 OR c = 3)", "sql")
"""

import logging
from typing import Any, Dict, Mapping, Type, Union

from ..config import PARSE_DIALECTS, ParseOptions
from ..exceptions import InvalidOptionError
from ..models import AnyGroup
from .base import Clause, FieldRef, QueryParser, TextQueryParser
from .cel import CELParser
from .jsonlogic import JsonLogicParser
from .mongodb import MongoDBParser
from .spel import SpELParser
from .sql import SQLParser

logger = logging.getLogger(__name__)

PARSERS: Dict[str, Type[QueryParser]] = {
    "sql": SQLParser,
    "cel": CELParser,
    "spel": SpELParser,
    "mongodb": MongoDBParser,
    "jsonlogic": JsonLogicParser,
}


def get_parser(dialect: str) -> QueryParser:
    """Create a parser for a dialect name."""
    name = (dialect or "").strip().lower()
    if name not in PARSE_DIALECTS:
        raise InvalidOptionError(f"Unknown parse dialect: {dialect}")
    return PARSERS[name]()


def parse_query(source: Any, dialect: str,
                options: Union[None, ParseOptions, Mapping[str, Any]] = None,
                **overrides) -> AnyGroup:
    """
    Parse dialect input into a new rule tree.

    Args:
        source: SQL/CEL/SpEL text, or a MongoDB/JsonLogic document (dict or JSON text)
        dialect: One of "sql", "cel", "spel", "mongodb", "jsonlogic"
        options: ParseOptions or an options dict
        **overrides: Individual ParseOptions fields

    Returns:
        RuleGroup, or InterleavedRuleGroup with independent_combinators=True

    Raises:
        QueryParseError: Malformed input (with position/line/column where known)
        UnrepresentableOperatorError: Dialect construct without a canonical operator
    """
    parser = get_parser(dialect)
    resolved = ParseOptions.build(options, **overrides).resolve()
    logger.debug(f"Parsing {parser.dialect} input")
    return parser.parse(source, resolved)


__all__ = [
    'parse_query',
    'get_parser',
    'PARSERS',
    'QueryParser',
    'TextQueryParser',
    'SQLParser',
    'CELParser',
    'SpELParser',
    'MongoDBParser',
    'JsonLogicParser',
    'Clause',
    'FieldRef',
]
