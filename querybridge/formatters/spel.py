"""
Spring Expression Language (SpEL) formatter.
"""

from typing import Any, List

from ..values import escape_quotes
from .cel import CELFormatter


class SpELFormatter(CELFormatter):
    """
    Converts rule trees to SpEL expressions.

    Strings use single quotes (doubled to escape), connectives are "and" /
    "or", and membership is written as an inline list: {'a', 'b'}.contains(field).
    """

    dialect = "spel"
    fallback_expression = "1 == 1"
    connectives = {"and": "and", "or": "or"}

    def quote_string(self, value: Any) -> str:
        return f"'{escape_quotes(value)}'"

    def list_literal(self, items: List[str]) -> str:
        return f"{{{', '.join(items)}}}"

    def membership(self, field: str, items: str, negated: bool) -> str:
        expression = f"{items}.contains({field})"
        return f"!{expression}" if negated else expression
