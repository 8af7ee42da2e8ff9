"""
Canonical rule operators and their per-dialect spellings.

Every formatter resolves operators through map_operator() and every parser
resolves dialect tokens back through unmap_operator(), so an operator a
dialect cannot express fails loudly in both directions.
"""

from enum import Enum
from typing import Dict, Optional

from .exceptions import UnrepresentableOperatorError, UnsupportedOperatorError


class Operator(Enum):
    """Canonical rule operators."""
    # Comparison
    EQ = "="
    NE = "!="
    LT = "<"
    GT = ">"
    LTE = "<="
    GTE = ">="

    # Text
    CONTAINS = "contains"
    BEGINS_WITH = "beginsWith"
    ENDS_WITH = "endsWith"
    DOES_NOT_CONTAIN = "doesNotContain"
    DOES_NOT_BEGIN_WITH = "doesNotBeginWith"
    DOES_NOT_END_WITH = "doesNotEndWith"

    # Existence
    NULL = "null"
    NOT_NULL = "notNull"

    # Multi-value
    IN = "in"
    NOT_IN = "notIn"
    BETWEEN = "between"
    NOT_BETWEEN = "notBetween"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string names a canonical operator (case-insensitive)."""
        return cls.from_string(value) is not None

    @classmethod
    def from_string(cls, value: str) -> Optional['Operator']:
        """Convert string to operator, ignoring case."""
        if not isinstance(value, str):
            return None
        return _BY_LOWER_NAME.get(value.strip().lower())

    @property
    def is_null_check(self) -> bool:
        return self in (Operator.NULL, Operator.NOT_NULL)

    @property
    def is_membership(self) -> bool:
        return self in (Operator.IN, Operator.NOT_IN)

    @property
    def is_range(self) -> bool:
        return self in (Operator.BETWEEN, Operator.NOT_BETWEEN)

    @property
    def is_text_match(self) -> bool:
        return self in TEXT_OPERATORS

    @property
    def takes_value(self) -> bool:
        return not self.is_null_check


_BY_LOWER_NAME: Dict[str, Operator] = {op.value.lower(): op for op in Operator}

TEXT_OPERATORS = frozenset({
    Operator.CONTAINS, Operator.BEGINS_WITH, Operator.ENDS_WITH,
    Operator.DOES_NOT_CONTAIN, Operator.DOES_NOT_BEGIN_WITH, Operator.DOES_NOT_END_WITH,
})

NEGATED_TEXT_OPERATORS = frozenset({
    Operator.DOES_NOT_CONTAIN, Operator.DOES_NOT_BEGIN_WITH, Operator.DOES_NOT_END_WITH,
})

_INVERSES = {
    Operator.EQ: Operator.NE,
    Operator.LT: Operator.GTE,
    Operator.GT: Operator.LTE,
    Operator.CONTAINS: Operator.DOES_NOT_CONTAIN,
    Operator.BEGINS_WITH: Operator.DOES_NOT_BEGIN_WITH,
    Operator.ENDS_WITH: Operator.DOES_NOT_END_WITH,
    Operator.NULL: Operator.NOT_NULL,
    Operator.IN: Operator.NOT_IN,
    Operator.BETWEEN: Operator.NOT_BETWEEN,
}
_INVERSES.update({v: k for k, v in list(_INVERSES.items())})

# Operand order swap: "5 < age" is "age > 5".
FLIPPED_COMPARISONS = {
    Operator.EQ: Operator.EQ,
    Operator.NE: Operator.NE,
    Operator.LT: Operator.GT,
    Operator.GT: Operator.LT,
    Operator.LTE: Operator.GTE,
    Operator.GTE: Operator.LTE,
}


def invert_operator(operator: Operator) -> Operator:
    """Logical complement of an operator (used to fold negations in parsers)."""
    return _INVERSES[operator]


# Per-dialect spellings. Lower-case SQL keywords, matching the formatter output.
SQL_OPERATORS = {
    Operator.EQ: "=",
    Operator.NE: "!=",
    Operator.LT: "<",
    Operator.GT: ">",
    Operator.LTE: "<=",
    Operator.GTE: ">=",
    Operator.CONTAINS: "like",
    Operator.BEGINS_WITH: "like",
    Operator.ENDS_WITH: "like",
    Operator.DOES_NOT_CONTAIN: "not like",
    Operator.DOES_NOT_BEGIN_WITH: "not like",
    Operator.DOES_NOT_END_WITH: "not like",
    Operator.NULL: "is null",
    Operator.NOT_NULL: "is not null",
    Operator.IN: "in",
    Operator.NOT_IN: "not in",
    Operator.BETWEEN: "between",
    Operator.NOT_BETWEEN: "not between",
}

MONGODB_OPERATORS = {
    Operator.EQ: "$eq",
    Operator.NE: "$ne",
    Operator.LT: "$lt",
    Operator.GT: "$gt",
    Operator.LTE: "$lte",
    Operator.GTE: "$gte",
    Operator.CONTAINS: "$regex",
    Operator.BEGINS_WITH: "$regex",
    Operator.ENDS_WITH: "$regex",
    Operator.DOES_NOT_CONTAIN: "$regex",
    Operator.DOES_NOT_BEGIN_WITH: "$regex",
    Operator.DOES_NOT_END_WITH: "$regex",
    Operator.NULL: "$eq",
    Operator.NOT_NULL: "$ne",
    Operator.IN: "$in",
    Operator.NOT_IN: "$nin",
    Operator.BETWEEN: "$gte",
    Operator.NOT_BETWEEN: "$lt",
}

JSONLOGIC_OPERATORS = {
    Operator.EQ: "==",
    Operator.NE: "!=",
    Operator.LT: "<",
    Operator.GT: ">",
    Operator.LTE: "<=",
    Operator.GTE: ">=",
    Operator.CONTAINS: "in",
    Operator.BEGINS_WITH: "startsWith",
    Operator.ENDS_WITH: "endsWith",
    Operator.DOES_NOT_CONTAIN: "in",
    Operator.DOES_NOT_BEGIN_WITH: "startsWith",
    Operator.DOES_NOT_END_WITH: "endsWith",
    Operator.NULL: "==",
    Operator.NOT_NULL: "!=",
    Operator.IN: "in",
    Operator.NOT_IN: "in",
    Operator.BETWEEN: "<=",
    Operator.NOT_BETWEEN: "<=",
}

CEL_OPERATORS = {
    Operator.EQ: "==",
    Operator.NE: "!=",
    Operator.LT: "<",
    Operator.GT: ">",
    Operator.LTE: "<=",
    Operator.GTE: ">=",
    Operator.CONTAINS: "contains",
    Operator.BEGINS_WITH: "startsWith",
    Operator.ENDS_WITH: "endsWith",
    Operator.DOES_NOT_CONTAIN: "contains",
    Operator.DOES_NOT_BEGIN_WITH: "startsWith",
    Operator.DOES_NOT_END_WITH: "endsWith",
    Operator.NULL: "==",
    Operator.NOT_NULL: "!=",
    Operator.IN: "in",
    Operator.NOT_IN: "in",
    Operator.BETWEEN: "between",
    Operator.NOT_BETWEEN: "between",
}

SPEL_OPERATORS = dict(CEL_OPERATORS)
SPEL_OPERATORS.update({
    Operator.IN: "contains",
    Operator.NOT_IN: "contains",
})

NATURAL_LANGUAGE_OPERATORS = {
    Operator.EQ: "is",
    Operator.NE: "is not",
    Operator.LT: "is less than",
    Operator.GT: "is greater than",
    Operator.LTE: "is less than or equal to",
    Operator.GTE: "is greater than or equal to",
    Operator.CONTAINS: "contains",
    Operator.BEGINS_WITH: "starts with",
    Operator.ENDS_WITH: "ends with",
    Operator.DOES_NOT_CONTAIN: "does not contain",
    Operator.DOES_NOT_BEGIN_WITH: "does not start with",
    Operator.DOES_NOT_END_WITH: "does not end with",
    Operator.NULL: "is null",
    Operator.NOT_NULL: "is not null",
    Operator.IN: "is one of",
    Operator.NOT_IN: "is not one of",
    Operator.BETWEEN: "is between",
    Operator.NOT_BETWEEN: "is not between",
}

# Qdrant has no prefix/suffix text match.
QDRANT_OPERATORS = {
    Operator.EQ: "match",
    Operator.NE: "match",
    Operator.LT: "range",
    Operator.GT: "range",
    Operator.LTE: "range",
    Operator.GTE: "range",
    Operator.CONTAINS: "text",
    Operator.DOES_NOT_CONTAIN: "text",
    Operator.NULL: "is_null",
    Operator.NOT_NULL: "is_null",
    Operator.IN: "any",
    Operator.NOT_IN: "except",
    Operator.BETWEEN: "range",
    Operator.NOT_BETWEEN: "range",
}

OPERATOR_TABLES: Dict[str, Dict[Operator, str]] = {
    "sql": SQL_OPERATORS,
    "parameterized": SQL_OPERATORS,
    "parameterized_named": SQL_OPERATORS,
    "mongodb": MONGODB_OPERATORS,
    "jsonlogic": JSONLOGIC_OPERATORS,
    "cel": CEL_OPERATORS,
    "spel": SPEL_OPERATORS,
    "natural_language": NATURAL_LANGUAGE_OPERATORS,
    "qdrant": QDRANT_OPERATORS,
}

# Tokens read back by the text parsers. Ambiguous tokens (LIKE, regex,
# method names) are resolved by the parsers from the value shape.
INVERSE_TABLES: Dict[str, Dict[str, Operator]] = {
    "sql": {
        "=": Operator.EQ, "==": Operator.EQ,
        "!=": Operator.NE, "<>": Operator.NE,
        "<": Operator.LT, ">": Operator.GT,
        "<=": Operator.LTE, ">=": Operator.GTE,
    },
    "cel": {
        "==": Operator.EQ, "!=": Operator.NE,
        "<": Operator.LT, ">": Operator.GT,
        "<=": Operator.LTE, ">=": Operator.GTE,
        "contains": Operator.CONTAINS,
        "startswith": Operator.BEGINS_WITH,
        "endswith": Operator.ENDS_WITH,
    },
    "spel": {
        "==": Operator.EQ, "eq": Operator.EQ,
        "!=": Operator.NE, "ne": Operator.NE,
        "<": Operator.LT, "lt": Operator.LT,
        ">": Operator.GT, "gt": Operator.GT,
        "<=": Operator.LTE, "le": Operator.LTE,
        ">=": Operator.GTE, "ge": Operator.GTE,
        "contains": Operator.CONTAINS,
        "startswith": Operator.BEGINS_WITH,
        "endswith": Operator.ENDS_WITH,
    },
    "mongodb": {
        "$eq": Operator.EQ, "$ne": Operator.NE,
        "$lt": Operator.LT, "$gt": Operator.GT,
        "$lte": Operator.LTE, "$gte": Operator.GTE,
        "$in": Operator.IN, "$nin": Operator.NOT_IN,
    },
    "jsonlogic": {
        "==": Operator.EQ, "===": Operator.EQ,
        "!=": Operator.NE, "!==": Operator.NE,
        "<": Operator.LT, ">": Operator.GT,
        "<=": Operator.LTE, ">=": Operator.GTE,
        "startswith": Operator.BEGINS_WITH,
        "endswith": Operator.ENDS_WITH,
    },
}


def resolve_operator(operator: str, dialect: str = "canonical") -> Operator:
    """Resolve a canonical operator name, raising if it is unknown."""
    resolved = Operator.from_string(operator)
    if resolved is None:
        raise UnsupportedOperatorError(operator, dialect)
    return resolved


def map_operator(operator, dialect: str) -> str:
    """
    Translate a canonical operator to its dialect token.

    Args:
        operator: Operator member or canonical operator name (any case)
        dialect: Target dialect name

    Returns:
        The dialect spelling of the operator

    Raises:
        UnsupportedOperatorError: Unknown operator, or one the dialect cannot express
    """
    op = operator if isinstance(operator, Operator) else resolve_operator(operator, dialect)
    table = OPERATOR_TABLES.get(dialect)
    if table is None or op not in table:
        raise UnsupportedOperatorError(op.value, dialect)
    return table[op]


def unmap_operator(token: str, dialect: str) -> Operator:
    """
    Translate a dialect operator token back to a canonical operator.

    Raises:
        UnrepresentableOperatorError: The token has no canonical equivalent
    """
    table = INVERSE_TABLES.get(dialect, {})
    key = token.strip().lower() if isinstance(token, str) else token
    if key not in table:
        raise UnrepresentableOperatorError(token, dialect)
    return table[key]


def supports_operator(operator, dialect: str) -> bool:
    """Check if a dialect can express an operator."""
    op = operator if isinstance(operator, Operator) else Operator.from_string(operator)
    return op is not None and op in OPERATOR_TABLES.get(dialect, {})
