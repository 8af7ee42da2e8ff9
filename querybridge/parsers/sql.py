"""
SQL WHERE-clause parser.

Covers the filter subset the SQL formatters emit: comparisons, LIKE
patterns, IN lists, BETWEEN, IS [NOT] NULL, NOT, AND / OR and parentheses.
Identifiers may be quoted with "", `` or [].
"""

from lark import v_args

from ..exceptions import UnrepresentableOperatorError
from ..operators import Operator, invert_operator
from ..models import Rule
from .base import ClauseTransformer, FieldRef, TextQueryParser, is_keyword, list_rule


SQL_GRAMMAR = r"""
?start: expr

expr: term (connective term)*
connective: AND | OR

?term: NOT term                                        -> negation
     | "(" expr ")"                                    -> paren
     | predicate

?predicate: value COMPARATOR value                     -> comparison
          | field NOT? LIKE value                      -> like
          | field NOT? IN "(" (value ("," value)*)? ")" -> membership
          | field NOT? BETWEEN value AND value          -> range
          | field IS NOT? NULL                         -> null_check

?value: field
      | literal

field: IDENT | QUOTED_IDENT

?literal: STRING                                       -> string
        | NUMBER                                       -> number
        | TRUE                                         -> true
        | FALSE                                        -> false
        | NULL                                         -> null

AND: "and"i
OR: "or"i
NOT: "not"i
LIKE: "like"i
IN: "in"i
BETWEEN: "between"i
IS: "is"i
NULL: "null"i
TRUE: "true"i
FALSE: "false"i

COMPARATOR: "<>" | "!=" | "<=" | ">=" | "==" | "=" | "<" | ">"
IDENT: /[a-z_][a-z0-9_.$]*/i
QUOTED_IDENT: /"(?:[^"]|"")*"/ | /`[^`]*`/ | /\[[^\]]*\]/
STRING: /'(?:[^']|'')*'/
NUMBER: /[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?/i

%import common.WS
%ignore WS
"""


def _operands(children):
    return [child for child in children if not is_keyword(child, "NOT", "LIKE", "IN", "BETWEEN",
                                                         "AND", "IS", "NULL")]


def _negated(children) -> bool:
    return any(is_keyword(child, "NOT") for child in children)


def like_operator(pattern: str):
    """Map a LIKE pattern to (operator, value) by its % anchors."""
    if len(pattern) >= 2 and pattern.startswith('%') and pattern.endswith('%'):
        return Operator.CONTAINS, pattern[1:-1]
    if pattern.endswith('%'):
        return Operator.BEGINS_WITH, pattern[:-1]
    if pattern.startswith('%'):
        return Operator.ENDS_WITH, pattern[1:]
    return Operator.EQ, pattern


@v_args(inline=True)
class SQLTransformer(ClauseTransformer):
    dialect = "sql"

    def string(self, token):
        return str(token)[1:-1].replace("''", "'")

    def field(self, token):
        name = str(token)
        if token.type == "QUOTED_IDENT":
            quote = name[0]
            name = name[1:-1]
            if quote == '"':
                name = name.replace('""', '"')
        return FieldRef(name)

    def like(self, field, *children):
        (pattern,) = _operands(children)
        if isinstance(pattern, FieldRef) or pattern is None:
            raise UnrepresentableOperatorError("like", self.dialect)
        operator, value = like_operator(str(pattern))
        if _negated(children):
            operator = invert_operator(operator)
        return Rule(field.name, operator.value, value)

    def membership(self, field, *children):
        operator = Operator.NOT_IN if _negated(children) else Operator.IN
        return list_rule(field.name, operator, _operands(children))

    def range(self, field, *children):
        operator = Operator.NOT_BETWEEN if _negated(children) else Operator.BETWEEN
        return list_rule(field.name, operator, _operands(children))

    def null_check(self, field, *children):
        operator = Operator.NOT_NULL if _negated(children) else Operator.NULL
        return Rule(field.name, operator.value, None)


class SQLParser(TextQueryParser):
    """
    Parses SQL WHERE clauses into rule trees.

    Example:
        parse_query("a = 1 AND (b = 2 OR c = 3)", "sql")
    """

    dialect = "sql"
    root_parenthesized = True
    grammar = SQL_GRAMMAR
    transformer_class = SQLTransformer
