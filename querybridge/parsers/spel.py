"""
Spring Expression Language (SpEL) parser.

Accepts both symbolic and textual operators (==/eq, <=/le, &&/and, !/not).
"""

from lark import v_args

from ..exceptions import QueryParseError, UnrepresentableOperatorError
from ..operators import Operator
from .base import ClauseTransformer, FieldRef, TextQueryParser, list_rule, method_rule
from .cel import split_call
from .mongodb import regex_rule


SPEL_GRAMMAR = r"""
?start: expr

expr: term (connective term)*
connective: AND | AND_SYM | OR | OR_SYM

?term: (NOT | NOT_SYM) term                            -> negation
     | "(" expr ")"                                    -> paren
     | predicate

?predicate: value comparator value                     -> comparison
          | value MATCHES value                        -> matches
          | IDENT "(" (value ("," value)*)? ")"        -> call
          | inline_list "." IDENT "(" value ")"        -> list_call

!comparator: COMPARATOR | EQ | NE | LT | LE | GT | GE

?value: field
      | literal

field: IDENT
inline_list: "{" (value ("," value)*)? "}"

?literal: STRING                                       -> string
        | NUMBER                                       -> number
        | TRUE                                         -> true
        | FALSE                                        -> false
        | NULL                                         -> null

AND: "and"i
OR: "or"i
NOT: "not"i
AND_SYM: "&&"
OR_SYM: "||"
NOT_SYM: "!"
MATCHES: "matches"i
EQ: "eq"i
NE: "ne"i
LT: "lt"i
LE: "le"i
GT: "gt"i
GE: "ge"i
TRUE: "true"i
FALSE: "false"i
NULL: "null"i

COMPARATOR: "==" | "!=" | "<=" | ">=" | "<" | ">"
IDENT: /[a-z_][a-z0-9_]*(?:\.[a-z_][a-z0-9_]*)*/i
STRING: /'(?:[^']|'')*'/ | /"(?:[^"]|"")*"/
NUMBER: /[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?/i

%import common.WS
%ignore WS
"""


@v_args(inline=True)
class SpELTransformer(ClauseTransformer):
    dialect = "spel"
    null_comparisons = True

    def string(self, token):
        text = str(token)
        quote = text[0]
        return text[1:-1].replace(quote * 2, quote)

    def comparator(self, token):
        return str(token)

    def inline_list(self, *items):
        return list(items)

    def matches(self, left, _matches, right):
        # Only literal patterns with optional ^ / $ anchors map to text operators
        if not isinstance(left, FieldRef) or isinstance(right, FieldRef):
            raise UnrepresentableOperatorError("matches", self.dialect)
        return regex_rule(left.name, right, self.dialect)

    def call(self, name, *args):
        target, method = split_call(str(name))
        return method_rule(target, method, list(args), self.dialect)

    def list_call(self, items, method, target):
        # {a, b}.contains(field) is membership
        if str(method).lower() != "contains":
            raise UnrepresentableOperatorError(str(method), self.dialect)
        if not isinstance(target, FieldRef):
            raise QueryParseError("Inline list contains() needs a field argument")
        return list_rule(target.name, Operator.IN, items)


class SpELParser(TextQueryParser):
    """
    Parses SpEL expressions into rule trees.
    """

    dialect = "spel"
    recover_ranges = True
    grammar = SPEL_GRAMMAR
    transformer_class = SpELTransformer
