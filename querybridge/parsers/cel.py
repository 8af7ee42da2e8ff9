"""
Common Expression Language (CEL) parser.
"""

from lark import v_args

from ..exceptions import QueryParseError
from ..models import Rule
from ..operators import Operator
from ..values import unescape_backslash_string
from .base import (
    Clause, ClauseTransformer, FieldRef, TextQueryParser, invert_rule, list_rule, method_rule,
    negate,
)


CEL_GRAMMAR = r"""
?start: expr

expr: term (connective term)*
connective: AND | OR

?term: NOT term                                        -> negation
     | "(" expr ")"                                    -> paren
     | predicate

?predicate: value COMPARATOR value                     -> comparison
          | value IN value_list                        -> membership
          | IDENT "(" (value ("," value)*)? ")"        -> call

?value: field
      | literal

field: IDENT
value_list: "[" (value ("," value)*)? "]"

?literal: STRING                                       -> string
        | NUMBER                                       -> number
        | TRUE                                         -> true
        | FALSE                                        -> false
        | NULL                                         -> null

AND: "&&"
OR: "||"
NOT: "!"
IN: "in"
TRUE: "true"
FALSE: "false"
NULL: "null"

COMPARATOR: "==" | "!=" | "<=" | ">=" | "<" | ">"
IDENT: /[a-zA-Z_][a-zA-Z0-9_]*(?:\.[a-zA-Z_][a-zA-Z0-9_]*)*/
STRING: /"(?:[^"\\]|\\.)*"/ | /'(?:[^'\\]|\\.)*'/
NUMBER: /[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?/

%import common.WS
%ignore WS
"""


def split_call(name: str):
    """Split a dotted call name into its receiver field and method name."""
    target, _, method = name.rpartition('.')
    if not target:
        raise QueryParseError(f"Call to '{name}' has no receiver")
    return FieldRef(target), method


@v_args(inline=True)
class CELTransformer(ClauseTransformer):
    dialect = "cel"
    null_comparisons = True

    def string(self, token):
        return unescape_backslash_string(str(token)[1:-1])

    def negation(self, _not, term):
        # !(f in [...]) is how a notIn rule is written
        if (isinstance(term, Clause) and not term.negated and len(term.items) == 1 and
                isinstance(term.items[0], Rule) and term.items[0].operator == Operator.IN.value):
            return invert_rule(term.items[0])
        return negate(term)

    def membership(self, target, _in, items):
        if not isinstance(target, FieldRef):
            raise QueryParseError("Left side of 'in' must be a field")
        return list_rule(target.name, Operator.IN, items)

    def call(self, name, *args):
        target, method = split_call(str(name))
        return method_rule(target, method, list(args), self.dialect)


class CELParser(TextQueryParser):
    """
    Parses CEL expressions into rule trees.
    """

    dialect = "cel"
    recover_ranges = True
    grammar = CEL_GRAMMAR
    transformer_class = CELTransformer
