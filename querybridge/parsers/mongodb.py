"""
MongoDB query document parser.

Implicit equality, logical operators and per-field operator objects.
Depth is checked as groups are opened.
"""

import json
import re
from typing import Any, List, Mapping, Optional

from ..config import ParseOptions
from ..exceptions import QueryParseError, UnrepresentableOperatorError
from ..models import Rule
from ..operators import Operator, unmap_operator
from .base import Clause, FieldRef, Node, QueryParser, comparison_rule, list_rule, negate


COMPARISON_OPS = {"$eq", "$ne", "$lt", "$gt", "$lte", "$gte"}

# Regex metacharacters that are not escaped
_UNESCAPED_META = re.compile(r'(?<!\\)[.*+?()\[\]{}|^$]')
_ESCAPE = re.compile(r'\\(.)')


def join_nodes(nodes: List[Node], combinator: str) -> List[Any]:
    items: List[Any] = []
    for index, node in enumerate(nodes):
        if index:
            items.append(combinator)
        items.append(node)
    return items


def regex_rule(field: str, pattern: Any, dialect: str = "mongodb") -> Rule:
    """
    Map an anchored, escaped pattern back to a text operator.

    Raises:
        UnrepresentableOperatorError: The pattern uses real regex syntax
    """
    if not isinstance(pattern, str):
        raise QueryParseError(f"Regex for '{field}' must be a string")

    starts = pattern.startswith('^')
    ends = pattern.endswith('$') and not pattern.endswith('\\$')
    body = pattern[1 if starts else 0:len(pattern) - 1 if ends else len(pattern)]
    if _UNESCAPED_META.search(body):
        raise UnrepresentableOperatorError("$regex" if dialect == "mongodb" else "matches", dialect)

    value = _ESCAPE.sub(r'\1', body)
    if starts and ends:
        return Rule(field, Operator.EQ.value, value)
    if starts:
        return Rule(field, Operator.BEGINS_WITH.value, value)
    if ends:
        return Rule(field, Operator.ENDS_WITH.value, value)
    return Rule(field, Operator.CONTAINS.value, value)


def _expr_operand(value: Any) -> Any:
    if isinstance(value, str) and value.startswith('$'):
        return FieldRef(value[1:])
    return value


class MongoDBParser(QueryParser):
    """
    Parses MongoDB query documents (dicts or JSON text) into rule trees.
    """

    dialect = "mongodb"
    recover_ranges = True

    def parse_source(self, source: Any, options: ParseOptions) -> Optional[Node]:
        if isinstance(source, str):
            try:
                source = json.loads(source)
            except json.JSONDecodeError as e:
                raise QueryParseError(f"Invalid MongoDB JSON: {e.msg}",
                                      position=e.pos, line=e.lineno, column=e.colno) from e
        if not isinstance(source, Mapping):
            raise QueryParseError(f"MongoDB query must be an object, got {type(source).__name__}")
        if not source:
            return None
        return self._parse_document(source, options, depth=1)

    def _parse_document(self, document: Mapping[str, Any], options: ParseOptions,
                        depth: int) -> Optional[Node]:
        conditions: List[Node] = []

        for key, value in document.items():
            if key in ("$and", "$or", "$nor"):
                node = self._parse_logical(key, value, options, depth)
            elif key == "$not":
                if not isinstance(value, Mapping):
                    raise QueryParseError("$not requires an object")
                inner = self._parse_document(value, options, depth)
                node = negate(inner) if inner is not None else None
            elif key == "$expr":
                node = self._parse_expr(value)
            elif key.startswith('$'):
                raise UnrepresentableOperatorError(key, self.dialect)
            else:
                conditions.extend(self._parse_field(key, value, options, depth))
                continue
            if node is not None:
                conditions.append(node)

        if len(conditions) == 1:
            return conditions[0]
        if not conditions:
            return None
        self.check_depth(depth, options)
        return Clause(join_nodes(conditions, "and"))

    def _parse_logical(self, operator: str, value: Any, options: ParseOptions,
                       depth: int) -> Clause:
        """Parse $and / $or / $nor."""
        if not isinstance(value, list):
            raise QueryParseError(f"{operator} requires a list")
        self.check_depth(depth, options)
        # {"$nor": [doc]} negates doc in place rather than nesting it
        child_depth = depth if operator == "$nor" and len(value) == 1 else depth + 1

        nodes = []
        for item in value:
            if not isinstance(item, Mapping):
                raise QueryParseError(f"{operator} items must be objects")
            node = self._parse_document(item, options, child_depth)
            if node is not None:
                nodes.append(node)

        if operator == "$nor":
            if len(nodes) == 1 and isinstance(nodes[0], Clause):
                return negate(nodes[0])
            return Clause(join_nodes(nodes, "or"), negated=True)
        return Clause(join_nodes(nodes, operator[1:]))

    def _parse_field(self, field: str, value: Any, options: ParseOptions,
                     depth: int) -> List[Node]:
        """Parse field-level conditions."""
        if not isinstance(value, Mapping) or not any(str(k).startswith('$') for k in value):
            # Direct equality
            if value is None:
                return [Rule(field, Operator.NULL.value, None)]
            return [Rule(field, Operator.EQ.value, value)]

        operators = dict(value)
        operators.pop("$options", None)
        rules: List[Node] = []

        if "$gte" in operators and "$lte" in operators:
            low, high = operators.pop("$gte"), operators.pop("$lte")
            rules.append(Rule(field, Operator.BETWEEN.value, [low, high]))

        for op, arg in operators.items():
            if op == "$ne" and arg is None:
                rules.append(Rule(field, Operator.NOT_NULL.value, None))
            elif op in COMPARISON_OPS:
                rules.append(Rule(field, unmap_operator(op, self.dialect).value, arg))
            elif op in ("$in", "$nin"):
                if not isinstance(arg, list):
                    raise QueryParseError(f"{op} for '{field}' requires a list")
                rules.append(list_rule(field, unmap_operator(op, self.dialect), arg))
            elif op == "$regex":
                rules.append(regex_rule(field, arg))
            elif op == "$exists":
                operator = Operator.NOT_NULL if arg else Operator.NULL
                rules.append(Rule(field, operator.value, None))
            elif op == "$not":
                if not isinstance(arg, Mapping):
                    raise QueryParseError(f"$not for '{field}' requires an object")
                inner = self._parse_field(field, arg, options, depth)
                if len(inner) == 1:
                    rules.append(negate(inner[0]))
                else:
                    self.check_depth(depth, options)
                    rules.append(Clause(join_nodes(inner, "and"), negated=True))
            else:
                raise UnrepresentableOperatorError(op, self.dialect)

        return rules

    def _parse_expr(self, expr: Any) -> Optional[Node]:
        """Parse $expr comparisons between fields."""
        if expr is True:
            # Empty-group placeholder
            return None
        if not isinstance(expr, Mapping) or len(expr) != 1:
            raise UnrepresentableOperatorError("$expr", self.dialect)

        ((op, args),) = expr.items()
        if op in ("$and", "$or"):
            if not isinstance(args, list):
                raise QueryParseError(f"{op} requires a list")
            nodes = [self._parse_expr(arg) for arg in args]
            return Clause(join_nodes([n for n in nodes if n is not None], op[1:]))
        if op == "$not":
            inner = args[0] if isinstance(args, list) and len(args) == 1 else args
            node = self._parse_expr(inner)
            return negate(node) if node is not None else None
        if not isinstance(args, list) or len(args) != 2:
            raise QueryParseError(f"$expr {op} requires two arguments")

        left, right = [_expr_operand(arg) for arg in args]
        if op in COMPARISON_OPS:
            return comparison_rule(left, unmap_operator(op, self.dialect), right)
        if op == "$in" and isinstance(left, FieldRef) and isinstance(right, list):
            return list_rule(left.name, Operator.IN, [_expr_operand(item) for item in right])
        raise UnrepresentableOperatorError(op, self.dialect)
