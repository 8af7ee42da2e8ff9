"""
JsonLogic parser.
"""

import json
from typing import Any, List, Mapping, Optional

from ..config import ParseOptions
from ..exceptions import QueryParseError, UnrepresentableOperatorError
from ..models import Rule
from ..operators import Operator, unmap_operator
from .base import Clause, FieldRef, Node, QueryParser, comparison_rule, list_rule, negate
from .mongodb import join_nodes


COMPARISON_OPS = {"==", "===", "!=", "!==", "<", ">", "<=", ">="}


def _operand(value: Any) -> Any:
    """{"var": "name"} -> FieldRef; anything else is a literal."""
    if isinstance(value, Mapping) and set(value) == {"var"}:
        name = value["var"]
        if isinstance(name, list):
            name = name[0] if name else ""
        return FieldRef(str(name))
    if isinstance(value, Mapping):
        raise UnrepresentableOperatorError(next(iter(value), "{}"), "jsonlogic")
    return value


class JsonLogicParser(QueryParser):
    """
    Parses JsonLogic rules (dicts or JSON text) into rule trees.
    """

    dialect = "jsonlogic"

    def parse_source(self, source: Any, options: ParseOptions) -> Optional[Node]:
        if isinstance(source, str):
            try:
                source = json.loads(source)
            except json.JSONDecodeError as e:
                raise QueryParseError(f"Invalid JsonLogic JSON: {e.msg}",
                                      position=e.pos, line=e.lineno, column=e.colno) from e
        if isinstance(source, bool):
            # The formatter's empty-group output
            return None
        return self._parse_logic(source, options, depth=1)

    def _parse_logic(self, logic: Any, options: ParseOptions, depth: int) -> Node:
        if not isinstance(logic, Mapping) or len(logic) != 1:
            raise QueryParseError(f"Expected a single-operation JsonLogic object, got {logic!r}")

        ((op, args),) = logic.items()
        if not isinstance(args, list):
            args = [args]

        if op in ("and", "or"):
            self.check_depth(depth, options)
            nodes = [self._parse_logic(arg, options, depth + 1) for arg in args]
            return Clause(join_nodes(nodes, op))

        if op in ("!", "not"):
            if len(args) != 1:
                raise QueryParseError("'!' takes exactly one argument")
            return negate(self._parse_logic(args[0], options, depth))

        return self._parse_rule(op, args)

    def _parse_rule(self, op: str, args: List[Any]) -> Rule:
        operands = [_operand(arg) for arg in args]

        if op in COMPARISON_OPS:
            if len(operands) == 3 and op in ("<=", "<"):
                return self._parse_range(op, operands)
            if len(operands) != 2:
                raise QueryParseError(f"'{op}' takes two arguments, got {len(operands)}")
            operator = unmap_operator(op, self.dialect)
            left, right = operands
            if right is None and isinstance(left, FieldRef):
                if operator is Operator.EQ:
                    return Rule(left.name, Operator.NULL.value, None)
                if operator is Operator.NE:
                    return Rule(left.name, Operator.NOT_NULL.value, None)
            return comparison_rule(left, operator, right)

        if op == "in":
            if len(operands) != 2:
                raise QueryParseError(f"'in' takes two arguments, got {len(operands)}")
            needle, haystack = args
            if isinstance(operands[0], FieldRef) and isinstance(haystack, list):
                return list_rule(operands[0].name, Operator.IN, [_operand(v) for v in haystack])
            if isinstance(operands[1], FieldRef):
                value = operands[0]
                if isinstance(value, FieldRef):
                    return Rule(operands[1].name, Operator.CONTAINS.value, value.name,
                                value_source="field")
                return Rule(operands[1].name, Operator.CONTAINS.value, value)
            raise UnrepresentableOperatorError("in", self.dialect)

        if op.lower() in ("startswith", "endswith"):
            if len(operands) != 2 or not isinstance(operands[0], FieldRef):
                raise QueryParseError(f"'{op}' takes a field and a value")
            operator = unmap_operator(op, self.dialect)
            field, value = operands
            if isinstance(value, FieldRef):
                return Rule(field.name, operator.value, value.name, value_source="field")
            return Rule(field.name, operator.value, value)

        raise UnrepresentableOperatorError(op, self.dialect)

    def _parse_range(self, op: str, operands: List[Any]) -> Rule:
        """{"<=": [low, {"var": f}, high]} -> between."""
        low, target, high = operands
        if op != "<=" or not isinstance(target, FieldRef):
            raise UnrepresentableOperatorError(op, self.dialect)
        return list_rule(target.name, Operator.BETWEEN, [low, high])
