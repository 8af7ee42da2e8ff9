"""
Shared machinery for dialect parsers.

Every parser reduces its input to the same intermediate shape: Rules with
raw literal values and Clauses, where a Clause is one parenthesis level
holding an alternating node / combinator sequence. build_tree() then turns
that into the canonical tree: literal coercion, range recovery, depth and
field checks, and the standard or interleaved group shape.
"""

import dataclasses
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, NamedTuple, Optional, Union

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedEOF, UnexpectedInput, VisitError

from ..config import ParseOptions
from ..exceptions import QueryParseError, UnknownFieldError, UnrepresentableOperatorError
from ..models import AnyGroup, InterleavedRuleGroup, Rule, to_standard, walk
from ..operators import FLIPPED_COMPARISONS, Operator, invert_operator, unmap_operator
from ..values import ParseNumbers, join_values, parse_number, to_array


class FieldRef(NamedTuple):
    """A field reference in operand position (as opposed to a literal)."""
    name: str


class Constant(NamedTuple):
    """Comparison of two equal literals, such as the "1 = 1" written for an empty query."""
    text: str


@dataclass
class Clause:
    """One grouping level: [node, "and", node, "or", node, ...]."""
    items: List[Any] = field(default_factory=list)
    negated: bool = False


Node = Union[Rule, Clause]


def invert_rule(rule: Rule) -> Rule:
    """Fold a negation into the rule's operator."""
    operator = Operator.from_string(rule.operator)
    return dataclasses.replace(rule, operator=invert_operator(operator).value)


def negate(node: Node) -> Node:
    if isinstance(node, Rule):
        return invert_rule(node)
    if isinstance(node, Constant):
        raise QueryParseError(f"Constant comparison {node.text} cannot be negated")
    return Clause(list(node.items), negated=not node.negated)


def number_literal(text: str) -> Union[int, float]:
    return parse_number(text, ParseNumbers.STRICT)


def comparison_rule(left: Any, operator: Operator, right: Any,
                    null_comparisons: bool = False) -> Rule:
    """
    Build a rule from "left op right".

    A literal on the left swaps the operands (5 < age is age > 5); a field
    on both sides makes a field-sourced rule.
    """
    if isinstance(left, FieldRef):
        if isinstance(right, FieldRef):
            return Rule(left.name, operator.value, right.name, value_source="field")
        field_name, value = left.name, right
    elif isinstance(right, FieldRef):
        field_name, value = right.name, left
        operator = FLIPPED_COMPARISONS[operator]
    else:
        raise QueryParseError(f"Comparison of two literals: {left!r} {operator.value} {right!r}")

    if null_comparisons and value is None:
        if operator is Operator.EQ:
            return Rule(field_name, Operator.NULL.value, None)
        if operator is Operator.NE:
            return Rule(field_name, Operator.NOT_NULL.value, None)
    return Rule(field_name, operator.value, value)


def list_rule(field_name: str, operator: Operator, items: List[Any]) -> Rule:
    """Membership or range rule; all-field operands make a field-sourced rule."""
    refs = [item for item in items if isinstance(item, FieldRef)]
    if refs and len(refs) != len(items):
        raise QueryParseError(f"Cannot mix fields and literals in '{field_name}' {operator.value}")
    if refs:
        return Rule(field_name, operator.value, [ref.name for ref in refs], value_source="field")
    return Rule(field_name, operator.value, list(items))


def method_rule(target: Any, method: str, args: List[Any], dialect: str) -> Rule:
    """field.contains(x) / field.startsWith(x) / field.endsWith(x)."""
    operator = unmap_operator(method, dialect)
    if not operator.is_text_match:
        raise UnrepresentableOperatorError(method, dialect)
    if not isinstance(target, FieldRef):
        raise QueryParseError(f"{method}() must be called on a field")
    if len(args) != 1:
        raise QueryParseError(f"{method}() takes exactly one argument, got {len(args)}")
    arg = args[0]
    if isinstance(arg, FieldRef):
        return Rule(target.name, operator.value, arg.name, value_source="field")
    return Rule(target.name, operator.value, arg)


def is_keyword(item: Any, *types: str) -> bool:
    return isinstance(item, Token) and item.type in types


class QueryParser(ABC):
    """
    Abstract base class for dialect parsers.

    Subclasses turn their input into Rules and Clauses (parse_source); the
    conversion to a canonical tree is shared.
    """

    dialect: str = ""
    # Formatters wrap rule-level ranges in their own group
    recover_ranges: bool = False
    # Formatter output always parenthesizes the root group
    root_parenthesized: bool = False

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse(self, source: Any, options: ParseOptions) -> AnyGroup:
        """
        Parse dialect input into a fresh canonical tree.

        Args:
            source: Dialect input (text or document)
            options: Resolved ParseOptions

        Returns:
            RuleGroup, or InterleavedRuleGroup when independent_combinators is set

        Raises:
            QueryParseError: Malformed input or max_depth exceeded
            UnrepresentableOperatorError: Dialect construct without a canonical operator
            UnknownFieldError: Field missing from options.fields
        """
        root = self.parse_source(source, options)
        tree = self.build_tree(root, options)
        self.logger.debug(f"Parsed {self.dialect} input into {tree!r}")
        return tree

    @abstractmethod
    def parse_source(self, source: Any, options: ParseOptions) -> Optional[Node]:
        """Reduce dialect input to Rules and Clauses."""
        pass

    def check_depth(self, depth: int, options: ParseOptions) -> None:
        if options.max_depth is not None and depth > options.max_depth:
            raise QueryParseError(f"Query nesting exceeds maximum depth of {options.max_depth}")

    def build_tree(self, root: Optional[Node], options: ParseOptions) -> AnyGroup:
        if root is None or self._is_always_true(root):
            root = Clause()
        elif isinstance(root, Rule):
            root = Clause([root])
        root = self._unwrap_root(root)

        group = self._build_clause(root, options, depth=1)
        tree = group if options.independent_combinators else to_standard(group)

        if options.fields:
            self._check_fields(tree, options)
        return tree

    def _is_always_true(self, node: Any) -> bool:
        """True for a lone constant comparison, the fallback output of an empty query."""
        while isinstance(node, Clause) and not node.negated and len(node.items) == 1:
            node = node.items[0]
        return isinstance(node, Constant)

    def _unwrap_root(self, clause: Clause) -> Clause:
        if clause.negated or len(clause.items) != 1 or not isinstance(clause.items[0], Clause):
            return clause
        inner = clause.items[0]
        if inner.negated or self.root_parenthesized:
            return inner
        return clause

    def _build_clause(self, clause: Clause, options: ParseOptions,
                      depth: int) -> InterleavedRuleGroup:
        self.check_depth(depth, options)
        items: List[Any] = []
        for index, item in enumerate(clause.items):
            if index % 2:
                items.append(str(item).strip().lower())
                continue
            if isinstance(item, Constant):
                raise QueryParseError(f"Constant comparison {item.text} must be the whole expression")
            if isinstance(item, Clause):
                recovered = self._recover_range(item) if self.recover_ranges else None
                if recovered is None:
                    items.append(self._build_clause(item, options, depth + 1))
                    continue
                item = recovered
            items.append(self._finish_rule(item, options))
        return InterleavedRuleGroup(items, negated=clause.negated)

    def _recover_range(self, clause: Clause) -> Optional[Rule]:
        """(f >= a and f <= b) -> between; (f < a or f > b) -> notBetween."""
        if clause.negated or len(clause.items) != 3:
            return None
        low, combinator, high = clause.items
        if not isinstance(low, Rule) or not isinstance(high, Rule):
            return None
        if low.field != high.field or low.value_source != high.value_source:
            return None

        shape = (str(combinator).lower(), Operator.from_string(low.operator),
                 Operator.from_string(high.operator))
        if shape == ("and", Operator.GTE, Operator.LTE):
            operator = Operator.BETWEEN
        elif shape == ("or", Operator.LT, Operator.GT):
            operator = Operator.NOT_BETWEEN
        else:
            return None
        return Rule(low.field, operator.value, [low.value, high.value],
                    value_source=low.value_source)

    def _finish_rule(self, rule: Rule, options: ParseOptions) -> Rule:
        """Coerce literal values and shape list values."""
        operator = Operator.from_string(rule.operator)
        by_field = rule.value_source == "field"
        coerce = not by_field and operator is not None and not operator.is_text_match

        def convert(value: Any) -> Any:
            return parse_number(value, options.parse_numbers) if coerce else value

        value = rule.value
        if isinstance(value, (list, tuple)):
            items = [convert(item) for item in value]
            value = items if options.lists_as_arrays else join_values(items)
        else:
            value = convert(value)
        return dataclasses.replace(rule, value=value)

    def _check_fields(self, tree: AnyGroup, options: ParseOptions) -> None:
        for path, node in walk(tree):
            if not isinstance(node, Rule):
                continue
            names = [node.field]
            if node.value_source == "field":
                names.extend(to_array(node.value))
            for name in names:
                if name not in options.fields:
                    raise UnknownFieldError(name, path)


@functools.lru_cache(maxsize=None)
def _compile(grammar: str) -> Lark:
    return Lark(grammar, parser="lalr")


@v_args(inline=True)
class ClauseTransformer(Transformer):
    """
    Shared callbacks for the text grammars.

    Every grammar produces expr / connective / paren / negation / comparison
    and the literal rules; dialect-specific predicates live in subclasses.
    """

    dialect = ""
    null_comparisons = False

    def expr(self, *items):
        return Clause(list(items))

    def connective(self, token):
        return "and" if str(token).lower() in ("and", "&&") else "or"

    def paren(self, clause):
        return clause

    def negation(self, _not, term):
        return negate(term)

    def comparison(self, left, operator, right):
        resolved = unmap_operator(str(operator), self.dialect)
        if (resolved is Operator.EQ and not isinstance(left, FieldRef)
                and not isinstance(right, FieldRef)
                and type(left) is type(right) and left == right):
            return Constant(f"{left!r} {operator} {right!r}")
        return comparison_rule(left, resolved, right, self.null_comparisons)

    def field(self, token):
        return FieldRef(str(token))

    def number(self, token):
        return number_literal(str(token))

    def true(self, _token=None):
        return True

    def false(self, _token=None):
        return False

    def null(self, _token=None):
        return None

    def value_list(self, *items):
        return list(items)


class TextQueryParser(QueryParser):
    """
    Parser for text dialects defined by a lark LALR grammar.
    """

    grammar: str = ""
    transformer_class = ClauseTransformer

    def parse_source(self, source: Any, options: ParseOptions) -> Optional[Node]:
        if not isinstance(source, str):
            raise QueryParseError(f"{self.dialect} input must be a string, got {type(source).__name__}")
        if not source.strip():
            return None

        try:
            tree = _compile(self.grammar).parse(source)
        except UnexpectedInput as e:
            raise self._syntax_error(source, e) from e

        try:
            return self.transformer_class().transform(tree)
        except VisitError as e:
            raise e.orig_exc from e

    def _syntax_error(self, source: str, error: UnexpectedInput) -> QueryParseError:
        token = getattr(error, "token", None)
        if isinstance(error, UnexpectedEOF) or (token is not None and token.type == "$END"):
            return QueryParseError(f"Unexpected end of {self.dialect} input", position=len(source))
        if token is not None:
            found = f"token {str(token)!r}"
        else:
            found = f"character {getattr(error, 'char', '?')!r}"

        def known(value: Optional[int]) -> Optional[int]:
            return value if value is not None and value >= 0 else None

        return QueryParseError(
            f"Invalid {self.dialect} expression: unexpected {found}",
            position=known(getattr(error, "pos_in_stream", None)),
            line=known(getattr(error, "line", None)),
            column=known(getattr(error, "column", None)),
        )
