"""
Canonical rule tree and field configuration models.

Two group shapes are modelled:

- RuleGroup: one combinator applied uniformly to every child.
- InterleavedRuleGroup: children and combinator strings alternate in one
  ordered sequence ("independent combinators"), e.g.
  [rule, "and", rule, "or", group].

Formatters only ever see the standard shape; to_standard() converts an
interleaved tree using the usual precedence (and binds tighter than or).
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .exceptions import InvalidTreeError


Path = Tuple[int, ...]

NUMERIC_DATATYPES = {"number", "integer", "int", "float", "decimal", "double"}

# Higher binds tighter.
COMBINATOR_PRECEDENCE = {"and": 3, "xor": 2, "or": 1}


@dataclass
class Rule:
    """
    A single field/operator/value condition.
    """
    field: str
    operator: str
    value: Any = ""
    value_source: str = "value"  # "value" or "field"
    disabled: bool = False
    id: Optional[str] = dataclasses.field(default=None, compare=False)

    @property
    def compares_fields(self) -> bool:
        return self.value_source == "field"

    def to_dict(self, include_ids: bool = True) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if include_ids and self.id is not None:
            result["id"] = self.id
        result.update({"field": self.field, "operator": self.operator, "value": self.value})
        if self.value_source == "field":
            result["valueSource"] = "field"
        if self.disabled:
            result["disabled"] = True
        return result

    def __repr__(self):
        neg = "DISABLED " if self.disabled else ""
        return f"{neg}{self.field} {self.operator} {self.value!r}"


@dataclass
class RuleGroup:
    """
    A group applying one combinator to all of its children.
    """
    combinator: str = "and"
    rules: List[Union[Rule, 'RuleGroup']] = dataclasses.field(default_factory=list)
    negated: bool = False
    disabled: bool = False
    id: Optional[str] = dataclasses.field(default=None, compare=False)

    def to_dict(self, include_ids: bool = True) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if include_ids and self.id is not None:
            result["id"] = self.id
        result["combinator"] = self.combinator
        if self.negated:
            result["not"] = True
        if self.disabled:
            result["disabled"] = True
        result["rules"] = [child.to_dict(include_ids) for child in self.rules]
        return result

    def __repr__(self):
        neg = "NOT " if self.negated else ""
        return f"{neg}{self.combinator}({self.rules})"


@dataclass
class InterleavedRuleGroup:
    """
    A group whose children and combinators alternate in a single sequence.

    The sequence must be child, combinator, child, ... with 2n-1 entries for
    n children; anything else raises InvalidTreeError.
    """
    rules: List[Union[Rule, 'InterleavedRuleGroup', str]] = dataclasses.field(default_factory=list)
    negated: bool = False
    disabled: bool = False
    id: Optional[str] = dataclasses.field(default=None, compare=False)

    def __post_init__(self):
        check_interleaving(self.rules)

    @property
    def children(self) -> List[Union[Rule, 'InterleavedRuleGroup']]:
        return self.rules[0::2]

    @property
    def combinators(self) -> List[str]:
        return self.rules[1::2]

    def to_dict(self, include_ids: bool = True) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if include_ids and self.id is not None:
            result["id"] = self.id
        if self.negated:
            result["not"] = True
        if self.disabled:
            result["disabled"] = True
        result["rules"] = [
            item if isinstance(item, str) else item.to_dict(include_ids)
            for item in self.rules
        ]
        return result

    def __repr__(self):
        neg = "NOT " if self.negated else ""
        return f"{neg}IC({self.rules})"


AnyGroup = Union[RuleGroup, InterleavedRuleGroup]
Node = Union[Rule, RuleGroup, InterleavedRuleGroup]


def check_interleaving(rules: List[Any]) -> None:
    """Raise InvalidTreeError unless rules alternate child/combinator."""
    if rules and len(rules) % 2 == 0:
        raise InvalidTreeError(
            f"Interleaved group must have 2n-1 entries, got {len(rules)}"
        )
    for index, item in enumerate(rules):
        if index % 2:
            if not isinstance(item, str):
                raise InvalidTreeError(
                    f"Expected combinator string at position {index}, got {type(item).__name__}"
                )
        elif not isinstance(item, (Rule, InterleavedRuleGroup)):
            raise InvalidTreeError(
                f"Expected rule or interleaved group at position {index}, got {type(item).__name__}"
            )


def is_group(node: Any) -> bool:
    return isinstance(node, (RuleGroup, InterleavedRuleGroup))


# ============================================================================
# Combinator normalisation
# ============================================================================

def to_standard(group: AnyGroup) -> RuleGroup:
    """
    Convert an interleaved group (recursively) to nested standard groups.

    Runs joined by the same combinator collapse into one group; mixed runs
    are split on the loosest combinator, so [a, and, b, or, c] becomes
    or(and(a, b), c). Standard groups with no interleaved descendants are
    returned unchanged; otherwise a copy with normalised children is returned.
    """
    if isinstance(group, RuleGroup):
        children = [to_standard(child) if is_group(child) else child for child in group.rules]
        if all(new is old for new, old in zip(children, group.rules)):
            return group
        return dataclasses.replace(group, rules=children)
    if not isinstance(group, InterleavedRuleGroup):
        raise InvalidTreeError(f"Not a rule group: {type(group).__name__}")

    check_interleaving(group.rules)
    children = [
        to_standard(child) if isinstance(child, InterleavedRuleGroup) else child
        for child in group.children
    ]
    combinators = [c.strip().lower() for c in group.combinators]
    node = _build_by_precedence(children, combinators)

    if combinators:
        result = node
    else:
        result = RuleGroup("and", [node] if node is not None else [])

    result.negated = group.negated
    result.disabled = group.disabled
    result.id = group.id
    return result


def _build_by_precedence(items: List[Node], combinators: List[str]) -> Optional[Node]:
    if not combinators:
        return items[0] if items else None

    distinct = set(combinators)
    if len(distinct) == 1:
        return RuleGroup(combinators[0], list(items))

    unknown = distinct - set(COMBINATOR_PRECEDENCE)
    if unknown:
        raise InvalidTreeError(
            f"Cannot order mixed combinators with unknown precedence: {sorted(unknown)}"
        )

    loosest = min(distinct, key=COMBINATOR_PRECEDENCE.get)
    segments: List[Node] = []
    seg_items = [items[0]]
    seg_combinators: List[str] = []
    for combinator, item in zip(combinators, items[1:]):
        if combinator == loosest:
            segments.append(_build_by_precedence(seg_items, seg_combinators))
            seg_items, seg_combinators = [item], []
        else:
            seg_items.append(item)
            seg_combinators.append(combinator)
    segments.append(_build_by_precedence(seg_items, seg_combinators))
    return RuleGroup(loosest, segments)


def to_interleaved(group: AnyGroup) -> InterleavedRuleGroup:
    """Convert a standard group (recursively) to the interleaved shape."""
    if isinstance(group, InterleavedRuleGroup):
        return group
    rules: List[Any] = []
    for index, child in enumerate(group.rules):
        if index:
            rules.append(group.combinator)
        rules.append(to_interleaved(child) if isinstance(child, RuleGroup) else child)
    return InterleavedRuleGroup(rules, negated=group.negated, disabled=group.disabled, id=group.id)


# ============================================================================
# Dict interchange and paths
# ============================================================================

def query_from_dict(data: Mapping[str, Any]) -> Node:
    """
    Build a tree from the dict shape exchanged with UI layers.

    Raises:
        InvalidTreeError: If the dict is neither a rule nor a group
    """
    if not isinstance(data, Mapping):
        raise InvalidTreeError(f"Expected a mapping, got {type(data).__name__}")

    if "rules" not in data:
        if "field" not in data or "operator" not in data:
            raise InvalidTreeError(f"Rule requires 'field' and 'operator': {dict(data)}")
        return Rule(
            field=data["field"],
            operator=data["operator"],
            value=data.get("value", ""),
            value_source=data.get("valueSource", data.get("value_source", "value")) or "value",
            disabled=bool(data.get("disabled", False)),
            id=data.get("id"),
        )

    rules = data["rules"]
    if not isinstance(rules, list):
        raise InvalidTreeError("'rules' must be a list")

    negated = bool(data.get("not", data.get("negated", False)))
    if "combinator" not in data and any(isinstance(item, str) for item in rules):
        return InterleavedRuleGroup(
            [item if isinstance(item, str) else query_from_dict(item) for item in rules],
            negated=negated,
            disabled=bool(data.get("disabled", False)),
            id=data.get("id"),
        )

    children = []
    for item in rules:
        if isinstance(item, str):
            raise InvalidTreeError("Combinator strings are only allowed in interleaved groups")
        children.append(query_from_dict(item))
    return RuleGroup(
        combinator=data.get("combinator", "and"),
        rules=children,
        negated=negated,
        disabled=bool(data.get("disabled", False)),
        id=data.get("id"),
    )


def find_path(query: Node, path: Path) -> Optional[Union[Node, str]]:
    """Return the node at path, or None when the path does not exist."""
    node: Any = query
    for index in path:
        if not is_group(node) or index < 0 or index >= len(node.rules):
            return None
        node = node.rules[index]
    return node


def walk(query: Node, path: Path = ()) -> Iterator[Tuple[Path, Node]]:
    """Yield (path, node) depth-first, parents before children; combinators skipped."""
    yield path, query
    if is_group(query):
        for index, child in enumerate(query.rules):
            if isinstance(child, str):
                continue
            yield from walk(child, path + (index,))


# ============================================================================
# Field configuration
# ============================================================================

@dataclass
class Field:
    """
    Field configuration supplied by the caller. Read-only to the engine.
    """
    name: str
    label: Optional[str] = None
    datatype: Optional[str] = None
    operators: Optional[List[str]] = None
    value_editor_type: str = "text"
    input_type: Optional[str] = None
    values: Optional[List[Any]] = None
    validator: Optional[Callable[[Rule], Any]] = None

    @property
    def display_label(self) -> str:
        return self.label or self.name

    @property
    def is_numeric(self) -> bool:
        return ((self.datatype or "").lower() in NUMERIC_DATATYPES or
                (self.input_type or "").lower() == "number")

    def allows_operator(self, operator: str) -> bool:
        """Operators are unrestricted when the field lists none."""
        if not self.operators:
            return True
        return operator.lower() in {op.lower() for op in self.operators}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], name: Optional[str] = None) -> 'Field':
        operators = data.get("operators")
        if operators is not None:
            operators = [op["name"] if isinstance(op, Mapping) else op for op in operators]
        return cls(
            name=data.get("name", name),
            label=data.get("label"),
            datatype=data.get("datatype"),
            operators=operators,
            value_editor_type=data.get("valueEditorType", data.get("value_editor_type", "text")),
            input_type=data.get("inputType", data.get("input_type")),
            values=data.get("values"),
            validator=data.get("validator"),
        )


FieldsInput = Union[None, Mapping[str, Any], List[Union[Field, Mapping[str, Any]]]]


def normalize_fields(fields: FieldsInput) -> Dict[str, Field]:
    """Accept Field lists, dict lists or a name -> config mapping."""
    if not fields:
        return {}
    result: Dict[str, Field] = {}
    if isinstance(fields, Mapping):
        for name, config in fields.items():
            if isinstance(config, Field):
                result[name] = config
            elif isinstance(config, Mapping):
                result[name] = Field.from_dict(config, name=name)
            else:
                result[name] = Field(name=name, label=str(config) if config else None)
        return result
    for config in fields:
        field_config = config if isinstance(config, Field) else Field.from_dict(config)
        if not field_config.name:
            raise InvalidTreeError(f"Field configuration without a name: {config!r}")
        result[field_config.name] = field_config
    return result
