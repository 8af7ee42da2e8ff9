"""
Base class shared by all dialect formatters.

A formatter walks a standard rule tree depth-first, left to right. Each
enabled rule is handed to a rule processor (the dialect default or the
caller's override from FormatOptions.rule_processor); each group combines the
non-empty outputs of its children. Per-call state (parameter counter, named
parameter generator, collected parameters) lives in a FormatContext created
for every call, never on the formatter or at module level.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import FormatOptions
from ..exceptions import InvalidTreeError, UnknownFieldError, UnsupportedOperatorError
from ..models import (
    Field, InterleavedRuleGroup, Path, Rule, RuleGroup, to_standard,
)
from ..operators import Operator, supports_operator
from ..validation import QueryValidator
from ..values import ParseNumbers, is_empty_value, to_array


class ParamCounter:
    """
    Running count of parameter slots consumed so far in one format call.

    Numbered placeholders continue from this count, so sibling rules see how
    many slots earlier rules already used.
    """

    def __init__(self, start: int = 0):
        self.count = start

    def advance(self, consumed: int) -> int:
        self.count += consumed
        return self.count

    def __repr__(self):
        return f"ParamCounter({self.count})"


_NON_WORD = re.compile(r'\W')


def make_named_param_generator() -> Callable[[str], str]:
    """
    Default named-parameter generator: <field>_1, <field>_2, ...

    Counters are per field and per generator, so a fresh generator per call
    yields collision-free names across the whole tree.
    """
    counters: Dict[str, int] = defaultdict(int)

    def get_next_named_param(field_name: str) -> str:
        base = _NON_WORD.sub('_', field_name)
        counters[base] += 1
        return f"{base}_{counters[base]}"

    return get_next_named_param


@dataclass
class RuleMeta:
    """Per-rule context handed to rule processors."""
    path: Path
    processed_params: int = 0
    field_data: Optional[Field] = None


@dataclass
class FormatContext:
    """State for a single format call."""
    options: FormatOptions
    counter: ParamCounter = field(default_factory=ParamCounter)
    params: List[Any] = field(default_factory=list)
    named_params: Dict[str, Any] = field(default_factory=dict)
    validation: Optional[Dict[Path, Any]] = None


class QueryFormatter(ABC):
    """
    Abstract base class for dialect formatters.

    Subclasses provide a default rule processor and the group combination
    logic; everything else (disabled/invalid filtering, field and operator
    checks, interleaved normalisation) happens here.
    """

    dialect: str = ""
    fallback_expression: Any = ""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def format(self, query: Union[Rule, RuleGroup, InterleavedRuleGroup],
               options: FormatOptions) -> Any:
        """
        Format a rule tree.

        Args:
            query: Root group (or a single rule)
            options: Resolved FormatOptions

        Returns:
            Dialect output
        """
        context = self.create_context(options)

        if isinstance(query, Rule):
            query = RuleGroup("and", [query])
        root = to_standard(query)

        if options.validate:
            context.validation = self._run_validation(root, options)

        output = self.format_group(root, context, (), is_root=True)
        return self.finalize(output, context)

    def create_context(self, options: FormatOptions) -> FormatContext:
        return FormatContext(options=options)

    def finalize(self, output: Any, context: FormatContext) -> Any:
        """Turn the root group output into the call result."""
        if self.is_empty_output(output):
            return self.get_fallback(context)
        return output

    def get_fallback(self, context: FormatContext) -> Any:
        if context.options.fallback_expression is not None:
            return context.options.fallback_expression
        return self.fallback_expression

    def is_empty_output(self, output: Any) -> bool:
        return output is None or output == "" or output == {} or output == []

    def format_group(self, group: RuleGroup, context: FormatContext, path: Path,
                     is_root: bool = False) -> Any:
        if group.disabled or not self._is_valid(path, context):
            return None

        parts = []
        for index, child in enumerate(group.rules):
            child_path = path + (index,)
            if isinstance(child, RuleGroup):
                output = self.format_group(child, context, child_path)
            elif isinstance(child, Rule):
                output = self.format_rule(child, context, child_path)
            else:
                raise InvalidTreeError(
                    f"Unexpected node {type(child).__name__} at path {list(child_path)}"
                )
            if not self.is_empty_output(output):
                parts.append(output)

        if not parts:
            return None
        return self.combine(group, parts, context, is_root)

    def format_rule(self, rule: Rule, context: FormatContext, path: Path) -> Any:
        if rule.disabled:
            return None
        if not self._is_valid(path, context):
            self.logger.warning(f"Skipping invalid rule at {list(path)}: {rule!r}")
            return None

        options = context.options
        field_data = options.fields.get(rule.field) if options.fields else None
        if options.fields and field_data is None:
            raise UnknownFieldError(rule.field, path)

        operator = Operator.from_string(rule.operator)
        if operator is None or not supports_operator(operator, self.dialect):
            raise UnsupportedOperatorError(rule.operator, self.dialect, path)

        meta = RuleMeta(path=path, processed_params=context.counter.count, field_data=field_data)
        processor = options.rule_processor or self.default_rule_processor
        result = processor(rule, self.rule_options(rule, options, field_data), meta)
        return self.collect(result, context)

    def rule_options(self, rule: Rule, options: FormatOptions,
                     field_data: Optional[Field]) -> FormatOptions:
        """
        Options passed to processors for one rule.

        Numeric fields get strict number parsing even when the caller left
        parse_numbers off.
        """
        if (field_data is not None and field_data.is_numeric and
                options.parse_numbers is ParseNumbers.NEVER):
            return replace(options, parse_numbers=ParseNumbers.STRICT)
        return options

    def collect(self, result: Any, context: FormatContext) -> Any:
        """Hook for formatters that gather parameters from processor results."""
        return result

    def _is_valid(self, path: Path, context: FormatContext) -> bool:
        if context.validation is None:
            return True
        result = context.validation.get(path)
        return result is None or result.valid

    def _run_validation(self, root: RuleGroup, options: FormatOptions) -> Dict[Path, Any]:
        validator = options.validator or QueryValidator(fields=options.fields, strict=False)
        return validator.validate(root)

    @abstractmethod
    def default_rule_processor(self, rule: Rule, options: FormatOptions, meta: RuleMeta) -> Any:
        """Produce the dialect output for one rule."""
        pass

    @abstractmethod
    def combine(self, group: RuleGroup, parts: List[Any], context: FormatContext,
                is_root: bool) -> Any:
        """Join child outputs under the group's combinator and negation."""
        pass


def quote_field(name: str, options: FormatOptions) -> str:
    prefix, suffix = options.quote_field_names_with
    return f"{prefix}{name}{suffix}"


def uses_value_processor(rule: Rule, operator: Operator, options: FormatOptions) -> bool:
    """
    True when the caller's value_processor supplies this rule's value.

    Outside SQL the processor's result stands in for the literal value(s) of
    the rule: text dialects insert it verbatim, document dialects embed the
    object as returned. Field-sourced rules and null checks are not passed
    to it.
    """
    return (options.value_processor is not None and rule.value_source != "field"
            and operator.takes_value)


def processed_bounds(value: Any) -> Optional[List[Any]]:
    """Two range bounds from a value_processor result; None when incomplete."""
    if isinstance(value, (list, tuple)):
        bounds = list(value)[:2]
    else:
        bounds = to_array(value, retain_empty_strings=True)[:2]
    if len(bounds) < 2 or any(is_empty_value(b) for b in bounds):
        return None
    return bounds


def is_empty_processed(value: Any) -> bool:
    return is_empty_value(value) or (isinstance(value, (list, tuple)) and not value)
