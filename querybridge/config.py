"""
Option structures for formatting and parsing, plus environment helpers.

Defaults are applied in one place (FormatOptions.resolve / ParseOptions.resolve)
before any formatter or parser runs. Keyword names may be given in snake_case
or in the camelCase spelling used by UI layers (parseNumbers, paramPrefix, ...).
"""

import dataclasses
import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .exceptions import InvalidOptionError
from .models import FieldsInput, normalize_fields
from .values import ParseNumbers


FORMATS = {
    "json", "json_without_ids", "sql", "parameterized", "parameterized_named",
    "mongodb", "jsonlogic", "cel", "spel", "natural_language", "qdrant",
}

PARSE_DIALECTS = {"sql", "cel", "spel", "jsonlogic", "mongodb"}

SQL_PRESETS: Dict[str, Dict[str, Any]] = {
    "ansi": {"quote_field_names_with": ("", ""), "concat_operator": "||", "param_prefix": ":"},
    "sqlite": {"quote_field_names_with": ('"', '"'), "concat_operator": "||", "param_prefix": ":"},
    "postgresql": {"quote_field_names_with": ('"', '"'), "concat_operator": "||",
                   "param_prefix": "$", "numbered_params": True},
    "mysql": {"quote_field_names_with": ("`", "`"), "concat_operator": "CONCAT", "param_prefix": ":"},
    "mssql": {"quote_field_names_with": ("[", "]"), "concat_operator": "+", "param_prefix": "@"},
    "oracle": {"quote_field_names_with": ('"', '"'), "concat_operator": "||", "param_prefix": ":"},
}

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def _normalize_quote_pair(value: Union[str, Tuple[str, str], None]) -> Tuple[str, str]:
    if value is None:
        return ("", "")
    if isinstance(value, str):
        return (value, value)
    pair = tuple(value)
    if len(pair) == 1:
        return (pair[0], pair[0])
    if len(pair) != 2:
        raise InvalidOptionError(f"quote_field_names_with needs one or two strings, got {value!r}")
    return (pair[0] or "", pair[1] or "")


def _merge(cls, base, overrides: Mapping[str, Any]):
    known = {f.name for f in dataclasses.fields(cls)}
    changes = {}
    for key, value in overrides.items():
        name = key if key in known else _snake_case(key)
        if name not in known:
            raise InvalidOptionError(f"Unknown {cls.__name__} option: {key}")
        changes[name] = value
    return dataclasses.replace(base, **changes)


@dataclass
class FormatOptions:
    """
    Options recognised by format_query().

    Attributes:
        format: Output dialect (see FORMATS)
        parse_numbers: ParseNumbers policy (or True/False/"strict"/"native"/"enhanced")
        quote_field_names_with: Field quoting, a string or a (prefix, suffix) pair
        concat_operator: "||", "+" or "CONCAT" for field-sourced LIKE patterns
        param_prefix: Placeholder prefix for named and numbered parameters
        params_keep_prefix: Keep the prefix in named-parameter mapping keys
        numbered_params: Emit <prefix>1, <prefix>2, ... instead of "?"
        get_next_named_param: Callable(field) -> unique parameter name
        value_processor: Callable(rule, options) -> literal
        rule_processor: Callable(rule, options, meta) -> dialect output
        fields: Field configuration
        preset: SQL preset name (see SQL_PRESETS)
        fallback_expression: Output used for an empty root group
        validate: Skip invalid rules and groups
        validator: QueryValidator to use when validate is set
    """
    format: str = "json"
    parse_numbers: Any = ParseNumbers.NEVER
    quote_field_names_with: Union[str, Tuple[str, str], None] = None
    concat_operator: Optional[str] = None
    param_prefix: Optional[str] = None
    params_keep_prefix: bool = False
    numbered_params: Optional[bool] = None
    get_next_named_param: Optional[Callable[[str], str]] = None
    value_processor: Optional[Callable[..., Any]] = None
    rule_processor: Optional[Callable[..., Any]] = None
    fields: FieldsInput = None
    preset: Optional[str] = None
    fallback_expression: Any = None
    validate: bool = False
    validator: Any = None

    @classmethod
    def build(cls, options: Union[None, str, Mapping[str, Any], 'FormatOptions'] = None,
              **overrides) -> 'FormatOptions':
        """Build options from a format name, a dict, an instance or keywords."""
        if options is None:
            base = cls()
        elif isinstance(options, str):
            base = cls(format=options)
        elif isinstance(options, cls):
            base = options
        elif isinstance(options, Mapping):
            base = _merge(cls, cls(), options)
        else:
            raise InvalidOptionError(f"Unsupported options type: {type(options).__name__}")
        return _merge(cls, base, overrides) if overrides else base

    def resolve(self) -> 'FormatOptions':
        """Return a copy with every default applied."""
        fmt = (self.format or "json").strip().lower()
        if fmt not in FORMATS:
            raise InvalidOptionError(f"Unknown format: {self.format}")

        preset: Dict[str, Any] = {}
        if self.preset:
            preset_name = self.preset.strip().lower()
            if preset_name not in SQL_PRESETS:
                raise InvalidOptionError(f"Unknown SQL preset: {self.preset}")
            preset = SQL_PRESETS[preset_name]

        numbered = self.numbered_params
        if numbered is None:
            numbered = preset.get("numbered_params", False)

        param_prefix = self.param_prefix
        if param_prefix is None:
            param_prefix = preset.get("param_prefix", "$" if numbered else ":")

        quote = self.quote_field_names_with
        if quote is None:
            quote = preset.get("quote_field_names_with")

        return dataclasses.replace(
            self,
            format=fmt,
            parse_numbers=ParseNumbers.coerce(self.parse_numbers),
            quote_field_names_with=_normalize_quote_pair(quote),
            concat_operator=self.concat_operator or preset.get("concat_operator", "||"),
            param_prefix=param_prefix,
            numbered_params=bool(numbered),
            fields=normalize_fields(self.fields),
        )


@dataclass
class ParseOptions:
    """
    Options recognised by parse_query().

    Attributes:
        parse_numbers: Same policy as FormatOptions.parse_numbers
        fields: Field configuration; unknown fields are rejected when given
        independent_combinators: Return InterleavedRuleGroup trees
        lists_as_arrays: Keep list values as lists instead of comma-joined strings
        max_depth: Maximum group nesting depth (None for no limit)
    """
    parse_numbers: Any = ParseNumbers.NEVER
    fields: FieldsInput = None
    independent_combinators: bool = False
    lists_as_arrays: bool = False
    max_depth: Optional[int] = None

    @classmethod
    def build(cls, options: Union[None, Mapping[str, Any], 'ParseOptions'] = None,
              **overrides) -> 'ParseOptions':
        if options is None:
            base = cls()
        elif isinstance(options, cls):
            base = options
        elif isinstance(options, Mapping):
            base = _merge(cls, cls(), options)
        else:
            raise InvalidOptionError(f"Unsupported options type: {type(options).__name__}")
        return _merge(cls, base, overrides) if overrides else base

    def resolve(self) -> 'ParseOptions':
        if self.max_depth is not None and self.max_depth < 1:
            raise InvalidOptionError("max_depth must be at least 1")
        return dataclasses.replace(
            self,
            parse_numbers=ParseNumbers.coerce(self.parse_numbers),
            fields=normalize_fields(self.fields),
        )


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Configuration helper that reads formatter defaults from environment variables.

    Environment variables:
        QUERYBRIDGE_PARSE_NUMBERS: never / strict / always / enhanced
        QUERYBRIDGE_PARAM_PREFIX: Placeholder prefix (e.g. ":" or "$")
        QUERYBRIDGE_NUMBERED_PARAMS: Use numbered placeholders (true/false)
        QUERYBRIDGE_QUOTE_FIELD_NAMES_WITH: One or two characters, e.g. '"' or '[]'
        QUERYBRIDGE_SQL_PRESET: ansi / sqlite / postgresql / mysql / mssql / oracle
    """

    @staticmethod
    def from_env() -> Dict[str, Any]:
        """
        Create FormatOptions keyword arguments from environment variables.

        Example:
            from querybridge import format_query
            from querybridge.config import Config

            sql, params = format_query(query, "parameterized", **Config.from_env())
        """
        config: Dict[str, Any] = {}

        parse_numbers = os.getenv("QUERYBRIDGE_PARSE_NUMBERS")
        if parse_numbers:
            config["parse_numbers"] = ParseNumbers.coerce(parse_numbers)

        param_prefix = os.getenv("QUERYBRIDGE_PARAM_PREFIX")
        if param_prefix:
            config["param_prefix"] = param_prefix

        numbered = _env_bool("QUERYBRIDGE_NUMBERED_PARAMS")
        if numbered is not None:
            config["numbered_params"] = numbered

        quote = os.getenv("QUERYBRIDGE_QUOTE_FIELD_NAMES_WITH")
        if quote:
            config["quote_field_names_with"] = (quote[0], quote[-1])

        preset = os.getenv("QUERYBRIDGE_SQL_PRESET")
        if preset:
            config["preset"] = preset

        return config

    @staticmethod
    def for_postgresql() -> Dict[str, Any]:
        """Double-quoted identifiers and $1, $2, ... placeholders."""
        return dict(SQL_PRESETS["postgresql"])

    @staticmethod
    def for_mysql() -> Dict[str, Any]:
        """Backtick identifiers and CONCAT() for field-sourced patterns."""
        return dict(SQL_PRESETS["mysql"])

    @staticmethod
    def for_mssql() -> Dict[str, Any]:
        """Bracketed identifiers, "+" concatenation and @name parameters."""
        return dict(SQL_PRESETS["mssql"])

    @staticmethod
    def for_sqlite() -> Dict[str, Any]:
        return dict(SQL_PRESETS["sqlite"])
