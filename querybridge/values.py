"""
Value coercion helpers shared by every formatter and parser.

The same helpers run on both sides of a translation so that a rule value
produces the same literal shape in every dialect, and parsing a formatted
query yields values of the same type again.
"""

import numbers
import re
from enum import Enum
from typing import Any, Iterable, List, Optional, Union


# Full-string numeric match: signed integers, decimals, exponent notation,
# surrounding whitespace tolerated.
NUMERIC_REGEX = re.compile(r'^\s*[+-]?(?:\d+(?:\.\d+)?|\.\d+)(?:[eE][+-]?\d+)?\s*$')

# Looser form accepted by the "enhanced" policy: digit grouping with "_" or ",",
# and a trailing decimal point.
ENHANCED_NUMERIC_REGEX = re.compile(
    r'^\s*(?=[+-]?\.?\d)[+-]?(?:\d{1,3}(?:[_,]\d{3})+|\d+(?:_\d+)*)?(?:\.\d*)?(?:[eE][+-]?\d+)?\s*$'
)

# Leading numeric prefix, used by the "always" policy.
NUMERIC_PREFIX_REGEX = re.compile(r'^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')

_INTEGER_REGEX = re.compile(r'^[+-]?\d+$')
_ESCAPED_COMMA_SPLIT = re.compile(r'(?<!\\),')


class ParseNumbers(Enum):
    """Policy controlling when string values are converted to numbers."""
    NEVER = "never"
    STRICT = "strict"
    ALWAYS = "always"
    ENHANCED = "enhanced"

    @classmethod
    def coerce(cls, value: Union['ParseNumbers', bool, str, None]) -> 'ParseNumbers':
        """Accept the loose forms callers pass in (bools, names, None)."""
        if isinstance(value, cls):
            return value
        if value is None or value is False:
            return cls.NEVER
        if value is True:
            return cls.STRICT
        if isinstance(value, str):
            name = value.strip().lower()
            aliases = {
                "": cls.NEVER, "false": cls.NEVER, "never": cls.NEVER, "0": cls.NEVER,
                "true": cls.STRICT, "strict": cls.STRICT, "1": cls.STRICT,
                "always": cls.ALWAYS, "native": cls.ALWAYS,
                "enhanced": cls.ENHANCED,
            }
            if name in aliases:
                return aliases[name]
        raise ValueError(f"Unknown parse_numbers policy: {value!r}")


def is_numeric_string(value: Any) -> bool:
    """True when the whole string is a number (whitespace around it is allowed)."""
    return isinstance(value, str) and NUMERIC_REGEX.match(value) is not None


def is_real_number(value: Any) -> bool:
    """Numbers proper; bools are not numbers here."""
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _matches_policy(value: str, policy: ParseNumbers) -> bool:
    if policy is ParseNumbers.NEVER:
        return False
    if policy is ParseNumbers.STRICT:
        return NUMERIC_REGEX.match(value) is not None
    if policy is ParseNumbers.ENHANCED:
        return (NUMERIC_REGEX.match(value) is not None or
                ENHANCED_NUMERIC_REGEX.match(value) is not None)
    return NUMERIC_PREFIX_REGEX.match(value) is not None


def _to_number(text: str) -> Union[int, float]:
    cleaned = text.strip().replace('_', '').replace(',', '')
    if cleaned.endswith('.'):
        cleaned = cleaned[:-1]
    if _INTEGER_REGEX.match(cleaned):
        return int(cleaned)
    return float(cleaned)


def parse_number(value: Any, parse_numbers: Any = ParseNumbers.NEVER) -> Any:
    """
    Convert a string to a number according to the parse_numbers policy.

    Anything that is not a string, or does not qualify under the policy, is
    returned unchanged, which makes the function idempotent.

    Args:
        value: Value to convert
        parse_numbers: ParseNumbers member or one of its loose forms

    Returns:
        int/float when converted, otherwise the input
    """
    policy = ParseNumbers.coerce(parse_numbers)
    if not isinstance(value, str) or not _matches_policy(value, policy):
        return value
    if policy is ParseNumbers.ALWAYS:
        return _to_number(NUMERIC_PREFIX_REGEX.match(value).group(0))
    return _to_number(value)


def should_render_as_number(value: Any, parse_numbers: Any = ParseNumbers.NEVER) -> bool:
    """Whether a value is emitted as an unquoted number literal."""
    if is_real_number(value):
        return True
    if not isinstance(value, str):
        return False
    return _matches_policy(value, ParseNumbers.coerce(parse_numbers))


def coerce_value(value: Any, parse_numbers: Any = ParseNumbers.NEVER) -> Any:
    """parse_number, applied only where the value would render as a number."""
    if isinstance(value, str) and should_render_as_number(value, parse_numbers):
        return parse_number(value, parse_numbers)
    return value


def is_empty_value(value: Any) -> bool:
    """True for None and the empty string."""
    return value is None or value == ""


def to_array(value: Any, retain_empty_strings: bool = False) -> List[Any]:
    """
    Normalize a scalar, a comma-separated string or a list into a list.

    Commas escaped with a backslash do not split. String items are trimmed.
    Empty items are dropped unless retain_empty_strings is set, which keeps
    positional meaning for range bounds.
    """
    if isinstance(value, (list, tuple)):
        items = [item.strip() if isinstance(item, str) else item for item in value]
    elif isinstance(value, str):
        items = [part.strip().replace('\\,', ',') for part in _ESCAPED_COMMA_SPLIT.split(value)]
    elif value is None:
        items = []
    else:
        items = [value]

    if retain_empty_strings:
        return ["" if item is None else item for item in items]
    return [item for item in items if not is_empty_value(item)]


def join_values(values: Iterable[Any]) -> str:
    """Inverse of to_array for string storage: commas inside items are escaped."""
    parts = []
    for item in values:
        text = "" if item is None else str(item)
        parts.append(text.replace(',', '\\,'))
    return ','.join(parts)


def trim_if_string(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def escape_quotes(value: Any, quote: str = "'", escape: Optional[str] = None) -> str:
    """Escape a quote character inside a literal; SQL style doubling by default."""
    text = str(value)
    if escape is None:
        escape = quote * 2
    return text.replace(quote, escape)


def escape_backslash_string(value: Any, quote: str = '"') -> str:
    """Escape for C-style string literals (CEL): backslashes first, then quotes."""
    return str(value).replace('\\', '\\\\').replace(quote, '\\' + quote)


def unescape_backslash_string(value: str) -> str:
    return re.sub(r'\\(.)', lambda m: {'n': '\n', 't': '\t', 'r': '\r'}.get(m.group(1), m.group(1)), value)
