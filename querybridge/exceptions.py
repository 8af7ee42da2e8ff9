"""
Exception classes for querybridge.
"""

from typing import Any, Optional, Tuple


class QueryBridgeError(Exception):
    """Base exception for all querybridge errors."""
    pass


class ConfigurationError(QueryBridgeError):
    """Raised when a rule references configuration the engine cannot resolve."""
    pass


class UnknownFieldError(ConfigurationError):
    """Raised when a rule names a field missing from the field configuration."""
    def __init__(self, field: str, path: Optional[Tuple[int, ...]] = None):
        location = f" at path {list(path)}" if path is not None else ""
        super().__init__(f"Unknown field '{field}'{location}")
        self.field = field
        self.path = path


class UnsupportedOperatorError(ConfigurationError):
    """Raised when an operator cannot be expressed in a dialect."""
    def __init__(self, operator: Any, dialect: str, path: Optional[Tuple[int, ...]] = None):
        location = f" (path {list(path)})" if path is not None else ""
        super().__init__(f"Operator '{operator}' is not supported by {dialect}{location}")
        self.operator = operator
        self.dialect = dialect
        self.path = path


class InvalidOptionError(ConfigurationError):
    """Raised when formatter or parser options are inconsistent."""
    pass


class UnrepresentableOperatorError(QueryBridgeError):
    """Raised when a dialect operator has no canonical equivalent."""
    def __init__(self, token: Any, dialect: str):
        super().__init__(f"{dialect} operator '{token}' is not representable as a rule")
        self.token = token
        self.dialect = dialect


class UnsupportedValueError(QueryBridgeError):
    """Raised when a value shape has no representation in the target dialect."""
    pass


class InvalidTreeError(QueryBridgeError):
    """Raised when a rule tree is structurally malformed."""
    pass


class QueryParseError(QueryBridgeError):
    """Raised when dialect input cannot be parsed into a rule tree."""
    def __init__(self,
                 message: str,
                 position: Optional[int] = None,
                 line: Optional[int] = None,
                 column: Optional[int] = None):
        if line is not None and column is not None:
            message = f"{message} (line {line}, column {column})"
        elif position is not None:
            message = f"{message} (offset {position})"
        super().__init__(message)
        self.position = position
        self.line = line
        self.column = column
