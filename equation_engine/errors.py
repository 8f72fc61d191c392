from enum import Enum


class ErrorKind(str, Enum):
    EMPTY = 'empty'
    INVALID_CHARACTER = 'invalid_character'
    MISMATCHED_PARENTHESES = 'mismatched_parentheses'
    EMPTY_PARENTHESES = 'empty_parentheses'
    DOUBLE_OPERATOR = 'double_operator'
    LEADING_OPERATOR = 'leading_operator'
    TRAILING_OPERATOR = 'trailing_operator'
    CONSECUTIVE_OPERATORS = 'consecutive_operators'
    UNKNOWN_FUNCTION = 'unknown_function'
    LOWERCASE_VARIABLE = 'lowercase_variable'
    UNKNOWN_VARIABLE = 'unknown_variable'
    UNDECLARED_PARAMETER = 'undeclared_parameter'
    NAME_COLLISION = 'name_collision'
    SYNTAX = 'syntax'
    ARITY = 'arity'
    SMOKE_TEST = 'smoke_test'


class FormulaError(ValueError):
    """A formula that cannot be compiled.

    ``kind`` says which rule fired, ``token`` is the text that triggered it
    (when there is a single culprit) and ``position`` its offset in the
    formula.
    """

    def __init__(self, kind, message, token=None, position=None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.token = token
        self.position = position

    def __repr__(self):
        return f"FormulaError({self.kind.value!r}, {self.message!r})"
