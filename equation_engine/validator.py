"""Structural and naming checks run on the token stream before parsing.

State variables are uppercase (``X``, ``Y``); in the one-variable form the
lowercase names are parameters that must be declared up front. Every rule
raises a FormulaError of its own kind so callers can tell them apart.
"""
import logging

from .errors import ErrorKind, FormulaError
from .lexer import COMMA, IDENT, LPAREN, OP, RPAREN, tokenize
from .safe_math import SUPPORTED_CONSTANTS, SUPPORTED_FUNCTIONS

logger = logging.getLogger(__name__)

DEFAULT_VARIABLES = ('X', 'Y')
STATE_VARIABLE_1D = 'X'
DOUBLED_OPERATORS = ('++', '--', '**', '//', '^^')
UNARY_MINUS_FOLLOWS = '+-*/'
MAX_TOKENS = 256


def _unique(names):
    seen = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def _is_identifier(name):
    return (isinstance(name, str) and name[:1].isalpha()
            and all(c.isalnum() or c == '_' for c in name))


def check_parentheses(tokens):
    depth = 0
    for token in tokens:
        if token.kind == LPAREN:
            depth += 1
        elif token.kind == RPAREN:
            depth -= 1
            if depth < 0:
                raise FormulaError(ErrorKind.MISMATCHED_PARENTHESES,
                                   f"Invalid syntax: mismatched parentheses, unexpected ')' at position {token.position}",
                                   token=')', position=token.position)
    if depth != 0:
        raise FormulaError(ErrorKind.MISMATCHED_PARENTHESES,
                           f"Invalid syntax: mismatched parentheses, {depth} unclosed '('",
                           token='(')

    for previous, token in zip(tokens, tokens[1:]):
        if previous.kind == LPAREN and token.kind == RPAREN:
            raise FormulaError(ErrorKind.EMPTY_PARENTHESES,
                               f"Invalid syntax: empty parentheses at position {previous.position}",
                               token='()', position=previous.position)


def check_operators(tokens):
    pairs = list(zip(tokens, tokens[1:]))

    for first, second in pairs:
        if first.kind == OP and second.kind == OP and first.text == second.text \
                and second.position == first.position + 1:
            doubled = first.text + second.text
            hint = " (use ^ for powers)" if doubled == '**' else ""
            raise FormulaError(ErrorKind.DOUBLE_OPERATOR,
                               f"Invalid syntax: double operator '{doubled}' is not allowed{hint}",
                               token=doubled, position=first.position)

    previous = None
    for token in tokens:
        if token.kind == OP and token.text != '-' and (previous is None or previous.kind in (LPAREN, COMMA)):
            raise FormulaError(ErrorKind.LEADING_OPERATOR,
                               f"Invalid syntax: expression cannot start with '{token.text}'",
                               token=token.text, position=token.position)
        previous = token

    for index, token in enumerate(tokens):
        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if token.kind == OP and (following is None or following.kind in (RPAREN, COMMA)):
            raise FormulaError(ErrorKind.TRAILING_OPERATOR,
                               f"Invalid syntax: expression cannot end with operator '{token.text}'",
                               token=token.text, position=token.position)

    for first, second in pairs:
        if first.kind == OP and second.kind == OP:
            if second.text == '-' and first.text in UNARY_MINUS_FOLLOWS:
                continue
            raise FormulaError(ErrorKind.CONSECUTIVE_OPERATORS,
                               f"Invalid syntax: consecutive operators '{first.text}{second.text}'",
                               token=first.text + second.text, position=first.position)


def check_declared_names(variables, parameters):
    for name in list(variables) + list(parameters or ()):
        if not _is_identifier(name):
            raise FormulaError(ErrorKind.NAME_COLLISION,
                               f"Invalid name: {name!r} is not an identifier",
                               token=str(name))
        if name.lower() in SUPPORTED_FUNCTIONS:
            raise FormulaError(ErrorKind.NAME_COLLISION,
                               f"Name collision: '{name}' is a built-in function",
                               token=name)
    if parameters is not None:
        for name in parameters:
            if name in variables:
                raise FormulaError(ErrorKind.NAME_COLLISION,
                                   f"Name collision: '{name}' is the state variable",
                                   token=name)


def check_identifiers(tokens, variables, parameters=None):
    """Classify identifiers as functions, constants, variables or parameters.

    ``parameters=None`` selects the two-variable convention (uppercase state
    variables, no lowercase names); a sequence selects the one-variable
    convention where lowercase names must be declared parameters.
    """
    check_declared_names(variables, parameters)
    declared = set(variables) | set(parameters or ())

    unknown_functions = []
    loose = []
    for index, token in enumerate(tokens):
        if token.kind != IDENT:
            continue
        following = tokens[index + 1] if index + 1 < len(tokens) else None
        is_call = following is not None and following.kind == LPAREN
        if is_call:
            if token.text.lower() not in SUPPORTED_FUNCTIONS:
                unknown_functions.append(token.text)
            continue
        if token.text in declared:
            continue
        if token.text.lower() in SUPPORTED_CONSTANTS:
            continue
        if token.text.lower() in SUPPORTED_FUNCTIONS:
            raise FormulaError(ErrorKind.SYNTAX,
                               f"Invalid syntax: function '{token.text}' must be followed by '('",
                               token=token.text, position=token.position)
        loose.append(token.text)

    if unknown_functions:
        names = _unique(unknown_functions)
        raise FormulaError(ErrorKind.UNKNOWN_FUNCTION,
                           f"Unknown function: {', '.join(names)}. Allowed: {', '.join(sorted(SUPPORTED_FUNCTIONS))}",
                           token=names[0])

    names = _unique(loose)
    lowercase = [name for name in names if name == name.lower()]
    other = [name for name in names if name != name.lower()]

    if parameters is None:
        if lowercase:
            raise FormulaError(ErrorKind.LOWERCASE_VARIABLE,
                               f"Use uppercase variables. Found: {', '.join(lowercase)}. "
                               f"Use: {', '.join(name.upper() for name in lowercase)}",
                               token=lowercase[0])
        if other:
            raise FormulaError(ErrorKind.UNKNOWN_VARIABLE,
                               f"Unknown variable: {', '.join(other)}. Use: {', '.join(variables)}",
                               token=other[0])
    else:
        if other:
            raise FormulaError(ErrorKind.UNKNOWN_VARIABLE,
                               f"Unknown variable: {', '.join(other)}. Use {STATE_VARIABLE_1D} for the variable.",
                               token=other[0])
        if lowercase:
            raise FormulaError(ErrorKind.UNDECLARED_PARAMETER,
                               f"Undeclared parameter: {', '.join(lowercase)}. "
                               f"Declare parameters: [{', '.join(parameters)}]",
                               token=lowercase[0])


def check_formula(text, variables=DEFAULT_VARIABLES, parameters=None):
    """Run every pre-parse rule and return the token stream."""
    if text is None or not text.strip():
        raise FormulaError(ErrorKind.EMPTY, "Equation cannot be empty")
    tokens = tokenize(text)
    if len(tokens) > MAX_TOKENS:
        raise FormulaError(ErrorKind.SYNTAX,
                           f"Invalid syntax: expression is too long ({len(tokens)} tokens, at most {MAX_TOKENS})")
    check_parentheses(tokens)
    check_operators(tokens)
    check_identifiers(tokens, variables, parameters)
    return tokens


def validate_equation_input(equation_str, variables=DEFAULT_VARIABLES, parameters=None):
    try:
        check_formula(equation_str, variables, parameters)
    except FormulaError as e:
        logger.debug("Rejected formula %r: %s", equation_str, e.message)
        return False, e.message
    return True, ""
