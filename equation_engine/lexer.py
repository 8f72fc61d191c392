from collections import namedtuple

from .errors import ErrorKind, FormulaError

Token = namedtuple('Token', ['kind', 'text', 'position'])

NUMBER = 'NUMBER'
IDENT = 'IDENT'
OP = 'OP'
LPAREN = 'LPAREN'
RPAREN = 'RPAREN'
COMMA = 'COMMA'

OPERATORS = '+-*/^'
_PUNCTUATION = {'(': LPAREN, ')': RPAREN, ',': COMMA}
_ALLOWED_CHARS = set(
    'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'
    '_+-*/^().,'
)


def find_invalid_characters(text):
    invalid = []
    for char in text:
        if char.isspace() or char in _ALLOWED_CHARS:
            continue
        if char not in invalid:
            invalid.append(char)
    return invalid


def _scan_number(text, start):
    pos = start
    length = len(text)
    while pos < length and text[pos].isdigit():
        pos += 1
    if pos < length and text[pos] == '.':
        pos += 1
        while pos < length and text[pos].isdigit():
            pos += 1
    if pos == start + 1 and text[start] == '.':
        raise FormulaError(ErrorKind.SYNTAX,
                           f"Invalid syntax: '.' at position {start} is not a number",
                           token='.', position=start)
    # only treat e/E as an exponent when digits follow, so "2*e" stays a constant
    if pos < length and text[pos] in 'eE':
        ahead = pos + 1
        if ahead < length and text[ahead] in '+-':
            ahead += 1
        if ahead < length and text[ahead].isdigit():
            pos = ahead
            while pos < length and text[pos].isdigit():
                pos += 1
    return pos


def tokenize(text):
    """Split formula text into tokens.

    Raises FormulaError for characters outside the formula alphabet.
    """
    invalid = find_invalid_characters(text)
    if invalid:
        raise FormulaError(ErrorKind.INVALID_CHARACTER,
                           f"Invalid characters: {', '.join(invalid)}",
                           token=invalid[0], position=text.index(invalid[0]))

    tokens = []
    pos = 0
    length = len(text)
    while pos < length:
        char = text[pos]
        if char.isspace():
            pos += 1
        elif char.isdigit() or char == '.':
            end = _scan_number(text, pos)
            tokens.append(Token(NUMBER, text[pos:end], pos))
            pos = end
        elif char.isalpha():
            end = pos + 1
            while end < length and (text[end].isalnum() or text[end] == '_'):
                end += 1
            tokens.append(Token(IDENT, text[pos:end], pos))
            pos = end
        elif char in OPERATORS:
            tokens.append(Token(OP, char, pos))
            pos += 1
        elif char in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[char], char, pos))
            pos += 1
        else:
            # a lone underscore is the only allowed character that cannot start a token
            raise FormulaError(ErrorKind.INVALID_CHARACTER,
                               f"Invalid characters: {char}",
                               token=char, position=pos)
    return tokens
