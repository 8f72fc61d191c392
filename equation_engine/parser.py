from .errors import ErrorKind, FormulaError
from .expr import BinaryOp, Call, Constant, Negate, Number, Variable
from .lexer import COMMA, IDENT, LPAREN, NUMBER, OP, RPAREN
from .safe_math import SAFE_FUNCTIONS, SUPPORTED_CONSTANTS

_OPERANDS = (NUMBER, IDENT, LPAREN)


class Parser:
    """Recursive-descent parser over a validated token stream.

    Grammar, loosest binding first::

        expression := term (('+' | '-') term)*
        term       := unary (('*' | '/') unary)*
        unary      := '-' unary | power
        power      := primary ('^' power)?
        primary    := NUMBER | IDENT '(' args ')' | IDENT | '(' expression ')'

    so ``^`` binds tighter than unary minus (``-X^2`` is ``-(X^2)``) and is
    right-associative (``2^3^2`` is ``2^(3^2)``).
    """

    def __init__(self, tokens, names):
        self.tokens = tokens
        self.names = frozenset(names)
        self.pos = 0

    def peek(self):
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def advance(self):
        token = self.peek()
        self.pos += 1
        return token

    def at_operator(self, *ops):
        token = self.peek()
        return token is not None and token.kind == OP and token.text in ops

    def unexpected(self, token):
        if token is None:
            return FormulaError(ErrorKind.SYNTAX, "Invalid syntax: unexpected end of expression")
        message = f"Invalid syntax: unexpected '{token.text}' at position {token.position}"
        previous = self.tokens[self.pos - 1] if self.pos > 0 else None
        if previous is not None and previous.kind in (NUMBER, IDENT, RPAREN) and token.kind in _OPERANDS:
            message += " (use * for multiplication)"
        return FormulaError(ErrorKind.SYNTAX, message, token=token.text, position=token.position)

    def expect(self, kind):
        token = self.peek()
        if token is None or token.kind != kind:
            raise self.unexpected(token)
        return self.advance()

    def parse(self):
        node = self.parse_expression()
        if self.peek() is not None:
            raise self.unexpected(self.peek())
        return node

    def parse_expression(self):
        node = self.parse_term()
        while self.at_operator('+', '-'):
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_term())
        return node

    def parse_term(self):
        node = self.parse_unary()
        while self.at_operator('*', '/'):
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_unary())
        return node

    def parse_unary(self):
        if self.at_operator('-'):
            self.advance()
            return Negate(self.parse_unary())
        return self.parse_power()

    def parse_power(self):
        base = self.parse_primary()
        if self.at_operator('^'):
            self.advance()
            return BinaryOp('^', base, self.parse_power())
        return base

    def parse_primary(self):
        token = self.peek()
        if token is None:
            raise self.unexpected(token)
        if token.kind == NUMBER:
            self.advance()
            return Number(token.text)
        if token.kind == LPAREN:
            self.advance()
            node = self.parse_expression()
            self.expect(RPAREN)
            return node
        if token.kind == IDENT:
            self.advance()
            following = self.peek()
            if following is not None and following.kind == LPAREN:
                return self.parse_call(token)
            if token.text in self.names:
                return Variable(token.text)
            if token.text.lower() in SUPPORTED_CONSTANTS:
                return Constant(token.text)
            raise FormulaError(ErrorKind.UNKNOWN_VARIABLE,
                               f"Unknown variable: {token.text}",
                               token=token.text, position=token.position)
        raise self.unexpected(token)

    def parse_call(self, name_token):
        name = name_token.text.lower()
        if name not in SAFE_FUNCTIONS:
            raise FormulaError(ErrorKind.UNKNOWN_FUNCTION,
                               f"Unknown function: {name_token.text}",
                               token=name_token.text, position=name_token.position)
        self.expect(LPAREN)
        args = [self.parse_expression()]
        while self.peek() is not None and self.peek().kind == COMMA:
            self.advance()
            args.append(self.parse_expression())
        self.expect(RPAREN)

        signature = SAFE_FUNCTIONS[name]
        if len(args) < signature.min_args or (signature.max_args is not None and len(args) > signature.max_args):
            if signature.max_args is None:
                expected = f"at least {signature.min_args}"
            else:
                expected = str(signature.min_args)
            noun = "argument" if expected == "1" else "arguments"
            raise FormulaError(ErrorKind.ARITY,
                               f"Function {name} expects {expected} {noun}, got {len(args)}",
                               token=name_token.text, position=name_token.position)
        return Call(name, args)


def parse(tokens, names):
    return Parser(tokens, names).parse()
