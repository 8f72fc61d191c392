"""Expression tree for parsed formulas.

Nodes render themselves as sympy expressions in two flavours: the plain
one echoes the formula back (``str``/``latex``), the safe one routes every
function call and ``^`` through ``safe_math`` and is what ``lambdify``
compiles into the evaluator.
"""
import sympy as sp

from .safe_math import SAFE_MODULE, SAFE_PREFIX

_SYMPY_FUNCTIONS = {
    'sin': sp.sin, 'cos': sp.cos, 'tan': sp.tan,
    'asin': sp.asin, 'acos': sp.acos, 'atan': sp.atan,
    'sinh': sp.sinh, 'cosh': sp.cosh, 'tanh': sp.tanh,
    'sqrt': sp.sqrt, 'exp': sp.exp, 'log': sp.log, 'ln': sp.log,
    'abs': sp.Abs, 'pow': sp.Pow, 'floor': sp.floor, 'ceil': sp.ceiling,
    'sign': sp.sign, 'min': sp.Min, 'max': sp.Max,
}

_SYMPY_CONSTANTS = {'pi': sp.pi, 'e': sp.E}


def _safe_call(name, *args):
    return sp.Function(SAFE_PREFIX + name)(*args)


class Node:
    def to_sympy(self, safe=False):
        raise NotImplementedError


class Number(Node):
    def __init__(self, text):
        self.text = text

    def to_sympy(self, safe=False):
        # float literals keep constant sub-expressions out of integer arithmetic
        if self.text.isdigit() and not safe:
            return sp.Integer(int(self.text))
        return sp.Float(self.text)

    def __repr__(self):
        return f"Number({self.text})"


class Variable(Node):
    def __init__(self, name):
        self.name = name

    def to_sympy(self, safe=False):
        return sp.Symbol(self.name)

    def __repr__(self):
        return f"Variable({self.name})"


class Constant(Node):
    def __init__(self, name):
        self.name = name.lower()

    def to_sympy(self, safe=False):
        return _SYMPY_CONSTANTS[self.name]

    def __repr__(self):
        return f"Constant({self.name})"


class Negate(Node):
    def __init__(self, operand):
        self.operand = operand

    def to_sympy(self, safe=False):
        return -self.operand.to_sympy(safe)

    def __repr__(self):
        return f"Negate({self.operand!r})"


class BinaryOp(Node):
    def __init__(self, op, left, right):
        self.op = op
        self.left = left
        self.right = right

    def to_sympy(self, safe=False):
        left = self.left.to_sympy(safe)
        right = self.right.to_sympy(safe)
        if self.op == '+':
            return left + right
        if self.op == '-':
            return left - right
        if self.op == '*':
            return left * right
        if self.op == '/':
            return left / right
        if safe:
            return _safe_call('pow', left, right)
        return left ** right

    def __repr__(self):
        return f"BinaryOp({self.op!r}, {self.left!r}, {self.right!r})"


class Call(Node):
    def __init__(self, name, args):
        self.name = name.lower()
        self.args = list(args)

    def to_sympy(self, safe=False):
        args = [arg.to_sympy(safe) for arg in self.args]
        if safe:
            return _safe_call(self.name, *args)
        fn = _SYMPY_FUNCTIONS.get(self.name)
        if fn is None:
            # log10 and round have no direct sympy counterpart worth simplifying into
            fn = sp.Function(self.name)
        return fn(*args)

    def __repr__(self):
        return f"Call({self.name!r}, {self.args!r})"


def to_sympy(node, safe=False):
    """Render a tree as a sympy expression without simplifying it."""
    with sp.evaluate(False):
        return node.to_sympy(safe)


def lambdify_tree(node, names):
    """Compile a tree into ``f(*values)`` taking one positional value per name."""
    symbols = [sp.Symbol(name) for name in names]
    return sp.lambdify(symbols, to_sympy(node, safe=True), modules=[SAFE_MODULE, 'numpy'])
