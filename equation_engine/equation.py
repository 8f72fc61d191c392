"""Compiled equations: parse once, evaluate thousands of times.

A CompiledEquation never raises once constructed. A formula that fails to
validate or compile leaves ``is_valid`` False with a readable
``error_message``, and every evaluation of it returns NaN.
"""
import functools
import logging
import math
from collections import namedtuple

import numpy as np
import sympy as sp

from .errors import ErrorKind, FormulaError
from .expr import lambdify_tree, to_sympy
from .parser import parse
from .validator import DEFAULT_VARIABLES, STATE_VARIABLE_1D, check_formula

logger = logging.getLogger(__name__)

NAN = float('nan')

SMOKE_POINTS = (
    (0.0, 0.0),
    (1.0, 1.0),
    (-1.0, -1.0),
    (0.1, 0.1),
    (np.pi, np.e),
    (10.0, -10.0),
    (-5.0, 5.0),
)
SMOKE_VALUES_1D = (0.0, 1.0, -1.0, 0.1, np.pi, 10.0, -5.0)
SMOKE_PARAMETER_VALUE = 1.0

CompiledFormula = namedtuple('CompiledFormula', ['tree', 'evaluator'])


def call_evaluator(evaluator, values):
    """Call a compiled formula positionally; NaN for domain errors and non-finite results.

    Does not touch the numpy error state: callers in hot loops enter
    ``np.errstate(all='ignore')`` once around the whole loop.
    """
    try:
        result = float(evaluator(*values))
    except (ArithmeticError, ValueError):
        return NAN
    return result if math.isfinite(result) else NAN


def run_evaluator(evaluator, values):
    with np.errstate(all='ignore'):
        return call_evaluator(evaluator, values)


def _always_nan(*values):
    return NAN


def _smoke_arguments(variables, parameters):
    if parameters is None:
        for point in SMOKE_POINTS:
            values = (point * len(variables))[:len(variables)]
            yield values, values
    else:
        for value in SMOKE_VALUES_1D:
            yield (value,), (np.float64(value),) + (np.float64(SMOKE_PARAMETER_VALUE),) * len(parameters)


def smoke_test(evaluator, variables, parameters=None):
    """Evaluate at a fixed battery of points; domain errors are fine, anything else is not."""
    for shown, values in _smoke_arguments(variables, parameters):
        where = ', '.join(f"{v:g}" for v in shown)
        try:
            with np.errstate(all='ignore'):
                result = evaluator(*map(np.float64, values))
        except (ArithmeticError, ValueError):
            continue
        except Exception as e:
            raise FormulaError(ErrorKind.SMOKE_TEST,
                               f"Validation failed at ({where}): {e}") from e
        if not isinstance(result, (float, np.floating)):
            raise FormulaError(ErrorKind.SMOKE_TEST,
                               f"Validation failed at ({where}): function must return a number")


@functools.lru_cache(maxsize=512)
def compile_formula(text, variables=DEFAULT_VARIABLES, parameters=None):
    """Validate, parse and lambdify ``text``; raises FormulaError.

    The evaluator takes the variables, then the parameters, positionally.
    Results are cached per (text, variables, parameters). The cached tree and
    function are never mutated, so sharing them between equations is safe.
    """
    tokens = check_formula(text, variables, parameters)
    names = tuple(variables) + tuple(parameters or ())
    try:
        tree = parse(tokens, names)
        evaluator = lambdify_tree(tree, names)
    except RecursionError as e:
        raise FormulaError(ErrorKind.SYNTAX, "Invalid syntax: expression is nested too deeply") from e
    smoke_test(evaluator, variables, parameters)
    return CompiledFormula(tree, evaluator)


class CompiledEquation:
    """A formula in the uppercase state variables, ``X' = f(X, Y)`` style."""

    def __init__(self, equation_string, variables=DEFAULT_VARIABLES):
        self._raw = (equation_string or '').strip()
        self._variables = tuple(variables)
        self._parameters = None
        self._compile()

    def _compile(self):
        self._compiled = None
        self._error = ''
        self._error_kind = None
        try:
            self._compiled = compile_formula(self._raw, self._variables, self._parameters)
        except FormulaError as e:
            self._error = e.message
            self._error_kind = e.kind
            logger.debug("Formula %r failed to compile: %s", self._raw, e.message)

    @property
    def raw_equation(self):
        return self._raw

    @property
    def variables(self):
        return self._variables

    @property
    def is_valid(self):
        return self._compiled is not None

    @property
    def error_message(self):
        return self._error

    @property
    def error_kind(self):
        return self._error_kind

    def get_error(self):
        return self._error

    @functools.cached_property
    def expression(self):
        """The parsed formula as an unsimplified sympy expression (None if invalid)."""
        if self._compiled is None:
            return None
        return to_sympy(self._compiled.tree)

    def latex(self):
        expression = self.expression
        return sp.latex(expression) if expression is not None else ''

    def bind(self):
        """Positional ``f(*values) -> float`` for hot loops; NaN on any failure.

        Unlike ``evaluate`` it leaves the numpy error state alone, so wrap the
        loop in ``np.errstate(all='ignore')``.
        """
        if self._compiled is None:
            return _always_nan
        evaluator = self._compiled.evaluator

        def call(*values):
            return call_evaluator(evaluator, values)
        return call

    def evaluate(self, *values):
        """Evaluate at one value per declared variable; NaN on any failure."""
        if self._compiled is None:
            return NAN
        if len(values) != len(self._variables):
            raise TypeError(f"evaluate() takes {len(self._variables)} values "
                            f"({', '.join(self._variables)}), got {len(values)}")
        return run_evaluator(self._compiled.evaluator, tuple(map(np.float64, values)))

    def __repr__(self):
        state = 'valid' if self.is_valid else f'invalid: {self._error}'
        return f"{type(self).__name__}({self._raw!r}, {state})"


class CompiledEquation1D(CompiledEquation):
    """A formula in the single state variable ``X`` and lowercase parameters.

    The bound form takes ``X`` first and then the values returned by
    ``parameter_values``.
    """

    def __init__(self, equation_string, parameter_names=()):
        self._raw = (equation_string or '').strip()
        self._variables = (STATE_VARIABLE_1D,)
        self._parameters = tuple(parameter_names)
        self._compile()

    @property
    def parameter_names(self):
        return self._parameters

    def parameter_values(self, params=None):
        """Declared parameters in order; missing ones count as NaN."""
        params = params or {}
        return tuple(np.float64(params.get(name, NAN)) for name in self._parameters)

    def evaluate(self, x, params=None):
        """Evaluate at ``X=x``; parameters missing from ``params`` count as NaN."""
        if self._compiled is None:
            return NAN
        values = (np.float64(x),) + self.parameter_values(params)
        return run_evaluator(self._compiled.evaluator, values)
