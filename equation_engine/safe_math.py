"""Numeric functions and constants available inside formulas.

Every function takes and returns ``numpy.float64`` scalars. Domain errors
(``sqrt(-1)``, ``log(0)``, overflow in ``exp``) return NaN instead of raising
or warning, so a bad point in the middle of an integration only poisons the
values computed from it.
"""
import functools
from collections import namedtuple

import numpy as np

NAN = np.float64(np.nan)

SafeFunction = namedtuple('SafeFunction', ['func', 'min_args', 'max_args'])


def is_finite(value):
    """True for a real, finite number; False for NaN and infinities."""
    return bool(np.isfinite(value))


def _guarded(func):
    @functools.wraps(func)
    def wrapper(*args):
        with np.errstate(all='ignore'):
            result = func(*args)
        return result if np.isfinite(result) else NAN
    return wrapper


def safe_sqrt(x):
    return NAN if x < 0 else np.sqrt(x)


def safe_log(x):
    return NAN if x <= 0 else np.log(x)


def safe_log10(x):
    return NAN if x <= 0 else np.log10(x)


def safe_asin(x):
    return NAN if abs(x) > 1 else np.arcsin(x)


def safe_acos(x):
    return NAN if abs(x) > 1 else np.arccos(x)


@_guarded
def safe_exp(x):
    return np.exp(x)


@_guarded
def safe_sinh(x):
    return np.sinh(x)


@_guarded
def safe_cosh(x):
    return np.cosh(x)


@_guarded
def safe_pow(base, exponent):
    # negative base with a fractional exponent comes back as NaN from numpy
    return np.power(np.float64(base), np.float64(exponent))


def safe_round(x):
    # half-up rounding, not numpy's round-half-to-even
    return np.floor(x + 0.5)


def safe_min(*args):
    return functools.reduce(np.minimum, args)


def safe_max(*args):
    return functools.reduce(np.maximum, args)


SAFE_FUNCTIONS = {
    'sin': SafeFunction(np.sin, 1, 1),
    'cos': SafeFunction(np.cos, 1, 1),
    'tan': SafeFunction(np.tan, 1, 1),
    'sqrt': SafeFunction(safe_sqrt, 1, 1),
    'exp': SafeFunction(safe_exp, 1, 1),
    'log': SafeFunction(safe_log, 1, 1),
    'ln': SafeFunction(safe_log, 1, 1),
    'abs': SafeFunction(np.abs, 1, 1),
    'pow': SafeFunction(safe_pow, 2, 2),
    'asin': SafeFunction(safe_asin, 1, 1),
    'acos': SafeFunction(safe_acos, 1, 1),
    'atan': SafeFunction(np.arctan, 1, 1),
    'sinh': SafeFunction(safe_sinh, 1, 1),
    'cosh': SafeFunction(safe_cosh, 1, 1),
    'tanh': SafeFunction(np.tanh, 1, 1),
    'log10': SafeFunction(safe_log10, 1, 1),
    'floor': SafeFunction(np.floor, 1, 1),
    'ceil': SafeFunction(np.ceil, 1, 1),
    'round': SafeFunction(safe_round, 1, 1),
    'sign': SafeFunction(np.sign, 1, 1),
    'min': SafeFunction(safe_min, 2, None),
    'max': SafeFunction(safe_max, 2, None),
}

CONSTANTS = {
    'pi': np.float64(np.pi),
    'e': np.float64(np.e),
}

SUPPORTED_FUNCTIONS = frozenset(SAFE_FUNCTIONS)
SUPPORTED_CONSTANTS = frozenset(CONSTANTS)

SAFE_PREFIX = 'safe_'

# lambdify namespace: compiled trees call ``safe_<name>`` for every function and for ``^``
SAFE_MODULE = {SAFE_PREFIX + name: entry.func for name, entry in SAFE_FUNCTIONS.items()}
SAFE_MODULE.update(CONSTANTS)
