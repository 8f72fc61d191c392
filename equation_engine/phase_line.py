"""Equilibria of one-dimensional systems on a phase line.

Roots are found two ways: sign changes between grid samples (refined by
bisection) and tangent roots, where ``f`` touches zero without crossing
(refined by a golden-section search on ``|f|``). An equilibrium is stable
when ``f`` goes from positive to negative across it, unstable for negative
to positive and semi-stable when the sign does not change.
"""
from collections import namedtuple

import numpy as np

from .fields import Stability
from .safe_math import is_finite

PhaseLinePoint = namedtuple('PhaseLinePoint', ['x', 'stability', 'kind'])
PhaseLine = namedtuple('PhaseLine', ['equilibria', 'degenerate_intervals'])

CROSSING = 'crossing'
TANGENT = 'tangent'

DEFAULT_SAMPLES = 400
ZERO_TOLERANCE = 1e-12
DEGENERATE_MIN_SAMPLES = 3
REFINE_ITERATIONS = 60
GOLDEN_RATIO = (np.sqrt(5.0) - 1.0) / 2.0


def _bisect(f, a, b, fa):
    for _ in range(REFINE_ITERATIONS):
        mid = 0.5 * (a + b)
        fm = f(mid)
        if not is_finite(fm):
            break
        if fm == 0:
            return mid
        if (fa < 0) == (fm < 0):
            a, fa = mid, fm
        else:
            b = mid
    return 0.5 * (a + b)


def _minimize_abs(f, a, b):
    c = b - GOLDEN_RATIO * (b - a)
    d = a + GOLDEN_RATIO * (b - a)
    fc, fd = abs(f(c)), abs(f(d))
    for _ in range(REFINE_ITERATIONS):
        if fc < fd:
            b, d, fd = d, c, fc
            c = b - GOLDEN_RATIO * (b - a)
            fc = abs(f(c))
        else:
            a, c, fc = c, d, fd
            d = a + GOLDEN_RATIO * (b - a)
            fd = abs(f(d))
    return 0.5 * (a + b)


def classify(f, x, delta):
    left, right = f(x - delta), f(x + delta)
    if not (is_finite(left) and is_finite(right)) or left == 0 or right == 0:
        return Stability.UNKNOWN
    if left > 0 > right:
        return Stability.STABLE
    if left < 0 < right:
        return Stability.UNSTABLE
    return Stability.SEMI_STABLE


def find_degenerate_intervals(xs, zero):
    """Runs of at least DEGENERATE_MIN_SAMPLES consecutive zero samples."""
    intervals = []
    start = None
    for i, is_zero in enumerate(zero):
        if is_zero and start is None:
            start = i
        if start is not None and (not is_zero or i == len(zero) - 1):
            end = i if is_zero else i - 1
            if end - start + 1 >= DEGENERATE_MIN_SAMPLES:
                intervals.append((float(xs[start]), float(xs[end])))
            start = None
    return intervals


def _inside(x, intervals):
    return any(low <= x <= high for low, high in intervals)


def analyze_phase_line(system, params, x_min, x_max, samples=DEFAULT_SAMPLES, tolerance=1e-8):
    if x_max <= x_min:
        raise ValueError("x_max must be greater than x_min")
    if samples < 2:
        raise ValueError("samples must be at least 2")
    if not system.is_valid:
        return PhaseLine([], [])

    def f(x):
        return system.evaluate_derivative(x, params)

    xs = np.linspace(x_min, x_max, samples + 1)
    fs = np.array([f(x) for x in xs])
    spacing = xs[1] - xs[0]
    finite = np.isfinite(fs)
    zero = finite & (np.abs(np.where(finite, fs, 1.0)) <= ZERO_TOLERANCE)
    intervals = find_degenerate_intervals(xs, zero)

    candidates = []
    last = len(xs) - 1
    for i in range(len(xs)):
        if not zero[i]:
            continue
        left = fs[i - 1] if i > 0 else np.nan
        right = fs[i + 1] if i < last else np.nan
        candidates.append((float(xs[i]), CROSSING if left * right < 0 else TANGENT))

    for i in range(last):
        if finite[i] and finite[i + 1] and not (zero[i] or zero[i + 1]) and fs[i] * fs[i + 1] < 0:
            candidates.append((float(_bisect(f, xs[i], xs[i + 1], fs[i])), CROSSING))

    for i in range(1, last):
        window = slice(i - 1, i + 2)
        if not finite[window].all() or zero[window].any():
            continue
        if fs[i - 1] * fs[i] <= 0 or fs[i] * fs[i + 1] <= 0:
            continue
        if abs(fs[i]) <= abs(fs[i - 1]) and abs(fs[i]) <= abs(fs[i + 1]):
            x = _minimize_abs(f, xs[i - 1], xs[i + 1])
            if abs(f(x)) < tolerance:
                candidates.append((float(x), TANGENT))

    equilibria = []
    for x, kind in sorted(candidates):
        if _inside(x, intervals):
            continue
        if equilibria and x - equilibria[-1].x < spacing:
            continue
        equilibria.append(PhaseLinePoint(x, classify(f, x, spacing / 2), kind))
    return PhaseLine(equilibria, intervals)
