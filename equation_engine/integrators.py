"""Fourth-order Runge-Kutta integration of ``dy/dt = f(t, y)``.

``f`` takes a time and a state vector and returns the derivative vector;
states are handled as float64 numpy arrays.
"""
import logging
from collections import namedtuple

import numpy as np

logger = logging.getLogger(__name__)

Sample = namedtuple('Sample', ['t', 'y'])
AdaptiveSample = namedtuple('AdaptiveSample', ['t', 'y', 'h', 'error'])

MIN_STEP = 1e-10
GROWTH_FACTOR = 1.5
MAX_GROWTH = 4.0
SHRINK_FACTOR = 0.5


def _derivative(f, t, y):
    return np.asarray(f(t, y), dtype=np.float64)


def rk4_step(f, t, y, h):
    y = np.asarray(y, dtype=np.float64)
    k1 = _derivative(f, t, y)
    k2 = _derivative(f, t + h / 2, y + k1 * (h / 2))
    k3 = _derivative(f, t + h / 2, y + k2 * (h / 2))
    k4 = _derivative(f, t + h, y + k3 * h)
    return y + (k1 + 2 * k2 + 2 * k3 + k4) * (h / 6)


def rk4(f, t0, y0, h, steps):
    """Fixed-step RK4; returns ``steps + 1`` samples starting at ``(t0, y0)``."""
    y = np.array(y0, dtype=np.float64)
    solution = [Sample(t0, y.copy())]
    with np.errstate(all='ignore'):
        for i in range(steps):
            y = rk4_step(f, t0 + i * h, y, h)
            solution.append(Sample(t0 + (i + 1) * h, y.copy()))
    return solution


def rk4_adaptive(f, t0, y0, t_end, h0=0.01, tolerance=1e-6, max_steps=None):
    """Step-doubling adaptive RK4 from ``t0`` to ``t_end``.

    Each trial step compares one step of size ``h`` with two of size ``h/2``;
    the Euclidean norm of the difference is the local error estimate. Steps
    below ``tolerance`` (or at the ``MIN_STEP`` floor) are accepted with the
    two-half-step result, and ``h`` grows by ``GROWTH_FACTOR`` (capped at
    ``MAX_GROWTH * h0``) when the error is under a tenth of the tolerance.
    Rejected steps halve ``h`` without advancing time.

    ``max_steps`` bounds the number of attempted steps, accepted or not; the
    integration stops early with a warning once it is used up.
    """
    if h0 <= 0:
        raise ValueError("h0 must be positive")
    if tolerance <= 0:
        raise ValueError("tolerance must be positive")

    t = t0
    y = np.array(y0, dtype=np.float64)
    h = h0
    max_h = h0 * MAX_GROWTH
    solution = [AdaptiveSample(t, y.copy(), 0.0, 0.0)]
    attempts = 0

    with np.errstate(all='ignore'):
        while t < t_end:
            if max_steps is not None and attempts >= max_steps:
                logger.warning("Adaptive RK4 stopped at t=%g: step limit of %d reached", t, max_steps)
                break
            attempts += 1
            if t + h > t_end:
                h = t_end - t

            full = rk4_step(f, t, y, h)
            half = rk4_step(f, t, y, h / 2)
            double = rk4_step(f, t + h / 2, half, h / 2)
            error = float(np.linalg.norm(double - full))

            if error < tolerance or h < MIN_STEP:
                if not np.all(np.isfinite(double)):
                    logger.warning("Adaptive RK4 stopped at t=%g: state is no longer finite", t)
                    break
                if t + h == t:
                    logger.warning("Adaptive RK4 stopped at t=%g: step %g no longer advances time", t, h)
                    break
                t += h
                y = double
                solution.append(AdaptiveSample(t, y.copy(), h, error))
                if error < tolerance / 10:
                    h = min(h * GROWTH_FACTOR, max_h)
            else:
                h *= SHRINK_FACTOR

    return solution


def vector_field(f, x, y, t=0.0):
    """Derivative of a two-dimensional system at ``(x, y)``."""
    dx, dy = _derivative(f, t, np.array([x, y], dtype=np.float64))
    return float(dx), float(dy)
