"""Dynamical systems built from compiled formulas.

``DynamicalSystem`` couples ``X' = f(X, Y)`` and ``Y' = g(X, Y)``;
``DynamicalSystem1D`` is ``X' = f(X; params)``. Both are pure functions of
their inputs: parameter values and state are passed per call, and updating a
formula returns a new system instead of touching this one.
"""
from collections import namedtuple

import numpy as np

from .equation import NAN, CompiledEquation, CompiledEquation1D
from .safe_math import is_finite

FieldVector = namedtuple('FieldVector', ['vx', 'vy'])
State = namedtuple('State', ['x', 'y'])
TimePoint = namedtuple('TimePoint', ['t', 'x'])

NAN_VECTOR = FieldVector(NAN, NAN)
NAN_STATE = State(NAN, NAN)


class DynamicalSystem:
    def __init__(self, x_prime_equation, y_prime_equation):
        self._x_prime = CompiledEquation(x_prime_equation)
        self._y_prime = CompiledEquation(y_prime_equation)
        self._f = self._x_prime.bind()
        self._g = self._y_prime.bind()
        self._error = self._combined_error()

    def _combined_error(self):
        errors = []
        if not self._x_prime.is_valid:
            errors.append(f"X': {self._x_prime.get_error()}")
        if not self._y_prime.is_valid:
            errors.append(f"Y': {self._y_prime.get_error()}")
        return '; '.join(errors)

    @property
    def x_prime(self):
        return self._x_prime

    @property
    def y_prime(self):
        return self._y_prime

    @property
    def is_valid(self):
        return self._x_prime.is_valid and self._y_prime.is_valid

    @property
    def error_message(self):
        return self._error

    def get_error(self):
        return self._error

    def evaluate_field(self, x, y):
        if not self.is_valid:
            return NAN_VECTOR
        return FieldVector(self._x_prime.evaluate(x, y), self._y_prime.evaluate(x, y))

    def rk4_step(self, x, y, dt):
        """Advance one RK4 step; both components share each stage's intermediate state."""
        if not self.is_valid:
            return NAN_STATE
        f, g = self._f, self._g

        with np.errstate(all='ignore'):
            k1x, k1y = f(x, y), g(x, y)
            mid_x, mid_y = x + 0.5 * dt * k1x, y + 0.5 * dt * k1y
            k2x, k2y = f(mid_x, mid_y), g(mid_x, mid_y)
            mid_x, mid_y = x + 0.5 * dt * k2x, y + 0.5 * dt * k2y
            k3x, k3y = f(mid_x, mid_y), g(mid_x, mid_y)
            end_x, end_y = x + dt * k3x, y + dt * k3y
            k4x, k4y = f(end_x, end_y), g(end_x, end_y)

        if not all(is_finite(k) for k in (k1x, k1y, k2x, k2y, k3x, k3y, k4x, k4y)):
            return NAN_STATE

        new_x = x + (dt / 6) * (k1x + 2 * k2x + 2 * k3x + k4x)
        new_y = y + (dt / 6) * (k1y + 2 * k2y + 2 * k3y + k4y)
        if not (is_finite(new_x) and is_finite(new_y)):
            return NAN_STATE
        return State(new_x, new_y)

    def as_rhs(self):
        """``f(t, state) -> ndarray`` for the generic integrators and field sampler."""
        def rhs(t, state):
            vx, vy = self.evaluate_field(state[0], state[1])
            return np.array([vx, vy])
        return rhs

    def update_equations(self, x_prime_equation, y_prime_equation):
        return type(self)(x_prime_equation, y_prime_equation)

    def __repr__(self):
        return (f"DynamicalSystem(X'={self._x_prime.raw_equation!r}, "
                f"Y'={self._y_prime.raw_equation!r})")


class DynamicalSystem1D:
    def __init__(self, x_prime_equation, parameter_names=()):
        self._x_prime = CompiledEquation1D(x_prime_equation, parameter_names)
        self._f = self._x_prime.bind()

    @property
    def x_prime(self):
        return self._x_prime

    @property
    def parameter_names(self):
        return self._x_prime.parameter_names

    @property
    def is_valid(self):
        return self._x_prime.is_valid

    @property
    def error_message(self):
        return self._x_prime.get_error()

    def get_error(self):
        return self._x_prime.get_error()

    def evaluate_derivative(self, x, params=None):
        if not self.is_valid:
            return NAN
        return self._x_prime.evaluate(x, params)

    def euler_step(self, x, params, dt):
        if not self.is_valid:
            return NAN
        derivative = self.evaluate_derivative(x, params)
        if not is_finite(derivative):
            return NAN
        new_x = x + dt * derivative
        return new_x if is_finite(new_x) else NAN

    def rk4_step(self, x, params, dt):
        if not self.is_valid:
            return NAN
        f = self._f
        p = self._x_prime.parameter_values(params)
        with np.errstate(all='ignore'):
            k1 = f(x, *p)
            k2 = f(x + 0.5 * dt * k1, *p)
            k3 = f(x + 0.5 * dt * k2, *p)
            k4 = f(x + dt * k3, *p)
        if not all(is_finite(k) for k in (k1, k2, k3, k4)):
            return NAN
        new_x = x + (dt / 6) * (k1 + 2 * k2 + 2 * k3 + k4)
        return new_x if is_finite(new_x) else NAN

    def generate_time_series(self, x0, params, t_max, dt=0.01):
        """RK4 samples from t=0 to t_max; stops at the first non-finite step."""
        if dt <= 0:
            raise ValueError("dt must be positive")
        if not self.is_valid:
            return []
        series = [TimePoint(0.0, float(x0))]
        x = x0
        step = 0
        t = 0.0
        while t < t_max:
            x = self.rk4_step(x, params, dt)
            step += 1
            t = step * dt
            if not is_finite(x):
                break
            series.append(TimePoint(t, x))
        return series

    def as_rhs(self, params=None):
        def rhs(t, state):
            return np.array([self.evaluate_derivative(state[0], params)])
        return rhs

    def update_equation(self, x_prime_equation):
        return type(self)(x_prime_equation, self.parameter_names)

    def __repr__(self):
        return (f"DynamicalSystem1D(X'={self._x_prime.raw_equation!r}, "
                f"parameters={list(self.parameter_names)!r})")
