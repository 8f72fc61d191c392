"""Ready-made right-hand sides for common two-species and oscillator models.

Each factory returns ``f(t, y) -> ndarray`` suitable for ``rk4``,
``rk4_adaptive`` and the field sampler.
"""
import numpy as np


def lotka_volterra(a, b, c, d):
    """Predator-prey: x' = a x - b x y (prey), y' = -c y + d x y (predator)."""
    def rhs(t, y):
        prey, predator = y
        return np.array([
            a * prey - b * prey * predator,
            -c * predator + d * prey * predator,
        ])
    return rhs


def shark_tuna(delta, p, beta, q):
    """S' = -delta S + p S T (sharks), T' = beta T - q S T (tuna)."""
    def rhs(t, y):
        sharks, tuna = y
        return np.array([
            -delta * sharks + p * sharks * tuna,
            beta * tuna - q * sharks * tuna,
        ])
    return rhs


def van_der_pol(mu):
    """x'' - mu (1 - x^2) x' + x = 0 as the first-order system (x, v)."""
    def rhs(t, y):
        x, v = y
        return np.array([v, mu * (1 - x * x) * v - x])
    return rhs


MODELS = {
    'lotka_volterra': lotka_volterra,
    'shark_tuna': shark_tuna,
    'van_der_pol': van_der_pol,
}
