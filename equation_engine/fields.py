"""Grid sampling of two-dimensional autonomous systems.

Systems are sampled at ``t = 0``. Grids are scanned with x in the outer loop
and y in the inner loop; that order decides which of several nearby
equilibrium candidates is kept.
"""
from collections import namedtuple
from enum import Enum

import numpy as np

from .integrators import vector_field

FieldSample = namedtuple('FieldSample', [
    'x', 'y', 'dx', 'dy', 'normalized_dx', 'normalized_dy', 'magnitude',
])
Equilibrium = namedtuple('Equilibrium', ['x', 'y', 'stability'])

DEFAULT_FIELD_GRID = 20
DEFAULT_EQUILIBRIUM_GRID = 50
DEDUPLICATION_FACTOR = 10


class Stability(str, Enum):
    STABLE = 'stable'
    UNSTABLE = 'unstable'
    SADDLE = 'saddle'
    SEMI_STABLE = 'semi-stable'
    UNKNOWN = 'unknown'


def _grid(value_range, grid_size):
    low, high = value_range
    return np.linspace(low, high, grid_size + 1)


def compute_vector_field(f, x_range, y_range, grid_size=DEFAULT_FIELD_GRID):
    if grid_size < 1:
        raise ValueError("grid_size must be at least 1")
    field = []
    with np.errstate(all='ignore'):
        for x in _grid(x_range, grid_size):
            for y in _grid(y_range, grid_size):
                dx, dy = vector_field(f, x, y)
                magnitude = float(np.hypot(dx, dy))
                if magnitude > 0:
                    nx, ny = dx / magnitude, dy / magnitude
                else:
                    nx, ny = 0.0, 0.0
                field.append(FieldSample(float(x), float(y), dx, dy, nx, ny, magnitude))
    return field


def find_equilibria(f, x_range, y_range, tolerance=1e-6, grid_size=DEFAULT_EQUILIBRIUM_GRID):
    """Grid points where the field magnitude is below ``tolerance``.

    Candidates within ``10 * tolerance`` of an already accepted point are
    dropped. Stability is reported as ``Stability.UNKNOWN``: no linearization
    is attempted here.
    """
    if grid_size < 1:
        raise ValueError("grid_size must be at least 1")
    equilibria = []
    min_distance = tolerance * DEDUPLICATION_FACTOR
    with np.errstate(all='ignore'):
        for x in _grid(x_range, grid_size):
            for y in _grid(y_range, grid_size):
                dx, dy = vector_field(f, x, y)
                if not np.hypot(dx, dy) < tolerance:
                    continue
                if all(np.hypot(eq.x - x, eq.y - y) > min_distance for eq in equilibria):
                    equilibria.append(Equilibrium(float(x), float(y), Stability.UNKNOWN))
    return equilibria
