from .equation import CompiledEquation, CompiledEquation1D, compile_formula
from .errors import ErrorKind, FormulaError
from .fields import Equilibrium, FieldSample, Stability, compute_vector_field, find_equilibria
from .integrators import AdaptiveSample, Sample, rk4, rk4_adaptive, rk4_step
from .models import lotka_volterra, shark_tuna, van_der_pol
from .phase_line import PhaseLine, PhaseLinePoint, analyze_phase_line
from .safe_math import CONSTANTS, SAFE_FUNCTIONS, is_finite
from .systems import DynamicalSystem, DynamicalSystem1D, FieldVector, State, TimePoint
from .validator import validate_equation_input

__version__ = '0.1.0'

__all__ = [
    'AdaptiveSample',
    'CONSTANTS',
    'CompiledEquation',
    'CompiledEquation1D',
    'DynamicalSystem',
    'DynamicalSystem1D',
    'Equilibrium',
    'ErrorKind',
    'FieldSample',
    'FieldVector',
    'FormulaError',
    'PhaseLine',
    'PhaseLinePoint',
    'SAFE_FUNCTIONS',
    'Sample',
    'Stability',
    'State',
    'TimePoint',
    'analyze_phase_line',
    'compile_formula',
    'compute_vector_field',
    'find_equilibria',
    'is_finite',
    'lotka_volterra',
    'rk4',
    'rk4_adaptive',
    'rk4_step',
    'shark_tuna',
    'validate_equation_input',
    'van_der_pol',
]
