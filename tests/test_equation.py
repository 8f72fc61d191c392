import math

import numpy as np
import pytest
import sympy as sp

from equation_engine import CompiledEquation, CompiledEquation1D, ErrorKind, FormulaError, compile_formula
from equation_engine.equation import smoke_test


@pytest.mark.parametrize('text, x, y, expected', [
    ('X + Y', 2, 3, 5),
    ('X - Y * 2', 10, 3, 4),
    ('X / Y', 1, 4, 0.25),
    ('2^3^2', 0, 0, 512),
    ('-X^2', 3, 0, -9),
    ('(-X)^2', 3, 0, 9),
    ('X * -Y', 2, 3, -6),
    ('sin(pi * X) + Y^2', 0.5, 2, 5),
    ('pow(X, Y)', 2, 5, 32),
    ('min(X, Y, 0)', 2, 5, 0),
    ('MAX(X, Y)', 2, 5, 5),
    ('ln(e) + log10(100)', 0, 0, 3),
    ('round(X) + floor(Y) + ceil(Y)', 2.5, 1.2, 6),
    ('abs(X) * sign(Y)', -4, -1, -4),
    ('1e-3 * X', 1000, 0, 1),
    ('2*e', 0, 0, 2 * math.e),
])
def test_arithmetic(text, x, y, expected):
    eq = CompiledEquation(text)
    assert eq.is_valid, eq.error_message
    assert eq.evaluate(x, y) == pytest.approx(expected)


@pytest.mark.parametrize('text, x, y', [
    ('sqrt(X)', -1, 0),
    ('log(X)', 0, 0),
    ('1 / X', 0, 0),
    ('exp(X)', 1000, 0),
    ('X^Y', -8, 1 / 3),
    ('asin(X)', 2, 0),
])
def test_domain_errors_evaluate_to_nan(text, x, y):
    eq = CompiledEquation(text)
    assert eq.is_valid
    assert math.isnan(eq.evaluate(x, y))


def test_evaluation_is_deterministic():
    eq = CompiledEquation('sin(X) * cos(Y) + X^2')
    first = [eq.evaluate(x / 10, -x / 7) for x in range(50)]
    second = [eq.evaluate(x / 10, -x / 7) for x in range(50)]
    assert first == second


def test_invalid_equation_never_raises():
    eq = CompiledEquation('x + y')
    assert not eq.is_valid
    assert eq.error_kind == ErrorKind.LOWERCASE_VARIABLE
    assert eq.get_error() == eq.error_message == 'Use uppercase variables. Found: x, y. Use: X, Y'
    assert math.isnan(eq.evaluate(1, 2))
    assert eq.expression is None
    assert eq.latex() == ''


@pytest.mark.parametrize('text, kind', [
    ('2X', ErrorKind.SYNTAX),
    ('2(X + Y)', ErrorKind.SYNTAX),
    ('1.2.3', ErrorKind.SYNTAX),
    ('X, Y', ErrorKind.SYNTAX),
    ('pow(X)', ErrorKind.ARITY),
    ('max(X)', ErrorKind.ARITY),
    ('sin(X, Y)', ErrorKind.ARITY),
])
def test_parse_errors(text, kind):
    eq = CompiledEquation(text)
    assert not eq.is_valid
    assert eq.error_kind == kind


def test_implicit_multiplication_hint():
    eq = CompiledEquation('2X')
    assert '(use * for multiplication)' in eq.error_message


def test_arity_message():
    assert CompiledEquation('pow(X)').error_message == 'Function pow expects 2 arguments, got 1'
    assert CompiledEquation('max(X)').error_message == 'Function max expects at least 2 arguments, got 1'


def test_raw_equation_is_stripped():
    eq = CompiledEquation('  X + Y  ')
    assert eq.raw_equation == 'X + Y'
    assert eq.variables == ('X', 'Y')


def test_wrong_number_of_values():
    with pytest.raises(TypeError):
        CompiledEquation('X + Y').evaluate(1)


def test_compilation_is_cached():
    assert compile_formula('X * Y + 1') is compile_formula('X * Y + 1')


def test_expression_echo():
    eq = CompiledEquation('sin(X) + Y^2')
    assert eq.expression.free_symbols == {sp.Symbol('X'), sp.Symbol('Y')}
    assert 'sin(X)' in str(eq.expression)
    assert '\\sin' in eq.latex()


def test_one_variable_with_parameters():
    eq = CompiledEquation1D('r*X*(1 - X/k)', ['r', 'k'])
    assert eq.is_valid, eq.error_message
    assert eq.parameter_names == ('r', 'k')
    assert eq.evaluate(0.5, {'r': 1.0, 'k': 2.0}) == pytest.approx(0.375)


def test_one_variable_missing_parameter_is_nan():
    eq = CompiledEquation1D('r*X', ['r'])
    assert math.isnan(eq.evaluate(1.0, {}))
    assert math.isnan(eq.evaluate(1.0))


def test_one_variable_undeclared_parameter():
    eq = CompiledEquation1D('r*X*(1 - X/k)', ['r'])
    assert not eq.is_valid
    assert eq.error_kind == ErrorKind.UNDECLARED_PARAMETER


def test_parameter_shadows_constant():
    eq = CompiledEquation1D('e * X', ['e'])
    assert eq.evaluate(2.0, {'e': 3.0}) == 6.0


def test_underscore_parameter():
    eq = CompiledEquation1D('X - X_tau', ['X_tau'])
    assert eq.evaluate(3.0, {'X_tau': 1.0}) == 2.0


def test_smoke_test_rejects_non_domain_exception():
    def broken(*values):
        return {}['missing']

    with pytest.raises(FormulaError) as excinfo:
        smoke_test(broken, ('X', 'Y'))
    assert excinfo.value.kind == ErrorKind.SMOKE_TEST
    assert excinfo.value.message.startswith('Validation failed at (0, 0): ')
    assert isinstance(excinfo.value.__cause__, KeyError)


@pytest.mark.parametrize('result', [None, 'NaN', [1.0]])
def test_smoke_test_rejects_non_numbers(result):
    with pytest.raises(FormulaError) as excinfo:
        smoke_test(lambda *values: result, ('X', 'Y'))
    assert excinfo.value.kind == ErrorKind.SMOKE_TEST
    assert excinfo.value.message == 'Validation failed at (0, 0): function must return a number'


def test_smoke_test_tolerates_domain_errors():
    def divide(x, y):
        return x / 0.0 if x == 0 else x / y

    def overflow(*values):
        raise OverflowError('math range error')

    smoke_test(lambda x, y: 1 // 0, ('X', 'Y'))
    smoke_test(divide, ('X', 'Y'))
    smoke_test(overflow, ('X', 'Y'))


def test_smoke_test_passes_parameters_positionally():
    seen = []

    def record(x, r, k):
        seen.append((x, r, k))
        return x

    smoke_test(record, ('X',), ('r', 'k'))
    assert len(seen) == 7
    assert all(r == k == 1.0 for _, r, k in seen)
    assert [x for x, _, _ in seen][:3] == [0.0, 1.0, -1.0]


def test_long_flat_sum():
    eq = CompiledEquation('+'.join(['X'] * 100))
    assert eq.is_valid, eq.error_message
    assert eq.evaluate(1.5, 0) == 150.0


def test_too_long_expression_is_rejected():
    eq = CompiledEquation('+'.join(['X'] * 1200))
    assert not eq.is_valid
    assert eq.error_kind == ErrorKind.SYNTAX
    assert eq.error_message.startswith('Invalid syntax: expression is too long (2399 tokens')


def test_evaluator_is_positional():
    compiled = compile_formula('X - 2*Y')
    assert compiled.evaluator(5.0, 1.0) == 3.0
    one_var = compile_formula('r*X + k', ('X',), ('r', 'k'))
    assert one_var.evaluator(2.0, 3.0, 1.0) == 7.0


def test_constant_formulas_return_floats():
    assert CompiledEquation('2').evaluate(0, 0) == 2.0
    assert CompiledEquation('2^10').evaluate(0, 0) == 1024.0
    assert math.isnan(CompiledEquation('1/0').evaluate(0, 0))


def test_power_and_functions_use_safe_math():
    assert math.isnan(CompiledEquation('10^400').evaluate(0, 0))
    assert math.isnan(CompiledEquation('pow(X, 0.5)').evaluate(-4, 0))
    assert CompiledEquation('round(X)').evaluate(-2.5, 0) == -2.0
    assert math.isnan(CompiledEquation('acos(Y)').evaluate(0, 3))


def test_bind():
    eq = CompiledEquation('X / Y')
    f = eq.bind()
    with np.errstate(all='ignore'):
        assert f(1.0, 4.0) == 0.25
        assert math.isnan(f(1.0, 0.0))
    assert math.isnan(CompiledEquation('x').bind()(1.0, 2.0))


def test_bind_one_variable():
    eq = CompiledEquation1D('r * X', ['r'])
    f = eq.bind()
    assert f(2.0, *eq.parameter_values({'r': 3.0})) == 6.0
    assert math.isnan(f(2.0, *eq.parameter_values({})))
