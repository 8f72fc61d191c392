from flask import Flask, request, jsonify
import numpy as np
import re

from equation_engine import (
    CompiledEquation,
    CompiledEquation1D,
    DynamicalSystem,
    DynamicalSystem1D,
    analyze_phase_line,
    compute_vector_field,
    find_equilibria,
    is_finite,
    rk4_adaptive,
)

app = Flask(__name__)
app.config.from_mapping(
    MAX_STEPS=100000,
    MAX_GRID_SIZE=200,
    MAX_PHASE_SAMPLES=5000,
    DEFAULT_DT=0.01,
    DEFAULT_TOLERANCE=1e-6,
    MIN_TOLERANCE=1e-14,
)
app.config.from_prefixed_env()

PARAMETER_NAME = re.compile(r'^[a-z][a-z0-9_]*$')


def number_or_none(value):
    value = float(value)
    return value if np.isfinite(value) else None


def error_response(message, error_type='validation', **extra):
    body = {'status': 'error', 'message': message, 'error_type': error_type}
    body.update(extra)
    return jsonify(body), 400


def parse_parameters(param_str):
    if not param_str or param_str.strip() == '':
        return {}, None

    params = {}
    for pair in param_str.split(','):
        pair = pair.strip()
        if '=' not in pair:
            return None, f"Invalid parameter format: '{pair}'. Use format: name=value"

        name, value = pair.split('=', 1)
        name = name.strip()
        value = value.strip()

        if not PARAMETER_NAME.match(name):
            return None, f"Parameter name must be a lowercase identifier: '{name}'"

        try:
            params[name] = float(value)
        except ValueError:
            return None, f"Parameter value must be a number: '{value}'"

    return params, None


def parse_number(data, key, label, default=None, integer=False):
    value = data.get(key, '')
    if value is None or value == '':
        if default is None:
            return None, f"{label} is required"
        return default, None
    try:
        parsed = int(value) if integer else float(value)
    except (TypeError, ValueError):
        kind = 'integer' if integer else 'number'
        return None, f"{label} must be a valid {kind}"
    if not np.isfinite(parsed):
        return None, f"{label} must be finite"
    return parsed, None


def parse_numbers(data, fields):
    values = {}
    for key, label, default, integer in fields:
        value, error = parse_number(data, key, label, default, integer)
        if error:
            return None, error
        values[key] = value
    return values, None


def equation_payload(equation):
    return {
        'equation': equation.raw_equation,
        'parsed_expression': str(equation.expression),
        'latex': equation.latex(),
    }


def build_system(data):
    x_prime = str(data.get('x_prime') or '').strip()
    y_prime = str(data.get('y_prime') or '').strip()
    if x_prime == '' or y_prime == '':
        return None, "Both X' and Y' equations are required"
    return DynamicalSystem(x_prime, y_prime), None


def build_system_1d(data):
    equation_str = str(data.get('equation') or '').strip()
    if equation_str == '':
        return None, None, "Equation X' is required"
    parameters, param_error = parse_parameters(data.get('parameters', ''))
    if param_error:
        return None, None, param_error
    return DynamicalSystem1D(equation_str, list(parameters)), parameters, None


def simulate_rk4(system, values):
    x, y = values['x0'], values['y0']
    dt = values['dt']
    results = [{'t': 0.0, 'x': x, 'y': y}]
    for step in range(1, values['steps'] + 1):
        x, y = system.rk4_step(x, y, dt)
        if not (is_finite(x) and is_finite(y)):
            break
        results.append({'t': step * dt, 'x': x, 'y': y})
    return results


def simulate_adaptive(system, values):
    solution = rk4_adaptive(system.as_rhs(), 0.0, [values['x0'], values['y0']],
                            values['t_end'], values['dt'], values['tolerance'],
                            max_steps=app.config['MAX_STEPS'])
    return [{'t': float(s.t), 'x': float(s.y[0]), 'y': float(s.y[1]), 'h': s.h, 'error': s.error}
            for s in solution]


def simulate_rk4_1d(system, params, values):
    series = system.generate_time_series(values['x0'], params, values['t_max'], values['dt'])
    return [{'t': p.t, 'x': p.x} for p in series]


def simulate_euler_1d(system, params, values):
    x = values['x0']
    dt = values['dt']
    results = [{'t': 0.0, 'x': x}]
    step = 0
    while step * dt < values['t_max']:
        x = system.euler_step(x, params, dt)
        step += 1
        if not is_finite(x):
            break
        results.append({'t': step * dt, 'x': x})
    return results


METHODS = {
    'rk4': {'name': 'Runge-Kutta 4', 'function': simulate_rk4, 'dimension': 2},
    'adaptive': {'name': 'Adaptive Runge-Kutta 4', 'function': simulate_adaptive, 'dimension': 2},
    'rk4_1d': {'name': 'Runge-Kutta 4 (1D)', 'function': simulate_rk4_1d, 'dimension': 1},
    'euler_1d': {'name': 'Euler Method (1D)', 'function': simulate_euler_1d, 'dimension': 1},
}


@app.route('/validate', methods=['POST'])
def validate():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('Request body must be a JSON object')

    equation_str = str(data.get('equation') or '')
    mode = data.get('mode', '2d')
    if mode == '1d':
        names = data.get('parameter_names', [])
        if isinstance(names, str):
            names = [name.strip() for name in names.split(',') if name.strip()]
        equation = CompiledEquation1D(equation_str, names)
    elif mode == '2d':
        equation = CompiledEquation(equation_str)
    else:
        return error_response(f"Invalid mode: {mode}. Valid modes are: 1d, 2d")

    if not equation.is_valid:
        return error_response(equation.get_error(), 'parse', error_kind=equation.error_kind.value)

    response = {'status': 'success', 'valid': True}
    response.update(equation_payload(equation))
    return jsonify(response)


@app.route('/simulate', methods=['POST'])
def simulate():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('Request body must be a JSON object')

    method_key = str(data.get('method', 'rk4')).strip()
    if method_key not in METHODS:
        return error_response(f'Invalid method: {method_key}. Valid methods are: {", ".join(METHODS.keys())}')
    method_info = METHODS[method_key]

    default_dt = app.config['DEFAULT_DT']
    if method_info['dimension'] == 2:
        fields = [('x0', 'Initial condition X₀', None, False),
                  ('y0', 'Initial condition Y₀', None, False),
                  ('dt', 'Step size (dt)', default_dt, False)]
        if method_key == 'adaptive':
            fields += [('t_end', 'End time', None, False),
                       ('tolerance', 'Tolerance', app.config['DEFAULT_TOLERANCE'], False)]
        else:
            fields += [('steps', 'Number of steps', None, True)]
    else:
        fields = [('x0', 'Initial condition X₀', None, False),
                  ('t_max', 'End time', None, False),
                  ('dt', 'Step size (dt)', default_dt, False)]

    values, value_error = parse_numbers(data, fields)
    if value_error:
        return error_response(value_error)

    if values['dt'] <= 0:
        return error_response('Step size must be greater than 0')
    if method_key == 'adaptive':
        if values['t_end'] <= 0:
            return error_response('End time must be greater than 0')
        if values['tolerance'] < app.config['MIN_TOLERANCE']:
            return error_response(f"Tolerance must be at least {app.config['MIN_TOLERANCE']:g}")
        if values['t_end'] / values['dt'] > app.config['MAX_STEPS']:
            return error_response('Step size is too small for the given end time')
    if 'steps' in values and not 0 < values['steps'] <= app.config['MAX_STEPS']:
        return error_response(f"Number of steps must be between 1 and {app.config['MAX_STEPS']}")
    if 't_max' in values:
        if values['t_max'] <= 0:
            return error_response('End time must be greater than 0')
        if values['t_max'] / values['dt'] > app.config['MAX_STEPS']:
            return error_response('Step size is too small for the given end time')

    if method_info['dimension'] == 2:
        system, system_error = build_system(data)
        params = None
    else:
        system, params, system_error = build_system_1d(data)
    if system_error:
        return error_response(system_error)
    if not system.is_valid:
        return error_response(system.get_error(), 'parse')

    try:
        if method_info['dimension'] == 2:
            results = method_info['function'](system, values)
        else:
            results = method_info['function'](system, params, values)
    except Exception as e:
        app.logger.exception('Simulation with %s failed', method_key)
        return error_response(f'Calculation error: {str(e)}', 'calculation')

    response = {
        'status': 'success',
        'method': method_info['name'],
        'results': results,
        'num_points': len(results),
        'message': f"System successfully integrated using {method_info['name']}",
    }
    response.update(values)
    if params is not None:
        response['parameters'] = params
    return jsonify(response)


@app.route('/field', methods=['POST'])
def field():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('Request body must be a JSON object')

    values, value_error = parse_numbers(data, [
        ('x_min', 'X min', -5.0, False),
        ('x_max', 'X max', 5.0, False),
        ('y_min', 'Y min', -5.0, False),
        ('y_max', 'Y max', 5.0, False),
        ('grid_size', 'Grid size', 20, True),
        ('equilibrium_grid_size', 'Equilibrium grid size', 50, True),
        ('tolerance', 'Tolerance', app.config['DEFAULT_TOLERANCE'], False),
    ])
    if value_error:
        return error_response(value_error)
    if values['x_max'] <= values['x_min'] or values['y_max'] <= values['y_min']:
        return error_response('Range maximum must be greater than its minimum')
    max_grid = app.config['MAX_GRID_SIZE']
    for key in ('grid_size', 'equilibrium_grid_size'):
        if not 0 < values[key] <= max_grid:
            return error_response(f'Grid size must be between 1 and {max_grid}')

    system, system_error = build_system(data)
    if system_error:
        return error_response(system_error)
    if not system.is_valid:
        return error_response(system.get_error(), 'parse')

    x_range = (values['x_min'], values['x_max'])
    y_range = (values['y_min'], values['y_max'])
    try:
        samples = compute_vector_field(system.as_rhs(), x_range, y_range, values['grid_size'])
        equilibria = find_equilibria(system.as_rhs(), x_range, y_range, values['tolerance'],
                                     values['equilibrium_grid_size'])
    except Exception as e:
        app.logger.exception('Field sampling failed')
        return error_response(f'Calculation error: {str(e)}', 'calculation')

    return jsonify({
        'status': 'success',
        'field': [{key: number_or_none(value) for key, value in s._asdict().items()} for s in samples],
        'equilibria': [{'x': eq.x, 'y': eq.y, 'stability': eq.stability.value} for eq in equilibria],
        'num_points': len(samples),
    })


@app.route('/phase-line', methods=['POST'])
def phase_line():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('Request body must be a JSON object')

    values, value_error = parse_numbers(data, [
        ('x_min', 'X min', None, False),
        ('x_max', 'X max', None, False),
        ('samples', 'Number of samples', 400, True),
    ])
    if value_error:
        return error_response(value_error)
    if values['x_max'] <= values['x_min']:
        return error_response('X max must be greater than X min')
    if not 2 <= values['samples'] <= app.config['MAX_PHASE_SAMPLES']:
        return error_response(f"Number of samples must be between 2 and {app.config['MAX_PHASE_SAMPLES']}")

    system, params, system_error = build_system_1d(data)
    if system_error:
        return error_response(system_error)
    if not system.is_valid:
        return error_response(system.get_error(), 'parse')

    try:
        analysis = analyze_phase_line(system, params, values['x_min'], values['x_max'], values['samples'])
    except Exception as e:
        app.logger.exception('Phase line analysis failed')
        return error_response(f'Calculation error: {str(e)}', 'calculation')

    return jsonify({
        'status': 'success',
        'parameters': params,
        'equilibria': [{'x': p.x, 'stability': p.stability.value, 'kind': p.kind}
                       for p in analysis.equilibria],
        'degenerate_intervals': [list(interval) for interval in analysis.degenerate_intervals],
    })


if __name__ == '__main__':
    app.run(debug=True)
