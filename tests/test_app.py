import math

import pytest

from app import app, parse_parameters


@pytest.fixture
def client():
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


def test_parse_parameters():
    assert parse_parameters('r=1, k=2.5') == ({'r': 1.0, 'k': 2.5}, None)
    assert parse_parameters('') == ({}, None)
    params, error = parse_parameters('r:1')
    assert params is None
    assert 'Use format: name=value' in error
    params, error = parse_parameters('R=1')
    assert 'lowercase identifier' in error
    params, error = parse_parameters('r=abc')
    assert "Parameter value must be a number: 'abc'" == error


def test_validate_two_variable(client):
    response = client.post('/validate', json={'equation': 'sin(X) + Y^2'})
    assert response.status_code == 200
    data = response.get_json()
    assert data['status'] == 'success'
    assert data['valid'] is True
    assert 'sin(X)' in data['parsed_expression']
    assert data['latex']


def test_validate_reports_error_kind(client):
    response = client.post('/validate', json={'equation': 'x + y'})
    assert response.status_code == 400
    data = response.get_json()
    assert data['status'] == 'error'
    assert data['error_type'] == 'parse'
    assert data['error_kind'] == 'lowercase_variable'
    assert data['message'] == 'Use uppercase variables. Found: x, y. Use: X, Y'


def test_validate_one_variable(client):
    response = client.post('/validate', json={
        'equation': 'r*X*(1 - X/k)', 'mode': '1d', 'parameter_names': 'r, k'})
    assert response.status_code == 200

    response = client.post('/validate', json={
        'equation': 'r*X*(1 - X/k)', 'mode': '1d', 'parameter_names': ['r']})
    assert response.status_code == 400
    assert response.get_json()['error_kind'] == 'undeclared_parameter'


def test_request_must_be_json_object(client):
    response = client.post('/simulate', data='not json', content_type='text/plain')
    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'validation'


def test_simulate_rk4(client):
    response = client.post('/simulate', json={
        'method': 'rk4', 'x_prime': 'Y', 'y_prime': '-X',
        'x0': 1, 'y0': 0, 'dt': 0.1, 'steps': 10})
    assert response.status_code == 200
    data = response.get_json()
    assert data['num_points'] == 11
    assert data['results'][0] == {'t': 0.0, 'x': 1.0, 'y': 0.0}
    last = data['results'][-1]
    assert last['t'] == pytest.approx(1.0)
    assert last['x'] == pytest.approx(math.cos(1.0), abs=1e-5)


def test_simulate_accepts_string_numbers(client):
    response = client.post('/simulate', json={
        'x_prime': 'Y', 'y_prime': '-X', 'x0': '1', 'y0': '0', 'steps': '5'})
    assert response.status_code == 200
    assert response.get_json()['num_points'] == 6


def test_simulate_truncates_at_blow_up(client):
    response = client.post('/simulate', json={
        'x_prime': 'X^2', 'y_prime': '0', 'x0': 1, 'y0': 0, 'dt': 0.01, 'steps': 300})
    data = response.get_json()
    assert response.status_code == 200
    assert 1 < data['num_points'] < 301
    assert all(math.isfinite(point['x']) for point in data['results'])


def test_simulate_adaptive(client):
    response = client.post('/simulate', json={
        'method': 'adaptive', 'x_prime': 'Y', 'y_prime': '-X',
        'x0': 1, 'y0': 0, 't_end': 1.0, 'tolerance': 1e-8})
    assert response.status_code == 200
    last = response.get_json()['results'][-1]
    assert last['t'] == pytest.approx(1.0)
    assert last['x'] == pytest.approx(math.cos(1.0), abs=1e-6)


def test_simulate_one_variable(client):
    response = client.post('/simulate', json={
        'method': 'rk4_1d', 'equation': 'r * X', 'parameters': 'r=1',
        'x0': 1, 't_max': 1, 'dt': 0.1})
    assert response.status_code == 200
    data = response.get_json()
    assert data['num_points'] == 11
    assert data['parameters'] == {'r': 1.0}
    assert data['results'][-1]['x'] == pytest.approx(math.e, abs=1e-5)

    response = client.post('/simulate', json={
        'method': 'euler_1d', 'equation': 'r * X', 'parameters': 'r=1',
        'x0': 1, 't_max': 1, 'dt': 0.1})
    assert response.status_code == 200
    assert response.get_json()['results'][1]['x'] == pytest.approx(1.1)


@pytest.mark.parametrize('payload, message', [
    ({'method': 'adaptive', 'x_prime': 'Y', 'y_prime': '-X', 'x0': 1, 'y0': 0, 't_end': 0.01,
      'tolerance': 1e-300}, 'Tolerance must be at least 1e-14'),
    ({'method': 'adaptive', 'x_prime': 'Y', 'y_prime': '-X', 'x0': 1, 'y0': 0, 't_end': 1e6,
      'dt': 0.01}, 'Step size is too small for the given end time'),
    ({'method': 'midpoint'}, 'Invalid method: midpoint'),
    ({'x_prime': 'Y', 'y_prime': '-X', 'y0': 0, 'steps': 10}, 'Initial condition X₀ is required'),
    ({'x_prime': 'Y', 'y_prime': '-X', 'x0': 'a', 'y0': 0, 'steps': 10}, 'Initial condition X₀ must be a valid number'),
    ({'x_prime': 'Y', 'y_prime': '-X', 'x0': 1, 'y0': 0, 'steps': 10, 'dt': 0}, 'Step size must be greater than 0'),
    ({'x_prime': 'Y', 'x0': 1, 'y0': 0, 'steps': 10}, "Both X' and Y' equations are required"),
    ({'method': 'rk4_1d', 'equation': 'r * X', 'parameters': 'r', 'x0': 1, 't_max': 1},
     "Invalid parameter format: 'r'. Use format: name=value"),
])
def test_simulate_validation_errors(client, payload, message):
    response = client.post('/simulate', json=payload)
    assert response.status_code == 400
    data = response.get_json()
    assert data['error_type'] == 'validation'
    assert data['message'].startswith(message)


def test_simulate_parse_error(client):
    response = client.post('/simulate', json={
        'x_prime': 'Y', 'y_prime': 'Z', 'x0': 1, 'y0': 0, 'steps': 10})
    assert response.status_code == 400
    data = response.get_json()
    assert data['error_type'] == 'parse'
    assert data['message'] == "Y': Unknown variable: Z. Use: X, Y"


def test_simulate_step_limit_is_configurable(client, monkeypatch):
    monkeypatch.setitem(app.config, 'MAX_STEPS', 5)
    response = client.post('/simulate', json={
        'x_prime': 'Y', 'y_prime': '-X', 'x0': 1, 'y0': 0, 'steps': 10})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Number of steps must be between 1 and 5'


def test_field(client):
    response = client.post('/field', json={
        'x_prime': 'Y', 'y_prime': '-X', 'x_min': -2, 'x_max': 2, 'y_min': -2, 'y_max': 2,
        'grid_size': 4, 'equilibrium_grid_size': 4})
    assert response.status_code == 200
    data = response.get_json()
    assert data['num_points'] == 25
    assert data['field'][0]['x'] == -2.0
    assert data['equilibria'] == [{'x': 0.0, 'y': 0.0, 'stability': 'unknown'}]


def test_field_reports_nan_as_null(client):
    response = client.post('/field', json={
        'x_prime': 'sqrt(X)', 'y_prime': '1', 'x_min': -1, 'x_max': 1, 'y_min': 0, 'y_max': 1,
        'grid_size': 2, 'equilibrium_grid_size': 2})
    assert response.status_code == 200
    first = response.get_json()['field'][0]
    assert first['dx'] is None
    assert first['dy'] == 1.0


def test_field_rejects_large_grid(client):
    response = client.post('/field', json={'x_prime': 'Y', 'y_prime': '-X', 'grid_size': 10000})
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('Grid size must be between 1 and')


def test_phase_line(client):
    response = client.post('/phase-line', json={
        'equation': 'r*X*(1 - X/k)', 'parameters': 'r=1, k=2', 'x_min': -1, 'x_max': 3})
    assert response.status_code == 200
    data = response.get_json()
    assert [p['stability'] for p in data['equilibria']] == ['unstable', 'stable']
    assert data['equilibria'][1]['x'] == pytest.approx(2.0, abs=1e-6)
    assert data['degenerate_intervals'] == []


def test_phase_line_requires_range(client):
    response = client.post('/phase-line', json={'equation': 'X', 'x_min': 1, 'x_max': 0})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'X max must be greater than X min'


def test_simulate_adaptive_stops_at_step_limit(client, monkeypatch):
    monkeypatch.setitem(app.config, 'MAX_STEPS', 150)
    response = client.post('/simulate', json={
        'method': 'adaptive', 'x_prime': 'sin(X)*exp(Y)', 'y_prime': '-X*Y+1',
        'x0': 1, 'y0': 0.3, 't_end': 1.0, 'dt': 0.01, 'tolerance': 1e-14})
    assert response.status_code == 200
    results = response.get_json()['results']
    assert len(results) <= 151
    assert results[-1]['t'] < 1.0
