'''
Test the leapfrog integrator and the oracle wrapper.
'''
import pytest

import jax
import jax.numpy as jnp
jax.config.update("jax_enable_x64", True)

from jnuts.integrator import evaluate, kinetic_energy, leapfrog, make_oracle


def log_prob(x):
    '''
    Unit gaussian.
    '''
    return -0.5 * jnp.sum(x**2)


class CountingOracle:
    '''
    Oracle of a unit gaussian that counts its calls.
    '''
    def __init__(self):
        self.calls = 0

    def __call__(self, x):
        self.calls += 1
        return -0.5 * jnp.dot(x, x), -x


def test_TimeReversalSymmetry():
    '''
    Integrating forwards and then backwards in time returns to the start.
    '''
    key = jax.random.PRNGKey(1)
    keys = jax.random.split(key, 2)
    dim = 3
    step_size = 0.1
    oracle = make_oracle(log_prob)

    x = jax.random.normal(keys[0], shape=(dim,))
    r = jax.random.normal(keys[1], shape=(dim,))
    _, grad = oracle(x)

    # Run integrator forwards in time
    x1, r1, grad1, _ = leapfrog(x, r, grad, step_size, oracle)
    # Run integrator backwards in time
    x0, r0, grad0, _ = leapfrog(x1, r1, grad1, -step_size, oracle)

    assert jnp.allclose(x, x0, atol=1e-12)
    assert jnp.allclose(r, r0, atol=1e-12)
    assert jnp.allclose(grad, grad0, atol=1e-12)


def test_TimeReversalSymmetry_ManySteps():
    key = jax.random.PRNGKey(2)
    keys = jax.random.split(key, 2)
    oracle = make_oracle(lambda x: -0.25 * jnp.sum(x**4) - 0.5 * jnp.sum(x**2))

    x = jax.random.normal(keys[0], shape=(2,))
    r = jax.random.normal(keys[1], shape=(2,))
    _, grad = oracle(x)

    state = (x, r, grad)
    for _ in range(20):
        state = leapfrog(*state, 0.05, oracle)[:3]
    for _ in range(20):
        state = leapfrog(*state, -0.05, oracle)[:3]

    assert jnp.allclose(state[0], x, atol=1e-10)
    assert jnp.allclose(state[1], r, atol=1e-10)


def test_single_oracle_call_per_step():
    oracle = CountingOracle()
    x = jnp.array([0.3, -0.2])
    leapfrog(x, jnp.ones(2), -x, 0.2, oracle)
    assert oracle.calls == 1


def test_zero_length_step_is_baseline():
    '''
    A step of size zero leaves the point in place and refreshes the cache.
    '''
    oracle = CountingOracle()
    x = jnp.array([1.0, 2.0])
    r = jnp.array([0.5, -0.5])
    x1, r1, grad1, logf1 = leapfrog(x, r, jnp.zeros(2), 0.0, oracle)

    assert jnp.array_equal(x1, x)
    assert jnp.array_equal(r1, r)
    assert jnp.allclose(grad1, -x)
    assert logf1 == pytest.approx(-2.5)


def test_energy_approximately_conserved():
    oracle = make_oracle(log_prob)
    x = jnp.array([1.0, 0.0])
    r = jnp.array([0.0, 1.0])
    logf, grad = oracle(x)
    h0 = -float(logf) + kinetic_energy(r)

    state = (x, r, grad)
    for _ in range(50):
        x_new, r_new, grad_new, logf_new = leapfrog(*state, 0.01, oracle)
        state = (x_new, r_new, grad_new)

    assert -logf_new + kinetic_energy(r_new) == pytest.approx(h0, abs=1e-4)


class TestOracle:
    '''
    Classification of oracle results.
    '''

    def test_make_oracle_autodiff(self):
        oracle = make_oracle(log_prob)
        logf, grad = oracle(jnp.array([1.0, -2.0]))
        assert float(logf) == pytest.approx(-2.5)
        assert jnp.allclose(grad, jnp.array([-1.0, 2.0]))

    def test_make_oracle_explicit_gradient(self):
        oracle = make_oracle(log_prob, grad_log_prob=lambda x: -2.0 * x)
        _, grad = oracle(jnp.array([1.0]))
        assert jnp.allclose(grad, jnp.array([-2.0]))

    def test_finite_result_passes_through(self):
        logf, grad, violation = evaluate(lambda x: (-1.0, x), jnp.array([1.0, 2.0]))
        assert logf == -1.0
        assert jnp.array_equal(grad, jnp.array([1.0, 2.0]))
        assert not violation

    def test_neginf_is_out_of_support(self):
        logf, grad, violation = evaluate(lambda x: (-jnp.inf, x), jnp.array([1.0]))
        assert logf == -jnp.inf
        assert not violation

    @pytest.mark.parametrize('bad', [jnp.nan, jnp.inf])
    def test_nonfinite_log_prob_is_violation(self, bad):
        logf, _, violation = evaluate(lambda x: (bad, x), jnp.array([1.0]))
        assert logf == -jnp.inf
        assert violation

    def test_nonfinite_gradient_is_zeroed(self):
        grad_bad = jnp.array([jnp.nan, 1.0, jnp.inf])
        logf, grad, violation = evaluate(lambda x: (0.0, grad_bad), jnp.zeros(3))
        assert violation
        assert logf == -jnp.inf
        assert jnp.array_equal(grad, jnp.array([0.0, 1.0, 0.0]))

    def test_leapfrog_warns_on_violation(self):
        oracle = lambda x: (jnp.nan, jnp.zeros_like(x))
        with pytest.warns(RuntimeWarning, match="non-finite"):
            x, r, grad, logf = leapfrog(jnp.zeros(2), jnp.ones(2), jnp.zeros(2), 0.1, oracle)
        assert logf == -jnp.inf
        assert jnp.all(jnp.isfinite(r))
