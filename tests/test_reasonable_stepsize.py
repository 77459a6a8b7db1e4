'''
Test the initial step size search.
'''
import math

import pytest

import jax
import jax.numpy as jnp
jax.config.update("jax_enable_x64", True)

from jnuts.adaptation.reasonable_stepsize import (StepSizeSearchError, find_reasonable_step_size,
                                                  log_accept_prob)
from jnuts.integrator import make_oracle


def accept_prob(key, x, oracle, step_size):
    '''
    Acceptance probability of one leapfrog step with the momentum the
    search draws from `key`.
    '''
    r0 = jax.random.normal(key, shape=x.shape)
    logf0, grad0 = oracle(x)
    return math.exp(min(log_accept_prob(x, r0, grad0, float(logf0), step_size, oracle), 0.0))


@pytest.mark.parametrize('seed', range(8))
def test_search_brackets_one_half(seed):
    '''
    The returned step size is the first one on the other side of 0.5.
    '''
    key = jax.random.PRNGKey(seed)
    oracle = make_oracle(lambda x: -0.5 * jnp.sum(x**2))
    x = jnp.zeros(1)

    step_size = find_reasonable_step_size(key, x, oracle)
    prob = accept_prob(key, x, oracle, step_size)
    prob_init = accept_prob(key, x, oracle, 1.0)

    assert step_size != 1.0
    if prob_init > 0.5:
        # grew until the acceptance dropped to 0.5 or below
        assert step_size > 1.0
        assert prob <= 0.5
        assert accept_prob(key, x, oracle, step_size / 2) > 0.5
    else:
        # shrank until the acceptance rose above 0.5
        assert step_size < 1.0
        assert prob > 0.5
        assert accept_prob(key, x, oracle, step_size * 2) <= 0.5


def test_unit_gaussian_from_origin():
    '''
    At the mode of a unit gaussian the acceptance of a step is
    exp(-r**2 eps**4 / 8), so the result is a power of two near the
    crossing point.
    '''
    key = jax.random.PRNGKey(0)
    oracle = make_oracle(lambda x: -0.5 * jnp.sum(x**2))
    step_size = find_reasonable_step_size(key, jnp.zeros(1), oracle)

    r0 = float(jax.random.normal(key, shape=(1,))[0])
    crossing = (8 * math.log(2) / r0**2) ** 0.25
    assert math.log2(step_size) == pytest.approx(round(math.log2(step_size)))
    assert crossing / 2 < step_size < crossing * 2


def test_narrow_target_shrinks_step():
    oracle = make_oracle(lambda x: -0.5 * jnp.sum(x**2) / 1e-4)
    step_size = find_reasonable_step_size(jax.random.PRNGKey(3), jnp.array([0.01, -0.01]), oracle)
    assert step_size < 0.1


def test_init_step_size_is_respected():
    oracle = make_oracle(lambda x: -0.5 * jnp.sum(x**2))
    step_size = find_reasonable_step_size(jax.random.PRNGKey(3), jnp.zeros(2), oracle,
                                          init_step_size=0.125)
    assert math.log2(step_size) == pytest.approx(round(math.log2(step_size)))


def test_flat_density_does_not_terminate():
    '''
    A flat density accepts every step, so the step size grows without bound.
    '''
    oracle = lambda x: (0.0, jnp.zeros_like(x))
    with pytest.raises(StepSizeSearchError):
        find_reasonable_step_size(jax.random.PRNGKey(0), jnp.zeros(2), oracle, max_iter=20)


def test_nonfinite_start():
    oracle = lambda x: (-jnp.inf, jnp.zeros_like(x))
    with pytest.raises(ValueError):
        find_reasonable_step_size(jax.random.PRNGKey(0), jnp.zeros(2), oracle)


@pytest.mark.parametrize('init_step_size', [0.0, -0.5])
def test_nonpositive_init_step_size(init_step_size):
    oracle = make_oracle(lambda x: -0.5 * jnp.sum(x**2))
    with pytest.raises(ValueError):
        find_reasonable_step_size(jax.random.PRNGKey(0), jnp.zeros(1), oracle,
                                  init_step_size=init_step_size)
