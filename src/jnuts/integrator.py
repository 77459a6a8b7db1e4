"""Oracle wrapping and the leapfrog integrator used by NUTS."""

from typing import Callable, NamedTuple, Optional, Tuple
import warnings

import jax
import jax.numpy as jnp

Oracle = Callable[[jnp.ndarray], Tuple[float, jnp.ndarray]]


class IntegratorState(NamedTuple):
    """Phase-space point produced by one leapfrog step."""

    x: jnp.ndarray
    r: jnp.ndarray
    grad: jnp.ndarray
    logf: float


def make_oracle(log_prob: Callable, grad_log_prob: Optional[Callable] = None) -> Oracle:
    """Build an oracle ``x -> (log density, gradient)`` from a log density.

    Args:
        log_prob (Callable): Unnormalized log density mapping an array of
            shape ``(dim,)`` to a scalar.
        grad_log_prob (Callable, optional): Gradient of ``log_prob``. When
            ``None`` the gradient is computed with ``jax.value_and_grad``.

    Returns:
        Oracle: JIT-compiled callable returning ``(log density, gradient)``.
    """
    if grad_log_prob is None:
        return jax.jit(jax.value_and_grad(log_prob))

    def oracle(x):
        return log_prob(x), grad_log_prob(x)

    return jax.jit(oracle)


def evaluate(oracle: Oracle, x: jnp.ndarray) -> Tuple[float, jnp.ndarray, bool]:
    """Call the oracle and classify its result.

    A log density that is NaN or ``+inf``, or a gradient with a non-finite
    entry, is a domain violation: the log density is reported as ``-inf`` and
    the non-finite gradient entries are zeroed. A log density of ``-inf`` is
    the out-of-support convention and is passed through untouched.

    Args:
        oracle (Oracle): Callable returning ``(log density, gradient)``.
        x (jnp.ndarray): Position of shape ``(dim,)``.

    Returns:
        tuple[float, jnp.ndarray, bool]: Log density, gradient, and whether
        the call was a domain violation.
    """
    logf, grad = oracle(x)
    logf = float(logf)
    grad = jnp.asarray(grad)
    grad_finite = bool(jnp.all(jnp.isfinite(grad)))
    violation = bool(jnp.isnan(logf)) or logf == jnp.inf or not grad_finite
    if violation:
        logf = -jnp.inf
    if not grad_finite:
        grad = jnp.nan_to_num(grad, nan=0.0, posinf=0.0, neginf=0.0)
    return logf, grad, violation


def leapfrog(x: jnp.ndarray,
             r: jnp.ndarray,
             grad: jnp.ndarray,
             step_size: float,
             oracle: Oracle) -> IntegratorState:
    r"""Take one leapfrog step of (signed) size ``step_size``.

    The sign of ``step_size`` is the direction of simulated time, so calling
    this again with ``-step_size`` on its output returns to the start.

    Args:
        x (jnp.ndarray): Position with shape ``(dim,)``.
        r (jnp.ndarray): Momentum with shape ``(dim,)``.
        grad (jnp.ndarray): Gradient :math:`\nabla \log \pi(x)` at ``x``.
        step_size (float): Signed integration step size.
        oracle (Oracle): Callable returning ``(log density, gradient)``.

    Returns:
        IntegratorState: New position, momentum, gradient and log density.
    """
    r = r + (0.5 * step_size) * grad
    x = x + step_size * r
    logf, grad, violation = evaluate(oracle, x)
    if violation:
        warnings.warn("Oracle returned a non-finite value; treating the point as outside the support.",
                      RuntimeWarning, stacklevel=2)
    r = r + (0.5 * step_size) * grad
    return IntegratorState(x, r, grad, logf)


def kinetic_energy(r: jnp.ndarray) -> float:
    """Return the Euclidean kinetic energy ``0.5 * |r|^2``."""
    return 0.5 * float(jnp.dot(r, r))
