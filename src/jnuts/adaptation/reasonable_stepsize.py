import math

import jax
import jax.numpy as jnp

from jnuts.integrator import Oracle, evaluate, kinetic_energy, leapfrog


class StepSizeSearchError(RuntimeError):
    """Raised when the initial step size search fails to terminate."""


def log_accept_prob(x: jnp.ndarray,
                    r0: jnp.ndarray,
                    grad0: jnp.ndarray,
                    logf0: float,
                    step_size: float,
                    oracle: Oracle) -> float:
    """Log acceptance probability of a single leapfrog step from ``(x, r0)``."""
    _, r_new, _, logf_new = leapfrog(x, r0, grad0, step_size, oracle)
    return logf_new - logf0 - (kinetic_energy(r_new) - kinetic_energy(r0))


def find_reasonable_step_size(
    key: jax.random.PRNGKey,
    x: jnp.ndarray,
    oracle: Oracle,
    init_step_size: float = 1.0,
    max_iter: int = 100,
) -> float:
    """Find a reasonable initial step size for NUTS.

    Starting from ``init_step_size`` the step size is doubled (or halved)
    until the acceptance probability of a single leapfrog step crosses 0.5
    (Algorithm 4 in https://arxiv.org/abs/1111.4246).

    Args:
        key (jax.random.PRNGKey): Random key to draw the momentum from.
        x (jnp.ndarray): Position to search from, shape ``(dim,)``.
        oracle (Oracle): Callable returning ``(log density, gradient)``.
        init_step_size (float): Step size to start the search from.
        max_iter (int): Maximum number of doublings or halvings.

    Returns:
        A reasonable value for step size.

    Raises:
        ValueError: If the log density at ``x`` is not finite
            or ``init_step_size`` is not positive.
        StepSizeSearchError: If the search does not terminate within
            ``max_iter`` iterations or the step size under- or overflows.
    """
    if not init_step_size > 0:
        raise ValueError(f"`init_step_size` must be positive. Got {init_step_size}")

    x = jnp.asarray(x, dtype=jnp.result_type(float))
    r0 = jax.random.normal(key, shape=x.shape, dtype=x.dtype)

    # Zero-length step gives the baseline log density and gradient
    _, r0, grad0, logf0 = leapfrog(x, r0, jnp.zeros_like(x), 0.0, oracle)
    if not math.isfinite(logf0):
        raise ValueError("Log probability at the initial position is not finite.")

    step_size = float(init_step_size)
    log_prob = log_accept_prob(x, r0, grad0, logf0, step_size, oracle)
    direction = 1 if log_prob > math.log(0.5) else -1

    # prob**direction > 0.5**direction, in log space
    for _ in range(max_iter):
        if not direction * (log_prob - math.log(0.5)) > 0:
            return step_size
        step_size *= 2.0 ** direction
        if step_size == 0.0 or not math.isfinite(step_size):
            raise StepSizeSearchError(f"Step size search left the floating point range at {step_size}")
        log_prob = log_accept_prob(x, r0, grad0, logf0, step_size, oracle)

    if not direction * (log_prob - math.log(0.5)) > 0:
        return step_size
    raise StepSizeSearchError(
        f"Step size search did not terminate after {max_iter} iterations (step size {step_size})"
    )
