"""No-U-Turn Sampler transition kernel.

Recursive tree doubling with slice sampling (Algorithm 3/6 in
https://arxiv.org/abs/1111.4246). Every function that consumes randomness
takes an explicit ``jax.random.PRNGKey``.
"""

from typing import NamedTuple, Tuple
import math

import jax
import jax.numpy as jnp

from jnuts.integrator import Oracle, evaluate, kinetic_energy, leapfrog


class TreeInfo(NamedTuple):
    """Result of building one trajectory segment."""
    x_minus: jnp.ndarray
    r_minus: jnp.ndarray
    grad_minus: jnp.ndarray
    x_plus: jnp.ndarray
    r_plus: jnp.ndarray
    grad_plus: jnp.ndarray
    x_proposal: jnp.ndarray
    logf_proposal: float
    n_valid: int
    keep_going: bool
    sum_accept_probs: float
    num_proposals: int
    num_divergent: int


class NUTSInfo(NamedTuple):
    """Diagnostics of a single NUTS transition.

    Attributes:
        sum_accept_probs (float): Acceptance statistic sum of the last doubling.
        num_proposals (int): Number of leapfrog steps in the last doubling.
        total_accept_probs (float): Acceptance statistic sum over all doublings.
        total_proposals (int): Number of leapfrog steps over all doublings.
        tree_depth (int): Number of doublings performed.
        num_divergent (int): Leaves that tripped the divergence guard.
        hit_max_depth (bool): Whether growth stopped at ``max_tree_depth``.
        logf (float): Log density at the returned position.
        step_size (float): Step size the transition ran with.
    """
    sum_accept_probs: float
    num_proposals: int
    total_accept_probs: float
    total_proposals: int
    tree_depth: int
    num_divergent: int
    hit_max_depth: bool
    logf: float
    step_size: float


def no_u_turn(x_minus: jnp.ndarray,
              x_plus: jnp.ndarray,
              r_minus: jnp.ndarray,
              r_plus: jnp.ndarray) -> bool:
    """Check that a trajectory segment is still expanding.

    The segment keeps going while the span ``x_plus - x_minus`` has a
    non-negative projection onto both edge momenta.

    Args:
        x_minus: Leftmost position
        x_plus: Rightmost position
        r_minus: Leftmost momentum
        r_plus: Rightmost momentum

    Returns:
        False once the trajectory has made a U-turn.
    """
    x_diff = x_plus - x_minus
    return bool((jnp.dot(x_diff, r_minus) >= 0) & (jnp.dot(x_diff, r_plus) >= 0))


def build_basetree(x: jnp.ndarray,
                   r: jnp.ndarray,
                   grad: jnp.ndarray,
                   direction: int,
                   step_size: float,
                   oracle: Oracle,
                   logp0: float,
                   logu0: float,
                   max_delta_energy: float) -> TreeInfo:
    """Take a single leapfrog step and wrap it as a depth-0 tree."""
    x_new, r_new, grad_new, logf_new = leapfrog(x, r, grad, direction * step_size, oracle)
    logp_new = logf_new - kinetic_energy(r_new)

    n_valid = int(logu0 < logp_new)
    keep_going = logu0 < logp_new + max_delta_energy
    # exp(-inf) is 0, so out-of-support points contribute nothing
    accept_prob = math.exp(min(logp_new - logp0, 0.0))

    return TreeInfo(
        x_new, r_new, grad_new,  # left
        x_new, r_new, grad_new,  # right
        x_new, logf_new,  # proposal
        n_valid, keep_going, accept_prob, 1, int(not keep_going)
    )


def build_tree(key: jax.random.PRNGKey,
               x: jnp.ndarray,
               r: jnp.ndarray,
               grad: jnp.ndarray,
               direction: int,
               depth: int,
               step_size: float,
               oracle: Oracle,
               logp0: float,
               logu0: float,
               max_delta_energy: float = 1000.0) -> TreeInfo:
    """Recursively build a trajectory segment of ``2**depth`` leapfrog steps.

    The segment starts from the edge ``(x, r, grad)`` and extends in
    ``direction``. Only the edge on the side being extended moves; the other
    edge of the returned tree is the first state of the segment.

    Args:
        key: Random key used for the candidate selection
        x: Position of the edge to extend from
        r: Momentum of the edge to extend from
        grad: Gradient at ``x``
        direction: -1 to integrate backwards in time, +1 forwards
        depth: Tree depth, the segment holds ``2**depth`` states
        step_size: Unsigned step size
        oracle: Callable returning ``(log density, gradient)``
        logp0: Joint log density at the start of the transition
        logu0: Log slice threshold of the transition
        max_delta_energy: Divergence guard on ``logu0 - logp``

    Returns:
        TreeInfo for the segment.
    """
    if depth == 0:
        return build_basetree(x, r, grad, direction, step_size, oracle,
                              logp0, logu0, max_delta_energy)

    key_first, key_second, key_select = jax.random.split(key, 3)
    tree = build_tree(key_first, x, r, grad, direction, depth - 1, step_size,
                      oracle, logp0, logu0, max_delta_energy)
    if not tree.keep_going:
        return tree

    if direction == -1:
        other = build_tree(key_second, tree.x_minus, tree.r_minus, tree.grad_minus,
                           direction, depth - 1, step_size, oracle, logp0, logu0,
                           max_delta_energy)
        x_minus, r_minus, grad_minus = other.x_minus, other.r_minus, other.grad_minus
        x_plus, r_plus, grad_plus = tree.x_plus, tree.r_plus, tree.grad_plus
    else:
        other = build_tree(key_second, tree.x_plus, tree.r_plus, tree.grad_plus,
                           direction, depth - 1, step_size, oracle, logp0, logu0,
                           max_delta_energy)
        x_minus, r_minus, grad_minus = tree.x_minus, tree.r_minus, tree.grad_minus
        x_plus, r_plus, grad_plus = other.x_plus, other.r_plus, other.grad_plus

    # Progressive sampling within the subtree, weighted by valid-point counts
    n_valid = tree.n_valid + other.n_valid
    x_proposal, logf_proposal = tree.x_proposal, tree.logf_proposal
    if n_valid > 0 and bool(jax.random.uniform(key_select) < other.n_valid / n_valid):
        x_proposal, logf_proposal = other.x_proposal, other.logf_proposal

    keep_going = other.keep_going and no_u_turn(x_minus, x_plus, r_minus, r_plus)

    return TreeInfo(
        x_minus, r_minus, grad_minus,
        x_plus, r_plus, grad_plus,
        x_proposal, logf_proposal,
        n_valid, keep_going,
        tree.sum_accept_probs + other.sum_accept_probs,
        tree.num_proposals + other.num_proposals,
        tree.num_divergent + other.num_divergent,
    )


def nuts_step(key: jax.random.PRNGKey,
              x: jnp.ndarray,
              oracle: Oracle,
              step_size: float,
              max_tree_depth: int = 10,
              max_delta_energy: float = 1000.0) -> Tuple[jnp.ndarray, NUTSInfo]:
    """Perform one NUTS transition from ``x``.

    Args:
        key: Random key
        x: Current position. Shape (dim,)
        oracle: Callable returning ``(log density, gradient)``
        step_size: Leapfrog step size, must be positive
        max_tree_depth: Maximum number of trajectory doublings
        max_delta_energy: Divergence guard on ``logu0 - logp``

    Returns:
        Tuple of (new position, NUTSInfo). ``x`` itself is never modified.

    Raises:
        ValueError: If ``step_size`` is not positive or the log density at
            ``x`` is not finite.
    """
    if not step_size > 0:
        raise ValueError(f"`step_size` must be positive. Got {step_size}")

    x = jnp.asarray(x, dtype=jnp.result_type(float))
    key_momentum, key_slice, key = jax.random.split(key, 3)

    r = jax.random.normal(key_momentum, shape=x.shape, dtype=x.dtype)
    logf, grad, _ = evaluate(oracle, x)
    if not math.isfinite(logf):
        raise ValueError("Log probability at the current position is not finite.")
    logp0 = logf - kinetic_energy(r)
    logu0 = logp0 + float(jnp.log(jax.random.uniform(key_slice)))

    x_minus = x_plus = x
    r_minus = r_plus = r
    grad_minus = grad_plus = grad
    x_proposal, logf_proposal = x, logf

    depth = 0
    n_valid = 1
    keep_going = True
    sum_accept_probs, num_proposals = 0.0, 0
    total_accept_probs, total_proposals = 0.0, 0
    num_divergent = 0
    while keep_going and depth < max_tree_depth:
        key, key_direction, key_tree, key_select = jax.random.split(key, 4)
        direction = 1 if bool(jax.random.bernoulli(key_direction)) else -1
        if direction == -1:
            tree = build_tree(key_tree, x_minus, r_minus, grad_minus, direction, depth,
                              step_size, oracle, logp0, logu0, max_delta_energy)
            x_minus, r_minus, grad_minus = tree.x_minus, tree.r_minus, tree.grad_minus
        else:
            tree = build_tree(key_tree, x_plus, r_plus, grad_plus, direction, depth,
                              step_size, oracle, logp0, logu0, max_delta_energy)
            x_plus, r_plus, grad_plus = tree.x_plus, tree.r_plus, tree.grad_plus

        # Progressive sampling across doublings, biased towards the new subtree
        if tree.keep_going and bool(jax.random.uniform(key_select) < tree.n_valid / n_valid):
            x_proposal, logf_proposal = tree.x_proposal, tree.logf_proposal

        depth += 1
        n_valid += tree.n_valid
        keep_going = tree.keep_going and no_u_turn(x_minus, x_plus, r_minus, r_plus)

        sum_accept_probs, num_proposals = tree.sum_accept_probs, tree.num_proposals
        total_accept_probs += tree.sum_accept_probs
        total_proposals += tree.num_proposals
        num_divergent += tree.num_divergent

    info = NUTSInfo(
        sum_accept_probs=sum_accept_probs,
        num_proposals=num_proposals,
        total_accept_probs=total_accept_probs,
        total_proposals=total_proposals,
        tree_depth=depth,
        num_divergent=num_divergent,
        hit_max_depth=keep_going,
        logf=logf_proposal,
        step_size=step_size,
    )
    return x_proposal, info
