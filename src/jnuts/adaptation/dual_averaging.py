"""Dual-averaging step size adaptation for NUTS."""

from typing import NamedTuple, Optional

import jax.numpy as jnp

from jnuts.kernels.nuts import NUTSInfo
from .base import Adapter


class NUTSTune(NamedTuple):
    """Per-chain tuning state carried between NUTS transitions.

    Attributes:
        adapt (bool): Whether adaptation has started.
        step_size (float): Current step size.
        step_size_bar (float): Averaged step size, used once warmup ends.
        H_bar (float): Running average of ``target - acceptance statistic``.
        mu (float): Shrinkage target of ``log(step_size)``.
        iteration (int): Adaptation iteration counter ``m``.
        target (float): Target acceptance statistic.
        sum_accept_probs (float): Acceptance statistic sum of the last transition.
        num_proposals (int): Acceptance statistic count of the last transition.
    """
    adapt: bool
    step_size: float
    step_size_bar: float
    H_bar: float
    mu: float
    iteration: int
    target: float
    sum_accept_probs: float
    num_proposals: int


class DAParameters(NamedTuple):
    """Container for dual averaging hyper-parameters.

    Attributes:
        target_accept (float): Target acceptance statistic.
        gamma (float): Controls the speed of adaptation.
        kappa (float): Controls the shrinkage towards the average.
        t0 (float): Free parameter that stabilizes initial iterations.
        accept_stat (str): Which acceptance statistic drives the update,
            ``'last'`` for the final doubling of a transition or ``'total'``
            for all of its doublings.
    """
    target_accept: float = 0.6
    gamma: float = 0.05
    kappa: float = 0.75
    t0: float = 10.0
    accept_stat: str = 'last'


def dual_averaging_update(state: NUTSTune,
                          accept_prob: float,
                          parameters: DAParameters) -> NUTSTune:
    """Advance the dual averaging recursion by one iteration.

    Args:
        state (NUTSTune): Tuning state with ``adapt == True``.
        accept_prob (float): Mean acceptance statistic of the transition.
        parameters (DAParameters): Dual averaging hyper-parameters.

    Returns:
        NUTSTune: State with updated ``iteration``, ``H_bar``, ``step_size``
        and ``step_size_bar``.
    """
    m = state.iteration + 1
    eta = 1.0 / (m + parameters.t0)
    H_bar = (1.0 - eta) * state.H_bar + eta * (state.target - accept_prob)
    log_eps = state.mu - jnp.sqrt(m) * H_bar / parameters.gamma

    eta = m ** (-parameters.kappa)
    log_eps_bar = eta * log_eps + (1.0 - eta) * jnp.log(state.step_size_bar)

    return state._replace(
        iteration=m,
        H_bar=float(H_bar),
        step_size=float(jnp.exp(log_eps)),
        step_size_bar=float(jnp.exp(log_eps_bar)),
    )


class DualAveragingAdapter(Adapter):
    """Dual averaging adapter (Hoffman & Gelman 2014, Section 3.2).

    Args:
        parameters (DAParameters): Dual averaging hyper-parameters.
        max_tree_depth (int): Maximum number of trajectory doublings.
        max_delta_energy (float): Divergence guard of the tree builder.
    """

    def __init__(self,
                 parameters: DAParameters = DAParameters(),
                 max_tree_depth: int = 10,
                 max_delta_energy: float = 1000.0):
        super().__init__(max_tree_depth, max_delta_energy)
        if parameters.accept_stat not in ('last', 'total'):
            raise ValueError('DAParameters.accept_stat must be either "last" or "total"')
        if not 0.0 < parameters.target_accept < 1.0:
            raise ValueError(f"DAParameters.target_accept must lie in (0, 1). Got {parameters.target_accept}")
        self.parameters = parameters

    def init(self, step_size: float) -> NUTSTune:
        """Initialize tuning state, not yet adapting."""
        return NUTSTune(
            adapt=False,
            step_size=float(step_size),
            step_size_bar=1.0,
            H_bar=0.0,
            mu=float('nan'),
            iteration=0,
            target=self.parameters.target_accept,
            sum_accept_probs=0.0,
            num_proposals=0,
        )

    def start(self, state: NUTSTune, step_size: Optional[float] = None) -> NUTSTune:
        """Switch the state to adapting on the first call; no-op afterwards."""
        if state.adapt:
            return state
        step_size = state.step_size if step_size is None else float(step_size)
        return state._replace(
            adapt=True,
            step_size=step_size,
            iteration=0,
            mu=float(jnp.log(10.0 * step_size)),
            target=self.parameters.target_accept,
        )

    def update(self, state: NUTSTune, info: NUTSInfo) -> NUTSTune:
        """Dual averaging update from the transition's acceptance statistic."""
        if self.parameters.accept_stat == 'last':
            alpha, n_alpha = info.sum_accept_probs, info.num_proposals
        else:
            alpha, n_alpha = info.total_accept_probs, info.total_proposals
        state = state._replace(sum_accept_probs=alpha, num_proposals=n_alpha)
        return dual_averaging_update(state, alpha / n_alpha, self.parameters)

    def value(self, state: NUTSTune) -> float:
        """Get current step size during warmup."""
        return state.step_size

    def finalize(self, state: NUTSTune, step_size: Optional[float] = None) -> float:
        """Get the averaged step size, or the supplied one if adaptation never ran."""
        if state.adapt:
            return state.step_size_bar
        return state.step_size if step_size is None else float(step_size)
