"""Adapter interface wrapping one NUTS transition per call."""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import jax
import jax.numpy as jnp

from jnuts.integrator import Oracle
from jnuts.kernels.nuts import NUTSInfo, nuts_step


class Adapter(ABC):
    """Abstract base class for step size adaptation algorithms.

    Args:
        max_tree_depth (int): Maximum number of trajectory doublings.
        max_delta_energy (float): Divergence guard of the tree builder.
    """

    def __init__(self, max_tree_depth: int = 10, max_delta_energy: float = 1000.0):
        if max_tree_depth < 1:
            raise ValueError(f"`max_tree_depth` must be at least 1. Got {max_tree_depth}")
        self.max_tree_depth = int(max_tree_depth)
        self.max_delta_energy = float(max_delta_energy)

    @abstractmethod
    def init(self, step_size: float):
        """Initialize adapter state from the initial step size."""
        pass

    def start(self, state, step_size: Optional[float] = None):
        """Enter the adaptation phase. Called before every adapting transition."""
        return state

    @abstractmethod
    def update(self, state, info: NUTSInfo):
        """Update state from the diagnostics of an adapting transition."""
        pass

    @abstractmethod
    def value(self, state) -> float:
        """Step size to use for the next adapting transition."""
        pass

    @abstractmethod
    def finalize(self, state, step_size: Optional[float] = None) -> float:
        """Step size to use once adaptation has ended."""
        pass

    def transition(self,
                   key: jax.random.PRNGKey,
                   x: jnp.ndarray,
                   state,
                   oracle: Oracle,
                   adapting: bool,
                   step_size: Optional[float] = None) -> Tuple[jnp.ndarray, object, NUTSInfo]:
        """Run one NUTS transition, adapting the step size when asked to.

        Args:
            key (jax.random.PRNGKey): Random number generator key.
            x (jnp.ndarray): Current position with shape ``(dim,)``.
            state: Adapter state returned by :meth:`init` or a previous call.
            oracle (Oracle): Callable returning ``(log density, gradient)``.
            adapting (bool): Whether this transition belongs to warmup.
            step_size (float, optional): Externally supplied step size. Used
                when adaptation starts and when it never ran.

        Returns:
            tuple: New position, new adapter state and the transition's
            ``NUTSInfo``. A non-adapting call returns ``state`` unchanged.
        """
        if adapting:
            state = self.start(state, step_size)
            x, info = nuts_step(key, x, oracle, self.value(state),
                                self.max_tree_depth, self.max_delta_energy)
            state = self.update(state, info)
        else:
            x, info = nuts_step(key, x, oracle, self.finalize(state, step_size),
                                self.max_tree_depth, self.max_delta_energy)
        return x, state, info
