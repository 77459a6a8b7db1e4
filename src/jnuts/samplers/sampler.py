"""High-level sampler implementations for jnuts."""

from abc import ABC
from typing import Callable, Optional

import jax.numpy as jnp

from jnuts.backend.backend import Backend
from jnuts.integrator import Oracle, make_oracle


class BaseSampler(ABC):
    """Base class for single-chain MCMC samplers with common functionality.

    Attributes:
        dim (int): Dimensionality of the target distribution.
        oracle (Oracle): Callable returning ``(log density, gradient)``.
        backend (Backend): Backend for storing chain data.
    """

    def __init__(
        self,
        dim: int,
        log_prob: Optional[Callable] = None,
        oracle: Optional[Oracle] = None,
        backend: Backend = None,
    ) -> None:
        """Initialize the base sampler configuration.

        Args:
            dim (int): Dimensionality of the target distribution.
            log_prob (Callable, optional): Callable returning the log density
                of the target distribution (doesn't need to be normalized).
                Differentiated with JAX to build the oracle.
            oracle (Oracle, optional): Callable returning
                ``(log density, gradient)``. Takes precedence over ``log_prob``.
            backend: Backend for storing chain data.
        """
        if (log_prob is None) == (oracle is None):
            raise ValueError("Exactly one of `log_prob` and `oracle` must be given")
        if dim < 1:
            raise ValueError("`dim` must be 1 or greater.")

        self.dim = int(dim)
        self.oracle = make_oracle(log_prob) if oracle is None else oracle
        self.backend = Backend() if backend is None else backend
        self.backend.reset(self.dim)

    def _validate_mcmc_inputs(self,
                              num_samples: int,
                              warmup: int,
                              thin_by: int,
                              initial_state: jnp.ndarray) -> None:
        """Validate common MCMC input parameters.

        Args:
            num_samples (int): Number of post-warmup samples to retain.
            warmup (int): Number of warmup iterations.
            thin_by (int): Keep every `thin_by` sample.
            initial_state (jnp.ndarray): Starting position.
        """
        if thin_by < 1:
            raise ValueError("`thin_by` must be 1 or greater.")

        if warmup < 0:
            raise ValueError("`warmup` must be 0 or greater.")

        if num_samples < 0:
            raise ValueError("`num_samples` must be 0 or greater.")

        if jnp.shape(initial_state) != (self.dim,):
            raise ValueError(f'`initial_state` needs to have shape {(self.dim,)}')

    def get_chain(self,
                  discard: int = 0,
                  thin: int = 1) -> jnp.ndarray:
        return self.backend.get_chain(discard=discard, thin=thin)

    def get_logprob(self,
                    discard: int = 0,
                    thin: int = 1) -> jnp.ndarray:
        return self.backend.get_log_prob(discard=discard, thin=thin)

    def get_acceptance_prob(self, discard: int = 0) -> float:
        return float(jnp.mean(self.backend.get_value('accept_prob', discard=discard)))
