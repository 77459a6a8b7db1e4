from typing import Callable, Optional
import warnings

import jax
import jax.numpy as jnp
from tqdm import tqdm

from .sampler import BaseSampler
from jnuts.adaptation.adapter import select_adapter
from jnuts.adaptation.dual_averaging import DAParameters
from jnuts.adaptation.reasonable_stepsize import find_reasonable_step_size
from jnuts.backend.backend import Backend
from jnuts.integrator import Oracle


class NUTSSampler(BaseSampler):
    """Single-chain No-U-Turn sampler with dual averaging warmup.

    Attributes:
        dim (int): Dimensionality of the target distribution.
        oracle (Oracle): Callable returning ``(log density, gradient)``.
        step_size (float | None): Initial step size, searched for when ``None``.
        max_tree_depth (int): Maximum number of trajectory doublings.
        adapter (Adapter): Step size adapter wrapping each transition.
        adapter_state: Current state of the adapter.
    """

    def __init__(self,
                 dim: int,
                 log_prob: Optional[Callable] = None,
                 oracle: Optional[Oracle] = None,
                 step_size: Optional[float] = None,
                 max_tree_depth: int = 10,
                 max_delta_energy: float = 1000.0,
                 backend: Backend = None,
                 adapt_step_size: bool | DAParameters = True,
                 ) -> None:
        """Initialise the sampler configuration.

        Args:
            dim (int): Dimensionality of the target distribution.
            log_prob (Callable, optional): Log density of the target, differentiated
                with JAX.
            oracle (Oracle, optional): Callable returning ``(log density, gradient)``.
            step_size (float, optional): Initial leapfrog step size. Defaults to
                ``None``, in which case it is found by
                :func:`find_reasonable_step_size` at the start of the run.
            max_tree_depth (int): Maximum number of trajectory doublings.
                Defaults to ``10``.
            max_delta_energy (float): Divergence guard. Defaults to ``1000.0``.
            backend: Backend for storing chain data.
            adapt_step_size (bool | DAParameters): Adapt step size of leapfrog
                integrator using Dual Averaging scheme. Defaults to yes, will adapt.
        """
        super().__init__(dim, log_prob, oracle, backend)

        if step_size is not None and not step_size > 0:
            raise ValueError(f"`step_size` must be positive. Got {step_size}")
        self.step_size = step_size
        self.max_tree_depth = max_tree_depth

        self.adapter = select_adapter(adapt_step_size, max_tree_depth, max_delta_energy)
        self.adapter_state = None

    def run_mcmc(self,
                 key: jax.random.PRNGKey,
                 initial_state: jnp.ndarray,
                 num_samples: int,
                 warmup: int = 1000,
                 thin_by: int = 1,
                 show_progress: bool = False,
                 ) -> jnp.ndarray:
        """Run the NUTS sampler.

        Args:
            key (jax.random.PRNGKey): Random number generator key.
            initial_state (jnp.ndarray): Initial position with shape ``(dim,)``.
            num_samples (int): Number of post-warmup samples to retain.
            warmup (int): Number of adapting warmup iterations. Defaults to ``1000``.
            thin_by (int): Keep every ``thin_by`` sample. Defaults to ``1``.
            show_progress (bool): Whether to display a progress bar. Defaults
                to ``False``.

        Returns:
            jnp.ndarray: Post-warmup samples with shape ``(num_samples, dim)``.
        """
        self._validate_mcmc_inputs(num_samples, warmup, thin_by, initial_state)
        self.backend.reset(self.dim)

        x = jnp.asarray(initial_state, dtype=jnp.result_type(float))
        key_init, key_warmup, key_main = jax.random.split(key, 3)

        step_size = self.step_size
        if step_size is None:
            step_size = find_reasonable_step_size(key_init, x, self.oracle)
            print(f'Initial step size: {step_size:.4g}')
        self.adapter_state = self.adapter.init(step_size)

        if warmup > 0:
            print('Starting warmup...')
            x = self._run(key_warmup, x, warmup, adapting=True, show_progress=show_progress)
            print('Warmup complete.')

        print('Starting main sampling...')
        total_samples = num_samples * thin_by
        self._run(key_main, x, total_samples, adapting=False, show_progress=show_progress)
        print('Main sampling complete.')

        self._warn_diagnostics(warmup)
        if total_samples == 0:
            return jnp.zeros((0, self.dim), dtype=self.backend.dtype)
        return self.get_chain(discard=warmup, thin=thin_by)

    def _run(self,
             key: jax.random.PRNGKey,
             x: jnp.ndarray,
             num_steps: int,
             adapting: bool,
             show_progress: bool) -> jnp.ndarray:
        """Run ``num_steps`` transitions, saving each one to the backend."""
        if num_steps == 0:
            return x
        keys = jax.random.split(key, num_steps)
        steps = tqdm(range(num_steps)) if show_progress else range(num_steps)
        for i in steps:
            x, self.adapter_state, info = self.adapter.transition(
                keys[i], x, self.adapter_state, self.oracle, adapting
            )
            self.backend.save_step(x, info)
        return x

    def _warn_diagnostics(self, warmup: int) -> None:
        """Warn about divergences and saturated trees after warmup."""
        if self.backend.iteration <= warmup:
            return
        num_divergent = int(jnp.sum(self.backend.get_value('num_divergent', discard=warmup) > 0))
        if num_divergent > 0:
            warnings.warn(f"{num_divergent} transitions after warmup had divergences. "
                          "Consider a smaller step size or a higher target acceptance.",
                          RuntimeWarning)
        saturated = int(jnp.sum(self.backend.get_value('hit_max_depth', discard=warmup)))
        if saturated > 0:
            warnings.warn(f"{saturated} transitions after warmup reached `max_tree_depth` "
                          f"({self.max_tree_depth}).", RuntimeWarning)
