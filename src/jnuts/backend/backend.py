"""In-memory storage for a single NUTS chain, modelled on `emcee`'s backend.

See https://github.com/dfm/emcee/tree/main/src/emcee/backends.
"""
import jax
import jax.numpy as jnp
from typing import List

from jnuts.kernels.nuts import NUTSInfo


__all__ = ["Backend"]

_SCALARS = ("log_prob", "accept_prob", "tree_depth", "num_divergent", "hit_max_depth", "step_size")


class Backend(object):
    """A simple default backend that stores the chain in memory.

    Args:
        dtype (jnp.dtype): Datatype of chains. I.e. float32 vs float64.
        device (jax.Device): Where to store the chains.
    """

    def __init__(self,
                 dtype: jnp.dtype = None,
                 device: jax.Device = None):
        if dtype is None:
            dtype = jnp.result_type(float)
        self.dtype = dtype
        self.device = jax.devices('cpu')[0] if device is None else device
        self.initialized = False

    def reset(self, ndim: int):
        """Clear the state of the chain and empty the backend.

        Args:
            ndim (int): The number of dimensions
        """
        self.ndim: int = int(ndim)
        self.iteration: int = 0
        self.chain: List[jnp.ndarray] = []
        self.log_prob: List[float] = []
        self.accept_prob: List[float] = []
        self.tree_depth: List[int] = []
        self.num_divergent: List[int] = []
        self.hit_max_depth: List[bool] = []
        self.step_size: List[float] = []
        self.initialized: bool = True

    def get_value(self,
                  name: str,
                  thin: int = 1,
                  discard: int = 0) -> jnp.ndarray:
        """Return a stored quantity as an array over iterations.

        Args:
            name (str): One of ``'chain'``, ``'log_prob'``, ``'accept_prob'``,
                ``'tree_depth'``, ``'num_divergent'``, ``'hit_max_depth'``
                or ``'step_size'``.
            thin (int): Take only every ``thin`` steps from the chain.
            discard (int): Discard the first ``discard`` steps as burn-in.

        Returns:
            jnp.ndarray: Array whose leading axis runs over iterations.
        """
        if (not self.initialized) or (self.iteration <= 0):
            raise AttributeError(
                "you must run the sampler before accessing the results"
            )
        if name == 'chain':
            v = jnp.stack(self.chain, axis=0)
        elif name in _SCALARS:
            v = jnp.asarray(getattr(self, name))
        else:
            raise ValueError(f"unknown quantity {name!r}")
        return v[discard::thin]

    def get_chain(self, **kwargs) -> jnp.ndarray:
        """Get the stored chain of MCMC samples.

        Args:
            **kwargs: ``thin`` and ``discard``, see :meth:`get_value`.

        Returns:
            array[..., ndim]: The MCMC samples.
        """
        return self.get_value("chain", **kwargs)

    def get_log_prob(self, **kwargs) -> jnp.ndarray:
        """Get the chain of log probabilities evaluated at the MCMC samples.

        Args:
            **kwargs: ``thin`` and ``discard``, see :meth:`get_value`.

        Returns:
            array[...]: The chain of log probabilities.
        """
        return self.get_value("log_prob", **kwargs)

    def save_step(self, coords: jnp.ndarray, info: NUTSInfo):
        """Append one transition to the backend.

        Args:
            coords (jnp.ndarray): Position after the transition, shape ``(ndim,)``.
            info (NUTSInfo): Diagnostics of the transition.
        """
        if coords.shape != (self.ndim,):
            raise ValueError(
                "invalid coordinate dimensions; expected {0}".format((self.ndim,))
            )
        self.chain.append(jax.device_put(jnp.asarray(coords, dtype=self.dtype), self.device))
        self.log_prob.append(info.logf)
        self.accept_prob.append(info.total_accept_probs / max(info.total_proposals, 1))
        self.tree_depth.append(info.tree_depth)
        self.num_divergent.append(info.num_divergent)
        self.hit_max_depth.append(info.hit_max_depth)
        self.step_size.append(info.step_size)
        self.iteration += 1
