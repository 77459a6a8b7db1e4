from typing import NamedTuple, Optional

from jnuts.kernels.nuts import NUTSInfo
from .base import Adapter
from .dual_averaging import DAParameters, DualAveragingAdapter


class NoOpState(NamedTuple):
    """Trivial state that just holds a constant step size."""
    constant_step_size: float


class NoOpAdapter(Adapter):
    """No-op adapter for when adaptation is disabled."""

    def init(self, step_size: float) -> NoOpState:
        """Initialize with the provided constant step size."""
        return NoOpState(constant_step_size=float(step_size))

    def update(self, state: NoOpState, info: NUTSInfo) -> NoOpState:
        """No-op: return state unchanged."""
        return state

    def value(self, state: NoOpState) -> float:
        """Return the constant step size."""
        return state.constant_step_size

    def finalize(self, state: NoOpState, step_size: Optional[float] = None) -> float:
        """Return the constant step size, or the supplied one."""
        return state.constant_step_size if step_size is None else float(step_size)


def select_adapter(da_parameters: bool | DAParameters,
                   max_tree_depth: int = 10,
                   max_delta_energy: float = 1000.0) -> Adapter:
    """Select appropriate adapter based on parameter configuration.

    Args:
        da_parameters: True for default DA, False to disable, or custom DAParameters
        max_tree_depth: Maximum number of trajectory doublings
        max_delta_energy: Divergence guard of the tree builder

    Returns:
        Adapter instance configured according to parameters

    Raises:
        ValueError: If ``da_parameters`` is neither a bool nor DAParameters
    """
    if da_parameters is True:
        da_parameters = DAParameters()

    if da_parameters is False:
        return NoOpAdapter(max_tree_depth, max_delta_energy)
    if not isinstance(da_parameters, DAParameters):
        raise ValueError(f'`adapt_step_size` must be a bool or DAParameters. Got {da_parameters!r}')
    return DualAveragingAdapter(da_parameters, max_tree_depth, max_delta_energy)
