"""jnuts: the No-U-Turn Sampler with dual averaging in JAX."""

from .integrator import leapfrog, make_oracle
from .kernels.nuts import NUTSInfo, build_tree, no_u_turn, nuts_step
from .adaptation import DAParameters, DualAveragingAdapter, NUTSTune, StepSizeSearchError, find_reasonable_step_size
from .samplers.nuts import NUTSSampler
__version__ = '0.1.0'

__all__ = ["NUTSSampler", "DualAveragingAdapter", "DAParameters", "NUTSTune", "NUTSInfo",
           "StepSizeSearchError", "find_reasonable_step_size", "nuts_step", "build_tree",
           "no_u_turn", "leapfrog", "make_oracle"]
