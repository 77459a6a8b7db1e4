from .dual_averaging import DAParameters, DualAveragingAdapter, NUTSTune
from .adapter import NoOpAdapter, select_adapter
from .reasonable_stepsize import StepSizeSearchError, find_reasonable_step_size

__all__ = ["DAParameters", "DualAveragingAdapter", "NUTSTune", "NoOpAdapter", "select_adapter",
           "StepSizeSearchError", "find_reasonable_step_size"]
