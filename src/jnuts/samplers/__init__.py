from .nuts import NUTSSampler

__all__ = ["NUTSSampler"]
