from .backend import Backend

__all__ = ["Backend"]
