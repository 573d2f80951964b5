"""Transport abstraction for the board serial link."""

from .base import Transport

__all__ = ["Transport"]
