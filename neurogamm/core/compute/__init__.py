"""Computation utilities shared across neurogamm."""

from neurogamm.core.compute.timing import Timer

__all__ = ["Timer"]
