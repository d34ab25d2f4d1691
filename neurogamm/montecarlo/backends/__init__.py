"""Compute backends for Monte Carlo model comparison."""

from neurogamm.montecarlo.backends.cpu import CPUBootstrapLRTBackend

__all__ = ["CPUBootstrapLRTBackend"]
