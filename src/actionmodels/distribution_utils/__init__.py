"""Utilities for bridging JAX log-densities and PyMC models."""

from .func_utils import make_vjp_func
from .jax import make_jax_logp_ops

__all__ = ["make_jax_logp_ops", "make_vjp_func"]
