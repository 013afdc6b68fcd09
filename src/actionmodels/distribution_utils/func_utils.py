"""Utility functions for creating JAX functions for log-density computations."""

from typing import Callable, cast

from jax import vjp
from jax.tree_util import Partial

from .._types import LogpVJP


def make_vjp_func(logp: Callable) -> LogpVJP:
    """Make a non-jitted VJP of the logp function.

    Evaluation is eager, so the wrapped function may use Python control flow on
    parameter values, and may raise exceptions.

    Parameters
    ----------
    logp
        A JAX function that computes per-session log-densities from the session
        parameter matrix and the latent missing actions.

    Returns
    -------
    LogpVJP
        The VJP of the logp function.
    """

    def vjp_logp(*inputs, gz):
        """Compute the VJP of the log-density function.

        Parameters
        ----------
        inputs
            The session parameter matrix and the latent missing actions.
        gz
            The cotangent of the per-session log-densities.

        Returns
        -------
        tuple
            The VJP with respect to every input.
        """
        _, vjp_fn = vjp(logp, *inputs)
        return vjp_fn(gz)

    return cast("LogpVJP", Partial(vjp_logp))
