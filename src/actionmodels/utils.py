"""Utility functions used across the actionmodels package."""

import logging
from typing import Any, Literal, Sequence

import jax
import jax.numpy as jnp
import numpy as np
import pytensor
import pytensor.tensor as pt
from pytensor.graph.basic import Variable

from .defaults import ID_COLUMN_SEPARATOR, ID_SEPARATOR

_logger = logging.getLogger("actionmodels")


def set_floatX(dtype: Literal["float32", "float64"], update_jax: bool = True):
    """Set float types for pytensor and Jax.

    Parameters
    ----------
    dtype
        Either `float32` or `float64`. Float type for pytensor (and jax if `jax=True`).
    update_jax : optional
        Whether this function also sets float type for JAX by changing the
        `jax_enable_x64` setting in JAX config. Defaults to True.
    """
    if dtype not in ["float32", "float64"]:
        raise ValueError('`dtype` must be either "float32" or "float64".')

    pytensor.config.floatX = dtype
    _logger.info("Setting PyTensor floatX type to %s.", dtype)

    if update_jax:
        jax_enable_x64 = dtype == "float64"
        jax.config.update("jax_enable_x64", jax_enable_x64)

        _logger.info('Setting "jax_enable_x64" to %s.', jax_enable_x64)


def evert(values: Sequence[Any]) -> Any:
    """Turn a sequence of k-tuples into a tuple of k sequences.

    A sequence of plain values is the case k = 1 and is returned as a list.

    Examples
    --------
    >>> evert([(1, "a"), (2, "b")])
    ([1, 2], ['a', 'b'])
    >>> evert([1, 2])
    [1, 2]
    """
    values = list(values)
    if not values or not isinstance(values[0], tuple):
        return values
    width = len(values[0])
    if any(len(value) != width for value in values):
        raise ValueError("All tuples must have the same length.")
    return tuple([value[i] for value in values] for i in range(width))


def revert(values: Any) -> list[Any]:
    """Turn a tuple of k sequences into a list of k-tuples. The inverse of `evert`."""
    if not isinstance(values, tuple):
        return list(values)
    lengths = {len(column) for column in values}
    if len(lengths) > 1:
        raise ValueError("All sequences must have the same length.")
    return list(zip(*values))


def make_session_id(columns: Sequence[str], values: Sequence[Any]) -> str:
    """Join grouping column names and values into a session id.

    Examples
    --------
    >>> make_session_id(["id", "treatment"], [1, "A"])
    'id:1.treatment:A'
    """
    return ID_SEPARATOR.join(
        f"{column}{ID_COLUMN_SEPARATOR}{value}"
        for column, value in zip(columns, values)
    )


def split_session_id(session_id: str) -> dict[str, str]:
    """Split a session id back into grouping column names and values."""
    return dict(
        part.split(ID_COLUMN_SEPARATOR, 1) for part in session_id.split(ID_SEPARATOR)
    )


def bounded_exp(lower: float | None = None, upper: float = 1e200):
    """Make an exponential inverse link clamped to [lower, upper].

    Parameters
    ----------
    lower : optional
        The lower bound. Defaults to the machine epsilon.
    upper : optional
        The upper bound. Defaults to 1e200.

    Returns
    -------
    Callable
        A function that works on pytensor tensors and on JAX/NumPy arrays.
    """
    lower = float(np.finfo(np.float64).eps) if lower is None else lower

    def _bounded_exp(x):
        return _clip(_exp(x), lower, upper)

    return _bounded_exp


def bounded_logistic(lower: float | None = None, upper: float | None = None):
    """Make a logistic inverse link clamped away from 0 and 1.

    Parameters
    ----------
    lower : optional
        The lower bound. Defaults to the machine epsilon.
    upper : optional
        The upper bound. Defaults to one minus the machine epsilon.
    """
    eps = float(np.finfo(np.float64).eps)
    lower = eps if lower is None else lower
    upper = 1 - eps if upper is None else upper

    def _bounded_logistic(x):
        return _clip(_sigmoid(x), lower, upper)

    return _bounded_logistic


def _is_tensor(x: Any) -> bool:
    return isinstance(x, Variable)


def _exp(x):
    if _is_tensor(x):
        return pt.exp(x)
    return jnp.exp(x)


def _sigmoid(x):
    if _is_tensor(x):
        return pt.sigmoid(x)
    return jax.nn.sigmoid(x)


def _clip(x, lower, upper):
    if _is_tensor(x):
        return pt.clip(x, lower, upper)
    return jnp.clip(x, lower, upper)
