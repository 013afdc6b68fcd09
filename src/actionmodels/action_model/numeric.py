"""Numeric contexts that decide the runtime type of attribute values.

The same step function runs in two contexts. During simulation, attribute values are
plain Python floats and ints, or NumPy arrays. During fitting, they are JAX arrays,
which may be tracers, so that gradients flow through every state update.
"""

from dataclasses import dataclass
from functools import partial
from typing import Any, Callable

import jax
import jax.numpy as jnp
import numpy as np

# Session log-densities are accumulated over many timesteps.
jax.config.update("jax_enable_x64", True)


@dataclass(frozen=True)
class NumericContext:
    """The constructors used for attribute values in one context.

    Parameters
    ----------
    name
        A short name for the context.
    float_type
        Constructor for real-valued scalars.
    int_type
        Constructor for integer-valued scalars.
    float_array_type
        Constructor for arrays of reals.
    int_array_type
        Constructor for arrays of integers.
    differentiable
        Whether values in this context can carry gradients.
    """

    name: str
    float_type: Callable[[Any], Any]
    int_type: Callable[[Any], Any]
    float_array_type: Callable[[Any], Any]
    int_array_type: Callable[[Any], Any]
    differentiable: bool = False


def _to_float(value: Any) -> float:
    return float(np.asarray(value))


def _to_int(value: Any) -> int:
    return int(np.asarray(value))


SIMULATION = NumericContext(
    name="simulation",
    float_type=_to_float,
    int_type=_to_int,
    float_array_type=partial(np.array, dtype=np.float64),
    int_array_type=partial(np.array, dtype=np.int64),
)

FITTING = NumericContext(
    name="fitting",
    float_type=partial(jnp.asarray, dtype=jnp.float64),
    int_type=partial(jnp.asarray, dtype=jnp.int64),
    float_array_type=partial(jnp.asarray, dtype=jnp.float64),
    int_array_type=partial(jnp.asarray, dtype=jnp.int64),
    differentiable=True,
)
