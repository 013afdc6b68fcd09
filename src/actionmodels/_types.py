"""Type definitions for the actionmodels package."""

from typing import Any, Protocol, Union

import bambi as bmb
import numpy as np

PriorSpec = Union[str, dict[str, Any], bmb.Prior]


class StepFunction(Protocol):
    """A step function of an action model.

    It receives the model attributes of one session followed by one value per
    observation, and returns one action distribution, or a tuple with one
    distribution per action.
    """

    def __call__(self, attributes: Any, *observations: Any) -> Any: ...  # noqa: D102


class LogpFunc(Protocol):
    """A function returning per-session log-densities."""

    def __call__(  # noqa: D102
        self, theta: np.ndarray, latents: np.ndarray
    ) -> np.ndarray: ...


class LogpVJP(Protocol):
    """The vector-Jacobian product of a `LogpFunc`."""

    def __call__(  # noqa: D102
        self, theta: np.ndarray, latents: np.ndarray, gz: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]: ...
