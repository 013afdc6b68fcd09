"""A subclass of bmb.Prior that can handle bounds, and builds PyMC variables.

This class is a subclass of bmb.Prior, which is used to represent a prior
distribution until the PyMC model is built. It retains all functionalities of
bmb.Prior but adds the following:

1. The ability to represent a truncated prior.
2. The ability to still print out the prior before the truncation.
3. The ability to create the PyMC variable of the prior, with hyperpriors.
"""

from copy import deepcopy
from typing import Any, Callable

import bambi as bmb
import numpy as np
import pymc as pm
from bambi.backend.utils import get_distribution
from bambi.priors.prior import format_arg

from .defaults import SETTINGS_DISTRIBUTIONS

pymc_dist_args = ["rng", "initval", "dims", "observed", "total_size", "transform"]


# mypy: disable-error-code="has-type"
class Prior(bmb.Prior):
    """Abstract specification of a prior.

    Parameters
    ----------
    name
        Name of prior distribution. Must be the name of a PyMC distribution
        (e.g., ``"Normal"``, ``"StudentT"``, etc.)
    auto_scale : optional
        Kept for compatibility with bmb.Prior. Priors are never rescaled.
    kwargs
        Optional keywords specifying the parameters of the named distribution.
        Values can themselves be priors, which become hyperpriors.
    dist : optional
        A callable that returns a valid PyMC distribution. The signature must contain
        ``name``, ``dims``, and ``shape``, as well as its own keyworded arguments.
    bounds : optional
        A tuple of two floats indicating the lower and upper bounds of the prior.
    """

    def __init__(
        self,
        name: str,
        auto_scale: bool = False,
        dist: Callable | None = None,
        bounds: tuple[float, float] | None = None,
        **kwargs,
    ):
        bmb.Prior.__init__(self, name, auto_scale, dist, **kwargs)
        self.is_truncated = False
        self.bounds = bounds

        if self.bounds is not None:
            assert self.dist is None, (
                "We cannot bound a prior defined with the `dist` argument. The "
                + "`dist` and `bounds` arguments cannot both be supplied."
            )
            lower, upper = self.bounds
            if np.isinf(lower) and np.isinf(upper):
                return

            self.is_truncated = True
            self.dist = _make_truncated_dist(self.name, lower, upper, **self.args)
            self._args = self.args.copy()
            self.args: dict = {}

    def __str__(self) -> str:
        """Create the printout of the object."""
        args = self._args if self.is_truncated else self.args
        args_str = ", ".join(
            [
                f"{k}: {format_arg(v, 4)}"
                if not isinstance(v, type(self))
                else f"{k}: {v}"
                for k, v in args.items()
            ]
        )
        bounds_str = f", bounds: {self.bounds}" if self.is_truncated else ""
        return f"{self.name}({args_str}{bounds_str})"

    def __repr__(self) -> str:
        """Create the string representation of the object."""
        return self.__str__()

    def __eq__(self, other) -> bool:
        """Test equality."""
        if isinstance(other, Prior):
            if self.is_truncated and other.is_truncated:
                return (
                    self.name == other.name
                    and self._args == other._args
                    and self.bounds == other.bounds
                )
            if not self.is_truncated and not other.is_truncated:
                return self.name == other.name and self.args == other.args
            return False

        if isinstance(other, bmb.Prior):
            if self.is_truncated:
                return False
            return self.name == other.name and self.args == other.args

        return False

    def create_variable(self, name: str, dims: Any = None, shape: Any = None):
        """Create the PyMC variable of this prior in the current model context.

        Priors given as arguments become hyperpriors named ``{name}_{argument}``.

        Parameters
        ----------
        name
            The name of the variable.
        dims : optional
            The dims of the variable.
        shape : optional
            The shape of the variable.

        Returns
        -------
        TensorVariable
            The PyMC random variable.
        """
        shape_kwargs = {
            key: value
            for key, value in (("dims", dims), ("shape", shape))
            if value is not None
        }
        if self.dist is not None and not self.is_truncated:
            return self.dist(name, **shape_kwargs, **self.args)

        args = self._args if self.is_truncated else self.args
        resolved = {
            key: generate_prior(value).create_variable(f"{name}_{key}")
            if isinstance(value, bmb.Prior)
            else value
            for key, value in args.items()
        }

        if self.is_truncated:
            lower, upper = self.bounds  # type: ignore[misc]
            return _make_truncated_dist(self.name, lower, upper, **resolved)(
                name, **shape_kwargs
            )
        return get_distribution(self.name)(name, **shape_kwargs, **resolved)


def _make_truncated_dist(
    dist_name: str, lower_bound: float, upper_bound: float, **kwargs
) -> Callable:
    """Create custom functions with truncated priors.

    Helper function that creates a custom function with truncated priors.

    Parameters
    ----------
    lower_bound
        The lower bound for the distribution.
    upper_bound
        The upper bound for the distribution.
    kwargs
        Typically a dictionary with a name for the name of the Prior distribution
        and other arguments passed to bmb.Prior object.

    Returns
    -------
    Callable
        A distribution (TensorVariable) created with pm.Truncated().
    """
    truncated_kwargs = {k: kwargs.pop(k) for k in pymc_dist_args if k in kwargs}

    def TruncatedDist(name, **shape_kwargs):
        dist = get_distribution(dist_name).dist(**kwargs)
        return pm.Truncated(
            name=name,
            dist=dist,
            lower=lower_bound if np.isfinite(lower_bound) else None,
            upper=upper_bound if np.isfinite(upper_bound) else None,
            **truncated_kwargs,
            **shape_kwargs,
        )

    return TruncatedDist


def generate_prior(
    dist: str | dict | bmb.Prior,
    bounds: tuple[float, float] | None = None,
    **kwargs,
) -> Prior:
    """Generate a Prior distribution.

    The parameter ``kwargs`` is used to pass hyperpriors that are assigned to the
    parameters of the prior to be built.

    Parameters
    ----------
    dist:
        If a string, it is the name of the prior distribution with default values taken
        from ``SETTINGS_DISTRIBUTIONS``. If a `dict`, it must contain a ``"name"`` key
        with the name of the distribution, and optionally ``"bounds"`` and the
        arguments of the distribution. Arguments that are strings or dicts become
        hyperpriors.
    bounds: optional
        A tuple of two floats indicating the lower and upper bounds of the prior.

    Raises
    ------
    ValueError
        If ``dist`` is not a string, dict or Prior.

    Returns
    -------
    Prior
        The Prior instance.
    """
    if isinstance(dist, str):
        settings = deepcopy(SETTINGS_DISTRIBUTIONS.get(dist, {}))
        for k, v in kwargs.items():
            settings[k] = generate_prior(v) if isinstance(v, (str, dict)) else v
        return Prior(dist, bounds=bounds, **settings)
    if isinstance(dist, dict):
        settings = deepcopy(dist)
        dist_name = settings.pop("name", None) or settings.pop("dist", None)
        if dist_name is None:
            raise ValueError(f"The prior {dist} must have a 'name' key.")
        bounds = settings.pop("bounds", bounds)
        for k, v in settings.items():
            if isinstance(v, (str, dict)):
                settings[k] = generate_prior(v)
        return Prior(dist_name, bounds=bounds, **settings)
    if isinstance(dist, Prior):
        return dist
    if isinstance(dist, bmb.Prior):
        return Prior(dist.name, dist=dist.dist, **dist.args)
    raise ValueError(
        f"A prior must be the name of a distribution, a dict or a Prior, got {dist!r}."
    )
