"""A class that extends bmb.Link to work as an inverse link on pytensor tensors."""

from typing import Callable

import bambi as bmb
import numpy as np
import pytensor.tensor as pt
from scipy import special

# name: (link, linkinv, linkinv_backend)
LINKS: dict[str, tuple[Callable, Callable, Callable]] = {
    "identity": (lambda x: x, lambda x: x, lambda x: x),
    "logit": (special.logit, special.expit, pt.sigmoid),
    "log": (np.log, np.exp, pt.exp),
}

LINK_ALIASES = {"logistic": "logit", "exp": "log"}


class Link(bmb.Link):
    """Representation of a link function with its inverse.

    The inverse link maps the linear predictor of a regression to the natural domain
    of a parameter. It is applied after all linear algebra.

    Parameters
    ----------
    name
        The name of the link function: ``"identity"``, ``"logit"`` (or its inverse,
        ``"logistic"``), ``"log"`` (or its inverse, ``"exp"``), or ``"gen_logit"``.
        For other names, all of ``link``, ``linkinv`` and ``linkinv_backend`` must
        be given.
    link : optional
        A function that maps the parameter to the linear predictor. Known as the
        :math:`g` function in GLM jargon.
    linkinv : optional
        A function that maps the linear predictor to the parameter. Known as the
        :math:`g^{-1}` function in GLM jargon.
    linkinv_backend : optional
        Same as ``linkinv`` but must work with pytensor tensors.
    bounds : optional
        Bounds of the parameter. Only needed when ``name`` is ``gen_logit``.
    """

    def __init__(
        self,
        name: str,
        link: Callable | None = None,
        linkinv: Callable | None = None,
        linkinv_backend: Callable | None = None,
        bounds: tuple[float, float] | None = None,
    ):
        name = LINK_ALIASES.get(name, name)
        self.name = name
        self.bounds = bounds

        if name == "gen_logit":
            if bounds is None:
                raise ValueError(
                    "Bounds must be specified for generalized logit link function."
                )
            self.link = self._make_generalized_logit_simple(*bounds)
            self.linkinv = self._make_generalized_sigmoid_simple(*bounds)
            self.linkinv_backend = self._make_generalized_sigmoid_backend(*bounds)
        elif name in LINKS:
            self.link, self.linkinv, self.linkinv_backend = LINKS[name]
        else:
            if linkinv_backend is None:
                raise ValueError(
                    f"Link '{name}' is not known. Please specify at least "
                    "`linkinv_backend`."
                )
            self.link = link
            self.linkinv = linkinv if linkinv is not None else linkinv_backend
            self.linkinv_backend = linkinv_backend

    @classmethod
    def from_spec(cls, spec: "str | Callable | Link | None") -> "Link":
        """Make a Link from a name, an inverse link function, or a Link."""
        if spec is None:
            return cls("identity")
        if isinstance(spec, Link):
            return spec
        if isinstance(spec, str):
            return cls(spec)
        if callable(spec):
            name = getattr(spec, "__name__", "custom")
            return cls(name, linkinv_backend=spec)
        raise ValueError(f"Cannot make an inverse link from {spec!r}.")

    def _make_generalized_sigmoid_simple(self, a, b):
        """Make a generalized sigmoid link function with bounds a and b."""

        def invlink_(x):
            return a + ((b - a) / (1 + np.exp(-x)))

        return invlink_

    def _make_generalized_sigmoid_backend(self, a, b):
        """Make a generalized sigmoid that works on pytensor tensors."""

        def invlink_(x):
            return a + (b - a) * pt.sigmoid(x)

        return invlink_

    def _make_generalized_logit_simple(self, a, b):
        """Make a generalized logit link function with bounds a and b."""

        def link_(x):
            return np.log((x - a) / (b - x))

        return link_

    def __str__(self):
        """Return a string representation of the link function."""
        if self.name == "gen_logit" and self.bounds is not None:
            lower, upper = self.bounds
            return f"Generalized logit link function with bounds ({lower}, {upper})"
        return f"Link(name: {self.name})"

    def __repr__(self):
        """Return a string representation of the link function."""
        return self.__str__()
