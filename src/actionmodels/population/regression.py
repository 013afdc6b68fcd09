"""Hierarchical regression population model.

Each estimated parameter gets its own formula. The right-hand side is turned into a
fixed-effects design matrix, and, for grouping terms such as ``(1 | subject)``, a
random-effects design matrix. Both are built with `formulae` from the session-level
data, so every row corresponds to one session.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np
import pymc as pm
import pytensor.tensor as pt
from formulae import design_matrices

from .._types import PriorSpec
from ..data import SessionBatch
from ..defaults import DEFAULT_REGRESSION_PRIORS
from ..link import Link
from ..prior import generate_prior
from .base import PopulationModel

_logger = logging.getLogger("actionmodels")


@dataclass
class Regression:
    """The regression of one action-model parameter.

    Parameters
    ----------
    formula
        A formula of the form ``"target ~ terms"``. The target is the name of the
        parameter, and the terms may include grouping terms like ``(1 | subject)``.
    prior : optional
        Priors for ``"beta"`` (the fixed-effect coefficients) and ``"sigma"`` (the
        standard deviations of the random effects). Missing entries use
        `DEFAULT_REGRESSION_PRIORS`.
    inv_link : optional
        The inverse link applied to the linear predictor. Either a name accepted by
        `Link`, a `Link`, or a callable working on pytensor tensors. Defaults to
        ``"identity"``.
    """

    formula: str
    prior: dict[str, PriorSpec] | None = None
    inv_link: str | Callable | Link = "identity"

    def __post_init__(self):
        """Split the formula and resolve the link."""
        if "~" not in self.formula:
            raise ValueError(
                f"The formula '{self.formula}' must have the form 'target ~ terms'."
            )
        target, rhs = (part.strip() for part in self.formula.split("~", 1))
        if not target or not rhs:
            raise ValueError(
                f"The formula '{self.formula}' must have the form 'target ~ terms'."
            )
        unknown = set(self.prior or {}) - set(DEFAULT_REGRESSION_PRIORS)
        if unknown:
            raise ValueError(
                f"Unknown regression prior(s) {', '.join(sorted(unknown))}. Use "
                "'beta' and 'sigma'."
            )
        self.target = target
        self.rhs = rhs
        self.link = Link.from_spec(self.inv_link)

    def get_prior(self, name: str):
        """Return the prior of ``"beta"`` or ``"sigma"``."""
        prior = (self.prior or {}).get(name, DEFAULT_REGRESSION_PRIORS[name])
        return generate_prior(prior)


@dataclass
class DesignMatrices:
    """The design matrices of one regression.

    Parameters
    ----------
    X
        The fixed-effects matrix, one row per session.
    Z
        The random-effects matrix, or None without grouping terms.
    group_slices
        For every grouping term, the columns of `Z` it occupies.
    n_categories
        For every grouping term, the number of distinct groups.
    """

    X: np.ndarray
    Z: np.ndarray | None
    group_slices: dict[str, slice]
    n_categories: dict[str, int]


def build_design_matrices(regression: Regression, data: Any) -> DesignMatrices:
    """Build the design matrices of a regression from session-level data.

    Raises
    ------
    ValueError
        If the right-hand side has no fixed effects.
    """
    dm = design_matrices(regression.rhs, data, na_action="error")
    if dm.common is None:
        raise ValueError(
            f"The formula '{regression.formula}' has no fixed effects. Add an "
            "intercept or predictors."
        )
    X = np.asarray(dm.common.design_matrix, dtype=float)

    if dm.group is None:
        return DesignMatrices(X=X, Z=None, group_slices={}, n_categories={})

    Z = np.asarray(dm.group.design_matrix.toarray(), dtype=float)
    group_slices = dict(dm.group.slices)
    n_categories = {name: len(term.groups) for name, term in dm.group.terms.items()}
    return DesignMatrices(
        X=X, Z=Z, group_slices=group_slices, n_categories=n_categories
    )


class RegressionPopulationModel(PopulationModel):
    """Generates session parameters from linear regressions on session covariates.

    For every regression, the coefficients β are drawn from the ``"beta"`` prior.
    For every grouping term, a standard deviation σ is drawn from the ``"sigma"``
    prior and one offset per column of the term from ``Normal(0, σ)``. Grouping
    terms are independent of one another. The linear predictor ``η = Xβ + Zr`` is
    passed through the inverse link last.

    Parameters
    ----------
    regressions
        One regression per estimated parameter. Formula strings are accepted and
        use the default priors and the identity link.

    Raises
    ------
    ValueError
        If two regressions have the same target.
    """

    def __init__(self, regressions: list[Regression | str] | Regression | str):
        if isinstance(regressions, (Regression, str)):
            regressions = [regressions]
        self.regressions = [
            regression
            if isinstance(regression, Regression)
            else Regression(regression)
            for regression in regressions
        ]
        if not self.regressions:
            raise ValueError("At least one regression must be given.")

        targets = [regression.target for regression in self.regressions]
        duplicates = sorted({target for target in targets if targets.count(target) > 1})
        if duplicates:
            raise ValueError(
                f"Parameter(s) {', '.join(duplicates)} are the target of more than one "
                "regression."
            )

    @property
    def parameter_names(self) -> list[str]:
        """Names of the regression targets, in column order."""
        return [regression.target for regression in self.regressions]

    def build(self, sessions: SessionBatch) -> pt.TensorVariable:
        """Create the coefficients, random effects and parameter columns."""
        columns = [
            self._build_regression(regression, sessions)
            for regression in self.regressions
        ]
        return pt.stack(columns, axis=1)

    def _build_regression(
        self, regression: Regression, sessions: SessionBatch
    ) -> pt.TensorVariable:
        target = regression.target
        matrices = build_design_matrices(regression, sessions.session_data)
        _logger.debug(
            "Regression for %s: %d fixed effect(s), grouping terms %s.",
            target,
            matrices.X.shape[1],
            matrices.n_categories,
        )

        beta = regression.get_prior("beta").create_variable(
            f"{target}_beta", shape=matrices.X.shape[1]
        )
        eta = pt.dot(pt.as_tensor_variable(matrices.X), beta)

        if matrices.Z is not None:
            for term, columns in matrices.group_slices.items():
                term_name = _clean_term(term)
                sigma = regression.get_prior("sigma").create_variable(
                    f"{target}_{term_name}_sigma"
                )
                n_columns = columns.stop - columns.start
                offsets = pm.Normal(
                    f"{target}_{term_name}_offset", mu=0.0, sigma=sigma, shape=n_columns
                )
                Z = pt.as_tensor_variable(matrices.Z[:, columns])
                eta = eta + pt.dot(Z, offsets)

        return regression.link.linkinv_backend(eta)

    def __repr__(self) -> str:
        """Return a summary of the regressions."""
        lines = [
            f"  {regression.formula} (link: {regression.link.name})"
            for regression in self.regressions
        ]
        return "RegressionPopulationModel(\n" + "\n".join(lines) + "\n)"


def _clean_term(term: str) -> str:
    return re.sub(r"\W+", "_", term).strip("_")
