"""Population models without shared structure across sessions."""

import logging
from typing import Any

import pytensor.tensor as pt

from .._types import PriorSpec
from ..data import SessionBatch
from ..prior import Prior, generate_prior
from .base import PopulationModel

_logger = logging.getLogger("actionmodels")


class IndependentPopulationModel(PopulationModel):
    """Draws every parameter of every session independently from its prior.

    Parameters
    ----------
    priors
        A mapping from parameter names to priors. A prior can be a `Prior`, the name
        of a PyMC distribution, or a dict with a ``"name"`` key and the arguments
        of the distribution.

    Raises
    ------
    ValueError
        If no priors are given.
    """

    def __init__(self, priors: dict[str, PriorSpec]):
        if not priors:
            raise ValueError("At least one parameter must have a prior.")
        self.priors: dict[str, Prior] = {
            name: generate_prior(prior) for name, prior in priors.items()
        }

    @property
    def parameter_names(self) -> list[str]:
        """Names of the estimated parameters, in column order."""
        return list(self.priors)

    def build(self, sessions: SessionBatch) -> pt.TensorVariable:
        """Create one variable per parameter, with one value per session."""
        _logger.debug("Creating independent priors for %s.", self.parameter_names)
        columns = [
            prior.create_variable(name, dims="session")
            for name, prior in self.priors.items()
        ]
        return pt.stack(columns, axis=1)

    def __repr__(self) -> str:
        """Return a summary of the priors."""
        priors = ", ".join(f"{name} ~ {prior}" for name, prior in self.priors.items())
        return f"IndependentPopulationModel({priors})"


class SingleSessionPopulationModel(IndependentPopulationModel):
    """The population model of a dataset with exactly one session.

    Parameters
    ----------
    priors
        A mapping from parameter names to priors, as for
        `IndependentPopulationModel`.
    """

    def build(self, sessions: SessionBatch) -> pt.TensorVariable:
        """Create one scalar variable per parameter.

        Raises
        ------
        ValueError
            If there is not exactly one session.
        """
        if sessions.n_sessions != 1:
            raise ValueError(
                "The single-session population model needs exactly one session, "
                f"got {sessions.n_sessions}."
            )
        columns: list[Any] = [
            prior.create_variable(name) for name, prior in self.priors.items()
        ]
        return pt.stack(columns)[None, :]

    def __repr__(self) -> str:
        """Return a summary of the priors."""
        priors = ", ".join(f"{name} ~ {prior}" for name, prior in self.priors.items())
        return f"SingleSessionPopulationModel({priors})"
