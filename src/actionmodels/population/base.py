"""The interface shared by all population models."""

import warnings
from abc import ABC, abstractmethod
from typing import Iterable

import numpy as np
import pymc as pm
import pytensor.tensor as pt

from ..action_model import ActionModel
from ..data import SessionBatch


class PopulationModel(ABC):
    """Generates the matrix of per-session parameters.

    Rows of the matrix are sessions, in the order of the `SessionBatch`. Columns are
    the estimated parameters, in the order of `parameter_names`.
    """

    @property
    @abstractmethod
    def parameter_names(self) -> list[str]:
        """Names of the estimated parameters, in column order."""

    @abstractmethod
    def build(self, sessions: SessionBatch) -> pt.TensorVariable:
        """Create the PyMC variables in the current model context.

        Returns
        -------
        pt.TensorVariable
            The (session x parameter) matrix.
        """

    def check(
        self, action_model: ActionModel, fixed_parameters: Iterable[str] = ()
    ) -> None:
        """Check that every estimated parameter exists on the action model.

        Parameters that are neither estimated nor in ``fixed_parameters`` keep their
        values from the action model, which triggers a warning.

        Raises
        ------
        ValueError
            If a parameter is estimated twice, or does not exist.
        """
        names = self.parameter_names
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(
                f"Parameter(s) {', '.join(duplicates)} are estimated more than once."
            )
        unknown = [name for name in names if name not in action_model.parameter_names]
        if unknown:
            raise ValueError(
                f"Parameter(s) {', '.join(unknown)} do not exist in the action model."
            )

        fixed = set(fixed_parameters)
        not_estimated = [
            name
            for name in action_model.parameter_names
            if name not in names and name not in fixed
        ]
        if not_estimated:
            warnings.warn(
                f"Parameter(s) {', '.join(not_estimated)} have no prior and will not "
                "be estimated. Their values from the action model are used.",
                UserWarning,
                stacklevel=3,
            )

    def generate(
        self, sessions: SessionBatch, draws: int = 1, random_seed=None
    ) -> np.ndarray:
        """Draw session parameter matrices from the population model.

        Parameters
        ----------
        sessions
            The sessions.
        draws : optional
            The number of draws. Defaults to 1.
        random_seed : optional
            Seed for the draws.

        Returns
        -------
        np.ndarray
            An array of shape (draws, session, parameter).
        """
        with pm.Model(coords=self.coords(sessions)):
            theta = self.build(sessions)
        result = np.asarray(pm.draw(theta, draws=draws, random_seed=random_seed))
        # pm.draw drops the draw axis for a single draw
        return result[np.newaxis] if draws == 1 else result

    def coords(self, sessions: SessionBatch) -> dict[str, list]:
        """Coordinates used by the variables of this population model."""
        return {"session": sessions.session_ids, "parameter": self.parameter_names}
