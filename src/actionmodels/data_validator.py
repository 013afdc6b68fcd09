"""Data validation utilities for fitting action models."""

import logging
import warnings
from typing import Sequence

import numpy as np
import pandas as pd

from .defaults import MissingActions

_logger = logging.getLogger("actionmodels")


class DataValidator:
    """Checks that a dataset can be split into sessions for an action model.

    Parameters
    ----------
    data
        The dataset, one row per timestep.
    observation_cols
        The observation columns.
    action_cols
        The action columns.
    session_cols
        The grouping columns whose value combinations define sessions.
    missing_actions : optional
        How missing actions are handled. Defaults to `MissingActions.NONE`.
    """

    def __init__(
        self,
        data: pd.DataFrame,
        observation_cols: Sequence[str],
        action_cols: Sequence[str],
        session_cols: Sequence[str],
        missing_actions: MissingActions = MissingActions.NONE,
    ):
        self.data = data
        self.observation_cols = list(observation_cols)
        self.action_cols = list(action_cols)
        self.session_cols = list(session_cols)
        self.missing_actions = missing_actions

    @staticmethod
    def check_fields(a, b):
        """Check if all fields in a are in b."""
        missing = [field for field in a if field not in set(b)]
        if missing:  # there are leftover fields
            raise ValueError(f"Field(s) `{', '.join(missing)}` not found in data.")

    def validate(self) -> None:
        """Run all checks.

        Raises
        ------
        ValueError
            If columns are missing, if action columns are not numeric, or if actions
            are missing and the policy does not allow it.
        """
        self._check_columns()
        self._check_actions()

    def _check_columns(self):
        if not self.action_cols:
            raise ValueError("At least one action column must be specified.")
        if not self.session_cols:
            raise ValueError("At least one session column must be specified.")

        for role, columns in (
            ("observation", self.observation_cols),
            ("action", self.action_cols),
            ("session", self.session_cols),
        ):
            try:
                DataValidator.check_fields(columns, self.data.columns)
            except ValueError as exc:
                raise ValueError(f"Invalid {role} columns. {exc}") from exc

        overlap = set(self.action_cols) & (
            set(self.observation_cols) | set(self.session_cols)
        )
        if overlap:
            raise ValueError(
                f"Column(s) `{', '.join(sorted(overlap))}` cannot be both actions and "
                "observations or session columns."
            )

    def _check_actions(self):
        non_numeric = [
            column
            for column in self.action_cols
            if not pd.api.types.is_numeric_dtype(self.data[column])
            or pd.api.types.is_bool_dtype(self.data[column])
        ]
        if non_numeric:
            raise ValueError(
                f"Action column(s) `{', '.join(non_numeric)}` must be numeric."
            )

        n_missing = int(np.sum(self.data[self.action_cols].isna().to_numpy()))
        _logger.debug("Found %d missing action(s) in the data.", n_missing)

        if n_missing and self.missing_actions is MissingActions.NONE:
            raise ValueError(
                f"You have {n_missing} NaN action(s) in your dataset, which is not "
                "allowed when `missing_actions` is 'none'. Set it to 'skip' or "
                "'infer'."
            )
        if not n_missing and self.missing_actions is MissingActions.INFER:
            warnings.warn(
                "`missing_actions` is set to 'infer', but there are no missing "
                "actions in your dataset.",
                UserWarning,
                stacklevel=3,
            )
