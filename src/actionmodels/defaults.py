"""Provide default settings used across the actionmodels package."""

from enum import Enum


class MissingActions(Enum):
    """How missing actions in the data are handled when fitting.

    NONE
        Missing actions are not allowed. A dataset with missing actions is rejected.
    SKIP
        Timesteps with missing actions contribute no likelihood term, but their
        observations are still passed through the action model.
    INFER
        Missing actions are treated as latent variables and sampled along with the
        session parameters.
    """

    NONE = "none"
    SKIP = "skip"
    INFER = "infer"


# Separators used to build session ids from grouping columns, e.g. "id:1.treatment:A"
ID_SEPARATOR = "."
ID_COLUMN_SEPARATOR = ":"

# Default names for attributes passed without a name
DEFAULT_NAMES = {
    "parameters": "parameter",
    "states": "state",
    "observations": "observation",
    "actions": "action",
}

# Name of the deterministic that records per-session parameters in the PyMC model
SESSION_PARAMETERS_NAME = "session_parameters"
SESSION_LOGP_NAME = "session_logp"
MISSING_ACTIONS_NAME = "missing_actions"

# Default priors for the regression population model
DEFAULT_REGRESSION_PRIORS: dict[str, dict] = {
    "beta": {"name": "StudentT", "nu": 3.0, "mu": 0.0, "sigma": 1.0},
    # StudentT folded at 0, which pymc can draw from directly
    "sigma": {"name": "HalfStudentT", "nu": 3.0, "sigma": 1.0},
}

# Default values for the named priors, following PyMC argument names
SETTINGS_DISTRIBUTIONS: dict[str, dict] = {
    "Normal": {"mu": 0.0, "sigma": 1.0},
    "HalfNormal": {"sigma": 1.0},
    "StudentT": {"nu": 3.0, "mu": 0.0, "sigma": 1.0},
    "HalfStudentT": {"nu": 3.0, "sigma": 1.0},
    "LogNormal": {"mu": 0.0, "sigma": 1.0},
    "Beta": {"alpha": 1.0, "beta": 1.0},
    "Gamma": {"mu": 1.0, "sigma": 1.0},
    "Exponential": {"lam": 1.0},
    "Uniform": {"lower": 0.0, "upper": 1.0},
}
