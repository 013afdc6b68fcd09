"""Top-level entry to the actionmodels package.

The `actionmodels` module exports the classes needed to define an action model
(`ActionModel`, `Parameter`, `State`, `Observation`, `Action`), to simulate it
(`init_agent`), and to fit it to data with a population model (`create_model`).
Premade models are available through `build_default_registry`.
"""

import importlib.metadata
import logging
import sys

from .action_model import (
    FITTING,
    SIMULATION,
    Action,
    ActionModel,
    AttributeNotFoundError,
    InitialStateParameter,
    Observation,
    Parameter,
    RejectParameters,
    State,
    load_actions,
    load_parameters,
    load_states,
    update_state,
)
from .agent import Agent, init_agent
from .config import SamplerConfig, SaveResumeConfig
from .data import Session, SessionBatch
from .defaults import MissingActions
from .inference import get_session_parameters, get_state_trajectories, summarize
from .link import Link
from .model_fit import ModelFit, create_model, load_fit
from .population import (
    IndependentPopulationModel,
    Regression,
    RegressionPopulationModel,
    SingleSessionPopulationModel,
)
from .premade import ModelRegistry, build_default_registry
from .prior import Prior
from .utils import bounded_exp, bounded_logistic, evert, revert, set_floatX

_logger = logging.getLogger("actionmodels")
_logger.setLevel(logging.INFO)
handler = logging.StreamHandler(stream=sys.stdout)
_logger.addHandler(handler)

__version__ = importlib.metadata.version(__package__ or __name__)

__all__ = [
    "Action",
    "ActionModel",
    "Agent",
    "AttributeNotFoundError",
    "FITTING",
    "IndependentPopulationModel",
    "InitialStateParameter",
    "Link",
    "MissingActions",
    "ModelFit",
    "ModelRegistry",
    "Observation",
    "Parameter",
    "Prior",
    "Regression",
    "RegressionPopulationModel",
    "RejectParameters",
    "SIMULATION",
    "SamplerConfig",
    "SaveResumeConfig",
    "Session",
    "SessionBatch",
    "SingleSessionPopulationModel",
    "State",
    "bounded_exp",
    "bounded_logistic",
    "build_default_registry",
    "create_model",
    "evert",
    "get_session_parameters",
    "get_state_trajectories",
    "init_agent",
    "load_actions",
    "load_fit",
    "load_parameters",
    "load_states",
    "revert",
    "set_floatX",
    "summarize",
    "update_state",
]
