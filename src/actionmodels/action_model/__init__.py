"""Define action models: attribute specifications, attributes, and the runtime."""

from .attributes import (
    ModelAttributes,
    load_actions,
    load_parameters,
    load_states,
    update_state,
)
from .errors import AttributeNotFoundError, RejectParameters
from .model import ActionModel
from .numeric import FITTING, SIMULATION, NumericContext
from .specs import (
    Action,
    AttributeType,
    InitialStateParameter,
    Observation,
    Parameter,
    State,
)
from .submodel import (
    ATTRIBUTE_NOT_FOUND,
    NoSubmodel,
    Submodel,
    SubmodelAttributes,
)

__all__ = [
    "ATTRIBUTE_NOT_FOUND",
    "Action",
    "ActionModel",
    "AttributeNotFoundError",
    "AttributeType",
    "FITTING",
    "InitialStateParameter",
    "ModelAttributes",
    "NoSubmodel",
    "NumericContext",
    "Observation",
    "Parameter",
    "RejectParameters",
    "SIMULATION",
    "State",
    "Submodel",
    "SubmodelAttributes",
    "load_actions",
    "load_parameters",
    "load_states",
    "update_state",
]
